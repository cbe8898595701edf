"""Form schemas.

A FormSchema is the immutable, ordered table of FieldDescriptors for one form
type, plus the nested collection schemas (line items) it contains. It also
carries the identity used for draft persistence: a schema id, a version string
and the storage key of the form's draft slot.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Tuple

from typing_extensions import TypeAlias

from catalog_intake.errors import UnknownFieldError
from catalog_intake.fields import FieldDescriptor, ValidationOutcome


Deriver: TypeAlias = Callable[[Mapping[str, Any], Mapping[str, ValidationOutcome]], Dict[str, Any]]


@dataclass(frozen=True)
class LineItemSchema:
    """Field table of one line item.

    Attributes:
        name: Schema name used in error messages
        fields: Ordered field descriptors of an item
        derive: Optional function computing derived values (e.g. margin) from
            an item's values and validation outcomes
    """
    name: str
    fields: Tuple[FieldDescriptor, ...]
    derive: Optional[Deriver] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        keys = [f.key for f in self.fields]
        if len(keys) != len(set(keys)):
            raise ValueError(f"Duplicate field keys in line item schema '{self.name}'")

    def field(self, key: str) -> FieldDescriptor:
        for descriptor in self.fields:
            if descriptor.key == key:
                return descriptor
        raise UnknownFieldError(key, self.name)

    @property
    def required_fields(self) -> Tuple[FieldDescriptor, ...]:
        return tuple(f for f in self.fields if f.required)

    def defaults(self) -> Dict[str, Any]:
        return {f.key: f.default for f in self.fields}


@dataclass(frozen=True)
class CollectionSchema:
    """A variable-length list of line items nested in a form.

    Attributes:
        key: Payload key of the collection (e.g. "lineItems")
        item_schema: Schema of each item
        min_items: Minimum number of items for the form to be submit-eligible
        id_prefix: Prefix of generated item ids
    """
    key: str
    item_schema: LineItemSchema
    min_items: int = 1
    id_prefix: str = "li"


@dataclass(frozen=True)
class FormSchema:
    """Immutable description of one form type.

    Attributes:
        schema_id: Identity of the form type (e.g. "new-line-form")
        version: Schema version; drafts written under another version are discarded
        storage_key: Fixed key of this form's draft slot
        fields: Ordered top-level field descriptors
        collections: Nested collection schemas

    Examples:
        >>> from catalog_intake.types import FieldKind
        >>> schema = FormSchema(
        ...     schema_id="demo", version="1", storage_key="demo-draft",
        ...     fields=(FieldDescriptor("title", FieldKind.TEXT, required=True),),
        ... )
        >>> [f.key for f in schema.required_fields]
        ['title']
    """
    schema_id: str
    version: str
    storage_key: str
    fields: Tuple[FieldDescriptor, ...]
    collections: Tuple[CollectionSchema, ...] = ()

    def __post_init__(self) -> None:
        keys = [f.key for f in self.fields] + [c.key for c in self.collections]
        if len(keys) != len(set(keys)):
            raise ValueError(f"Duplicate keys in form schema '{self.schema_id}'")

    def __iter__(self) -> Iterator[FieldDescriptor]:
        return iter(self.fields)

    def field(self, key: str) -> FieldDescriptor:
        """Return the descriptor for ``key``.

        Raises:
            UnknownFieldError: If the schema does not declare ``key``
        """
        for descriptor in self.fields:
            if descriptor.key == key:
                return descriptor
        raise UnknownFieldError(key, self.schema_id)

    def has_field(self, key: str) -> bool:
        return any(f.key == key for f in self.fields)

    def collection(self, key: str) -> CollectionSchema:
        for collection in self.collections:
            if collection.key == key:
                return collection
        raise UnknownFieldError(key, self.schema_id)

    @property
    def required_fields(self) -> Tuple[FieldDescriptor, ...]:
        return tuple(f for f in self.fields if f.required)

    def defaults(self) -> Dict[str, Any]:
        """Top-level default values, in schema order."""
        return {f.key: f.default for f in self.fields}


__all__ = [
    "Deriver",
    "LineItemSchema",
    "CollectionSchema",
    "FormSchema",
]
