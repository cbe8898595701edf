"""Form state for one active form session.

FormState is the record of the current field values, the last validation
outcome of each field and the nested line item collections. It is immutable:
``set_field`` and every other operation return a new FormState, so a reader
never observes a half-updated form.

Live validation is per field. ``set_field`` re-validates only the field being
set; fields the user has not touched have no outcome yet. The full pass over
every field happens at submit time (see ``catalog_intake.validation``).

Usage:
    >>> from catalog_intake.forms import PRODUCT_FORM
    >>> state = FormState.initial(PRODUCT_FORM)
    >>> state = state.set_field("title", "Rose Eau de Parfum")
    >>> state.outcomes["title"].valid
    True
    >>> state.reset() == FormState.initial(PRODUCT_FORM)
    True
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Mapping, NamedTuple, Optional

from catalog_intake.errors import SchemaVersionMismatch
from catalog_intake.fields import ValidationOutcome, outcomes_for
from catalog_intake.line_items import LineItemCollection
from catalog_intake.schema import FormSchema

if TYPE_CHECKING:
    from catalog_intake.drafts import DraftRecord


logger = logging.getLogger(__name__)


class LoadedDraft(NamedTuple):
    """Result of restoring a FormState from a stored draft.

    Attributes:
        state: Restored state, or the default state when the draft was discarded
        discarded: Whether the draft was incompatible or corrupt and dropped
        reason: Why the draft was discarded
    """
    state: "FormState"
    discarded: bool = False
    reason: Optional[str] = None


@dataclass(frozen=True)
class FormState:
    """Current values and validity of a form.

    Attributes:
        schema: The form's schema
        values: Top-level field values; every key is declared by the schema
        outcomes: Last validation outcome per top-level field
        collections: Line item collections by collection key
    """
    schema: FormSchema
    values: Dict[str, Any]
    outcomes: Dict[str, ValidationOutcome] = field(default_factory=dict)
    collections: Dict[str, LineItemCollection] = field(default_factory=dict)

    @classmethod
    def initial(cls, schema: FormSchema) -> "FormState":
        """Fresh state at schema defaults.

        Defaults that are non-empty and valid (e.g. a preselected product type)
        get a Valid outcome; everything else starts untouched.
        """
        values = schema.defaults()
        return cls(
            schema=schema,
            values=values,
            outcomes=outcomes_for(schema.fields, values, include_invalid=False),
            collections={c.key: LineItemCollection.empty(c) for c in schema.collections},
        )

    def reset(self) -> "FormState":
        """Return a fresh state at schema defaults."""
        return FormState.initial(self.schema)

    def set_field(self, key: str, value: Any) -> "FormState":
        """Set one top-level field and re-validate it.

        Raises:
            UnknownFieldError: If the schema does not declare ``key``
        """
        descriptor = self.schema.field(key)
        values = dict(self.values)
        values[key] = value
        outcomes = dict(self.outcomes)
        outcomes[key] = descriptor.check(value)
        return FormState(self.schema, values, outcomes, self.collections)

    def outcome(self, key: str) -> Optional[ValidationOutcome]:
        """Last outcome of ``key``, or None if the field is untouched."""
        self.schema.field(key)
        return self.outcomes.get(key)

    def collection(self, key: str) -> LineItemCollection:
        self.schema.collection(key)
        return self.collections[key]

    def _with_collection(self, collection: LineItemCollection) -> "FormState":
        collections = dict(self.collections)
        collections[collection.key] = collection
        return FormState(self.schema, self.values, self.outcomes, collections)

    def add_item(self, collection_key: str, item_id: Optional[str] = None) -> "FormState":
        return self._with_collection(self.collection(collection_key).add_item(item_id))

    def remove_item(self, collection_key: str, item_id: str) -> "FormState":
        return self._with_collection(self.collection(collection_key).remove_item(item_id))

    def update_item_field(
        self, collection_key: str, item_id: str, key: str, value: Any
    ) -> "FormState":
        collection = self.collection(collection_key)
        return self._with_collection(collection.update_item_field(item_id, key, value))

    def move_item(self, collection_key: str, item_id: str, position: int) -> "FormState":
        return self._with_collection(self.collection(collection_key).move_item(item_id, position))

    def to_plain_record(self) -> Dict[str, Any]:
        """Plain key/value mapping of the form, used for drafts and payloads.

        Collections appear under their key as lists of item records.
        """
        record: Dict[str, Any] = dict(self.values)
        for key, collection in self.collections.items():
            record[key] = collection.to_records()
        return record

    @classmethod
    def from_plain_record(cls, schema: FormSchema, record: Mapping[str, Any]) -> "FormState":
        """Rebuild a state from a plain record.

        Keys the schema does not declare are dropped and missing keys take their
        defaults. Non-empty values are re-validated.

        Raises:
            ValueError: If a collection entry is not a list of item records
        """
        values = schema.defaults()
        for descriptor in schema.fields:
            if descriptor.key in record:
                values[descriptor.key] = record[descriptor.key]

        collections: Dict[str, LineItemCollection] = {}
        for collection_schema in schema.collections:
            records = record.get(collection_schema.key, [])
            if not isinstance(records, list) or not all(
                isinstance(r, Mapping) and "id" in r for r in records
            ):
                raise ValueError(
                    f"Collection '{collection_schema.key}' is not a list of line item records"
                )
            collections[collection_schema.key] = LineItemCollection.from_records(
                collection_schema, records
            )

        return cls(
            schema=schema,
            values=values,
            outcomes=outcomes_for(schema.fields, values),
            collections=collections,
        )

    @classmethod
    def load_from_draft(cls, schema: FormSchema, draft: "DraftRecord") -> LoadedDraft:
        """Restore a state from a stored draft.

        An incompatible schema version or a malformed record discards the draft:
        the default state is returned with ``discarded`` set. This never raises.
        """
        try:
            draft.ensure_compatible(schema)
            state = cls.from_plain_record(schema, draft.values)
        except SchemaVersionMismatch as e:
            logger.info("Discarding draft for %s: %s", schema.schema_id, e)
            return LoadedDraft(cls.initial(schema), discarded=True, reason=str(e))
        except ValueError as e:
            logger.warning("Discarding malformed draft for %s: %s", schema.schema_id, e)
            return LoadedDraft(cls.initial(schema), discarded=True, reason=str(e))
        return LoadedDraft(state)


__all__ = [
    "FormState",
    "LoadedDraft",
]
