"""Line items nested inside a form.

A LineItemCollection is an ordered sequence of LineItems. Every item carries a
stable generated id, so inserting, removing or reordering items never touches
another item's values or validation outcomes. Both types are immutable: every
operation returns a new collection.

Usage:
    >>> from catalog_intake.forms import SUPPLIER_INTAKE_FORM
    >>> lines = LineItemCollection.empty(SUPPLIER_INTAKE_FORM.collection("lineItems"))
    >>> lines = lines.add_item(item_id="li_a")
    >>> lines = lines.update_item_field("li_a", "unitCost", "4.00")
    >>> lines.get("li_a").outcomes["unitCost"].valid
    True
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from catalog_intake.errors import LastLineItemError, UnknownLineItemError
from catalog_intake.fields import ValidationOutcome, outcomes_for
from catalog_intake.schema import CollectionSchema, LineItemSchema


@dataclass(frozen=True)
class LineItem:
    """One supplier-submitted product entry.

    Attributes:
        id: Stable identifier, independent of the item's position
        values: Current field values
        outcomes: Last validation outcome per field (absent = untouched)
        derived: Values computed from the item's fields (e.g. marginPercent)
    """
    id: str
    values: Dict[str, Any]
    outcomes: Dict[str, ValidationOutcome] = field(default_factory=dict)
    derived: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(cls, schema: LineItemSchema, item_id: str) -> "LineItem":
        """Build an item at schema defaults."""
        values = schema.defaults()
        outcomes = outcomes_for(schema.fields, values, include_invalid=False)
        return cls(id=item_id, values=values, outcomes=outcomes,
                   derived=_derive(schema, values, outcomes))

    def with_field(self, schema: LineItemSchema, key: str, value: Any) -> "LineItem":
        """Return a copy with ``key`` set and re-validated.

        Raises:
            UnknownFieldError: If the item schema does not declare ``key``
        """
        descriptor = schema.field(key)
        values = dict(self.values)
        values[key] = value
        outcomes = dict(self.outcomes)
        outcomes[key] = descriptor.check(value)
        return LineItem(id=self.id, values=values, outcomes=outcomes,
                        derived=_derive(schema, values, outcomes))

    def to_record(self) -> Dict[str, Any]:
        """Plain key/value record including the item id."""
        record: Dict[str, Any] = {"id": self.id}
        record.update(self.values)
        return record

    @classmethod
    def from_record(cls, schema: LineItemSchema, record: Mapping[str, Any]) -> "LineItem":
        """Rebuild an item from a stored record.

        Keys the schema does not declare are dropped; missing keys take their
        defaults. Non-empty values are re-validated.
        """
        values = schema.defaults()
        for descriptor in schema.fields:
            if descriptor.key in record:
                values[descriptor.key] = record[descriptor.key]
        outcomes = outcomes_for(schema.fields, values)
        return cls(id=str(record["id"]), values=values, outcomes=outcomes,
                   derived=_derive(schema, values, outcomes))


def _derive(
    schema: LineItemSchema,
    values: Mapping[str, Any],
    outcomes: Mapping[str, ValidationOutcome],
) -> Dict[str, Any]:
    if schema.derive is None:
        return {}
    return schema.derive(values, outcomes)


@dataclass(frozen=True)
class LineItemCollection:
    """Ordered, id-addressed list of line items.

    Attributes:
        schema: Collection schema (item fields, minimum item count)
        items: Items in display order
    """
    schema: CollectionSchema
    items: Tuple[LineItem, ...] = ()

    @classmethod
    def empty(cls, schema: CollectionSchema) -> "LineItemCollection":
        return cls(schema=schema)

    @property
    def key(self) -> str:
        return self.schema.key

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[LineItem]:
        return iter(self.items)

    @property
    def ids(self) -> List[str]:
        return [item.id for item in self.items]

    def _index(self, item_id: str) -> int:
        for index, item in enumerate(self.items):
            if item.id == item_id:
                return index
        raise UnknownLineItemError(item_id, self.key)

    def get(self, item_id: str) -> LineItem:
        """Return the item with ``item_id``.

        Raises:
            UnknownLineItemError: If no item has that id
        """
        return self.items[self._index(item_id)]

    def new_item_id(self) -> str:
        return f"{self.schema.id_prefix}_{uuid.uuid4().hex[:12]}"

    def add_item(self, item_id: Optional[str] = None) -> "LineItemCollection":
        """Append a new item at schema defaults.

        Args:
            item_id: Optional explicit id; a fresh id is generated otherwise

        Raises:
            ValueError: If ``item_id`` is already used in this collection
        """
        item_id = item_id or self.new_item_id()
        if item_id in self.ids:
            raise ValueError(f"Line item id '{item_id}' already exists in '{self.key}'")
        item = LineItem.create(self.schema.item_schema, item_id)
        return LineItemCollection(schema=self.schema, items=self.items + (item,))

    def remove_item(self, item_id: str) -> "LineItemCollection":
        """Remove the item with ``item_id``.

        Raises:
            UnknownLineItemError: If no item has that id
            LastLineItemError: If it is the only item left
        """
        index = self._index(item_id)
        if len(self.items) == 1:
            raise LastLineItemError(item_id, self.key)
        items = self.items[:index] + self.items[index + 1:]
        return LineItemCollection(schema=self.schema, items=items)

    def update_item_field(self, item_id: str, key: str, value: Any) -> "LineItemCollection":
        """Set one field of one item. Sibling items are left as they are."""
        index = self._index(item_id)
        updated = self.items[index].with_field(self.schema.item_schema, key, value)
        items = self.items[:index] + (updated,) + self.items[index + 1:]
        return LineItemCollection(schema=self.schema, items=items)

    def move_item(self, item_id: str, position: int) -> "LineItemCollection":
        """Move an item to ``position`` (clamped to the collection bounds)."""
        index = self._index(item_id)
        items = list(self.items)
        item = items.pop(index)
        position = max(0, min(position, len(items)))
        items.insert(position, item)
        return LineItemCollection(schema=self.schema, items=tuple(items))

    def to_records(self) -> List[Dict[str, Any]]:
        return [item.to_record() for item in self.items]

    @classmethod
    def from_records(
        cls, schema: CollectionSchema, records: List[Mapping[str, Any]]
    ) -> "LineItemCollection":
        items: List[LineItem] = []
        seen = set()
        for record in records:
            item = LineItem.from_record(schema.item_schema, record)
            if item.id in seen:
                continue
            seen.add(item.id)
            items.append(item)
        return cls(schema=schema, items=tuple(items))


__all__ = [
    "LineItem",
    "LineItemCollection",
]
