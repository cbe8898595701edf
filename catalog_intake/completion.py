"""Completion tracking.

The completion snapshot is derived from a FormState: how many required fields
currently hold a non-empty value whose last validation outcome is Valid, out of
how many required fields the form has.

Required line item fields count once per item present. While a collection holds
fewer items than its minimum, each missing item slot counts its required fields
as not completed, so an empty line item list still weighs on the percentage.

Examples:
    >>> from catalog_intake.forms import PRODUCT_FORM
    >>> from catalog_intake.state import FormState
    >>> state = FormState.initial(PRODUCT_FORM).set_field("title", "Rose Oil")
    >>> compute(PRODUCT_FORM, state).to_dict()
    {'completedRequiredFields': 1, 'totalRequiredFields': 3, 'percentage': 33}
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, Mapping, Optional

from catalog_intake.fields import FieldDescriptor, ValidationOutcome, is_empty
from catalog_intake.schema import FormSchema
from catalog_intake.state import FormState


@dataclass(frozen=True)
class CompletionSnapshot:
    """Completion of a form at one point in time.

    Attributes:
        completed_required_fields: Required fields holding a valid value
        total_required_fields: Required fields in the form
        percentage: 0-100, rounded half up; 0 when the form has no required fields
    """
    completed_required_fields: int
    total_required_fields: int
    percentage: int

    @property
    def is_complete(self) -> bool:
        return self.completed_required_fields == self.total_required_fields

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "completedRequiredFields": self.completed_required_fields,
            "totalRequiredFields": self.total_required_fields,
            "percentage": self.percentage,
        }


def _count_completed(
    descriptors: Iterable[FieldDescriptor],
    values: Mapping[str, Any],
    outcomes: Mapping[str, ValidationOutcome],
) -> int:
    completed = 0
    for descriptor in descriptors:
        outcome: Optional[ValidationOutcome] = outcomes.get(descriptor.key)
        if outcome is not None and outcome.valid and not is_empty(values.get(descriptor.key)):
            completed += 1
    return completed


def percentage_of(completed: int, total: int) -> int:
    """``completed / total`` as a whole percentage, rounded half up."""
    if total == 0:
        return 0
    ratio = Decimal(completed * 100) / Decimal(total)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute(schema: FormSchema, state: FormState) -> CompletionSnapshot:
    """Compute the completion snapshot of ``state``."""
    required = schema.required_fields
    total = len(required)
    completed = _count_completed(required, state.values, state.outcomes)

    for collection_schema in schema.collections:
        item_required = collection_schema.item_schema.required_fields
        collection = state.collections.get(collection_schema.key)
        items = collection.items if collection is not None else ()
        slots = max(len(items), collection_schema.min_items)
        total += len(item_required) * slots
        for item in items:
            completed += _count_completed(item_required, item.values, item.outcomes)

    return CompletionSnapshot(
        completed_required_fields=completed,
        total_required_fields=total,
        percentage=percentage_of(completed, total),
    )


__all__ = [
    "CompletionSnapshot",
    "compute",
    "percentage_of",
]
