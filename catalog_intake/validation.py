"""Full-form validation.

Live validation while editing is per field and only covers fields the user has
touched. Before anything is sent to the backend the whole form is validated
again from its raw values, independent of the cached outcomes: every top-level
field, every field of every line item, and the minimum line item count.

Examples:
    >>> from catalog_intake.forms import PRODUCT_FORM
    >>> from catalog_intake.state import FormState
    >>> result = FormValidator(PRODUCT_FORM).validate(FormState.initial(PRODUCT_FORM))
    >>> result.is_valid
    False
    >>> result.missing_fields
    ['title', 'sku', 'price']
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from catalog_intake.errors import FieldError
from catalog_intake.schema import FormSchema
from catalog_intake.state import FormState
from catalog_intake.types import FieldErrorCode


@dataclass(frozen=True)
class ValidationResult:
    """Result of validating a whole form.

    Attributes:
        is_valid: Whether every field passed and every collection has enough items
        errors: Field-level errors in schema order (empty if valid)
        missing_fields: Paths of required fields that are empty
        invalid_fields: Paths of fields holding an invalid value
    """
    is_valid: bool
    errors: List[FieldError]
    missing_fields: List[str] = field(default_factory=list)
    invalid_fields: List[str] = field(default_factory=list)

    def error_for(self, path: str) -> FieldError:
        for error in self.errors:
            if error.path == path:
                return error
        raise KeyError(path)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "isValid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "missingFields": self.missing_fields,
            "invalidFields": self.invalid_fields,
        }


class FormValidator:
    """Validates every field of a FormState against its schema.

    Attributes:
        schema: The form schema to validate against
    """

    def __init__(self, schema: FormSchema) -> None:
        self.schema = schema

    def validate(self, state: FormState) -> ValidationResult:
        """Validate ``state`` from its raw values."""
        errors: List[FieldError] = []

        for descriptor in self.schema.fields:
            value = state.values.get(descriptor.key, descriptor.default)
            outcome = descriptor.check(value)
            if not outcome.valid:
                errors.append(outcome.to_error(descriptor.key, received=value))

        for collection_schema in self.schema.collections:
            collection = state.collections.get(collection_schema.key)
            items = collection.items if collection is not None else ()
            if len(items) < collection_schema.min_items:
                errors.append(FieldError(
                    path=collection_schema.key,
                    code=FieldErrorCode.TOO_FEW_ITEMS,
                    message=(
                        f"At least {collection_schema.min_items} line item(s) required, "
                        f"got {len(items)}."
                    ),
                    expected=f"minimum {collection_schema.min_items} items",
                    received=len(items),
                ))
            for item in items:
                for descriptor in collection_schema.item_schema.fields:
                    value = item.values.get(descriptor.key, descriptor.default)
                    outcome = descriptor.check(value)
                    if not outcome.valid:
                        path = f"{collection_schema.key}.{item.id}.{descriptor.key}"
                        errors.append(outcome.to_error(path, received=value))

        missing = [
            e.path for e in errors
            if e.code in (FieldErrorCode.REQUIRED, FieldErrorCode.TOO_FEW_ITEMS)
        ]
        invalid = [e.path for e in errors if e.path not in missing]

        return ValidationResult(
            is_valid=not errors,
            errors=errors,
            missing_fields=missing,
            invalid_fields=invalid,
        )


def validate_form(schema: FormSchema, state: FormState) -> ValidationResult:
    """Shorthand for ``FormValidator(schema).validate(state)``."""
    return FormValidator(schema).validate(state)


__all__ = [
    "ValidationResult",
    "FormValidator",
    "validate_form",
]
