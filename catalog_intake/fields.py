"""Field descriptors and validation rules.

Every form field is described by a FieldDescriptor: its key, kind, whether it
is required, its default value and a pure validation function. Validators take
the raw value as the UI delivers it (numbers usually arrive as strings) and
return a ValidationOutcome. They never raise.

Required-ness is handled by the descriptor, not by the validator: an empty value
is Invalid(required) for a required field and Valid for an optional one, and
the validator only ever sees non-empty values.

Examples:
    >>> email = FieldDescriptor("contactEmail", FieldKind.EMAIL, required=True,
    ...                         validate=email_address())
    >>> email.check("buyer@example.com").valid
    True
    >>> email.check("").code
    <FieldErrorCode.REQUIRED: 'required'>
"""

import math
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, Mapping, Optional
from urllib.parse import urlsplit

from typing_extensions import TypeAlias

from catalog_intake.errors import FieldError
from catalog_intake.types import FieldErrorCode, FieldKind


_EMAIL_RE = re.compile(r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+@[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}$")
_HOST_RE = re.compile(r"^(localhost|[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}|\d{1,3}(\.\d{1,3}){3})(:\d+)?$")


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of validating one field value.

    Attributes:
        valid: Whether the value passed
        code: Error code when invalid
        reason: Human-readable reason when invalid
    """
    valid: bool
    code: Optional[FieldErrorCode] = None
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "ValidationOutcome":
        return VALID

    @classmethod
    def invalid(cls, code: FieldErrorCode, reason: str) -> "ValidationOutcome":
        return cls(valid=False, code=code, reason=reason)

    def to_error(self, path: str, received: Any = None) -> FieldError:
        """Convert an Invalid outcome into a FieldError at ``path``."""
        if self.valid:
            raise ValueError("A valid outcome has no error")
        return FieldError(
            path=path,
            code=self.code or FieldErrorCode.INVALID_VALUE,
            message=self.reason or "Invalid value.",
            received=received,
        )


VALID = ValidationOutcome(valid=True)

Validator: TypeAlias = Callable[[Any], ValidationOutcome]


def is_empty(value: Any) -> bool:
    """Whether a raw field value counts as not filled in."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


# Largest magnitude a number field accepts (quantities and prices alike).
MAX_NUMBER = Decimal("1e15")


def parse_number(value: Any) -> Optional[Decimal]:
    """Parse a raw value into a finite Decimal within +/- MAX_NUMBER.

    Returns:
        The parsed number, or None if the value is not numeric or out of range
    """
    number = _to_decimal(value)
    if number is None or abs(number) > MAX_NUMBER:
        return None
    return number


def _to_decimal(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return Decimal(str(value))
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, str):
        try:
            number = Decimal(value.strip())
        except InvalidOperation:
            return None
        return number if number.is_finite() else None
    return None


def min_length(minimum: int, message: Optional[str] = None) -> Validator:
    """String must hold at least ``minimum`` characters."""
    def validate(value: Any) -> ValidationOutcome:
        if not isinstance(value, str):
            return ValidationOutcome.invalid(FieldErrorCode.INVALID_VALUE, "Must be text.")
        if len(value) < minimum:
            return ValidationOutcome.invalid(
                FieldErrorCode.TOO_SHORT,
                message or f"Must be at least {minimum} characters.",
            )
        return VALID
    return validate


def positive_number(message: Optional[str] = None) -> Validator:
    """Value must parse as a number strictly greater than zero, at most MAX_NUMBER."""
    def validate(value: Any) -> ValidationOutcome:
        number = _to_decimal(value)
        if number is None:
            return ValidationOutcome.invalid(FieldErrorCode.INVALID_NUMBER, "Must be a number.")
        if number <= 0:
            return ValidationOutcome.invalid(
                FieldErrorCode.NOT_POSITIVE,
                message or "Must be greater than zero.",
            )
        if number > MAX_NUMBER:
            return ValidationOutcome.invalid(
                FieldErrorCode.OUT_OF_RANGE,
                f"Must be at most {MAX_NUMBER:,.0f}.",
            )
        return VALID
    return validate


def email_address(message: Optional[str] = None) -> Validator:
    """Value must have the shape of an email address."""
    def validate(value: Any) -> ValidationOutcome:
        if isinstance(value, str) and _EMAIL_RE.match(value.strip()):
            return VALID
        return ValidationOutcome.invalid(
            FieldErrorCode.INVALID_FORMAT,
            message or "Must be a valid email address.",
        )
    return validate


def url_address(message: Optional[str] = None) -> Validator:
    """Value must be an absolute http(s) URL with a host."""
    def validate(value: Any) -> ValidationOutcome:
        if isinstance(value, str):
            parts = urlsplit(value.strip())
            if parts.scheme in ("http", "https") and _HOST_RE.match(parts.netloc):
                return VALID
        return ValidationOutcome.invalid(
            FieldErrorCode.INVALID_FORMAT,
            message or "Must be a valid URL.",
        )
    return validate


def accepted(message: Optional[str] = None) -> Validator:
    """Value must be exactly ``True``."""
    def validate(value: Any) -> ValidationOutcome:
        if value is True:
            return VALID
        return ValidationOutcome.invalid(
            FieldErrorCode.NOT_ACCEPTED,
            message or "You must accept the terms to continue.",
        )
    return validate


def one_of(choices: Iterable[str], message: Optional[str] = None) -> Validator:
    """Value must be one of ``choices``."""
    allowed = tuple(choices)

    def validate(value: Any) -> ValidationOutcome:
        if value in allowed:
            return VALID
        return ValidationOutcome.invalid(
            FieldErrorCode.INVALID_VALUE,
            message or f"Must be one of: {', '.join(allowed)}.",
        )
    return validate


def boolean_flag() -> Validator:
    """Value must be a bool."""
    def validate(value: Any) -> ValidationOutcome:
        if isinstance(value, bool):
            return VALID
        return ValidationOutcome.invalid(FieldErrorCode.INVALID_VALUE, "Must be true or false.")
    return validate


def _any_value(value: Any) -> ValidationOutcome:
    return VALID


@dataclass(frozen=True)
class FieldDescriptor:
    """Declarative description of one form field.

    Attributes:
        key: Field key (camelCase, matches the payload key)
        kind: Value kind
        required: Whether an empty value is Invalid
        validate: Pure validator applied to non-empty values
        default: Value used by a fresh form
        label: Display name used in required-field messages
    """
    key: str
    kind: FieldKind
    required: bool = False
    validate: Validator = field(default=_any_value, compare=False)
    default: Any = ""
    label: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.label:
            return self.label
        words = re.sub(r"(?<!^)(?=[A-Z])", " ", self.key).lower()
        return words[:1].upper() + words[1:]

    def check(self, value: Any) -> ValidationOutcome:
        """Validate ``value`` against this field's rules."""
        if is_empty(value):
            if self.required:
                return ValidationOutcome.invalid(
                    FieldErrorCode.REQUIRED, f"{self.display_name} is required."
                )
            return VALID
        return self.validate(value)

    def coerce(self, value: Any) -> Any:
        """Convert a raw value into its payload representation.

        Numbers become ``int`` when integral and ``float`` otherwise; empty
        optional values become ``None``. Everything else passes through.
        """
        if self.kind is FieldKind.NUMBER:
            number = parse_number(value)
            if number is None:
                return None
            return int(number) if number == number.to_integral_value() else float(number)
        if self.kind in (FieldKind.TEXT, FieldKind.LONG_TEXT, FieldKind.EMAIL, FieldKind.URL):
            if is_empty(value):
                return None
            return value.strip() if isinstance(value, str) else value
        return value


def outcomes_for(
    descriptors: Iterable[FieldDescriptor],
    values: Mapping[str, Any],
    include_invalid: bool = True,
) -> Dict[str, ValidationOutcome]:
    """Validate every non-empty value among ``descriptors``.

    Empty values are left untouched (no outcome). With ``include_invalid`` off
    only Valid outcomes are recorded; a fresh form uses this so that a default
    such as an unticked terms box is not reported before the user sees it.
    """
    outcomes: Dict[str, ValidationOutcome] = {}
    for descriptor in descriptors:
        value = values.get(descriptor.key)
        if is_empty(value):
            continue
        outcome = descriptor.check(value)
        if outcome.valid or include_invalid:
            outcomes[descriptor.key] = outcome
    return outcomes


__all__ = [
    "ValidationOutcome",
    "VALID",
    "Validator",
    "FieldDescriptor",
    "is_empty",
    "MAX_NUMBER",
    "parse_number",
    "min_length",
    "positive_number",
    "email_address",
    "url_address",
    "accepted",
    "one_of",
    "boolean_flag",
    "outcomes_for",
]
