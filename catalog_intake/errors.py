"""Error types for catalog intake forms.

Two families live here:

- FieldError is data. Field-scoped validation failures are never raised; they
  are collected into lists and surfaced inline by the UI shell.
- The Exception subclasses describe refused operations (unknown field, removing
  the last line item, a second concurrent submit) and failures at the
  persistence and backend boundaries.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from catalog_intake.types import FieldErrorCode, SubmissionStatus


@dataclass(frozen=True)
class FieldError:
    """Per-field validation error details.

    Attributes:
        path: Dot-notation field path. Line item fields are addressed as
            ``<collection>.<item id>.<field>`` (e.g. "lineItems.li_3f2a.unitCost")
        code: Specific validation error code
        message: Human-readable error description
        expected: Optional - what was expected
        received: Optional - what was actually received

    Examples:
        >>> err = FieldError(
        ...     path="contactEmail",
        ...     code=FieldErrorCode.REQUIRED,
        ...     message="Contact email is required.",
        ... )
        >>> err.path
        'contactEmail'
    """
    path: str
    code: FieldErrorCode
    message: str
    expected: Optional[Any] = None
    received: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "path": self.path,
            "code": self.code.value if isinstance(self.code, FieldErrorCode) else self.code,
            "message": self.message,
        }
        if self.expected is not None:
            result["expected"] = self.expected
        if self.received is not None:
            result["received"] = self.received
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldError":
        """Create FieldError from dict."""
        code = data["code"]
        if isinstance(code, str):
            code = FieldErrorCode(code)
        return cls(
            path=data["path"],
            code=code,
            message=data["message"],
            expected=data.get("expected"),
            received=data.get("received"),
        )


class UnknownFieldError(KeyError):
    """Raised when a field key is not declared by the schema."""

    def __init__(self, key: str, schema_id: str):
        self.key = key
        self.schema_id = schema_id
        super().__init__(f"Field '{key}' is not declared by form '{schema_id}'")


class UnknownLineItemError(KeyError):
    """Raised when a line item id is not present in its collection."""

    def __init__(self, item_id: str, collection: str):
        self.item_id = item_id
        self.collection = collection
        super().__init__(f"Line item '{item_id}' not found in '{collection}'")


class LastLineItemError(Exception):
    """Raised when removing the only remaining line item.

    The form requires at least one line item, so the removal is refused and the
    collection is left as it was.
    """

    def __init__(self, item_id: str, collection: str):
        self.item_id = item_id
        self.collection = collection
        super().__init__(
            f"Cannot remove the last item from '{collection}': "
            f"at least one line item is required"
        )


class SchemaVersionMismatch(Exception):
    """Raised when a stored draft was written by a different schema version."""

    def __init__(self, stored_version: str, current_version: str):
        self.stored_version = stored_version
        self.current_version = current_version
        super().__init__(
            f"Draft schema version '{stored_version}' does not match "
            f"current version '{current_version}'"
        )


class PersistenceError(Exception):
    """Raised by storage backends when a draft cannot be read or written."""

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"{message} (key: {key})")


class SubmissionError(Exception):
    """Wraps a failure reported by the backend submit collaborator."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class SubmissionInProgressError(Exception):
    """Raised when submit() is called while another attempt is in flight."""

    def __init__(self, status: SubmissionStatus):
        self.status = status
        super().__init__(
            f"A submission is already in progress (status: '{status.value}')"
        )


__all__ = [
    "FieldError",
    "UnknownFieldError",
    "UnknownLineItemError",
    "LastLineItemError",
    "SchemaVersionMismatch",
    "PersistenceError",
    "SubmissionError",
    "SubmissionInProgressError",
]
