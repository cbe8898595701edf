"""Core type definitions for catalog intake forms.

This module defines the enums shared across the package:
- FieldKind: Value kind of a form field (tags the validator and coercion)
- SubmissionStatus: Lifecycle states of a single submit attempt
- FieldErrorCode: Validation error codes for individual fields
- Severity: Severity of a user-facing notification
- EventType: Audit event types emitted by a form session
"""

from enum import Enum


class FieldKind(str, Enum):
    """Kind of value a form field holds."""
    TEXT = "text"
    LONG_TEXT = "longText"
    NUMBER = "number"
    EMAIL = "email"
    URL = "url"
    BOOLEAN = "boolean"
    ENUM_CHOICE = "enumChoice"


class SubmissionStatus(str, Enum):
    """Status of a submission attempt.

    ``idle`` is the resting state. A failed validation pass returns to ``idle``
    with an error list; only a collaborator failure reaches ``failed``.
    """
    IDLE = "idle"
    VALIDATING = "validating"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class FieldErrorCode(str, Enum):
    """Validation error codes carried by FieldError."""
    REQUIRED = "required"
    TOO_SHORT = "too_short"
    INVALID_NUMBER = "invalid_number"
    NOT_POSITIVE = "not_positive"
    INVALID_FORMAT = "invalid_format"
    INVALID_VALUE = "invalid_value"
    NOT_ACCEPTED = "not_accepted"
    OUT_OF_RANGE = "out_of_range"
    TOO_FEW_ITEMS = "too_few_items"


class Severity(str, Enum):
    """Severity of a notification sent to the UI shell."""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class EventType(str, Enum):
    """Audit event types for the form event stream."""
    FIELD_UPDATED = "field.updated"
    LINE_ITEM_ADDED = "line_item.added"
    LINE_ITEM_REMOVED = "line_item.removed"
    LINE_ITEM_MOVED = "line_item.moved"
    LINE_ITEM_UPDATED = "line_item.updated"
    FORM_RESET = "form.reset"
    DRAFT_SAVED = "draft.saved"
    DRAFT_RESTORED = "draft.restored"
    DRAFT_DISCARDED = "draft.discarded"
    DRAFT_CLEARED = "draft.cleared"
    STATUS_CHANGED = "submission.status_changed"
    VALIDATION_PASSED = "validation.passed"
    VALIDATION_FAILED = "validation.failed"
    SUBMISSION_SUCCEEDED = "submission.succeeded"
    SUBMISSION_FAILED = "submission.failed"


__all__ = [
    "FieldKind",
    "SubmissionStatus",
    "FieldErrorCode",
    "Severity",
    "EventType",
]
