"""Submission pipeline.

Orchestrates one submit attempt: validate the whole form, build the payload,
send it to the backend collaborator exactly once, then either clear the draft
and reset the form (success) or keep everything as it is so the user can retry
(failure). Validation errors never reach the backend; they come back as data on
the attempt.

The status machine doubles as a mutex: a second ``submit()`` while one is being
validated or is in flight is refused with SubmissionInProgressError, without a
second backend call.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from catalog_intake.collaborators import LoggingNotifier, Notification, Notifier
from catalog_intake.drafts import DraftRecord, DraftStore
from catalog_intake.errors import FieldError, SubmissionError, SubmissionInProgressError
from catalog_intake.events import EventEmitter, FormEvent
from catalog_intake.schema import FormSchema
from catalog_intake.state import FormState
from catalog_intake.state_machine import SubmissionStateMachine
from catalog_intake.types import EventType, Severity, SubmissionStatus
from catalog_intake.validation import FormValidator


logger = logging.getLogger(__name__)


Sender = Callable[[Dict[str, Any]], Awaitable[Any]]
ResponseParser = Callable[[Any], Any]


@dataclass(frozen=True)
class SubmissionAttempt:
    """Outcome of one submit() call.

    Attributes:
        status: ``idle`` after failed validation, ``succeeded`` or ``failed`` otherwise
        errors: Field-scoped validation errors (empty unless validation failed)
        form_state: State the caller continues with; defaults after success,
            the submitted state otherwise
        receipt: Backend receipt on success
        error_message: Backend failure description on failure
    """
    status: SubmissionStatus
    form_state: FormState
    errors: List[FieldError] = field(default_factory=list)
    receipt: Optional[Any] = None
    error_message: Optional[str] = None

    @property
    def ok(self) -> bool:
        """Whether the backend accepted the submission."""
        return self.status is SubmissionStatus.SUCCEEDED

    def error_paths(self) -> List[str]:
        """Paths of the validation errors, in schema order.

        Returns:
            Field paths such as "contactEmail" or "lineItems.li_1.unitCost"
        """
        return [e.path for e in self.errors]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "ok": self.ok,
            "status": self.status.value,
            "errors": [e.to_dict() for e in self.errors],
        }
        if self.receipt is not None:
            result["receiptId"] = getattr(self.receipt, "id", None)
        if self.error_message is not None:
            result["errorMessage"] = self.error_message
        return result


class SubmissionPipeline:
    """Validate -> transform -> send -> reset, for one form type.

    Attributes:
        schema: Form schema
        send: Async backend call receiving the payload
        drafts: Draft store cleared after a successful submission
        notifier: Sink receiving success and failure notifications
        emitter: Event emitter receiving validation and submission events
        parse_response: Optional parser applied to every backend response; a
            response it rejects fails the attempt
    """

    def __init__(
        self,
        schema: FormSchema,
        send: Sender,
        drafts: DraftStore,
        notifier: Optional[Notifier] = None,
        emitter: Optional[EventEmitter] = None,
        parse_response: Optional[ResponseParser] = None,
    ):
        self.schema = schema
        self.send = send
        self.drafts = drafts
        self.notifier: Notifier = notifier or LoggingNotifier()
        self.emitter = emitter or EventEmitter()
        self.parse_response = parse_response
        self._validator = FormValidator(schema)
        self._machine = SubmissionStateMachine(form_id=schema.schema_id, emitter=self.emitter)

    @property
    def status(self) -> SubmissionStatus:
        """Status of the current (or last) attempt."""
        return self._machine.status

    @property
    def is_busy(self) -> bool:
        """Whether an attempt is being validated or is in flight."""
        return self._machine.is_busy

    def acknowledge(self) -> None:
        """Return a finished attempt (succeeded or failed) to idle.

        Does nothing in any other status.
        """
        self._machine.acknowledge()

    def _emit(self, event_type: EventType, payload: Optional[Dict[str, Any]] = None) -> None:
        self.emitter.emit(FormEvent.new(event_type, self.schema.schema_id, payload))

    def _notify(self, title: str, description: str, severity: Severity) -> None:
        try:
            self.notifier.notify(Notification(title, description, severity))
        except Exception:
            logger.exception("Notifier failed for %r", title)

    def build_payload(self, state: FormState) -> Dict[str, Any]:
        """Transform a validated state into the backend payload.

        Starts from the plain record and coerces each field to its payload type
        (numbers become int/float, empty optional text becomes None). Line item
        records keep their ``id``.

        Args:
            state: State that passed full validation

        Returns:
            Payload dict keyed by field and collection keys
        """
        payload: Dict[str, Any] = {}
        for descriptor in self.schema.fields:
            payload[descriptor.key] = descriptor.coerce(state.values.get(descriptor.key))
        for collection_schema in self.schema.collections:
            items = []
            for item in state.collections[collection_schema.key]:
                record: Dict[str, Any] = {"id": item.id}
                for descriptor in collection_schema.item_schema.fields:
                    record[descriptor.key] = descriptor.coerce(item.values.get(descriptor.key))
                items.append(record)
            payload[collection_schema.key] = items
        return payload

    def _parse(self, response: Any) -> Any:
        if self.parse_response is None:
            return response
        return self.parse_response(response)

    def _fail(self, message: str) -> None:
        self._machine.transition_to(SubmissionStatus.FAILED)
        self._emit(EventType.SUBMISSION_FAILED, {"message": message})
        self._notify(
            "Submission failed",
            "Your form could not be submitted. Your entries are kept; please try again.",
            Severity.ERROR,
        )

    async def submit(self, state: FormState) -> SubmissionAttempt:
        """Run one submit attempt for ``state``.

        Validation errors come back on the attempt without a backend call. A
        backend failure, including a response the parser rejects, comes back as
        a ``failed`` attempt with ``state`` and the draft left as they were.

        Args:
            state: Form state to submit

        Returns:
            The attempt; ``attempt.form_state`` is the state to continue with

        Raises:
            SubmissionInProgressError: If an attempt is already being validated
                or is in flight
            asyncio.CancelledError: If the awaiting task is cancelled while the
                backend call is in flight; the attempt is marked ``failed``
                first
        """
        if self._machine.is_busy:
            raise SubmissionInProgressError(self._machine.status)
        self._machine.acknowledge()

        self._machine.transition_to(SubmissionStatus.VALIDATING)
        result = self._validator.validate(state)
        if not result.is_valid:
            self._emit(EventType.VALIDATION_FAILED, {"errors": [e.to_dict() for e in result.errors]})
            self._machine.transition_to(SubmissionStatus.IDLE)
            self._notify(
                "Missing information",
                f"Please fix {len(result.errors)} field(s) before submitting.",
                Severity.WARNING,
            )
            return SubmissionAttempt(
                status=SubmissionStatus.IDLE,
                form_state=state,
                errors=list(result.errors),
            )
        self._emit(EventType.VALIDATION_PASSED)

        payload = self.build_payload(state)
        self._machine.transition_to(SubmissionStatus.SUBMITTING)
        try:
            receipt = self._parse(await self.send(payload))
        except asyncio.CancelledError:
            logger.warning("Submission of %s cancelled while in flight", self.schema.schema_id)
            self._fail("Submission was cancelled")
            raise
        except Exception as e:
            error = e if isinstance(e, SubmissionError) else SubmissionError(str(e), cause=e)
            logger.error("Submission of %s failed: %s", self.schema.schema_id, error)
            self._fail(str(error))
            return SubmissionAttempt(
                status=SubmissionStatus.FAILED,
                form_state=state,
                error_message=str(error),
            )

        self._machine.transition_to(SubmissionStatus.SUCCEEDED)
        self.drafts.clear()
        self._emit(EventType.DRAFT_CLEARED)
        self._emit(EventType.SUBMISSION_SUCCEEDED, {"receiptId": getattr(receipt, "id", None)})
        logger.info("Submitted %s (receipt %s)", self.schema.schema_id, getattr(receipt, "id", None))
        self._notify(
            "Submission received",
            "Your form has been submitted successfully.",
            Severity.SUCCESS,
        )
        return SubmissionAttempt(
            status=SubmissionStatus.SUCCEEDED,
            form_state=state.reset(),
            receipt=receipt,
        )

    def save_as_draft(self, state: FormState) -> bool:
        """Persist ``state`` as the form's draft, without validating it.

        Returns:
            Whether the draft was written
        """
        saved = self.drafts.save(DraftRecord.capture(state))
        if saved:
            self._emit(EventType.DRAFT_SAVED)
        return saved


__all__ = [
    "Sender",
    "SubmissionAttempt",
    "SubmissionPipeline",
]
