"""Submission status machine.

Tracks the status of the current submit attempt of a form and enforces the
allowed transitions:

    idle -> validating -> submitting -> succeeded | failed
    validating -> idle              (validation failed; nothing was sent)
    succeeded | failed -> idle      (acknowledged, or the user edited the form)

While ``validating`` or ``submitting`` the machine is busy, and the submission
pipeline refuses to start another attempt.

Usage:
    >>> sm = SubmissionStateMachine(form_id="new-line-form")
    >>> sm.transition_to(SubmissionStatus.VALIDATING)
    >>> sm.status
    <SubmissionStatus.VALIDATING: 'validating'>
    >>> sm.can_transition_to(SubmissionStatus.SUCCEEDED)
    False
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from catalog_intake.events import EventEmitter, FormEvent
from catalog_intake.types import EventType, SubmissionStatus


class InvalidStatusTransitionError(Exception):
    """Raised when attempting a transition the status machine does not allow.

    Attributes:
        current_status: Status before the attempted transition
        target_status: Status that was attempted
    """

    def __init__(self, current_status: SubmissionStatus, target_status: SubmissionStatus, message: str):
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(message)


VALID_TRANSITIONS: Dict[SubmissionStatus, Set[SubmissionStatus]] = {
    SubmissionStatus.IDLE: {
        SubmissionStatus.VALIDATING,
    },
    SubmissionStatus.VALIDATING: {
        SubmissionStatus.IDLE,
        SubmissionStatus.SUBMITTING,
    },
    SubmissionStatus.SUBMITTING: {
        SubmissionStatus.SUCCEEDED,
        SubmissionStatus.FAILED,
    },
    SubmissionStatus.SUCCEEDED: {
        SubmissionStatus.IDLE,
    },
    SubmissionStatus.FAILED: {
        SubmissionStatus.IDLE,
    },
}

BUSY_STATUSES = frozenset({SubmissionStatus.VALIDATING, SubmissionStatus.SUBMITTING})


@dataclass
class SubmissionStateMachine:
    """Status of the submit attempt of one form session.

    Attributes:
        form_id: Schema id of the form
        status: Current status
        emitter: Optional emitter receiving a status-changed event per transition
    """

    form_id: str
    status: SubmissionStatus = SubmissionStatus.IDLE
    emitter: Optional[EventEmitter] = field(default=None, repr=False)
    _events: List[FormEvent] = field(default_factory=list, init=False, repr=False)

    def can_transition_to(self, target_status: SubmissionStatus) -> bool:
        """Check whether ``target_status`` is reachable from the current status.

        Args:
            target_status: Status to check

        Returns:
            True if the transition is allowed
        """
        return target_status in VALID_TRANSITIONS.get(self.status, set())

    @property
    def is_busy(self) -> bool:
        """Whether an attempt is being validated or is in flight."""
        return self.status in BUSY_STATUSES

    def transition_to(self, target_status: SubmissionStatus) -> None:
        """Move to ``target_status`` and emit a status-changed event.

        Args:
            target_status: Status to move to

        Raises:
            InvalidStatusTransitionError: If the transition is not allowed
        """
        if not self.can_transition_to(target_status):
            allowed = ", ".join(sorted(s.value for s in VALID_TRANSITIONS[self.status]))
            raise InvalidStatusTransitionError(
                current_status=self.status,
                target_status=target_status,
                message=(
                    f"Invalid status transition: cannot transition from "
                    f"'{self.status.value}' to '{target_status.value}'. "
                    f"Valid transitions from '{self.status.value}' are: {allowed}"
                ),
            )

        if target_status is SubmissionStatus.VALIDATING:
            self._events.clear()
        old_status = self.status
        self.status = target_status

        event = FormEvent.new(
            EventType.STATUS_CHANGED,
            self.form_id,
            {"from_status": old_status.value, "to_status": target_status.value},
        )
        self._events.append(event)
        if self.emitter is not None:
            self.emitter.emit(event)

    def acknowledge(self) -> None:
        """Return a finished attempt (succeeded or failed) to idle."""
        if self.status in (SubmissionStatus.SUCCEEDED, SubmissionStatus.FAILED):
            self.transition_to(SubmissionStatus.IDLE)

    def get_events(self) -> List[FormEvent]:
        """Status-changed events of the current attempt, in chronological order.

        The list starts over when a new attempt begins validating; earlier
        attempts are only visible through the emitter.

        Returns:
            Copy of the recorded events
        """
        return list(self._events)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the status machine to a dictionary."""
        return {
            "formId": self.form_id,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubmissionStateMachine":
        """Deserialize a status machine from a dictionary."""
        return cls(
            form_id=data["formId"],
            status=SubmissionStatus(data["status"]),
        )


__all__ = [
    "SubmissionStateMachine",
    "InvalidStatusTransitionError",
    "VALID_TRANSITIONS",
    "BUSY_STATUSES",
]
