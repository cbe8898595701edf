"""Unit tests for the submission status machine.

Tests cover:
- Valid and invalid transitions from every status
- Busy detection and acknowledgement
- Status-changed events
- Serialization and deserialization
"""

import pytest

from catalog_intake.events import EventEmitter
from catalog_intake.state_machine import (
    InvalidStatusTransitionError,
    SubmissionStateMachine,
    VALID_TRANSITIONS,
)
from catalog_intake.types import EventType, SubmissionStatus


def _machine_at(status):
    return SubmissionStateMachine(form_id="new-line-form", status=status)


class TestInitialization:
    """Test status machine defaults."""

    def test_starts_idle(self):
        """Should default to IDLE."""
        sm = SubmissionStateMachine(form_id="new-line-form")
        assert sm.status == SubmissionStatus.IDLE
        assert not sm.is_busy

    def test_every_status_has_transitions(self):
        """Should declare transitions for every status."""
        assert set(VALID_TRANSITIONS) == set(SubmissionStatus)


class TestTransitions:
    """Test the allowed status graph."""

    @pytest.mark.parametrize(
        "source,target",
        [
            (SubmissionStatus.IDLE, SubmissionStatus.VALIDATING),
            (SubmissionStatus.VALIDATING, SubmissionStatus.IDLE),
            (SubmissionStatus.VALIDATING, SubmissionStatus.SUBMITTING),
            (SubmissionStatus.SUBMITTING, SubmissionStatus.SUCCEEDED),
            (SubmissionStatus.SUBMITTING, SubmissionStatus.FAILED),
            (SubmissionStatus.SUCCEEDED, SubmissionStatus.IDLE),
            (SubmissionStatus.FAILED, SubmissionStatus.IDLE),
        ],
    )
    def test_valid_transition(self, source, target):
        """Should move along every declared edge."""
        sm = _machine_at(source)
        sm.transition_to(target)
        assert sm.status == target

    @pytest.mark.parametrize(
        "source,target",
        [
            (SubmissionStatus.IDLE, SubmissionStatus.SUBMITTING),
            (SubmissionStatus.IDLE, SubmissionStatus.SUCCEEDED),
            (SubmissionStatus.VALIDATING, SubmissionStatus.FAILED),
            (SubmissionStatus.SUBMITTING, SubmissionStatus.IDLE),
            (SubmissionStatus.SUCCEEDED, SubmissionStatus.SUBMITTING),
            (SubmissionStatus.FAILED, SubmissionStatus.VALIDATING),
        ],
    )
    def test_invalid_transition(self, source, target):
        """Should raise and keep the current status."""
        sm = _machine_at(source)
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            sm.transition_to(target)
        assert exc_info.value.current_status == source
        assert exc_info.value.target_status == target
        assert sm.status == source

    def test_error_message_lists_allowed(self):
        """Should name the allowed targets in the error message."""
        with pytest.raises(InvalidStatusTransitionError, match="idle, submitting"):
            _machine_at(SubmissionStatus.VALIDATING).transition_to(SubmissionStatus.SUCCEEDED)

    @pytest.mark.parametrize("status", [SubmissionStatus.VALIDATING, SubmissionStatus.SUBMITTING])
    def test_busy_statuses(self, status):
        """Should be busy while validating or submitting."""
        assert _machine_at(status).is_busy


class TestAcknowledge:
    """Test returning finished attempts to idle."""

    @pytest.mark.parametrize("status", [SubmissionStatus.SUCCEEDED, SubmissionStatus.FAILED])
    def test_finished_to_idle(self, status):
        """Should return succeeded and failed attempts to IDLE."""
        sm = _machine_at(status)
        sm.acknowledge()
        assert sm.status == SubmissionStatus.IDLE

    def test_noop_elsewhere(self):
        """Should leave other statuses untouched."""
        sm = _machine_at(SubmissionStatus.SUBMITTING)
        sm.acknowledge()
        assert sm.status == SubmissionStatus.SUBMITTING


class TestEvents:
    """Test status-changed events."""

    def test_records_and_emits(self):
        """Should record every transition and forward it to the emitter."""
        emitter = EventEmitter()
        received = []
        emitter.on(EventType.STATUS_CHANGED, received.append)
        sm = SubmissionStateMachine(form_id="product-form", emitter=emitter)
        sm.transition_to(SubmissionStatus.VALIDATING)
        sm.transition_to(SubmissionStatus.IDLE)

        events = sm.get_events()
        assert events == received
        assert [e.payload for e in events] == [
            {"from_status": "idle", "to_status": "validating"},
            {"from_status": "validating", "to_status": "idle"},
        ]
        assert all(e.form_id == "product-form" for e in events)

    def test_events_start_over_per_attempt(self):
        """Should keep only the events of the attempt in progress."""
        sm = _machine_at(SubmissionStatus.IDLE)
        for _ in range(3):
            sm.transition_to(SubmissionStatus.VALIDATING)
            sm.transition_to(SubmissionStatus.SUBMITTING)
            sm.transition_to(SubmissionStatus.FAILED)
            sm.acknowledge()
        sm.transition_to(SubmissionStatus.VALIDATING)

        events = sm.get_events()
        assert [e.payload for e in events] == [
            {"from_status": "idle", "to_status": "validating"},
        ]


class TestSerialization:
    """Test to_dict and from_dict."""

    def test_round_trip(self):
        """Should restore form id and status."""
        sm = _machine_at(SubmissionStatus.FAILED)
        data = sm.to_dict()
        assert data == {"formId": "new-line-form", "status": "failed"}
        restored = SubmissionStateMachine.from_dict(data)
        assert restored.status == SubmissionStatus.FAILED
        assert restored.form_id == "new-line-form"
