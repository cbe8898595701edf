"""Unit tests for the submission pipeline.

Tests cover:
- Validation failures never reaching the backend
- Payload building
- Success: draft cleared, form reset, notification sent
- Failure: state and draft kept, status failed
- Refusing a concurrent submit
"""

import asyncio

import pytest

from catalog_intake.collaborators import SubmissionReceipt, parse_submission_receipt
from catalog_intake.drafts import DraftRecord, DraftStore
from catalog_intake.errors import SubmissionInProgressError
from catalog_intake.events import EventEmitter
from catalog_intake.forms import SUPPLIER_DRAFT_KEY, SUPPLIER_INTAKE_FORM
from catalog_intake.pipeline import SubmissionPipeline
from catalog_intake.state import FormState
from catalog_intake.types import EventType, FieldErrorCode, Severity, SubmissionStatus

from tests.conftest import FakeSupplierBackend, valid_supplier_state


def _pipeline(backend, storage, notifier, emitter=None):
    return SubmissionPipeline(
        SUPPLIER_INTAKE_FORM,
        backend.create_supplier_submission,
        DraftStore(storage, SUPPLIER_INTAKE_FORM),
        notifier=notifier,
        emitter=emitter,
        parse_response=parse_submission_receipt,
    )


class TestBuildPayload:
    """Test the state to payload transformation."""

    def test_coerces_fields(self, supplier_backend, storage, notifier):
        """Should coerce numbers and empty optional text."""
        payload = _pipeline(supplier_backend, storage, notifier).build_payload(valid_supplier_state())
        assert payload["supplierName"] == "Maison Rose"
        assert payload["website"] is None
        assert payload["termsAccepted"] is True
        item = payload["lineItems"][0]
        assert item["id"] == "li_1"
        assert item["unitCost"] == 4.2
        assert item["moq"] == 100
        assert item["barcode"] is None
        assert item["vegan"] is False


class TestValidationFailure:
    """Test submits of invalid forms."""

    @pytest.mark.asyncio
    async def test_missing_contact_email(self, supplier_backend, storage, notifier):
        """Should return a required error and never call the backend."""
        pipeline = _pipeline(supplier_backend, storage, notifier)
        state = valid_supplier_state().set_field("contactEmail", "")

        attempt = await pipeline.submit(state)

        assert attempt.status == SubmissionStatus.IDLE
        assert not attempt.ok
        assert attempt.error_paths() == ["contactEmail"]
        assert attempt.errors[0].code == FieldErrorCode.REQUIRED
        assert attempt.form_state is state
        assert supplier_backend.calls == []
        assert pipeline.status == SubmissionStatus.IDLE
        assert notifier.last.severity == Severity.WARNING

    @pytest.mark.asyncio
    async def test_empty_line_items(self, supplier_backend, storage, notifier):
        """Should refuse a form without line items."""
        state = (
            FormState.initial(SUPPLIER_INTAKE_FORM)
            .set_field("supplierName", "Maison Rose")
            .set_field("contactEmail", "buyer@maisonrose.com")
            .set_field("brandName", "Rosa")
            .set_field("termsAccepted", True)
        )
        attempt = await _pipeline(supplier_backend, storage, notifier).submit(state)
        assert attempt.error_paths() == ["lineItems"]
        assert supplier_backend.calls == []


class TestSuccess:
    """Test successful submits."""

    @pytest.mark.asyncio
    async def test_success_resets_and_clears_draft(self, supplier_backend, storage, notifier):
        """Should send once, clear the draft and hand back a fresh form."""
        emitter = EventEmitter()
        seen = []
        emitter.on_any(lambda e: seen.append(e.type))
        pipeline = _pipeline(supplier_backend, storage, notifier, emitter)
        state = valid_supplier_state()
        pipeline.save_as_draft(state)
        assert SUPPLIER_DRAFT_KEY in storage

        attempt = await pipeline.submit(state)

        assert attempt.ok
        assert attempt.receipt == SubmissionReceipt(id="sub_1")
        assert len(supplier_backend.calls) == 1
        assert SUPPLIER_DRAFT_KEY not in storage
        assert attempt.form_state == FormState.initial(SUPPLIER_INTAKE_FORM)
        assert pipeline.status == SubmissionStatus.SUCCEEDED
        assert notifier.last.severity == Severity.SUCCESS
        assert EventType.VALIDATION_PASSED in seen
        assert EventType.DRAFT_CLEARED in seen
        assert seen[-1] == EventType.SUBMISSION_SUCCEEDED

    @pytest.mark.asyncio
    async def test_raw_response_is_parsed(self, storage, notifier):
        """Should parse a mapping response into a receipt."""
        backend = FakeSupplierBackend(response={"id": "sub_raw"})
        attempt = await _pipeline(backend, storage, notifier).submit(valid_supplier_state())
        assert attempt.receipt == SubmissionReceipt(id="sub_raw")

    @pytest.mark.asyncio
    async def test_submit_again_after_success(self, supplier_backend, storage, notifier):
        """Should acknowledge the previous attempt before starting a new one."""
        pipeline = _pipeline(supplier_backend, storage, notifier)
        await pipeline.submit(valid_supplier_state())
        attempt = await pipeline.submit(valid_supplier_state())
        assert attempt.ok
        assert len(supplier_backend.calls) == 2


class TestFailure:
    """Test backend failures."""

    @pytest.mark.asyncio
    async def test_failure_keeps_state_and_draft(self, storage, notifier):
        """Should keep everything so the user can retry."""
        backend = FakeSupplierBackend(fail_with=ConnectionError("backend unreachable"))
        pipeline = _pipeline(backend, storage, notifier)
        state = valid_supplier_state()
        pipeline.save_as_draft(state)

        attempt = await pipeline.submit(state)

        assert attempt.status == SubmissionStatus.FAILED
        assert attempt.form_state is state
        assert attempt.error_message == "backend unreachable"
        assert DraftRecord.from_json(storage.get(SUPPLIER_DRAFT_KEY)).values == state.to_plain_record()
        assert pipeline.status == SubmissionStatus.FAILED
        assert notifier.last.severity == Severity.ERROR

    @pytest.mark.asyncio
    async def test_malformed_receipt_fails(self, storage, notifier):
        """Should treat a response without an id as a failure."""
        backend = FakeSupplierBackend(response={"status": "ok"})
        attempt = await _pipeline(backend, storage, notifier).submit(valid_supplier_state())
        assert attempt.status == SubmissionStatus.FAILED
        assert "Malformed submission receipt" in attempt.error_message

    @pytest.mark.asyncio
    async def test_missing_response_fails(self, storage, notifier):
        """Should fail, keeping state and draft, when the backend returns nothing."""
        backend = FakeSupplierBackend(response=None)
        pipeline = _pipeline(backend, storage, notifier)
        state = valid_supplier_state()
        pipeline.save_as_draft(state)

        attempt = await pipeline.submit(state)

        assert attempt.status == SubmissionStatus.FAILED
        assert attempt.form_state is state
        assert attempt.receipt is None
        assert "Malformed submission receipt" in attempt.error_message
        assert SUPPLIER_DRAFT_KEY in storage

    @pytest.mark.asyncio
    async def test_non_mapping_response_fails(self, storage, notifier):
        """Should fail on a list response instead of treating it as a receipt."""
        backend = FakeSupplierBackend(response=["sub_1"])
        attempt = await _pipeline(backend, storage, notifier).submit(valid_supplier_state())
        assert attempt.status == SubmissionStatus.FAILED

    @pytest.mark.asyncio
    async def test_cancelled_submit_marks_failed(self, supplier_backend, storage, notifier):
        """Should leave the pipeline failed, not submitting, when the task is cancelled."""
        emitter = EventEmitter()
        failures = []
        emitter.on(EventType.SUBMISSION_FAILED, failures.append)
        gate = supplier_backend.hold()
        pipeline = _pipeline(supplier_backend, storage, notifier, emitter)
        state = valid_supplier_state()
        pipeline.save_as_draft(state)
        task = asyncio.ensure_future(pipeline.submit(state))
        await asyncio.sleep(0)
        assert pipeline.status == SubmissionStatus.SUBMITTING

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert pipeline.status == SubmissionStatus.FAILED
        assert not pipeline.is_busy
        assert len(failures) == 1
        assert SUPPLIER_DRAFT_KEY in storage
        assert notifier.last.severity == Severity.ERROR

        supplier_backend.gate = None
        gate.set()
        attempt = await pipeline.submit(state)
        assert attempt.ok

    @pytest.mark.asyncio
    async def test_retry_after_failure(self, storage, notifier):
        """Should allow a new attempt after a failure."""
        backend = FakeSupplierBackend(fail_with=ConnectionError("down"))
        pipeline = _pipeline(backend, storage, notifier)
        await pipeline.submit(valid_supplier_state())
        backend.fail_with = None
        attempt = await pipeline.submit(valid_supplier_state())
        assert attempt.ok
        assert len(backend.calls) == 2

    @pytest.mark.asyncio
    async def test_notifier_failure_is_logged(self, supplier_backend, storage):
        """Should not let a failing notifier break the submit."""

        class BrokenNotifier:
            def notify(self, notification):
                raise RuntimeError("toast service down")

        attempt = await _pipeline(supplier_backend, storage, BrokenNotifier()).submit(
            valid_supplier_state()
        )
        assert attempt.ok


class TestConcurrentSubmit:
    """Test the in-flight guard."""

    @pytest.mark.asyncio
    async def test_second_submit_refused(self, supplier_backend, storage, notifier):
        """Should refuse a second submit while one is in flight."""
        gate = supplier_backend.hold()
        pipeline = _pipeline(supplier_backend, storage, notifier)
        first = asyncio.ensure_future(pipeline.submit(valid_supplier_state()))
        await asyncio.sleep(0)
        assert pipeline.status == SubmissionStatus.SUBMITTING

        with pytest.raises(SubmissionInProgressError):
            await pipeline.submit(valid_supplier_state())

        gate.set()
        attempt = await first
        assert attempt.ok
        assert len(supplier_backend.calls) == 1
