"""FormSession orchestrator.

A FormSession is what a UI shell holds for one open form. It threads the
FormState through the shell's event handlers, recomputes completion after every
edit, debounces draft saves and runs submissions through the pipeline.

Edits are applied in the order they are received, each producing a new
FormState synchronously; there is no batching. Draft saves are debounced on the
running asyncio loop and superseded by later saves (last write wins). While a
submission is being validated or is in flight the form is read-only.

Usage::

    session = FormSession.for_product(backend, FileStorage(settings.draft_dir))
    session.start()                      # restore a draft, if any
    session.set_field("title", "Rose Oil")
    session.completion.percentage        # 33
    attempt = await session.submit()
"""

import asyncio
import logging
from typing import Any, Optional

from catalog_intake.collaborators import (
    Notifier,
    ProductBackend,
    SupplierBackend,
    parse_product_receipt,
    parse_submission_receipt,
)
from catalog_intake.completion import CompletionSnapshot, compute
from catalog_intake.config import get_settings
from catalog_intake.drafts import DraftStore, KeyValueStorage
from catalog_intake.errors import SubmissionInProgressError
from catalog_intake.events import EventEmitter, FormEvent
from catalog_intake.forms import PRODUCT_FORM, SUPPLIER_INTAKE_FORM
from catalog_intake.pipeline import ResponseParser, Sender, SubmissionAttempt, SubmissionPipeline
from catalog_intake.schema import FormSchema
from catalog_intake.state import FormState, LoadedDraft
from catalog_intake.types import EventType, SubmissionStatus


logger = logging.getLogger(__name__)


class FormSession:
    """One open form: state, completion, drafts and submission.

    Attributes:
        schema: Form schema
        drafts: Draft store of this form's slot
        pipeline: Submission pipeline
        emitter: Event emitter shared with the pipeline
        autosave_delay: Debounce delay of draft saves in seconds; 0 saves on
            every edit
    """

    def __init__(
        self,
        schema: FormSchema,
        send: Sender,
        storage: KeyValueStorage,
        notifier: Optional[Notifier] = None,
        emitter: Optional[EventEmitter] = None,
        autosave_delay: Optional[float] = None,
        parse_response: Optional[ResponseParser] = None,
    ):
        self.schema = schema
        self.emitter = emitter or EventEmitter()
        self.drafts = DraftStore(storage, schema)
        self.pipeline = SubmissionPipeline(
            schema,
            send,
            self.drafts,
            notifier=notifier,
            emitter=self.emitter,
            parse_response=parse_response,
        )
        if autosave_delay is None:
            autosave_delay = get_settings().autosave_delay_seconds
        self.autosave_delay = autosave_delay

        self._state = FormState.initial(schema)
        self._completion = compute(schema, self._state)
        self._dirty = False
        self._autosave_handle: Optional[asyncio.TimerHandle] = None

    @classmethod
    def for_supplier_intake(
        cls, backend: SupplierBackend, storage: KeyValueStorage, **kwargs: Any
    ) -> "FormSession":
        """Session for the new line (supplier intake) form.

        Args:
            backend: Backend exposing ``create_supplier_submission``
            storage: Key-value storage holding the draft slot
            **kwargs: Passed on to FormSession (notifier, emitter, autosave_delay)

        Returns:
            A session whose responses are parsed as SubmissionReceipts
        """
        kwargs.setdefault("parse_response", parse_submission_receipt)
        return cls(SUPPLIER_INTAKE_FORM, backend.create_supplier_submission, storage, **kwargs)

    @classmethod
    def for_product(
        cls, backend: ProductBackend, storage: KeyValueStorage, **kwargs: Any
    ) -> "FormSession":
        """Session for the single product creation form.

        Args:
            backend: Backend exposing ``create_product``
            storage: Key-value storage holding the draft slot
            **kwargs: Passed on to FormSession

        Returns:
            A session whose responses are parsed as ProductReceipts
        """
        kwargs.setdefault("parse_response", parse_product_receipt)
        return cls(PRODUCT_FORM, backend.create_product, storage, **kwargs)

    @property
    def state(self) -> FormState:
        """Current form state."""
        return self._state

    @property
    def completion(self) -> CompletionSnapshot:
        """Completion snapshot of the current state, recomputed after every edit."""
        return self._completion

    @property
    def status(self) -> SubmissionStatus:
        """Status of the current (or last) submission attempt."""
        return self.pipeline.status

    @property
    def dirty(self) -> bool:
        """Whether there are edits not yet written to the draft slot."""
        return self._dirty

    def _emit(self, event_type: EventType, payload: Optional[dict] = None) -> None:
        self.emitter.emit(FormEvent.new(event_type, self.schema.schema_id, payload))

    def start(self) -> LoadedDraft:
        """Restore the stored draft, if there is a compatible one.

        Call once when the form opens. A draft that is corrupt or was written
        under another schema version is removed and reported through a
        ``draft.discarded`` event.

        Returns:
            The loaded state, with ``discarded`` set when a draft was dropped
        """
        record = self.drafts.load()
        if record is None:
            reason = self.drafts.discarded_reason
            if reason is None:
                return LoadedDraft(self._state)
            self._emit(EventType.DRAFT_DISCARDED, {"reason": reason})
            return LoadedDraft(self._state, discarded=True, reason=reason)

        loaded = FormState.load_from_draft(self.schema, record)
        if loaded.discarded:
            self.drafts.clear()
            self._emit(EventType.DRAFT_DISCARDED, {"reason": loaded.reason})
        else:
            self._emit(EventType.DRAFT_RESTORED, {"savedAt": record.saved_at.isoformat()})
        self._replace_state(loaded.state)
        return loaded

    def _replace_state(self, state: FormState) -> None:
        self._state = state
        self._completion = compute(self.schema, state)

    def _apply(self, state: FormState, event_type: EventType, payload: dict) -> FormState:
        self.pipeline.acknowledge()
        self._replace_state(state)
        self._dirty = True
        payload["percentage"] = self._completion.percentage
        self._emit(event_type, payload)
        self._schedule_autosave()
        return state

    def _ensure_editable(self) -> None:
        if self.pipeline.is_busy:
            raise SubmissionInProgressError(self.pipeline.status)

    def set_field(self, key: str, value: Any) -> FormState:
        """Set a top-level field.

        Args:
            key: Field key declared by the schema
            value: Raw value as the UI delivers it

        Returns:
            The new state

        Raises:
            UnknownFieldError: If the schema does not declare ``key``
            SubmissionInProgressError: While a submission is in flight
        """
        self._ensure_editable()
        return self._apply(self._state.set_field(key, value), EventType.FIELD_UPDATED, {"key": key})

    def add_item(self, collection_key: str = "lineItems", item_id: Optional[str] = None) -> FormState:
        """Append a line item at defaults.

        Args:
            collection_key: Collection to append to
            item_id: Optional explicit id; a fresh id is generated otherwise

        Returns:
            The new state

        Raises:
            ValueError: If ``item_id`` is already used in the collection
            SubmissionInProgressError: While a submission is in flight
        """
        self._ensure_editable()
        state = self._state.add_item(collection_key, item_id)
        new_id = state.collection(collection_key).items[-1].id
        return self._apply(state, EventType.LINE_ITEM_ADDED,
                           {"collection": collection_key, "itemId": new_id})

    def remove_item(self, item_id: str, collection_key: str = "lineItems") -> FormState:
        """Remove a line item.

        Args:
            item_id: Id of the item to remove
            collection_key: Collection holding the item

        Returns:
            The new state

        Raises:
            LastLineItemError: If it is the only item left
            UnknownLineItemError: If no item has that id
            SubmissionInProgressError: While a submission is in flight
        """
        self._ensure_editable()
        state = self._state.remove_item(collection_key, item_id)
        return self._apply(state, EventType.LINE_ITEM_REMOVED,
                           {"collection": collection_key, "itemId": item_id})

    def update_item_field(
        self, item_id: str, key: str, value: Any, collection_key: str = "lineItems"
    ) -> FormState:
        """Set one field of one line item; sibling items are left as they are.

        Args:
            item_id: Id of the item to update
            key: Item field key
            value: Raw value as the UI delivers it
            collection_key: Collection holding the item

        Returns:
            The new state

        Raises:
            UnknownLineItemError: If no item has that id
            UnknownFieldError: If the item schema does not declare ``key``
            SubmissionInProgressError: While a submission is in flight
        """
        self._ensure_editable()
        state = self._state.update_item_field(collection_key, item_id, key, value)
        return self._apply(state, EventType.LINE_ITEM_UPDATED,
                           {"collection": collection_key, "itemId": item_id, "key": key})

    def move_item(self, item_id: str, position: int, collection_key: str = "lineItems") -> FormState:
        """Move a line item to ``position``.

        Args:
            item_id: Id of the item to move
            position: Target index, clamped to the collection bounds
            collection_key: Collection holding the item

        Returns:
            The new state
        """
        self._ensure_editable()
        state = self._state.move_item(collection_key, item_id, position)
        return self._apply(state, EventType.LINE_ITEM_MOVED,
                           {"collection": collection_key, "itemId": item_id, "position": position})

    def _cancel_autosave(self) -> None:
        if self._autosave_handle is not None:
            self._autosave_handle.cancel()
            self._autosave_handle = None

    def _schedule_autosave(self) -> None:
        self._cancel_autosave()
        if self.autosave_delay <= 0:
            self.flush_draft()
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; saving draft %s immediately", self.schema.storage_key)
            self.flush_draft()
            return
        self._autosave_handle = loop.call_later(self.autosave_delay, self.flush_draft)

    def flush_draft(self) -> bool:
        """Write pending edits to the draft slot now.

        Returns:
            Whether the slot holds the current state afterwards
        """
        self._cancel_autosave()
        if not self._dirty:
            return True
        saved = self.pipeline.save_as_draft(self._state)
        if saved:
            self._dirty = False
        return saved

    def save_as_draft(self) -> bool:
        """Save the current state as a draft, regardless of validity.

        Returns:
            Whether the draft was written
        """
        self._cancel_autosave()
        saved = self.pipeline.save_as_draft(self._state)
        if saved:
            self._dirty = False
        return saved

    async def submit(self) -> SubmissionAttempt:
        """Submit the current state.

        On success the session continues with a fresh form and an empty draft
        slot. On failure, or when the awaiting task is cancelled, the state and
        draft are left as they were and the form stays editable.

        Returns:
            The submission attempt

        Raises:
            SubmissionInProgressError: If a submission is already in flight
            asyncio.CancelledError: If the awaiting task is cancelled
        """
        if self.pipeline.is_busy:
            raise SubmissionInProgressError(self.pipeline.status)
        self._cancel_autosave()
        try:
            attempt = await self.pipeline.submit(self._state)
        except asyncio.CancelledError:
            if self._dirty:
                self._schedule_autosave()
            raise
        if attempt.ok:
            self._replace_state(attempt.form_state)
            self._dirty = False
        elif self._dirty:
            self._schedule_autosave()
        return attempt

    def acknowledge(self) -> None:
        """Dismiss the result of the last attempt."""
        self.pipeline.acknowledge()

    def reset(self) -> FormState:
        """Discard all entries and the stored draft.

        Returns:
            The fresh state at schema defaults

        Raises:
            SubmissionInProgressError: While a submission is in flight
        """
        self._ensure_editable()
        self._cancel_autosave()
        self.pipeline.acknowledge()
        self._replace_state(self._state.reset())
        self._dirty = False
        self.drafts.clear()
        self._emit(EventType.FORM_RESET)
        return self._state

    def close(self) -> None:
        """Flush pending edits and release the draft store."""
        if self._dirty:
            self.flush_draft()
        self._cancel_autosave()
        self.drafts.close()

    def __enter__(self) -> "FormSession":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


__all__ = [
    "FormSession",
]
