"""Event system for catalog intake forms.

Every edit, draft operation and submission status change in a form session
emits a typed FormEvent. The UI shell subscribes to drive its indicators
("draft saved", status badges), and the stream doubles as the audit trail
forwarded to the backend's audit log.
"""

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from dateutil.parser import isoparse

from catalog_intake.types import EventType


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FormEvent:
    """A single event in a form session.

    Attributes:
        event_id: Unique event identifier (e.g., "evt_3f2a...")
        type: Event type from EventType enum
        form_id: Schema id of the form the event relates to
        ts: UTC timestamp when the event occurred
        payload: Optional event-specific data (field key, item id, status change)

    Examples:
        >>> event = FormEvent.new(EventType.FIELD_UPDATED, "product-form", {"key": "title"})
        >>> event.type
        <EventType.FIELD_UPDATED: 'field.updated'>
    """
    event_id: str
    type: EventType
    form_id: str
    ts: datetime
    payload: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if isinstance(self.type, str):
            object.__setattr__(self, "type", EventType(self.type))

    @classmethod
    def new(
        cls, event_type: EventType, form_id: str, payload: Optional[Dict[str, Any]] = None
    ) -> "FormEvent":
        """Create an event stamped with a fresh id and the current UTC time.

        Args:
            event_type: Type of the event
            form_id: Schema id of the form
            payload: Optional event-specific data

        Returns:
            The new event
        """
        return cls(
            event_id=f"evt_{uuid.uuid4().hex[:16]}",
            type=event_type,
            form_id=form_id,
            ts=datetime.now(timezone.utc),
            payload=payload,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        result: Dict[str, Any] = {
            "eventId": self.event_id,
            "type": self.type.value,
            "formId": self.form_id,
            "ts": self.ts.isoformat(),
        }
        if self.payload is not None:
            result["payload"] = self.payload
        return result

    def to_jsonl(self) -> str:
        """Convert event to a single JSON line.

        Returns:
            Compact JSON without a trailing newline, for an append-only log
        """
        return json.dumps(self.to_dict(), separators=(',', ':'))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormEvent":
        """Create FormEvent from dictionary (camelCase keys).

        Args:
            data: Dictionary as produced by ``to_dict``

        Returns:
            The parsed event

        Raises:
            KeyError: If a required key is missing
            ValueError: If the type or timestamp cannot be parsed
        """
        return cls(
            event_id=data["eventId"],
            type=EventType(data["type"]),
            form_id=data["formId"],
            ts=isoparse(data["ts"]),
            payload=data.get("payload"),
        )


EventListener = Callable[[FormEvent], None]
"""Type alias for event listener callbacks.

Listeners are called synchronously when events are emitted.
"""


class EventEmitter:
    """Dispatches form events to registered listeners.

    - Type-specific subscriptions and wildcard subscriptions
    - Synchronous dispatch in registration order
    - Error isolation: a failing listener is logged and skipped

    Examples:
        >>> emitter = EventEmitter()
        >>> seen = []
        >>> emitter.on(EventType.DRAFT_SAVED, seen.append)
        >>> emitter.emit(FormEvent.new(EventType.DRAFT_SAVED, "product-form"))
        >>> len(seen)
        1
    """

    def __init__(self):
        self._listeners: Dict[EventType, List[EventListener]] = {}
        self._any_listeners: List[EventListener] = []

    def on(self, event_type: EventType, listener: EventListener) -> None:
        """Subscribe to a specific event type.

        Args:
            event_type: Event type to listen for
            listener: Callback invoked with each event of that type
        """
        self._listeners.setdefault(event_type, []).append(listener)

    def on_any(self, listener: EventListener) -> None:
        """Subscribe to all event types.

        Args:
            listener: Callback invoked with every event
        """
        self._any_listeners.append(listener)

    def off(self, event_type: EventType, listener: EventListener) -> None:
        """Unsubscribe from a specific event type.

        Unknown listeners are ignored.

        Args:
            event_type: Event type to stop listening to
            listener: Callback to remove
        """
        if event_type in self._listeners:
            try:
                self._listeners[event_type].remove(listener)
            except ValueError:
                pass  # not registered

    def off_any(self, listener: EventListener) -> None:
        """Unsubscribe from the wildcard subscription.

        Args:
            listener: Callback to remove
        """
        try:
            self._any_listeners.remove(listener)
        except ValueError:
            pass  # not registered

    def emit(self, event: FormEvent) -> None:
        """Dispatch an event: type-specific listeners first, then wildcard ones.

        A listener that raises is logged with its traceback and the remaining
        listeners still run; nothing propagates to the caller.

        Args:
            event: Event to dispatch
        """
        listeners = list(self._listeners.get(event.type, [])) + list(self._any_listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener failed for %s", event.type.value)

    def clear(self) -> None:
        """Remove all event listeners."""
        self._listeners.clear()
        self._any_listeners.clear()

    def listener_count(self, event_type: Optional[EventType] = None) -> int:
        """Count registered listeners.

        Args:
            event_type: If given, count the listeners of this type only;
                otherwise count all listeners, wildcard ones included

        Returns:
            Number of registered listeners
        """
        if event_type is not None:
            return len(self._listeners.get(event_type, []))
        return len(self._any_listeners) + sum(len(v) for v in self._listeners.values())


__all__ = [
    "FormEvent",
    "EventListener",
    "EventEmitter",
]
