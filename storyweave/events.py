"""Event channel between the session controller and its observers.

Observers subscribe per event type and get back an unsubscribe callable:

    bus = EventBus()
    unsubscribe = bus.subscribe(EventType.NODE_CHANGED, on_node)
    ...
    unsubscribe()

Handlers are called synchronously inside emit(). A handler that raises is
logged and skipped; the remaining handlers still run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class EventType(Enum):
    NODE_CHANGED = "node.changed"
    CHOICES_CHANGED = "choices.changed"
    LOADING_CHANGED = "loading.changed"
    ERROR = "error"
    PROGRESS_CHANGED = "progress.changed"


@dataclass
class SessionEvent:
    """Event payload.

    Attributes:
        type: The event type
        data: Event-specific payload (node, choices, loading flag, message, progress)
        storyline_id: Storyline the event belongs to, empty when none is active
        timestamp: When the event was emitted
    """

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    storyline_id: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __str__(self) -> str:
        return f"[{self.type.value}] {self.data}"


EventHandler = Callable[[SessionEvent], None]


class EventBus:
    def __init__(self, history_limit: int = 100) -> None:
        self._listeners: dict[EventType, list[EventHandler]] = {}
        self._history: list[SessionEvent] = []
        self._history_limit = history_limit

    def subscribe(self, event_type: EventType, handler: EventHandler) -> Callable[[], None]:
        """Register handler for event_type. Returns a callable that unregisters it."""
        handlers = self._listeners.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)

        def unsubscribe() -> None:
            self.unsubscribe(event_type, handler)

        return unsubscribe

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        handlers = self._listeners.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event_type: EventType, storyline_id: str = "", **data: Any) -> SessionEvent:
        event = SessionEvent(type=event_type, data=data, storyline_id=storyline_id)

        self._history.append(event)
        if len(self._history) > self._history_limit:
            self._history = self._history[-self._history_limit:]

        # Copy so a handler may unsubscribe itself mid-dispatch
        for handler in list(self._listeners.get(event_type, [])):
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler failed for %s", event_type.value)

        return event

    def clear(self) -> None:
        self._listeners.clear()

    def history(self, event_type: EventType | None = None) -> list[SessionEvent]:
        if event_type is None:
            return list(self._history)
        return [e for e in self._history if e.type == event_type]

    def listener_count(self, event_type: EventType) -> int:
        return len(self._listeners.get(event_type, []))
