"""
State-change notifications for the presentation layer.

The controller emits one JoinEvent per transition; how listeners deliver
them onward (push, polling, websocket) is their own concern.
"""
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .types import ErrorKind, utcnow

logger = logging.getLogger(__name__)


class EventType(Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    LOADING = "loading"
    JOINED = "joined"
    PARTIALLY_LOADED = "partially_loaded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (EventType.JOINED, EventType.PARTIALLY_LOADED, EventType.FAILED)


@dataclass(frozen=True)
class JoinEvent:
    """One state change of a join."""
    type: EventType
    lobby_id: str
    attempt: int | None = None
    completed: int | None = None
    total: int | None = None
    missing: frozenset[str] = frozenset()
    kind: ErrorKind | None = None
    cause: str | None = None
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def progress(self) -> float | None:
        """Fraction of the batch finished, for LOADING events."""
        if self.total is None or self.completed is None:
            return None
        if self.total == 0:
            return 1.0
        return self.completed / self.total

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "lobby_id": self.lobby_id,
            "attempt": self.attempt,
            "progress": self.progress,
            "missing": sorted(self.missing),
            "kind": self.kind.value if self.kind else None,
            "cause": self.cause,
            "timestamp": self.timestamp.isoformat(),
        }


JoinListener = Callable[[JoinEvent], Any]


class EventDispatcher:
    """Fans events out to registered listeners.

    A listener that raises is logged and skipped; it never changes the
    outcome of the join.
    """

    def __init__(self, listeners: list[JoinListener] | None = None):
        self._listeners: list[JoinListener] = list(listeners or [])

    def subscribe(self, listener: JoinListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: JoinListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, event: JoinEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Listener failed handling {event.type.value} for {event.lobby_id}")


class EventRecorder:
    """Listener that keeps every event it receives."""

    def __init__(self):
        self.events: list[JoinEvent] = []

    def __call__(self, event: JoinEvent) -> None:
        self.events.append(event)

    @property
    def types(self) -> list[EventType]:
        return [event.type for event in self.events]

    def of_type(self, event_type: EventType) -> list[JoinEvent]:
        return [event for event in self.events if event.type is event_type]

    @property
    def terminal(self) -> list[JoinEvent]:
        return [event for event in self.events if event.type.is_terminal]
