"""
Base definitions for failure-record sinks.
"""
import logging
from abc import ABC, abstractmethod
from typing import Protocol

from ..types import LogEntry


logger = logging.getLogger(__name__)


class LogSink(Protocol):
    """Protocol for the append-only failure log collaborator."""

    def append(self, entry: LogEntry) -> None:
        """Record a failure entry. Fire-and-forget from the caller's view."""
        ...


class BaseLogSink(ABC):
    """Base class for sink implementations."""

    @abstractmethod
    def append(self, entry: LogEntry) -> None:
        """Record a failure entry."""
        pass


class LoggingLogSink(BaseLogSink):
    """Forwards entries to a standard library logger."""

    def __init__(self, target: logging.Logger | None = None, level: int = logging.WARNING):
        self.target = target or logging.getLogger("lobbylink.failures")
        self.level = level

    def append(self, entry: LogEntry) -> None:
        self.target.log(
            self.level,
            f"[{entry.kind.value}] lobby={entry.lobby_id} attempt={entry.attempt_number} "
            f"resource={entry.resource_id}: {entry.context}",
            extra={"lobby_entry": entry.to_dict()}
        )


def safe_append(sink: LogSink | None, entry: LogEntry) -> None:
    """Append to ``sink`` so that a failing sink never reaches the caller."""
    if sink is None:
        return
    try:
        sink.append(entry)
    except Exception:
        logger.exception(f"Log sink {type(sink).__name__} failed to record {entry.kind.value} entry")
