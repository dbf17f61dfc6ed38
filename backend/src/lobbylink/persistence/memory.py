"""In-memory failure-record sink."""
import threading

from ..types import ErrorKind, LogEntry
from .base import BaseLogSink


class MemoryLogSink(BaseLogSink):
    """In-memory recorder of failure entries.

    Useful for testing and for callers that inspect failures after a join
    without persisting them.
    """

    def __init__(self):
        self._entries: list[LogEntry] = []
        self._lock = threading.Lock()

    def append(self, entry: LogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    @property
    def entries(self) -> list[LogEntry]:
        with self._lock:
            return list(self._entries)

    def by_kind(self, kind: ErrorKind) -> list[LogEntry]:
        return [entry for entry in self.entries if entry.kind is kind]

    def clear(self) -> None:
        """Clear all recorded entries. Useful for testing."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
