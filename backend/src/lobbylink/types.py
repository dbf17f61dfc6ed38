"""
Shared type definitions for the lobby join system.
"""
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any


class ErrorKind(Enum):
    """Closed set of failure kinds surfaced past the controller.

    Declaration order doubles as tie-break priority when aggregating
    failures, highest first.
    """
    TIMEOUT = "timeout"
    NOT_FOUND = "not_found"
    REFUSED = "refused"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    UNKNOWN = "unknown"

    @property
    def is_retryable(self) -> bool:
        """Whether a failure of this kind is worth another attempt."""
        return self not in _NON_RETRYABLE_KINDS

    @property
    def priority(self) -> int:
        """Position in declaration order; lower wins ties."""
        return _KIND_ORDER.index(self)


_NON_RETRYABLE_KINDS = frozenset({ErrorKind.NOT_FOUND, ErrorKind.RESOURCE_EXHAUSTED})
_KIND_ORDER = list(ErrorKind)


def utcnow() -> datetime:
    return datetime.now(UTC)


class AttemptOutcome(Enum):
    """Outcome of a single connection attempt."""
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RequestState(Enum):
    """States for a single resource request."""
    QUEUED = "queued"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


class JoinState(Enum):
    """States of the connection controller."""
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    LOADING = "loading"
    JOINED = "joined"
    PARTIALLY_LOADED = "partially_loaded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JoinState.JOINED, JoinState.PARTIALLY_LOADED, JoinState.FAILED)


class FailureCause(Enum):
    """Why a join ended in FAILED."""
    CONNECTION = "connection"
    LOADING = "loading"
    INVALID_REQUEST = "invalid_request"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ConnectionAttempt:
    """One attempt at connecting to a lobby.

    Immutable; resolving an attempt returns a new record.
    """
    lobby_id: str
    attempt_number: int
    started_at: datetime = field(default_factory=utcnow)
    outcome: AttemptOutcome = AttemptOutcome.PENDING
    kind: ErrorKind | None = None
    finished_at: datetime | None = None

    def __post_init__(self):
        if self.attempt_number < 1:
            raise ValueError(f"attempt_number must be >= 1, got {self.attempt_number}")

    def succeed(self) -> 'ConnectionAttempt':
        self._check_pending()
        return replace(self, outcome=AttemptOutcome.SUCCEEDED, finished_at=utcnow())

    def fail(self, kind: ErrorKind) -> 'ConnectionAttempt':
        self._check_pending()
        return replace(self, outcome=AttemptOutcome.FAILED, kind=kind, finished_at=utcnow())

    def _check_pending(self) -> None:
        if self.outcome is not AttemptOutcome.PENDING:
            from .exceptions import InvalidTransitionError
            raise InvalidTransitionError(
                f"Attempt {self.attempt_number} for {self.lobby_id} already resolved",
                self.outcome.value,
                "resolved",
            )


@dataclass
class ResourceRequest:
    """Tracks one resource through a batch.

    Only the worker that owns the request mutates it.
    """
    id: str
    state: RequestState = RequestState.QUEUED
    kind: ErrorKind | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state in (RequestState.LOADED, RequestState.FAILED)

    def mark_loading(self) -> None:
        self._move(RequestState.QUEUED, RequestState.LOADING)
        self.started_at = utcnow()

    def mark_loaded(self) -> None:
        self._move(RequestState.LOADING, RequestState.LOADED)
        self.finished_at = utcnow()

    def mark_failed(self, kind: ErrorKind) -> None:
        # A queued request can fail without ever loading (e.g. cancelled before dispatch)
        if self.state is RequestState.QUEUED:
            self._move(RequestState.QUEUED, RequestState.FAILED)
        else:
            self._move(RequestState.LOADING, RequestState.FAILED)
        self.kind = kind
        self.finished_at = utcnow()

    def _move(self, expected: RequestState, target: RequestState) -> None:
        if self.state is not expected:
            from .exceptions import InvalidTransitionError
            raise InvalidTransitionError(
                f"Resource {self.id!r} cannot move to {target.value}",
                self.state.value,
                target.value,
            )
        self.state = target


@dataclass(frozen=True)
class LoadBatchResult:
    """Aggregated outcome of one batch.

    For accepted batches, ``succeeded`` and ``failed`` partition the
    requested ids. A rejected batch loads nothing and carries the kind
    it was rejected with.
    """
    batch_id: str
    succeeded: frozenset[str] = frozenset()
    failed: Mapping[str, ErrorKind] = field(default_factory=dict)
    rejected: ErrorKind | None = None

    def __post_init__(self):
        object.__setattr__(self, 'succeeded', frozenset(self.succeeded))
        object.__setattr__(self, 'failed', MappingProxyType(dict(self.failed)))
        overlap = self.succeeded & self.failed.keys()
        if overlap:
            raise ValueError(f"Ids both succeeded and failed: {sorted(overlap)}")

    @property
    def requested(self) -> frozenset[str]:
        return self.succeeded | frozenset(self.failed)

    @property
    def missing(self) -> frozenset[str]:
        return frozenset(self.failed)

    @property
    def all_succeeded(self) -> bool:
        return self.rejected is None and not self.failed

    @property
    def all_failed(self) -> bool:
        return self.rejected is None and bool(self.failed) and not self.succeeded

    def dominant_kind(self) -> ErrorKind | None:
        """Most common failure kind, ties broken by ErrorKind declaration order."""
        if not self.failed:
            return None
        counts = Counter(self.failed.values())
        return min(counts, key=lambda kind: (-counts[kind], kind.priority))

    def to_dict(self) -> dict:
        return {
            "batch_id": self.batch_id,
            "succeeded": sorted(self.succeeded),
            "failed": {rid: kind.value for rid, kind in sorted(self.failed.items())},
            "rejected": self.rejected.value if self.rejected else None,
        }


@dataclass(frozen=True)
class LogEntry:
    """Structured failure record handed to the log sink."""
    kind: ErrorKind
    context: str
    lobby_id: str | None
    attempt_number: int | None = None
    resource_id: str | None = None
    cause: str | None = None
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind.value,
            "context": self.context,
            "lobby_id": self.lobby_id,
            "attempt_number": self.attempt_number,
            "resource_id": self.resource_id,
            "cause": self.cause,
        }


@dataclass(frozen=True)
class LobbySession:
    """Handle returned by a successful lobby connection."""
    lobby_id: str
    token: str | None = None
    endpoint: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LoadResult:
    """Loaded or Failed(kind) for a single resource."""
    resource_id: str
    kind: ErrorKind | None = None
    payload: Any = None

    @property
    def ok(self) -> bool:
        return self.kind is None

    @classmethod
    def success(cls, resource_id: str, payload: Any = None) -> 'LoadResult':
        return cls(resource_id=resource_id, payload=payload)

    @classmethod
    def failure(cls, resource_id: str, kind: ErrorKind) -> 'LoadResult':
        return cls(resource_id=resource_id, kind=kind)


@dataclass(frozen=True)
class ConnectResult:
    """Connected(session) or Failed(kind) for a single connection attempt."""
    session: LobbySession | None = None
    kind: ErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.kind is None

    @classmethod
    def success(cls, session: LobbySession) -> 'ConnectResult':
        return cls(session=session)

    @classmethod
    def failure(cls, kind: ErrorKind) -> 'ConnectResult':
        return cls(kind=kind)


@dataclass(frozen=True)
class JoinOutcome:
    """Terminal outcome of a join, reported exactly once."""
    lobby_id: str
    state: JoinState
    attempts: int
    kind: ErrorKind | None = None
    missing: frozenset[str] = frozenset()
    cause: FailureCause | None = None
    batch: LoadBatchResult | None = None
    session: LobbySession | None = None

    @property
    def joined(self) -> bool:
        return self.state is JoinState.JOINED

    @property
    def failed(self) -> bool:
        return self.state is JoinState.FAILED

    @property
    def cancelled(self) -> bool:
        return self.cause is FailureCause.CANCELLED

    def to_dict(self) -> dict:
        """Convert to dictionary for presentation."""
        return {
            "lobby_id": self.lobby_id,
            "state": self.state.value,
            "attempts": self.attempts,
            "kind": self.kind.value if self.kind else None,
            "missing": sorted(self.missing),
            "cause": self.cause.value if self.cause else None,
        }
