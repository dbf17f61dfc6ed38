"""
Connection controller: connect with retries, load resources, report once.
"""
import asyncio
import logging
from collections.abc import Iterable

from .batch import LoadBatchCoordinator
from .classification import ErrorClassifier, default_classifier
from .config import JoinConfig
from .connectors import LobbyConnector
from .events import EventDispatcher, EventType, JoinEvent, JoinListener
from .exceptions import ControllerStateError, InvalidTransitionError
from .loaders import ResourceLoader
from .persistence import LogSink, safe_append
from .strategies import BaseRetryPolicy
from .types import (
    AttemptOutcome,
    ConnectionAttempt,
    ConnectResult,
    ErrorKind,
    FailureCause,
    JoinOutcome,
    JoinState,
    LoadBatchResult,
    LobbySession,
    LogEntry,
)
from .utils import deadline_after, run_until

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[JoinState, frozenset[JoinState]] = {
    JoinState.IDLE: frozenset({JoinState.CONNECTING}),
    JoinState.CONNECTING: frozenset({JoinState.CONNECTING, JoinState.CONNECTED, JoinState.FAILED}),
    JoinState.CONNECTED: frozenset({JoinState.LOADING, JoinState.FAILED}),
    JoinState.LOADING: frozenset({JoinState.JOINED, JoinState.PARTIALLY_LOADED, JoinState.FAILED}),
}

_TERMINAL_EVENTS = {
    JoinState.JOINED: EventType.JOINED,
    JoinState.PARTIALLY_LOADED: EventType.PARTIALLY_LOADED,
    JoinState.FAILED: EventType.FAILED,
}


class ConnectionController:
    """Drives one join from IDLE to a terminal outcome.

    A controller serves a single join; create a new one for every session
    so attempt counts never leak between joins. ``cancel`` may be called
    from any thread while ``join`` is in progress.
    """

    def __init__(
        self,
        connector: LobbyConnector,
        loader: ResourceLoader,
        config: JoinConfig | None = None,
        log_sink: LogSink | None = None,
        listeners: Iterable[JoinListener] | None = None,
        policy: BaseRetryPolicy | None = None,
        classifier: ErrorClassifier | None = None
    ):
        self.connector = connector
        self.config = config or JoinConfig()
        self.policy = policy or self.config.retry.build_policy()
        self.log_sink = log_sink
        self.classifier = classifier or default_classifier()
        self.coordinator = LoadBatchCoordinator(loader, log_sink, self.classifier)
        self.events = EventDispatcher(list(listeners or []))

        self._state = JoinState.IDLE
        self._lobby_id: str | None = None
        self._attempts: list[ConnectionAttempt] = []
        self._session: LobbySession | None = None
        self._outcome: JoinOutcome | None = None
        self._cancel_requested = False
        self._task: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def state(self) -> JoinState:
        return self._state

    @property
    def attempts(self) -> tuple[ConnectionAttempt, ...]:
        return tuple(self._attempts)

    @property
    def outcome(self) -> JoinOutcome | None:
        return self._outcome

    async def join(self, lobby_id: str, resources: Iterable[str]) -> JoinOutcome:
        """
        Connect to ``lobby_id`` and load ``resources``.

        Returns:
            The terminal outcome; never raises for connection or load failures

        Raises:
            ControllerStateError: If this controller has already been used
        """
        if self._state is not JoinState.IDLE:
            raise ControllerStateError(
                f"Controller already used for lobby {self._lobby_id!r}; create a new one per join",
                self._state.value
            )

        self._lobby_id = lobby_id
        self._loop = asyncio.get_running_loop()
        resources = list(resources)

        self._transition(JoinState.CONNECTING)
        self._emit(EventType.CONNECTING, attempt=1)

        self._task = asyncio.create_task(self._run(lobby_id, resources))
        if self._cancel_requested:
            self._task.cancel()

        try:
            return await self._task
        except asyncio.CancelledError:
            outcome = self._finish_cancelled()
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                # Our caller was cancelled, not just this join
                raise
            return outcome

    def join_blocking(self, lobby_id: str, resources: Iterable[str]) -> JoinOutcome:
        """Synchronous form of ``join`` for callers without an event loop."""
        return asyncio.run(self.join(lobby_id, resources))

    def cancel(self) -> None:
        """Abort the join in progress. Safe to call from any thread, and more than once."""
        self._cancel_requested = True
        task, loop = self._task, self._loop
        if task is None or loop is None or task.done():
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            task.cancel()
        else:
            loop.call_soon_threadsafe(task.cancel)

    async def _run(self, lobby_id: str, resources: list[str]) -> JoinOutcome:
        result = await self._connect(lobby_id)
        if not result.ok:
            return self._finish(JoinState.FAILED, kind=result.kind, cause=FailureCause.CONNECTION)

        self._session = result.session
        self._transition(JoinState.CONNECTED)
        self._emit(EventType.CONNECTED)

        self._transition(JoinState.LOADING)
        self._emit(EventType.LOADING, completed=0, total=len(resources))

        batch = await self.coordinator.run_batch(
            resources,
            self.config.per_item_timeout,
            self.config.concurrency_limit,
            lobby_id=lobby_id,
            on_progress=lambda done, total: self._emit(EventType.LOADING, completed=done, total=total)
        )
        return self._finish_batch(batch)

    async def _connect(self, lobby_id: str) -> ConnectResult:
        attempt_number = 0
        while True:
            attempt_number += 1
            if attempt_number > 1:
                self._transition(JoinState.CONNECTING)
                self._emit(EventType.CONNECTING, attempt=attempt_number)

            self._attempts.append(ConnectionAttempt(lobby_id=lobby_id, attempt_number=attempt_number))
            logger.info(f"Connecting to lobby {lobby_id!r} (attempt {attempt_number}/{self.policy.max_attempts})")

            result = await self._attempt(lobby_id)
            if result.ok:
                self._attempts[-1] = self._attempts[-1].succeed()
                logger.info(f"Connected to lobby {lobby_id!r} after {attempt_number} attempts")
                return result

            kind = result.kind
            self._attempts[-1] = self._attempts[-1].fail(kind)
            decision = self.policy.next_delay(attempt_number, kind)

            self._log(
                kind,
                f"Connection attempt {attempt_number} to lobby {lobby_id!r} failed",
                attempt_number=attempt_number,
                cause="retry" if decision.retry else FailureCause.CONNECTION.value
            )
            if not decision.retry:
                return result

            logger.info(f"Retrying lobby {lobby_id!r} after {decision.delay:.2f}s ({self.policy.name})")
            await asyncio.sleep(decision.delay)

    async def _attempt(self, lobby_id: str) -> ConnectResult:
        deadline = deadline_after(self.config.connect_timeout)
        try:
            result = await run_until(deadline, self.connector.connect(lobby_id, deadline))
        except TimeoutError:
            return ConnectResult.failure(ErrorKind.TIMEOUT)
        except Exception as e:
            # Connector broke its contract by raising
            kind = self.classifier.classify(e, {"lobby_id": lobby_id})
            logger.warning(f"Connector raised for lobby {lobby_id!r}, classified as {kind.value}: {e!r}")
            return ConnectResult.failure(kind)

        if not result.ok and not isinstance(result.kind, ErrorKind):
            return ConnectResult.failure(self.classifier.classify(result.kind))
        return result

    def _finish_batch(self, batch: LoadBatchResult) -> JoinOutcome:
        if batch.rejected is not None:
            # Already logged by the coordinator
            return self._finish(
                JoinState.FAILED, kind=batch.rejected, cause=FailureCause.INVALID_REQUEST, batch=batch
            )

        if batch.all_succeeded:
            return self._finish(JoinState.JOINED, batch=batch)

        if batch.all_failed:
            kind = batch.dominant_kind()
            self._log(
                kind,
                f"All {len(batch.failed)} resources failed to load for lobby {self._lobby_id!r}",
                cause=FailureCause.LOADING.value
            )
            return self._finish(
                JoinState.FAILED, kind=kind, missing=batch.missing, cause=FailureCause.LOADING, batch=batch
            )

        return self._finish(JoinState.PARTIALLY_LOADED, missing=batch.missing, batch=batch)

    def _finish_cancelled(self) -> JoinOutcome:
        if self._outcome is not None:
            return self._outcome

        if self._attempts and self._attempts[-1].outcome is AttemptOutcome.PENDING:
            self._attempts[-1] = self._attempts[-1].fail(ErrorKind.UNKNOWN)

        self._log(
            ErrorKind.UNKNOWN,
            f"Join of lobby {self._lobby_id!r} cancelled in state {self._state.value}",
            attempt_number=len(self._attempts) or None,
            cause=FailureCause.CANCELLED.value
        )
        return self._finish(JoinState.FAILED, kind=ErrorKind.UNKNOWN, cause=FailureCause.CANCELLED)

    def _finish(
        self,
        state: JoinState,
        kind: ErrorKind | None = None,
        missing: frozenset[str] = frozenset(),
        cause: FailureCause | None = None,
        batch: LoadBatchResult | None = None
    ) -> JoinOutcome:
        if self._outcome is not None:
            return self._outcome

        self._transition(state)
        self._outcome = JoinOutcome(
            lobby_id=self._lobby_id,
            state=state,
            attempts=len(self._attempts),
            kind=kind,
            missing=frozenset(missing),
            cause=cause,
            batch=batch,
            session=self._session
        )

        if state is JoinState.FAILED:
            logger.error(
                f"Join of lobby {self._lobby_id!r} failed ({kind.value}, {cause.value}) "
                f"after {len(self._attempts)} attempts"
            )
        else:
            logger.info(f"Join of lobby {self._lobby_id!r} ended {state.value}")

        self._emit(
            _TERMINAL_EVENTS[state],
            attempt=len(self._attempts) or None,
            missing=self._outcome.missing,
            kind=kind,
            cause=cause.value if cause else None
        )
        return self._outcome

    def _transition(self, target: JoinState) -> None:
        allowed = _TRANSITIONS.get(self._state, frozenset())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot move from {self._state.value} to {target.value}",
                self._state.value,
                target.value
            )
        logger.debug(f"Lobby {self._lobby_id!r}: {self._state.value} -> {target.value}")
        self._state = target

    def _emit(self, event_type: EventType, **fields) -> None:
        self.events.emit(JoinEvent(type=event_type, lobby_id=self._lobby_id, **fields))

    def _log(self, kind: ErrorKind, context: str, attempt_number: int | None = None, cause: str | None = None) -> None:
        safe_append(self.log_sink, LogEntry(
            kind=kind,
            context=context,
            lobby_id=self._lobby_id,
            attempt_number=attempt_number,
            cause=cause
        ))


async def join_lobby(
    lobby_id: str,
    resources: Iterable[str],
    connector: LobbyConnector,
    loader: ResourceLoader,
    config: JoinConfig | None = None,
    log_sink: LogSink | None = None,
    listeners: Iterable[JoinListener] | None = None
) -> JoinOutcome:
    """Join a lobby with a fresh controller."""
    controller = ConnectionController(connector, loader, config, log_sink, listeners)
    return await controller.join(lobby_id, resources)


def join_lobby_sync(
    lobby_id: str,
    resources: Iterable[str],
    connector: LobbyConnector,
    loader: ResourceLoader,
    config: JoinConfig | None = None,
    log_sink: LogSink | None = None,
    listeners: Iterable[JoinListener] | None = None
) -> JoinOutcome:
    """Blocking form of ``join_lobby``."""
    return asyncio.run(join_lobby(lobby_id, resources, connector, loader, config, log_sink, listeners))
