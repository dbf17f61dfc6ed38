"""
Tests for the connection controller.
"""
import asyncio
import threading
import time

import pytest

from lobbylink.config import JoinConfig, RetryConfig
from lobbylink.connectors import InMemoryLobbyConnector
from lobbylink.controller import ConnectionController, join_lobby, join_lobby_sync
from lobbylink.events import EventRecorder, EventType
from lobbylink.exceptions import ControllerStateError
from lobbylink.loaders import InMemoryResourceLoader
from lobbylink.persistence import MemoryLogSink
from lobbylink.strategies import FixedDelayPolicy
from lobbylink.types import AttemptOutcome, ErrorKind, FailureCause, JoinState


def fast_config(**overrides) -> JoinConfig:
    """Config with no backoff delay so retries run instantly."""
    settings = {
        "retry": RetryConfig(max_attempts=3, base_delay=0.0, jitter_fraction=0.0),
        "per_item_timeout": 1.0,
        "concurrency_limit": 2,
        "connect_timeout": 1.0,
    }
    settings.update(overrides)
    return JoinConfig(**settings)


class RaisingConnector:
    """Connector that breaks the contract by raising."""

    def __init__(self):
        self.calls = 0

    async def connect(self, lobby_id, deadline):
        self.calls += 1
        raise ConnectionRefusedError("nobody listening")


class BrokenSink:
    def append(self, entry):
        raise RuntimeError("sink offline")


async def wait_for_state(controller, state, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while controller.state is not state:
        assert loop.time() < deadline, f"controller stuck in {controller.state.value}"
        await asyncio.sleep(0.01)


@pytest.fixture
def sink():
    return MemoryLogSink()


@pytest.fixture
def recorder():
    return EventRecorder()


class TestJoinScenarios:
    """End-to-end joins through the controller."""

    @pytest.mark.asyncio
    async def test_retries_timeouts_then_joins(self, sink, recorder):
        connector = InMemoryLobbyConnector([ErrorKind.TIMEOUT, ErrorKind.TIMEOUT])
        loader = InMemoryResourceLoader({"map": 1, "texture": 2})
        controller = ConnectionController(connector, loader, fast_config(), sink, [recorder])

        outcome = await controller.join("L1", ["map", "texture"])

        assert outcome.state is JoinState.JOINED
        assert outcome.attempts == 3
        assert outcome.missing == frozenset()
        assert outcome.session.token == "session-3"

        assert [entry.kind for entry in sink.entries] == [ErrorKind.TIMEOUT, ErrorKind.TIMEOUT]
        assert [entry.attempt_number for entry in sink.entries] == [1, 2]
        assert all(entry.cause == "retry" for entry in sink.entries)

        assert [attempt.outcome for attempt in controller.attempts] == [
            AttemptOutcome.FAILED, AttemptOutcome.FAILED, AttemptOutcome.SUCCEEDED
        ]
        assert controller.state is JoinState.JOINED
        assert len(recorder.terminal) == 1

    @pytest.mark.asyncio
    async def test_missing_resource_gives_partial_load(self, sink):
        connector = InMemoryLobbyConnector()
        loader = InMemoryResourceLoader({"map": 1})
        controller = ConnectionController(connector, loader, fast_config(), sink)

        outcome = await controller.join("L1", ["map", "texture"])

        assert outcome.state is JoinState.PARTIALLY_LOADED
        assert outcome.missing == {"texture"}
        assert outcome.attempts == 1

        [entry] = sink.entries
        assert entry.kind is ErrorKind.NOT_FOUND
        assert entry.resource_id == "texture"

    @pytest.mark.asyncio
    async def test_unknown_lobby_fails_without_retry(self, sink):
        connector = InMemoryLobbyConnector(lobbies={"L2"})
        loader = InMemoryResourceLoader({"map": 1})
        controller = ConnectionController(connector, loader, fast_config(), sink)

        outcome = await controller.join("L1", ["map"])

        assert outcome.state is JoinState.FAILED
        assert outcome.kind is ErrorKind.NOT_FOUND
        assert outcome.cause is FailureCause.CONNECTION
        assert outcome.attempts == 1
        assert connector.attempts == ["L1"]
        assert loader.calls == []

        [entry] = sink.entries
        assert entry.kind is ErrorKind.NOT_FOUND
        assert entry.cause == "connection"

    @pytest.mark.asyncio
    async def test_empty_resource_set_joins(self, sink, recorder):
        controller = ConnectionController(
            InMemoryLobbyConnector(), InMemoryResourceLoader({}), fast_config(), sink, [recorder]
        )

        outcome = await controller.join("L1", [])

        assert outcome.state is JoinState.JOINED
        assert outcome.missing == frozenset()
        assert len(sink) == 0
        assert recorder.types[-1] is EventType.JOINED

    @pytest.mark.asyncio
    async def test_exhausted_retries_fail_with_last_kind(self, sink):
        connector = InMemoryLobbyConnector([ErrorKind.REFUSED] * 3)
        controller = ConnectionController(connector, InMemoryResourceLoader({}), fast_config(), sink)

        outcome = await controller.join("L1", ["map"])

        assert outcome.state is JoinState.FAILED
        assert outcome.kind is ErrorKind.REFUSED
        assert outcome.attempts == 3
        assert [entry.cause for entry in sink.entries] == ["retry", "retry", "connection"]

    @pytest.mark.asyncio
    async def test_all_resources_failing_fails_the_join(self, sink):
        loader = InMemoryResourceLoader({}, failures={"a": ErrorKind.REFUSED, "b": ErrorKind.TIMEOUT})
        controller = ConnectionController(InMemoryLobbyConnector(), loader, fast_config(), sink)

        outcome = await controller.join("L1", ["a", "b"])

        assert outcome.state is JoinState.FAILED
        assert outcome.kind is ErrorKind.TIMEOUT
        assert outcome.cause is FailureCause.LOADING
        assert outcome.missing == {"a", "b"}

        assert len(sink) == 3
        assert sink.entries[-1].cause == "loading"
        assert sink.entries[-1].kind is ErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_duplicate_resources_fail_as_invalid_request(self, sink):
        loader = InMemoryResourceLoader({"map": 1})
        controller = ConnectionController(InMemoryLobbyConnector(), loader, fast_config(), sink)

        outcome = await controller.join("L1", ["map", "map"])

        assert outcome.state is JoinState.FAILED
        assert outcome.kind is ErrorKind.UNKNOWN
        assert outcome.cause is FailureCause.INVALID_REQUEST
        assert loader.calls == []
        assert len(sink) == 1

    @pytest.mark.asyncio
    async def test_raising_connector_is_classified_and_retried(self, sink):
        connector = RaisingConnector()
        config = fast_config(retry=RetryConfig(max_attempts=2, base_delay=0.0, jitter_fraction=0.0))
        controller = ConnectionController(connector, InMemoryResourceLoader({}), config, sink)

        outcome = await controller.join("L1", [])

        assert outcome.kind is ErrorKind.REFUSED
        assert outcome.attempts == 2
        assert connector.calls == 2

    @pytest.mark.asyncio
    async def test_connect_timeout(self, sink):
        config = fast_config(
            connect_timeout=0.05,
            retry=RetryConfig(max_attempts=1, base_delay=0.0, jitter_fraction=0.0)
        )
        controller = ConnectionController(InMemoryLobbyConnector(delay=5.0), InMemoryResourceLoader({}), config, sink)

        outcome = await controller.join("L1", [])

        assert outcome.kind is ErrorKind.TIMEOUT
        assert outcome.cause is FailureCause.CONNECTION


class TestEvents:
    """Test the event stream seen by listeners."""

    @pytest.mark.asyncio
    async def test_event_sequence(self, recorder):
        connector = InMemoryLobbyConnector([ErrorKind.TIMEOUT, ErrorKind.REFUSED])
        loader = InMemoryResourceLoader({"a": 1, "b": 2})
        config = fast_config(concurrency_limit=1)
        controller = ConnectionController(connector, loader, config, listeners=[recorder])

        await controller.join("L1", ["a", "b"])

        assert recorder.types == [
            EventType.CONNECTING,
            EventType.CONNECTING,
            EventType.CONNECTING,
            EventType.CONNECTED,
            EventType.LOADING,
            EventType.LOADING,
            EventType.LOADING,
            EventType.JOINED,
        ]
        assert [event.attempt for event in recorder.of_type(EventType.CONNECTING)] == [1, 2, 3]
        assert [event.progress for event in recorder.of_type(EventType.LOADING)] == [0.0, 0.5, 1.0]

    @pytest.mark.asyncio
    async def test_failed_event_carries_kind_and_cause(self, recorder):
        controller = ConnectionController(
            InMemoryLobbyConnector(lobbies=[]), InMemoryResourceLoader({}), fast_config(), listeners=[recorder]
        )

        await controller.join("L1", ["map"])

        [terminal] = recorder.terminal
        assert terminal.type is EventType.FAILED
        assert terminal.kind is ErrorKind.NOT_FOUND
        assert terminal.cause == "connection"
        assert terminal.to_dict()["kind"] == "not_found"

    @pytest.mark.asyncio
    async def test_partial_event_lists_missing(self, recorder):
        controller = ConnectionController(
            InMemoryLobbyConnector(), InMemoryResourceLoader({"map": 1}), fast_config(), listeners=[recorder]
        )

        await controller.join("L1", ["map", "texture"])

        [terminal] = recorder.terminal
        assert terminal.type is EventType.PARTIALLY_LOADED
        assert terminal.missing == {"texture"}


class TestControllerRobustness:
    """Failures around the join must not change its outcome."""

    @pytest.mark.asyncio
    async def test_join_twice_is_rejected(self):
        controller = ConnectionController(InMemoryLobbyConnector(), InMemoryResourceLoader({}), fast_config())
        await controller.join("L1", [])

        with pytest.raises(ControllerStateError):
            await controller.join("L1", [])

    @pytest.mark.asyncio
    async def test_failing_sink_and_listener(self):
        def explode(event):
            raise RuntimeError("listener crashed")

        connector = InMemoryLobbyConnector([ErrorKind.TIMEOUT])
        loader = InMemoryResourceLoader({"map": 1})
        controller = ConnectionController(connector, loader, fast_config(), BrokenSink(), [explode])

        outcome = await controller.join("L1", ["map", "texture"])

        assert outcome.state is JoinState.PARTIALLY_LOADED
        assert outcome.attempts == 2

    @pytest.mark.asyncio
    async def test_join_lobby_helper(self, sink):
        outcome = await join_lobby(
            "L1", ["map"], InMemoryLobbyConnector(), InMemoryResourceLoader({"map": 1}), fast_config(), sink
        )

        assert outcome.joined

    def test_join_lobby_sync(self):
        outcome = join_lobby_sync(
            "L1", ["map"], InMemoryLobbyConnector([ErrorKind.UNKNOWN]), InMemoryResourceLoader({"map": 1}), fast_config()
        )

        assert outcome.joined
        assert outcome.attempts == 2


class TestCancellation:
    """Test cancelling a join in progress."""

    @pytest.mark.asyncio
    async def test_cancel_during_loading(self, sink, recorder):
        loader = InMemoryResourceLoader({"a": 1, "b": 2}, default_delay=10.0)
        controller = ConnectionController(
            InMemoryLobbyConnector(), loader, fast_config(per_item_timeout=30.0), sink, [recorder]
        )

        task = asyncio.create_task(controller.join("L1", ["a", "b"]))
        await wait_for_state(controller, JoinState.LOADING)
        await asyncio.sleep(0.02)
        controller.cancel()
        outcome = await task

        assert outcome.state is JoinState.FAILED
        assert outcome.kind is ErrorKind.UNKNOWN
        assert outcome.cancelled
        assert loader.active == 0
        assert sink.entries[-1].cause == "cancelled"
        assert [event.type for event in recorder.terminal] == [EventType.FAILED]

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self, sink):
        connector = InMemoryLobbyConnector([ErrorKind.TIMEOUT])
        controller = ConnectionController(
            connector, InMemoryResourceLoader({}), fast_config(), sink,
            policy=FixedDelayPolicy(max_attempts=3, delay=10.0)
        )

        task = asyncio.create_task(controller.join("L1", []))
        while len(sink) < 1:
            await asyncio.sleep(0.01)
        controller.cancel()
        outcome = await task

        assert outcome.cancelled
        assert outcome.attempts == 1
        assert connector.attempts == ["L1"]
        assert [entry.cause for entry in sink.entries] == ["retry", "cancelled"]

    @pytest.mark.asyncio
    async def test_cancel_during_connect_attempt(self, sink, recorder):
        connector = InMemoryLobbyConnector(delay=10.0)
        loader = InMemoryResourceLoader({"map": 1})
        controller = ConnectionController(
            connector, loader, fast_config(connect_timeout=30.0), sink, [recorder]
        )

        task = asyncio.create_task(controller.join("L1", ["map"]))
        while not connector.attempts:
            await asyncio.sleep(0.01)
        controller.cancel()
        outcome = await task

        assert outcome.state is JoinState.FAILED
        assert outcome.kind is ErrorKind.UNKNOWN
        assert outcome.cause is FailureCause.CANCELLED
        assert outcome.attempts == 1

        [attempt] = controller.attempts
        assert attempt.outcome is AttemptOutcome.FAILED
        assert attempt.kind is ErrorKind.UNKNOWN

        [entry] = sink.entries
        assert entry.cause == "cancelled"
        assert entry.attempt_number == 1
        assert loader.calls == []
        assert [event.type for event in recorder.terminal] == [EventType.FAILED]

    @pytest.mark.asyncio
    async def test_cancel_before_join(self, sink):
        connector = InMemoryLobbyConnector()
        controller = ConnectionController(connector, InMemoryResourceLoader({}), fast_config(), sink)

        controller.cancel()
        outcome = await controller.join("L1", ["map"])

        assert outcome.cancelled
        assert outcome.attempts == 0
        assert connector.attempts == []
        assert len(sink) == 1

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent_after_finish(self, sink):
        controller = ConnectionController(InMemoryLobbyConnector(), InMemoryResourceLoader({}), fast_config(), sink)
        outcome = await controller.join("L1", [])

        controller.cancel()
        controller.cancel()

        assert controller.outcome is outcome
        assert outcome.joined
        assert len(sink) == 0

    @pytest.mark.asyncio
    async def test_caller_cancellation_propagates(self, sink):
        loader = InMemoryResourceLoader({"a": 1}, default_delay=10.0)
        controller = ConnectionController(
            InMemoryLobbyConnector(), loader, fast_config(per_item_timeout=30.0), sink
        )

        task = asyncio.create_task(controller.join("L1", ["a"]))
        await wait_for_state(controller, JoinState.LOADING)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert controller.outcome.cancelled
        assert controller.state is JoinState.FAILED
        assert loader.active == 0

    def test_cancel_from_another_thread(self):
        loader = InMemoryResourceLoader({"a": 1}, default_delay=10.0)
        controller = ConnectionController(
            InMemoryLobbyConnector(), loader, fast_config(per_item_timeout=30.0)
        )
        outcomes = []

        thread = threading.Thread(target=lambda: outcomes.append(controller.join_blocking("L1", ["a"])))
        thread.start()

        deadline = time.monotonic() + 2.0
        while controller.state is not JoinState.LOADING and time.monotonic() < deadline:
            time.sleep(0.01)
        controller.cancel()
        thread.join(timeout=5.0)

        assert not thread.is_alive()
        [outcome] = outcomes
        assert outcome.cancelled
