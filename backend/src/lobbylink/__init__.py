"""
Resilient lobby joining: connect with retries, load resources concurrently,
classify every failure, report one terminal outcome.
"""
from .batch import LoadBatchCoordinator
from .classification import ErrorClassifier
from .config import JoinConfig, RetryConfig
from .connectors import HttpLobbyConnector, InMemoryLobbyConnector, LobbyConnector
from .controller import ConnectionController, join_lobby, join_lobby_sync
from .events import EventRecorder, EventType, JoinEvent
from .exceptions import (
    ConnectionRejectedError,
    ControllerStateError,
    InvalidTransitionError,
    LoadTimeoutError,
    LobbyLinkError,
    LobbyNotFoundError,
    ResourceExhaustedError,
    ResourceNotFoundError,
)
from .loaders import FileResourceLoader, HttpResourceLoader, InMemoryResourceLoader, ResourceLoader
from .persistence import LoggingLogSink, LogSink, MemoryLogSink, SQLAlchemyLogSink
from .strategies import ExponentialBackoffPolicy, FixedDelayPolicy, RetryDecision
from .types import (
    ConnectionAttempt,
    ErrorKind,
    FailureCause,
    JoinOutcome,
    JoinState,
    LoadBatchResult,
    LoadResult,
    LobbySession,
    LogEntry,
    ResourceRequest,
)


__all__ = [
    # Controller
    'ConnectionController',
    'join_lobby',
    'join_lobby_sync',
    'LoadBatchCoordinator',

    # Configuration and policies
    'JoinConfig',
    'RetryConfig',
    'ExponentialBackoffPolicy',
    'FixedDelayPolicy',
    'RetryDecision',

    # Classification
    'ErrorClassifier',
    'ErrorKind',

    # Collaborators
    'LobbyConnector',
    'InMemoryLobbyConnector',
    'HttpLobbyConnector',
    'ResourceLoader',
    'InMemoryResourceLoader',
    'FileResourceLoader',
    'HttpResourceLoader',
    'LogSink',
    'MemoryLogSink',
    'LoggingLogSink',
    'SQLAlchemyLogSink',

    # Events
    'JoinEvent',
    'EventType',
    'EventRecorder',

    # Records
    'ConnectionAttempt',
    'ResourceRequest',
    'LoadBatchResult',
    'LoadResult',
    'LobbySession',
    'LogEntry',
    'JoinOutcome',
    'JoinState',
    'FailureCause',

    # Exceptions
    'LobbyLinkError',
    'LobbyNotFoundError',
    'ResourceNotFoundError',
    'LoadTimeoutError',
    'ConnectionRejectedError',
    'ResourceExhaustedError',
    'ControllerStateError',
    'InvalidTransitionError',
]
