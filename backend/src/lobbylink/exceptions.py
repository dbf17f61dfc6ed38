"""
Exceptions for the lobby join system.

Collaborators (connectors, loaders) raise the kind-carrying errors as raw
failure signals; the classifier honours their ``kind``. The state errors
signal programming mistakes and are raised to the caller.
"""
from .types import ErrorKind


class LobbyLinkError(Exception):
    """Base exception for the lobby join system."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.UNKNOWN):
        super().__init__(message)
        self.kind = kind


class LobbyNotFoundError(LobbyLinkError):
    """Raised when the requested lobby does not exist."""

    def __init__(self, lobby_id: str):
        super().__init__(f"Lobby {lobby_id!r} not found", ErrorKind.NOT_FOUND)
        self.lobby_id = lobby_id


class ResourceNotFoundError(LobbyLinkError):
    """Raised when a resource cannot be located."""

    def __init__(self, resource_id: str):
        super().__init__(f"Resource {resource_id!r} not found", ErrorKind.NOT_FOUND)
        self.resource_id = resource_id


class LoadTimeoutError(LobbyLinkError):
    """Raised when an operation misses its deadline."""

    def __init__(self, message: str, timeout: float):
        super().__init__(message, ErrorKind.TIMEOUT)
        self.timeout = timeout


class ConnectionRejectedError(LobbyLinkError):
    """Raised when the remote end actively rejects a connection."""

    def __init__(self, message: str):
        super().__init__(message, ErrorKind.REFUSED)


class ResourceExhaustedError(LobbyLinkError):
    """Raised when memory, handles or quota run out."""

    def __init__(self, message: str):
        super().__init__(message, ErrorKind.RESOURCE_EXHAUSTED)


class ControllerStateError(LobbyLinkError):
    """Raised when a controller is used outside its lifecycle."""

    def __init__(self, message: str, state: str):
        super().__init__(message)
        self.state = state


class InvalidTransitionError(LobbyLinkError):
    """Raised on a state transition that the state table does not allow."""

    def __init__(self, message: str, from_state: str, to_state: str):
        super().__init__(message)
        self.from_state = from_state
        self.to_state = to_state
