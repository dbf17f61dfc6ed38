"""
Lobby connector capability and its shared boundary behavior.
"""
import logging
from abc import ABC, abstractmethod
from typing import Protocol

from ..classification import ErrorClassifier, default_classifier
from ..types import ConnectResult, ErrorKind, LobbySession
from ..utils import run_until

logger = logging.getLogger(__name__)


class LobbyConnector(Protocol):
    """Protocol for anything that can open a session with a lobby."""

    async def connect(self, lobby_id: str, deadline: float) -> ConnectResult:
        """Attempt one connection, giving up with Failed(TIMEOUT) at ``deadline``."""
        ...


class BaseLobbyConnector(ABC):
    """Base class for connectors.

    Subclasses implement ``_open``; ``connect`` enforces the deadline and
    classifies whatever ``_open`` raises.
    """

    def __init__(self, classifier: ErrorClassifier | None = None):
        self.classifier = classifier or default_classifier()

    async def connect(self, lobby_id: str, deadline: float) -> ConnectResult:
        try:
            session = await run_until(deadline, self._open(lobby_id))
        except TimeoutError:
            logger.warning(f"Connecting to lobby {lobby_id!r} missed its deadline")
            return ConnectResult.failure(ErrorKind.TIMEOUT)
        except Exception as e:
            kind = self.classifier.classify(e, {"lobby_id": lobby_id})
            logger.warning(f"Connecting to lobby {lobby_id!r} failed ({kind.value}): {e}")
            return ConnectResult.failure(kind)

        return ConnectResult.success(session)

    @abstractmethod
    async def _open(self, lobby_id: str) -> LobbySession:
        """Open a session with the lobby. Raise on failure."""
        pass
