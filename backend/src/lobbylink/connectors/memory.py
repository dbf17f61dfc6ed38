"""In-memory lobby connector."""
import asyncio
from collections.abc import Iterable

from ..classification import ErrorClassifier
from ..exceptions import LobbyLinkError, LobbyNotFoundError
from ..types import ErrorKind, LobbySession
from .base import BaseLobbyConnector

Step = ErrorKind | BaseException | LobbySession | None


class InMemoryLobbyConnector(BaseLobbyConnector):
    """Connector driven by a script of per-attempt outcomes.

    Each call to ``connect`` consumes the next step: an ErrorKind or
    exception fails the attempt, ``None`` or a LobbySession succeeds. Once
    the script runs out every attempt succeeds. Lobbies not in ``lobbies``
    (when given) fail with NOT_FOUND.
    """

    def __init__(
        self,
        script: Iterable[Step] = (),
        lobbies: Iterable[str] | None = None,
        delay: float = 0.0,
        classifier: ErrorClassifier | None = None
    ):
        super().__init__(classifier)
        self.script = list(script)
        self.lobbies = set(lobbies) if lobbies is not None else None
        self.delay = delay
        self.attempts: list[str] = []

    async def _open(self, lobby_id: str) -> LobbySession:
        self.attempts.append(lobby_id)
        if self.delay:
            await asyncio.sleep(self.delay)

        if self.lobbies is not None and lobby_id not in self.lobbies:
            raise LobbyNotFoundError(lobby_id)

        step = self.script.pop(0) if self.script else None
        if isinstance(step, ErrorKind):
            raise LobbyLinkError(f"Scripted {step.value} joining {lobby_id!r}", step)
        if isinstance(step, BaseException):
            raise step
        if isinstance(step, LobbySession):
            return step
        return LobbySession(lobby_id=lobby_id, token=f"session-{len(self.attempts)}")
