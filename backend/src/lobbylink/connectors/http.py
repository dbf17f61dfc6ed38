"""HTTP lobby connector built on aiohttp."""
import json
import logging
from urllib.parse import quote

import aiohttp

from ..classification import ErrorClassifier
from ..types import LobbySession
from .base import BaseLobbyConnector

logger = logging.getLogger(__name__)


class HttpLobbyConnector(BaseLobbyConnector):
    """Joins a lobby with ``POST {base_url}/lobbies/{lobby_id}/join``.

    The response body is expected to be JSON with optional ``token`` and
    ``endpoint`` fields; anything else is kept as session metadata.
    """

    def __init__(
        self,
        base_url: str,
        session: aiohttp.ClientSession | None = None,
        headers: dict[str, str] | None = None,
        payload: dict | None = None,
        classifier: ErrorClassifier | None = None
    ):
        super().__init__(classifier)
        self.base_url = base_url.rstrip('/')
        self.headers = headers or {}
        self.payload = payload or {}
        self._session = session
        self._owns_session = session is None

    def url_for(self, lobby_id: str) -> str:
        return f"{self.base_url}/lobbies/{quote(lobby_id, safe='')}/join"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=self.headers)
            self._owns_session = True
        return self._session

    async def _open(self, lobby_id: str) -> LobbySession:
        url = self.url_for(lobby_id)
        async with self._get_session().post(url, json=self.payload) as response:
            response.raise_for_status()
            text = await response.text()

        body = json.loads(text) if text.strip() else {}
        if not isinstance(body, dict):
            body = {"value": body}
        logger.info(f"Joined lobby {lobby_id!r} via {url}")
        return LobbySession(
            lobby_id=lobby_id,
            token=body.pop('token', None),
            endpoint=body.pop('endpoint', None),
            metadata=body
        )

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> 'HttpLobbyConnector':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
