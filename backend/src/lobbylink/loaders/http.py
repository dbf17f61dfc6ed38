"""HTTP resource loader built on aiohttp."""
import logging
from urllib.parse import quote

import aiohttp

from ..classification import ErrorClassifier
from .base import BaseResourceLoader

logger = logging.getLogger(__name__)


class HttpResourceLoader(BaseResourceLoader):
    """Fetches ``{base_url}/{resource_id}`` over HTTP.

    Non-2xx responses raise ``aiohttp.ClientResponseError`` and are
    classified by status (404 -> NOT_FOUND, 429 -> RESOURCE_EXHAUSTED, ...).
    Pass a session to share a connection pool; otherwise the loader owns
    one and closes it in ``close``.
    """

    def __init__(
        self,
        base_url: str,
        session: aiohttp.ClientSession | None = None,
        headers: dict[str, str] | None = None,
        classifier: ErrorClassifier | None = None
    ):
        super().__init__(classifier)
        self.base_url = base_url.rstrip('/')
        self.headers = headers or {}
        self._session = session
        self._owns_session = session is None

    def url_for(self, resource_id: str) -> str:
        return f"{self.base_url}/{quote(resource_id, safe='/')}"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=self.headers)
            self._owns_session = True
        return self._session

    async def _fetch(self, resource_id: str) -> bytes:
        url = self.url_for(resource_id)
        async with self._get_session().get(url) as response:
            response.raise_for_status()
            payload = await response.read()
        logger.debug(f"GET {url} -> {len(payload)} bytes")
        return payload

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> 'HttpResourceLoader':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
