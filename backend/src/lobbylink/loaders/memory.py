"""In-memory resource loader."""
import asyncio
from collections.abc import Mapping
from typing import Any

from ..classification import ErrorClassifier
from ..exceptions import LobbyLinkError, ResourceNotFoundError
from ..types import ErrorKind
from .base import BaseResourceLoader


class InMemoryResourceLoader(BaseResourceLoader):
    """Serves resources from a dict, with scripted failures and delays.

    Useful for testing: it records every call along with the number of
    loads in flight at once.
    """

    def __init__(
        self,
        resources: Mapping[str, Any] | None = None,
        failures: Mapping[str, BaseException | ErrorKind] | None = None,
        delays: Mapping[str, float] | None = None,
        default_delay: float = 0.0,
        classifier: ErrorClassifier | None = None
    ):
        super().__init__(classifier)
        self.resources = dict(resources or {})
        self.failures = dict(failures or {})
        self.delays = dict(delays or {})
        self.default_delay = default_delay

        self.calls: list[str] = []
        self.active = 0
        self.peak_active = 0
        self.cancelled: list[str] = []

    async def _fetch(self, resource_id: str) -> Any:
        self.calls.append(resource_id)
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        try:
            delay = self.delays.get(resource_id, self.default_delay)
            if delay:
                await asyncio.sleep(delay)

            failure = self.failures.get(resource_id)
            if isinstance(failure, ErrorKind):
                raise LobbyLinkError(f"Scripted {failure.value} for {resource_id!r}", failure)
            if failure is not None:
                raise failure

            if resource_id not in self.resources:
                raise ResourceNotFoundError(resource_id)
            return self.resources[resource_id]
        except asyncio.CancelledError:
            self.cancelled.append(resource_id)
            raise
        finally:
            self.active -= 1
