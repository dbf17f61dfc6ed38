"""
Resource loader capability and its shared boundary behavior.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Protocol

from ..classification import ErrorClassifier, default_classifier
from ..types import ErrorKind, LoadResult
from ..utils import run_until

logger = logging.getLogger(__name__)


class ResourceLoader(Protocol):
    """Protocol for anything that can load one resource by id."""

    async def load(self, resource_id: str, deadline: float) -> LoadResult:
        """Load ``resource_id``, giving up with Failed(TIMEOUT) at ``deadline``.

        Never raises for a load failure; every failure comes back as a
        classified LoadResult.
        """
        ...


class BaseResourceLoader(ABC):
    """Base class for loaders.

    Subclasses implement ``_fetch`` and may raise whatever their transport
    raises; ``load`` enforces the deadline and classifies the failure.
    """

    def __init__(self, classifier: ErrorClassifier | None = None):
        self.classifier = classifier or default_classifier()

    async def load(self, resource_id: str, deadline: float) -> LoadResult:
        try:
            payload = await run_until(deadline, self._fetch(resource_id))
        except TimeoutError:
            logger.warning(f"Loading {resource_id!r} missed its deadline")
            return LoadResult.failure(resource_id, ErrorKind.TIMEOUT)
        except Exception as e:
            kind = self.classifier.classify(e, {"resource_id": resource_id})
            logger.warning(f"Loading {resource_id!r} failed ({kind.value}): {e}")
            return LoadResult.failure(resource_id, kind)

        logger.debug(f"Loaded {resource_id!r}")
        return LoadResult.success(resource_id, payload)

    @abstractmethod
    async def _fetch(self, resource_id: str) -> Any:
        """Fetch the resource payload. Raise on failure."""
        pass
