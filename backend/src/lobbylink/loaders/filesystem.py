"""Disk-backed resource loader."""
import logging
from concurrent.futures import Executor
from pathlib import Path

from ..classification import ErrorClassifier
from ..exceptions import ResourceNotFoundError
from ..utils import run_blocking
from .base import BaseResourceLoader

logger = logging.getLogger(__name__)


class FileResourceLoader(BaseResourceLoader):
    """Reads resources as files under ``root``.

    Reads happen on executor threads, so a batch of file loads runs in
    parallel rather than interleaved on the event loop.
    """

    def __init__(
        self,
        root: str | Path,
        executor: Executor | None = None,
        classifier: ErrorClassifier | None = None
    ):
        super().__init__(classifier)
        self.root = Path(root).resolve()
        self.executor = executor

    def resolve(self, resource_id: str) -> Path:
        """Map a resource id to a path, refusing ids that escape ``root``."""
        path = (self.root / resource_id).resolve()
        if not path.is_relative_to(self.root):
            logger.warning(f"Resource id {resource_id!r} points outside {self.root}")
            raise ResourceNotFoundError(resource_id)
        return path

    async def _fetch(self, resource_id: str) -> bytes:
        path = self.resolve(resource_id)
        return await run_blocking(path.read_bytes, executor=self.executor)
