"""
Concurrent loading of a batch of resources.
"""
import asyncio
import logging
import uuid
from collections import Counter
from collections.abc import Callable, Iterable

from .classification import ErrorClassifier, default_classifier
from .loaders import ResourceLoader
from .persistence import LogSink, safe_append
from .types import ErrorKind, LoadBatchResult, LoadResult, LogEntry, RequestState, ResourceRequest
from .utils import deadline_after, run_until

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class LoadBatchCoordinator:
    """Fans a batch of resource loads out over a bounded pool of tasks.

    The batch never aborts early: each failing load is logged and recorded,
    and siblings keep running until every request is terminal.
    """

    def __init__(
        self,
        loader: ResourceLoader,
        log_sink: LogSink | None = None,
        classifier: ErrorClassifier | None = None
    ):
        self.loader = loader
        self.log_sink = log_sink
        self.classifier = classifier or default_classifier()

    async def run_batch(
        self,
        ids: Iterable[str],
        per_item_timeout: float,
        concurrency_limit: int,
        *,
        lobby_id: str | None = None,
        batch_id: str | None = None,
        on_progress: ProgressCallback | None = None
    ) -> LoadBatchResult:
        """
        Load every id, at most ``concurrency_limit`` at a time.

        Args:
            ids: Resource ids; duplicates reject the whole batch
            per_item_timeout: Seconds each load may take, from when it starts
            concurrency_limit: Maximum loads in flight
            lobby_id: Lobby the batch belongs to, for log entries
            batch_id: Identifier for the result; generated when omitted
            on_progress: Called with (completed, total) after each load

        Returns:
            Partition of the ids into succeeded and failed
        """
        if per_item_timeout <= 0:
            raise ValueError(f"per_item_timeout must be > 0, got {per_item_timeout}")
        if concurrency_limit < 1:
            raise ValueError(f"concurrency_limit must be >= 1, got {concurrency_limit}")

        batch_id = batch_id or uuid.uuid4().hex
        ids = list(ids)

        duplicates = sorted(rid for rid, count in Counter(ids).items() if count > 1)
        if duplicates:
            logger.error(f"Batch {batch_id} rejected, duplicate resource ids: {duplicates}")
            safe_append(self.log_sink, LogEntry(
                kind=ErrorKind.UNKNOWN,
                context=f"Batch {batch_id} rejected: duplicate resource ids {duplicates}",
                lobby_id=lobby_id,
                cause="duplicate_ids"
            ))
            return LoadBatchResult(batch_id=batch_id, rejected=ErrorKind.UNKNOWN)

        if not ids:
            return LoadBatchResult(batch_id=batch_id)

        requests = [ResourceRequest(id=rid) for rid in ids]
        semaphore = asyncio.Semaphore(concurrency_limit)
        total = len(requests)
        completed = 0

        async def worker(request: ResourceRequest) -> None:
            nonlocal completed
            async with semaphore:
                request.mark_loading()
                result = await self._load_one(request.id, per_item_timeout)

            if result.ok:
                request.mark_loaded()
            else:
                request.mark_failed(result.kind)
                self._record_failure(request, lobby_id, batch_id)

            completed += 1
            self._report_progress(on_progress, completed, total)

        logger.info(f"Batch {batch_id}: loading {total} resources, concurrency {concurrency_limit}")
        tasks = [asyncio.create_task(worker(request)) for request in requests]
        try:
            await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            # Every worker must be gone, and its slot released, before we unwind
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.warning(f"Batch {batch_id} cancelled after {completed}/{total} loads")
            raise

        result = LoadBatchResult(
            batch_id=batch_id,
            succeeded=frozenset(r.id for r in requests if r.state is RequestState.LOADED),
            failed={r.id: r.kind for r in requests if r.state is RequestState.FAILED}
        )
        logger.info(
            f"Batch {batch_id} finished: {len(result.succeeded)} loaded, {len(result.failed)} failed"
        )
        return result

    async def _load_one(self, resource_id: str, per_item_timeout: float) -> LoadResult:
        deadline = deadline_after(per_item_timeout)
        try:
            result = await run_until(deadline, self.loader.load(resource_id, deadline))
        except TimeoutError:
            return LoadResult.failure(resource_id, ErrorKind.TIMEOUT)
        except Exception as e:
            # Loader broke its contract by raising; classify instead of unwinding the batch
            kind = self.classifier.classify(e, {"resource_id": resource_id})
            logger.warning(f"Loader raised for {resource_id!r}, classified as {kind.value}: {e!r}")
            return LoadResult.failure(resource_id, kind)

        if not result.ok and not isinstance(result.kind, ErrorKind):
            return LoadResult.failure(resource_id, self.classifier.classify(result.kind))
        return result

    def _record_failure(self, request: ResourceRequest, lobby_id: str | None, batch_id: str) -> None:
        logger.warning(f"Batch {batch_id}: {request.id!r} failed with {request.kind.value}")
        safe_append(self.log_sink, LogEntry(
            kind=request.kind,
            context=f"Failed to load resource {request.id!r} in batch {batch_id}",
            lobby_id=lobby_id,
            resource_id=request.id,
            cause="load"
        ))

    @staticmethod
    def _report_progress(on_progress: ProgressCallback | None, completed: int, total: int) -> None:
        if on_progress is None:
            return
        try:
            on_progress(completed, total)
        except Exception:
            logger.exception(f"Progress callback failed at {completed}/{total}")
