"""SQLAlchemy-backed failure-record sink."""
import asyncio
import logging
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ..types import ErrorKind, LogEntry
from .base import BaseLogSink
from .repository import LogEntryRepository

logger = logging.getLogger(__name__)


class SQLAlchemyLogSink(BaseLogSink):
    """Persists failure entries through an async SQLAlchemy engine.

    ``append`` only buffers the entry and, when an event loop is running,
    schedules a background flush; it never blocks and never raises for a
    database problem. ``flush`` writes everything buffered so far.
    """

    def __init__(self, database_url: str | None = None):
        """Initialize SQLAlchemy sink.

        Args:
            database_url: SQLAlchemy database URL. Defaults to SQLite in user data dir.

        """
        if database_url is None:
            data_dir = Path.home() / ".lobbylink" / "data"
            data_dir.mkdir(parents=True, exist_ok=True)
            database_url = f"sqlite+aiosqlite:///{data_dir / 'failures.db'}"

        self.database_url = database_url
        self.engine = create_async_engine(database_url, echo=False)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )
        self._initialized = False
        self._init_lock = asyncio.Lock()
        self._flush_lock = asyncio.Lock()
        self._buffer: list[LogEntry] = []
        self._flush_task: asyncio.Task | None = None

    async def _ensure_initialized(self):
        """Ensure database tables are created."""
        if self._initialized:
            return

        async with self._init_lock:
            if self._initialized:
                return

            from .models import Base

            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            self._initialized = True

    def append(self, entry: LogEntry) -> None:
        self._buffer.append(entry)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: the entry waits for the next explicit flush()
            return
        if self._flush_task is None or self._flush_task.done():
            self._flush_task = loop.create_task(self._background_flush())

    @property
    def pending(self) -> int:
        return len(self._buffer)

    async def _background_flush(self) -> None:
        try:
            await self.flush()
        except Exception:
            logger.exception(f"Background flush to {self.database_url} failed")

    async def flush(self) -> int:
        """Write buffered entries. Returns the number written."""
        await self._ensure_initialized()

        async with self._flush_lock:
            entries, self._buffer = self._buffer, []
            if not entries:
                return 0
            try:
                async with self.session_factory() as session:
                    return await LogEntryRepository(session).add_entries(entries)
            except BaseException:
                # Put them back in front of anything appended meanwhile, also when cancelled
                self._buffer = entries + self._buffer
                raise

    async def list_entries(
        self,
        lobby_id: str | None = None,
        kind: ErrorKind | None = None,
        limit: int | None = None
    ) -> list[LogEntry]:
        """Flush, then read entries back, oldest first."""
        await self.flush()
        async with self.session_factory() as session:
            return await LogEntryRepository(session).list_entries(lobby_id, kind, limit)

    async def count_by_kind(self) -> dict[ErrorKind, int]:
        await self.flush()
        async with self.session_factory() as session:
            return await LogEntryRepository(session).count_by_kind()

    async def clear(self) -> None:
        """Drop buffered and stored entries."""
        self._buffer.clear()
        await self._ensure_initialized()
        async with self.session_factory() as session:
            await LogEntryRepository(session).clear_all()

    async def close(self):
        """Flush outstanding entries and close database connections."""
        if self._flush_task is not None and not self._flush_task.done():
            await self._flush_task
        try:
            await self.flush()
        finally:
            await self.engine.dispose()
