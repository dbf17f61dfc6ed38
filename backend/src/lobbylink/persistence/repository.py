"""Repository for failure-record persistence."""
import asyncio
import logging
from collections.abc import Iterable

from sqlalchemy import delete, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..types import ErrorKind, LogEntry
from .models import LogEntryModel

logger = logging.getLogger(__name__)


class LogEntryRepository:
    """Repository for reading and writing failure records.

    Wraps a single async session; the caller owns the session lifetime.
    """

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.session = session

    async def add_entries(self, entries: Iterable[LogEntry]) -> int:
        """Insert entries in one transaction.

        Returns:
            Number of entries written

        """
        models = [LogEntryModel.from_entry(entry) for entry in entries]
        if not models:
            return 0
        try:
            self.session.add_all(models)
            await self.session.commit()
        except asyncio.CancelledError:
            await self.session.rollback()
            logger.warning(f"Write of {len(models)} log entries cancelled, rolled back")
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Failed to write {len(models)} log entries: {e}")
            raise
        logger.debug(f"Wrote {len(models)} log entries")
        return len(models)

    async def list_entries(
        self,
        lobby_id: str | None = None,
        kind: ErrorKind | None = None,
        limit: int | None = None
    ) -> list[LogEntry]:
        """List entries, oldest first."""
        stmt = select(LogEntryModel)
        if lobby_id is not None:
            stmt = stmt.where(LogEntryModel.lobby_id == lobby_id)
        if kind is not None:
            stmt = stmt.where(LogEntryModel.kind == kind.value)
        stmt = stmt.order_by(LogEntryModel.id)
        if limit is not None:
            # Keep the newest ``limit`` rows but still return them oldest first
            stmt = stmt.order_by(None).order_by(desc(LogEntryModel.id)).limit(limit)
            result = await self.session.execute(stmt)
            return [model.to_entry() for model in reversed(result.scalars().all())]

        result = await self.session.execute(stmt)
        return [model.to_entry() for model in result.scalars().all()]

    async def count_by_kind(self) -> dict[ErrorKind, int]:
        stmt = select(LogEntryModel.kind, func.count()).group_by(LogEntryModel.kind)
        result = await self.session.execute(stmt)
        counts = {kind: 0 for kind in ErrorKind}
        for kind, count in result.all():
            counts[ErrorKind(kind)] = count
        return counts

    async def clear_all(self) -> None:
        try:
            await self.session.execute(delete(LogEntryModel))
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Failed to clear log entries: {e}")
            raise
