"""SQLAlchemy models for failure-record persistence."""
from datetime import UTC, datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..types import ErrorKind, LogEntry


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class LogEntryModel(Base):
    """One failure record written by the connection controller or batch coordinator."""

    __tablename__ = 'lobby_log_entries'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    kind: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    context: Mapped[str] = mapped_column(Text, nullable=False)

    lobby_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    attempt_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    resource_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cause: Mapped[str | None] = mapped_column(String(50), nullable=True)

    logged_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True
    )

    @classmethod
    def from_entry(cls, entry: LogEntry) -> 'LogEntryModel':
        return cls(
            kind=entry.kind.value,
            context=entry.context,
            lobby_id=entry.lobby_id,
            attempt_number=entry.attempt_number,
            resource_id=entry.resource_id,
            cause=entry.cause,
            logged_at=entry.timestamp
        )

    def to_entry(self) -> LogEntry:
        logged_at = self.logged_at
        # SQLite hands back naive datetimes
        if logged_at.tzinfo is None:
            logged_at = logged_at.replace(tzinfo=UTC)
        return LogEntry(
            kind=ErrorKind(self.kind),
            context=self.context,
            lobby_id=self.lobby_id,
            attempt_number=self.attempt_number,
            resource_id=self.resource_id,
            cause=self.cause,
            timestamp=logged_at
        )

    def __repr__(self) -> str:
        return (
            f"<LogEntryModel(id={self.id}, kind='{self.kind}', "
            f"lobby_id='{self.lobby_id}', attempt_number={self.attempt_number})>"
        )
