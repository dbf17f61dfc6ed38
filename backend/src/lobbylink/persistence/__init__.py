"""Failure-record sinks for the lobby join system."""
from .base import BaseLogSink, LoggingLogSink, LogSink, safe_append
from .memory import MemoryLogSink
from .sqlalchemy_sink import SQLAlchemyLogSink

__all__ = [
    'LogSink',
    'BaseLogSink',
    'LoggingLogSink',
    'MemoryLogSink',
    'SQLAlchemyLogSink',
    'safe_append'
]
