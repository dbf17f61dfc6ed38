"""Predefined failure patterns for classification.

Pattern order matters: on equal match strength the earlier pattern wins,
so timeout patterns come first (several transport timeouts also subclass
connection errors).
"""
import asyncio
import socket

import aiohttp

from ..exceptions import LoadTimeoutError, LobbyNotFoundError, ResourceNotFoundError
from ..types import ErrorKind
from .categories import ErrorPattern

TIMEOUT_PATTERNS: list[ErrorPattern] = [
    ErrorPattern(
        kind=ErrorKind.TIMEOUT,
        exception_types=[
            TimeoutError, socket.timeout, asyncio.TimeoutError,
            aiohttp.ServerTimeoutError, LoadTimeoutError,
        ],
        error_codes=["ETIMEDOUT", "408", "504"],
        indicators=["timed out", "timeout", "deadline exceeded"],
    ),
]

NOT_FOUND_PATTERNS: list[ErrorPattern] = [
    ErrorPattern(
        kind=ErrorKind.NOT_FOUND,
        exception_types=[LobbyNotFoundError, ResourceNotFoundError, FileNotFoundError],
        error_codes=["ENOENT", "404", "410"],
        indicators=["not found", "no such file", "no such lobby", "does not exist"],
    ),
]

REFUSED_PATTERNS: list[ErrorPattern] = [
    ErrorPattern(
        kind=ErrorKind.REFUSED,
        exception_types=[ConnectionError, aiohttp.ClientConnectionError],
        error_codes=[
            "ECONNREFUSED", "ECONNRESET", "ECONNABORTED", "EHOSTUNREACH",
            "ENETUNREACH", "EPIPE", "401", "403", "502", "503",
        ],
        indicators=[
            "connection refused", "connection reset", "refused", "rejected",
            "forbidden", "unreachable",
        ],
    ),
]

RESOURCE_EXHAUSTED_PATTERNS: list[ErrorPattern] = [
    ErrorPattern(
        kind=ErrorKind.RESOURCE_EXHAUSTED,
        exception_types=[MemoryError],
        error_codes=["ENOMEM", "EMFILE", "ENFILE", "ENOSPC", "EDQUOT", "413", "429", "507"],
        indicators=[
            "out of memory", "cannot allocate", "too many open files", "no space left",
            "quota", "exhausted", "too many requests",
        ],
    ),
]

ALL_PATTERNS: list[ErrorPattern] = (
    TIMEOUT_PATTERNS +
    NOT_FOUND_PATTERNS +
    REFUSED_PATTERNS +
    RESOURCE_EXHAUSTED_PATTERNS
)


def get_patterns_for_kind(kind: ErrorKind) -> list[ErrorPattern]:
    """Get all predefined patterns for a specific kind."""
    return [p for p in ALL_PATTERNS if p.kind == kind]
