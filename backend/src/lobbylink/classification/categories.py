"""Error pattern definitions and classification types."""
import errno
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..types import ErrorKind

# Match strengths, strongest first
TYPE_MATCH = 1.0
CODE_MATCH = 0.8
INDICATOR_MATCH = 0.5


def signal_codes(signal: Any) -> set[str]:
    """Collect comparable codes (errno names, HTTP statuses) from a signal."""
    codes: set[str] = set()

    if isinstance(signal, bool):
        return codes
    if isinstance(signal, int):
        codes.add(str(signal))
        return codes
    if isinstance(signal, str):
        codes.add(signal.strip().upper())
        return codes

    err_no = getattr(signal, 'errno', None)
    if isinstance(err_no, int):
        codes.add(errno.errorcode.get(err_no, str(err_no)))

    # ``code`` is only consulted when no status is present; aiohttp keeps it
    # as a deprecated alias of ``status``
    for attr in ('status', 'status_code', 'code'):
        value = getattr(signal, attr, None)
        if isinstance(value, (int, str)) and not isinstance(value, bool):
            codes.add(str(value).upper())
            break

    return codes


def signal_text(signal: Any) -> str:
    """Lower-cased description of a signal for indicator matching."""
    if isinstance(signal, BaseException):
        # HTTP errors render the request URL into str(); only their reason phrase describes the failure
        message = getattr(signal, 'message', None)
        if isinstance(message, str) and getattr(signal, 'status', None) is not None:
            return f"{type(signal).__name__} {message}".lower()
        return f"{type(signal).__name__} {signal}".lower()
    return str(signal).lower()


@dataclass
class ErrorPattern:
    """Pattern definition for matching failure signals."""

    kind: ErrorKind
    exception_types: list[type] = field(default_factory=list)
    error_codes: list[str] = field(default_factory=list)  # errno names / HTTP statuses
    indicators: list[str] = field(default_factory=list)  # message keywords

    def matches(self, signal: Any) -> float:
        """Return the strongest match strength for ``signal`` (0.0 if none)."""
        if isinstance(signal, BaseException) and self.exception_types:
            if isinstance(signal, tuple(self.exception_types)):
                return TYPE_MATCH

        if self.error_codes and signal_codes(signal) & set(self.error_codes):
            return CODE_MATCH

        if self.indicators:
            text = signal_text(signal)
            if any(indicator in text for indicator in self.indicators):
                return INDICATOR_MATCH

        return 0.0


@dataclass
class ErrorClassification:
    """Result of classifying one signal."""

    signal: Any
    kind: ErrorKind
    confidence: float  # 0.0 to 1.0
    matched_pattern: ErrorPattern | None
    context: dict[str, Any]
    timestamp: datetime

    @property
    def is_retryable(self) -> bool:
        return self.kind.is_retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "signal_type": type(self.signal).__name__,
            "signal": repr(self.signal)[:200],
            "kind": self.kind.value,
            "confidence": self.confidence,
            "is_retryable": self.is_retryable,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }
