"""
Base class for retry policies.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass

from ..types import ErrorKind


@dataclass(frozen=True)
class RetryDecision:
    """Whether to try again, and how long to wait first."""
    retry: bool
    delay: float = 0.0


class BaseRetryPolicy(ABC):
    """Base class for retry policies.

    Retry rules are shared by every policy: stop once ``max_attempts`` is
    reached, and never retry NOT_FOUND or RESOURCE_EXHAUSTED. Subclasses
    only decide the delay.
    """

    def __init__(self, max_attempts: int = 3, max_delay: float = 30.0):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        if max_delay < 0:
            raise ValueError(f"max_delay must be >= 0, got {max_delay}")
        self.max_attempts = max_attempts
        self.max_delay = max_delay

    @abstractmethod
    def calculate_delay(self, attempt_number: int) -> float:
        """
        Calculate delay before the attempt following ``attempt_number``.

        Args:
            attempt_number: The attempt that just failed (1-indexed)

        Returns:
            Delay in seconds
        """
        pass

    def should_retry(self, attempt_number: int, last_kind: ErrorKind | None = None) -> bool:
        """
        Determine if another attempt should follow.

        Args:
            attempt_number: The attempt that just failed (1-indexed)
            last_kind: Classified kind of that failure, if known

        Returns:
            True if should retry, False otherwise
        """
        _check_attempt(attempt_number)

        if attempt_number >= self.max_attempts:
            return False

        if last_kind is not None and not last_kind.is_retryable:
            return False

        return True

    def next_delay(self, attempt_number: int, last_kind: ErrorKind | None = None) -> RetryDecision:
        """Combine the retry decision with the delay to wait."""
        if not self.should_retry(attempt_number, last_kind):
            return RetryDecision(retry=False)
        return RetryDecision(retry=True, delay=self.calculate_delay(attempt_number))

    @property
    @abstractmethod
    def name(self) -> str:
        """Policy name for logging."""
        pass


def _check_attempt(attempt_number: int) -> None:
    if attempt_number < 1:
        raise ValueError(f"attempt_number must be >= 1, got {attempt_number}")
