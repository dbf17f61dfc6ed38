"""
Fixed delay retry policy.
"""
from .base import BaseRetryPolicy, _check_attempt


class FixedDelayPolicy(BaseRetryPolicy):
    """
    Fixed delay policy.

    Same delay between all attempts; retry rules match every other policy.
    """

    def __init__(self, max_attempts: int = 3, delay: float = 1.0):
        super().__init__(max_attempts, max_delay=delay)
        self.delay = delay

    def calculate_delay(self, attempt_number: int) -> float:
        """Return fixed delay regardless of attempt number."""
        _check_attempt(attempt_number)
        return self.delay

    @property
    def name(self) -> str:
        return f"FixedDelay(delay={self.delay})"
