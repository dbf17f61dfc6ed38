"""
Exponential backoff retry policy.
"""
import math
import random

from .base import BaseRetryPolicy, _check_attempt


class ExponentialBackoffPolicy(BaseRetryPolicy):
    """
    Exponential backoff policy with proportional jitter.

    delay = min(base_delay * 2 ** (attempt_number - 1), max_delay)
    then scaled by a uniform factor in [1 - jitter_fraction, 1 + jitter_fraction].
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        jitter_fraction: float = 0.1,
        rng: random.Random | None = None
    ):
        super().__init__(max_attempts, max_delay)
        if base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {base_delay}")
        if not 0 <= jitter_fraction < 1:
            raise ValueError(f"jitter_fraction must be in [0, 1), got {jitter_fraction}")
        self.base_delay = base_delay
        self.jitter_fraction = jitter_fraction
        self._rng = rng or random.Random()

    def calculate_delay(self, attempt_number: int) -> float:
        """Calculate exponentially increasing delay with jitter."""
        _check_attempt(attempt_number)

        try:
            delay = min(math.ldexp(self.base_delay, attempt_number - 1), self.max_delay)
        except OverflowError:
            delay = self.max_delay

        if self.jitter_fraction and delay > 0:
            delay *= self._rng.uniform(1 - self.jitter_fraction, 1 + self.jitter_fraction)

        return delay

    @property
    def name(self) -> str:
        return (
            f"ExponentialBackoff(base={self.base_delay}, max={self.max_delay}, "
            f"jitter={self.jitter_fraction})"
        )
