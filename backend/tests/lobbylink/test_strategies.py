"""
Tests for retry policies.
"""
import random

import pytest

from lobbylink.strategies import ExponentialBackoffPolicy, FixedDelayPolicy, RetryDecision
from lobbylink.types import ErrorKind


RETRYABLE = [ErrorKind.TIMEOUT, ErrorKind.REFUSED, ErrorKind.UNKNOWN]
NON_RETRYABLE = [ErrorKind.NOT_FOUND, ErrorKind.RESOURCE_EXHAUSTED]


class TestExponentialBackoffPolicy:
    """Test cases for ExponentialBackoffPolicy."""

    def test_delay_doubles_until_capped(self):
        """Test exponential delay calculation without jitter."""
        policy = ExponentialBackoffPolicy(
            max_attempts=10,
            base_delay=1.0,
            max_delay=10.0,
            jitter_fraction=0
        )

        assert policy.calculate_delay(1) == 1.0  # 1 * 2^0
        assert policy.calculate_delay(2) == 2.0  # 1 * 2^1
        assert policy.calculate_delay(3) == 4.0  # 1 * 2^2
        assert policy.calculate_delay(4) == 8.0  # 1 * 2^3
        assert policy.calculate_delay(5) == 10.0  # capped at max_delay

    def test_jitter_stays_within_fraction(self):
        """Test that jitter scales the delay within the configured fraction."""
        policy = ExponentialBackoffPolicy(
            base_delay=10.0,
            max_delay=10.0,
            jitter_fraction=0.5,
            rng=random.Random(7)
        )

        delays = [policy.calculate_delay(1) for _ in range(50)]

        assert len(set(delays)) > 1
        for delay in delays:
            assert 5.0 <= delay <= 15.0

    def test_jitter_applies_after_cap(self):
        """Test that the cap is applied before the jitter factor."""
        policy = ExponentialBackoffPolicy(
            max_attempts=20,
            base_delay=1.0,
            max_delay=4.0,
            jitter_fraction=0.25,
            rng=random.Random(1)
        )

        for _ in range(20):
            assert 3.0 <= policy.calculate_delay(12) <= 5.0

    def test_seeded_rng_is_reproducible(self):
        """Test that the same seed gives the same delays."""
        first = ExponentialBackoffPolicy(jitter_fraction=0.3, rng=random.Random(42))
        second = ExponentialBackoffPolicy(jitter_fraction=0.3, rng=random.Random(42))

        assert [first.calculate_delay(2) for _ in range(5)] == [second.calculate_delay(2) for _ in range(5)]

    @pytest.mark.parametrize("attempt_number", [3, 4, 10])
    def test_no_retry_once_max_attempts_reached(self, attempt_number):
        """Test that no kind is retried at or beyond max_attempts."""
        policy = ExponentialBackoffPolicy(max_attempts=3, jitter_fraction=0)

        assert policy.next_delay(attempt_number) == RetryDecision(retry=False)
        for kind in ErrorKind:
            assert policy.next_delay(attempt_number, kind).retry is False

    @pytest.mark.parametrize("kind", NON_RETRYABLE)
    def test_non_retryable_kinds_never_retry(self, kind):
        """Test that NOT_FOUND and RESOURCE_EXHAUSTED stop immediately."""
        policy = ExponentialBackoffPolicy(max_attempts=5)

        for attempt_number in range(1, 6):
            assert policy.should_retry(attempt_number, kind) is False
            assert policy.next_delay(attempt_number, kind).retry is False

    @pytest.mark.parametrize("kind", RETRYABLE)
    def test_retryable_kinds_retry_before_limit(self, kind):
        """Test that TIMEOUT, REFUSED and UNKNOWN are retried."""
        policy = ExponentialBackoffPolicy(max_attempts=3, base_delay=0.5, jitter_fraction=0)

        decision = policy.next_delay(1, kind)
        assert decision.retry is True
        assert decision.delay == 0.5

        decision = policy.next_delay(2, kind)
        assert decision.retry is True
        assert decision.delay == 1.0

    def test_very_late_attempt_is_capped(self):
        """Test that attempt numbers far past the cap do not overflow."""
        policy = ExponentialBackoffPolicy(max_attempts=2000, max_delay=30.0, jitter_fraction=0)

        assert policy.next_delay(1100, ErrorKind.TIMEOUT) == RetryDecision(retry=True, delay=30.0)
        assert policy.calculate_delay(1999) == 30.0

    def test_single_attempt_policy_never_retries(self):
        """Test max_attempts=1 means the first failure is final."""
        policy = ExponentialBackoffPolicy(max_attempts=1)

        assert policy.next_delay(1, ErrorKind.TIMEOUT).retry is False

    def test_rejects_invalid_attempt_number(self):
        """Test that attempts are 1-indexed."""
        policy = ExponentialBackoffPolicy()

        with pytest.raises(ValueError):
            policy.next_delay(0)
        with pytest.raises(ValueError):
            policy.calculate_delay(-1)

    @pytest.mark.parametrize("kwargs", [
        {"max_attempts": 0},
        {"base_delay": -1.0},
        {"max_delay": -1.0},
        {"jitter_fraction": 1.0},
        {"jitter_fraction": -0.1},
    ])
    def test_rejects_invalid_configuration(self, kwargs):
        """Test configuration validation."""
        with pytest.raises(ValueError):
            ExponentialBackoffPolicy(**kwargs)

    def test_name_describes_configuration(self):
        policy = ExponentialBackoffPolicy(base_delay=2.0, max_delay=8.0, jitter_fraction=0.2)
        assert policy.name == "ExponentialBackoff(base=2.0, max=8.0, jitter=0.2)"


class TestFixedDelayPolicy:
    """Test cases for FixedDelayPolicy."""

    def test_fixed_delay(self):
        """Test that delay remains constant."""
        policy = FixedDelayPolicy(max_attempts=10, delay=2.5)

        for attempt_number in range(1, 10):
            assert policy.calculate_delay(attempt_number) == 2.5

    def test_shares_retry_rules(self):
        """Test that the fixed policy follows the same retry rules."""
        policy = FixedDelayPolicy(max_attempts=2, delay=0.0)

        assert policy.next_delay(1, ErrorKind.REFUSED) == RetryDecision(retry=True, delay=0.0)
        assert policy.next_delay(2, ErrorKind.REFUSED).retry is False
        assert policy.next_delay(1, ErrorKind.NOT_FOUND).retry is False
