"""
Configuration for joining a lobby.
"""
import random
from collections.abc import Mapping
from typing import Any

from .strategies import ExponentialBackoffPolicy


class RetryConfig:
    """Configuration for connection retry behavior."""

    _FIELDS = ('max_attempts', 'base_delay', 'max_delay', 'jitter_fraction')

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        jitter_fraction: float = 0.1
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        if base_delay < 0 or max_delay < 0:
            raise ValueError("Retry delays must be non-negative")
        if not 0 <= jitter_fraction < 1:
            raise ValueError(f"jitter_fraction must be in [0, 1), got {jitter_fraction}")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter_fraction = jitter_fraction

    def build_policy(self, rng: random.Random | None = None) -> ExponentialBackoffPolicy:
        """Create the retry policy described by this config."""
        return ExponentialBackoffPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            jitter_fraction=self.jitter_fraction,
            rng=rng
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'RetryConfig':
        """Create from a settings mapping."""
        _reject_unknown(data, cls._FIELDS, 'retry')
        return cls(**data)

    def to_dict(self) -> dict:
        return {name: getattr(self, name) for name in self._FIELDS}

    def __repr__(self) -> str:
        return (
            f"RetryConfig(max_attempts={self.max_attempts}, base_delay={self.base_delay}, "
            f"max_delay={self.max_delay}, jitter_fraction={self.jitter_fraction})"
        )


class JoinConfig:
    """Configuration for a whole join: retries, timeouts and concurrency."""

    _FIELDS = ('retry', 'per_item_timeout', 'concurrency_limit', 'connect_timeout')

    def __init__(
        self,
        retry: RetryConfig | None = None,
        per_item_timeout: float = 10.0,
        concurrency_limit: int = 4,
        connect_timeout: float = 10.0
    ):
        if per_item_timeout <= 0:
            raise ValueError(f"per_item_timeout must be > 0, got {per_item_timeout}")
        if connect_timeout <= 0:
            raise ValueError(f"connect_timeout must be > 0, got {connect_timeout}")
        if concurrency_limit < 1:
            raise ValueError(f"concurrency_limit must be >= 1, got {concurrency_limit}")
        self.retry = retry or RetryConfig()
        self.per_item_timeout = per_item_timeout
        self.concurrency_limit = concurrency_limit
        self.connect_timeout = connect_timeout

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'JoinConfig':
        """Create from a settings mapping with an optional nested ``retry`` section."""
        _reject_unknown(data, cls._FIELDS, 'join')
        data = dict(data)
        if 'retry' in data and not isinstance(data['retry'], RetryConfig):
            data['retry'] = RetryConfig.from_dict(data['retry'])
        return cls(**data)

    def to_dict(self) -> dict:
        return {
            'retry': self.retry.to_dict(),
            'per_item_timeout': self.per_item_timeout,
            'concurrency_limit': self.concurrency_limit,
            'connect_timeout': self.connect_timeout,
        }

    def __repr__(self) -> str:
        return (
            f"JoinConfig(retry={self.retry!r}, per_item_timeout={self.per_item_timeout}, "
            f"concurrency_limit={self.concurrency_limit}, connect_timeout={self.connect_timeout})"
        )


def _reject_unknown(data: Mapping[str, Any], fields: tuple[str, ...], section: str) -> None:
    unknown = set(data) - set(fields)
    if unknown:
        raise ValueError(f"Unknown {section} settings: {', '.join(sorted(unknown))}")
