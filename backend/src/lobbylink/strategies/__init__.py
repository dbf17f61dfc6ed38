"""
Retry policies for connection attempts.
"""
from .base import BaseRetryPolicy, RetryDecision
from .exponential import ExponentialBackoffPolicy
from .fixed import FixedDelayPolicy


__all__ = [
    'BaseRetryPolicy',
    'RetryDecision',
    'ExponentialBackoffPolicy',
    'FixedDelayPolicy'
]
