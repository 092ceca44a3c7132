"""Resilience patterns and implementations.

Retry timing used by the send workers when a platform call fails
transiently or is throttled.
"""

from infrastructure.resilience.retry import RetryConfig

__all__ = [
    "RetryConfig",
]
