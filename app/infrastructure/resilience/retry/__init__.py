"""Retry configuration shared by components that retry failed operations.

Usage:
    from infrastructure.resilience.retry import RetryConfig

    config = RetryConfig(max_attempts=5, base_delay_seconds=1.0)
    delay = config.backoff_delay(attempt)
"""

from infrastructure.resilience.retry.config import RetryConfig

__all__ = [
    "RetryConfig",
]
