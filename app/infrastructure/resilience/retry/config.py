"""Retry configuration for per-recipient send attempts."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class RetryConfig:
    """Configuration for send retry behavior.

    Controls how many times a send worker retries a single recipient and
    how long it waits between attempts.

    Attributes:
        max_attempts: Maximum send attempts per recipient (first try included)
        base_delay_seconds: Base delay for exponential backoff (first retry)
        max_delay_seconds: Cap for exponential backoff
        max_retry_after_seconds: Cap applied to platform Retry-After hints

    Example:
        config = RetryConfig(max_attempts=3, base_delay_seconds=0.5)
        config.backoff_delay(0)   # 0.5
        config.backoff_delay(3)   # 4.0
    """

    max_attempts: int = 5
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 60.0
    max_retry_after_seconds: float = 120.0

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_seconds < 0:
            raise ValueError("base_delay_seconds must be non-negative")
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")
        if self.max_retry_after_seconds < 0:
            raise ValueError("max_retry_after_seconds must be non-negative")

    def backoff_delay(self, attempt: int) -> float:
        """Calculate exponential backoff delay in seconds.

        Uses the formula: base_delay * (2 ^ attempt), capped at
        max_delay_seconds.

        Args:
            attempt: Zero-based number of attempts already failed
        """
        delay = self.base_delay_seconds * (2 ** max(attempt, 0))
        return min(delay, self.max_delay_seconds)

    def throttle_delay(self, attempt: int, retry_after: Optional[float]) -> float:
        """Delay before retrying a throttled send.

        The platform's Retry-After hint wins when present, capped at
        max_retry_after_seconds; otherwise falls back to backoff_delay.
        """
        if retry_after is None or retry_after < 0:
            return self.backoff_delay(attempt)
        return min(float(retry_after), self.max_retry_after_seconds)

    def has_attempts_left(self, attempts_made: int) -> bool:
        """True if another attempt is allowed after ``attempts_made`` tries."""
        return attempts_made < self.max_attempts
