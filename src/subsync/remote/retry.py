"""
Retry policy for individual remote calls.

Covers only secondary throttling and server hiccups inside a single call.
Quota errors are never retried: quota is account-wide and retrying cannot
succeed before the external reset window.
"""

import random
from dataclasses import dataclass

# HTTP statuses worth a short in-call retry
RETRYABLE_STATUSES: tuple[int, ...] = (429, 500, 502, 503, 504)

# Error reasons that signal per-second throttling rather than daily quota
RATE_LIMIT_REASONS: tuple[str, ...] = ("rateLimitExceeded", "userRateLimitExceeded")


@dataclass
class RetryPolicy:
    """
    Exponential backoff with jitter for a single remote call.

    Examples:
        >>> policy = RetryPolicy(max_attempts=2, initial_delay=0.5)
        >>> policy.should_retry(status=503, reason=None, attempt=0)
        True
        >>> policy.should_retry(status=403, reason="quotaExceeded", attempt=0)
        False
    """

    # Retries after the first attempt (total calls = max_attempts + 1)
    max_attempts: int = 2

    # Delay before first retry (seconds)
    initial_delay: float = 1.0

    # Upper bound for any single delay (seconds)
    max_delay: float = 10.0

    exponential_base: float = 2.0

    # Random jitter of +-25% on each delay
    jitter: bool = True

    def __post_init__(self):
        if self.max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")
        if self.initial_delay <= 0:
            raise ValueError("initial_delay must be > 0")
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        if self.exponential_base < 1.0:
            raise ValueError("exponential_base must be >= 1.0")

    def should_retry(self, *, status: int | None, reason: str | None, attempt: int) -> bool:
        """
        Decide whether a failed call gets another attempt.

        Args:
            status: HTTP status, or None for a connection-level failure
            reason: API error reason code, if any
            attempt: Attempt number that just failed (0-indexed)
        """
        if attempt >= self.max_attempts:
            return False
        if status is None:
            return True
        if reason in RATE_LIMIT_REASONS:
            return True
        return status in RETRYABLE_STATUSES

    def get_delay(self, attempt: int, retry_after: float | None = None) -> float:
        """
        Delay before the next attempt.

        A server-provided ``Retry-After`` wins, still capped at ``max_delay``.
        """
        if retry_after is not None and retry_after >= 0:
            return min(retry_after, self.max_delay)
        delay = self.initial_delay * (self.exponential_base**attempt)
        if self.jitter:
            delay *= random.uniform(0.75, 1.25)
        return min(delay, self.max_delay)


NO_RETRY_POLICY = RetryPolicy(max_attempts=0)
