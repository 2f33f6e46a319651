"""
Wall-clock budget for a single job invocation.
"""

import time
from collections.abc import Callable


class TimeBudgetGuard:
    """
    Tracks elapsed time against a fixed ceiling.

    The ceiling is the host's hard kill timeout minus a safety margin. The
    guard is polled before each unit that makes a remote call; it never
    interrupts work in progress, so a run can overrun the ceiling by at most
    one unit's latency.

    Examples:
        >>> guard = TimeBudgetGuard(time_limit=360, safety_margin=30)
        >>> guard.ceiling
        330.0
    """

    def __init__(
        self,
        time_limit: float,
        safety_margin: float = 0.0,
        *,
        started_at: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if time_limit <= 0:
            raise ValueError("time_limit must be > 0")
        if safety_margin < 0:
            raise ValueError("safety_margin must be >= 0")
        if safety_margin >= time_limit:
            raise ValueError("safety_margin must be smaller than time_limit")
        self.time_limit = float(time_limit)
        self.safety_margin = float(safety_margin)
        self._clock = clock
        self.started_at = clock() if started_at is None else started_at

    @property
    def ceiling(self) -> float:
        return self.time_limit - self.safety_margin

    def elapsed(self) -> float:
        return self._clock() - self.started_at

    def remaining(self) -> float:
        return max(0.0, self.ceiling - self.elapsed())

    def expired(self) -> bool:
        """True once the run must yield."""
        return self.elapsed() >= self.ceiling

    def __repr__(self) -> str:
        return f"TimeBudgetGuard(ceiling={self.ceiling:.1f}s, elapsed={self.elapsed():.1f}s)"


class BudgetExhausted(Exception):
    """Raised out of a multi-call step (such as a full listing) when the guard expires mid-way."""

    def __init__(self, guard: TimeBudgetGuard):
        super().__init__(f"time budget exhausted after {guard.elapsed():.1f}s (ceiling {guard.ceiling:.1f}s)")
        self.guard = guard
