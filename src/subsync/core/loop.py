"""
The resumable sync loop shared by the Puller and the Pusher.

Both jobs have the same shape: take the next bounded unit, check the time
budget, apply the unit, classify any failure, and write the checkpoint at
well-defined points. What differs (page tokens vs. row indexes, appending
rows vs. joining remotely) is supplied by a SyncCapabilities object.

Checkpoint rules enforced here:

- The position is threaded explicitly through the loop and only written by
  ``_commit`` / ``clear_checkpoint``.
- A position is never committed past a unit whose outcome is unconfirmed.
- Quota anywhere stops the run at once; a Transient unit failure is logged
  and the loop moves on; a Fatal failure aborts without touching state.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, Protocol, TypeVar

from subsync.core.budget import TimeBudgetGuard
from subsync.core.classifier import ClassifiedError, ErrorClassifier
from subsync.core.types import RunOutcome, RunResult, Unit, UnitStatus
from subsync.utils.logging import get_logger

logger = get_logger("subsync.loop")

P = TypeVar("P")


class SyncCapabilities(Protocol[P]):
    """What a job must provide to be driven by SyncLoop."""

    name: str
    # Persist the checkpoint after every unit (True when a unit is a durable write)
    commit_each_unit: bool
    # Pause after every unit that reached the remote side
    unit_delay: float

    async def fetch_next(self, position: P) -> Unit[P] | None:
        """Return the unit starting at ``position``, or None when the range is exhausted."""
        ...

    async def apply_unit(self, unit: Unit[P]) -> UnitStatus:
        """Apply one unit; raise on failure."""
        ...

    def persist_checkpoint(self, position: P) -> None: ...

    def clear_checkpoint(self) -> None: ...


class SyncLoop(Generic[P]):
    """
    Drives one job invocation from a start position to an outcome.

    Examples:
        >>> loop = SyncLoop(pusher_capabilities, guard)
        >>> result = await loop.run(start=4)
        >>> result.outcome
        <RunOutcome.COMPLETED: 'completed'>
    """

    def __init__(
        self,
        capabilities: SyncCapabilities[P],
        guard: TimeBudgetGuard,
        classifier: ErrorClassifier | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.capabilities = capabilities
        self.guard = guard
        self.classifier = classifier or ErrorClassifier()
        self._sleep = sleep
        self._committed: P | None = None

    async def run(self, start: P, result: RunResult | None = None) -> RunResult:
        caps = self.capabilities
        result = result or RunResult(job=caps.name, outcome=RunOutcome.COMPLETED)
        self._committed = start
        position = start
        logger.info(f"[{caps.name}] starting at {self._describe(start)} ({self.guard!r})")

        while True:
            if self.guard.expired():
                self._commit(position)
                return self._finish(result, RunOutcome.YIELDED_ON_BUDGET)

            try:
                unit = await caps.fetch_next(position)
            except Exception as exc:
                failure = self.classifier.wrap(exc)
                # A failed fetch confirms nothing: the committed position stays
                logger.warning(f"[{caps.name}] fetch at {self._describe(position)} failed: {failure}")
                return self._finish(result, self._outcome_for(failure), failure)

            if unit is None:
                caps.clear_checkpoint()
                self._committed = None
                return self._finish(result, RunOutcome.COMPLETED)

            result.units += 1
            try:
                status = await caps.apply_unit(unit)
            except Exception as exc:
                failure = self.classifier.wrap(exc)
                if failure.is_fatal:
                    logger.error(f"[{caps.name}] unit {unit.label} at {self._describe(unit.position)} failed: {failure}")
                    return self._finish(result, RunOutcome.FATAL, failure)
                if failure.is_quota:
                    # The failed unit was not confirmed; the next run retries it
                    self._commit(unit.position)
                    logger.warning(
                        f"[{caps.name}] quota exhausted at unit {unit.label} position {self._describe(unit.position)}"
                    )
                    return self._finish(result, RunOutcome.YIELDED_ON_QUOTA, failure)
                result.failed += 1
                logger.warning(
                    f"[{caps.name}] unit {unit.label} at position {self._describe(unit.position)} "
                    f"failed and will not be retried this run: {failure}"
                )
                await self._pause()
            else:
                if status is UnitStatus.APPLIED:
                    result.applied += 1
                    logger.debug(f"[{caps.name}] applied {unit.label} at {self._describe(unit.position)}")
                    await self._pause()
                else:
                    result.skipped += 1

            if unit.next_position is None:
                caps.clear_checkpoint()
                self._committed = None
                return self._finish(result, RunOutcome.COMPLETED)

            position = unit.next_position
            if caps.commit_each_unit:
                self._commit(position)

    def _commit(self, position: P | None) -> None:
        if position is None:
            # No position means the start of the collection
            self.capabilities.clear_checkpoint()
        else:
            self.capabilities.persist_checkpoint(position)
        self._committed = position

    async def _pause(self) -> None:
        if self.capabilities.unit_delay > 0:
            await self._sleep(self.capabilities.unit_delay)

    def _outcome_for(self, failure: ClassifiedError) -> RunOutcome:
        if failure.is_quota:
            return RunOutcome.YIELDED_ON_QUOTA
        if failure.is_fatal:
            return RunOutcome.FATAL
        return RunOutcome.YIELDED_ON_ERROR

    def _finish(self, result: RunResult, outcome: RunOutcome, failure: ClassifiedError | None = None) -> RunResult:
        result.outcome = outcome
        result.checkpoint = None if self._committed is None else str(self._committed)
        result.elapsed = self.guard.elapsed()
        if failure is not None:
            result.error = str(failure)
        return result

    @staticmethod
    def _describe(position: object) -> str:
        return "<start>" if position is None else str(position)
