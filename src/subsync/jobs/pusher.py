"""
Pusher: make every identifier in the mirror a remote membership.

An invocation first lists the current remote memberships (run-scoped, never
persisted), then walks the mirror rows from the stored index. Rows already
present remotely, blank or malformed are skipped without a remote call; the
rest are joined one at a time with a pause after each call. The index is
written when the run yields and deleted when the last row is done.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from subsync.config.loader import Config
from subsync.core.budget import BudgetExhausted, TimeBudgetGuard
from subsync.core.dedup import DedupFilter
from subsync.core.loop import SyncLoop
from subsync.core.state import PUSH_INDEX, CheckpointStore
from subsync.core.types import CandidateUnit, RunOutcome, RunResult, Unit, UnitStatus
from subsync.exceptions import ConfigurationError
from subsync.jobs.runtime import Runtime
from subsync.mirror.target import IndexedTarget
from subsync.remote.source import PaginatedSource
from subsync.utils.async_utils import dual
from subsync.utils.logging import get_logger

logger = get_logger("subsync.jobs.pusher")

JOB_NAME = "pusher"


class PusherCapabilities:
    """
    Row-index units for the SyncLoop.

    ``candidates`` starts at row ``start``; unit ``i`` is the candidate at
    row ``i`` and its next position is ``i + 1``.
    """

    name = JOB_NAME
    commit_each_unit = False

    def __init__(
        self,
        api: Any,
        target: IndexedTarget,
        candidates: list[CandidateUnit],
        start: int,
        store: CheckpointStore,
        remote: DedupFilter,
        unit_delay: float = 1.0,
    ):
        self.api = api
        self.target = target
        self.candidates = candidates
        self.start = start
        self.store = store
        self.remote = remote
        self.unit_delay = unit_delay
        self._attempted: set[str] = set()

    async def fetch_next(self, index: int) -> Unit[int] | None:
        offset = index - self.start
        if offset >= len(self.candidates):
            return None
        candidate = self.candidates[offset]
        return Unit(position=index, next_position=index + 1, payload=candidate, label=candidate.identifier or "<blank>")

    async def apply_unit(self, unit: Unit[int]) -> UnitStatus:
        candidate: CandidateUnit = unit.payload
        identifier = candidate.identifier
        if not self.target.is_valid(candidate):
            logger.warning(f"Row {unit.position}: skipping malformed identifier {identifier!r}")
            return UnitStatus.SKIPPED
        if candidate.remote_present or identifier in self.remote or identifier in self._attempted:
            return UnitStatus.SKIPPED

        self._attempted.add(identifier)
        joined = await self.api.join(identifier)
        self.remote.add(identifier)
        if not joined:
            logger.info(f"Row {unit.position}: {identifier} was already joined")
            return UnitStatus.SKIPPED
        logger.info(f"Row {unit.position}: joined {identifier}")
        return UnitStatus.APPLIED

    def persist_checkpoint(self, index: int) -> None:
        self.store.set(PUSH_INDEX, index)

    def clear_checkpoint(self) -> None:
        self.store.delete(PUSH_INDEX)


@dual
async def run_pusher_sync(
    config: Config | dict[str, Any],
    *,
    api: Any = None,
    guard: TimeBudgetGuard | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> RunResult:
    """
    Run one Pusher invocation.

    Never raises. A failed pre-flight listing ends the run before the index
    is touched: quota yields with YIELDED_ON_QUOTA, anything else transient
    with YIELDED_ON_ERROR.

    Args:
        config: Project configuration
        api: Remote client with ``list_page`` and ``join`` (default: built from ``remote``)
        guard: Time budget (default: from ``jobs.pusher`` settings, started now)
        sleep: Awaitable sleep used for the pause between joins

    Returns:
        RunResult with the outcome and the index left behind
    """
    runtime = Runtime(config, api=api)
    result = RunResult(job=JOB_NAME, outcome=RunOutcome.COMPLETED)
    try:
        result = await _push(runtime, result, guard, sleep)
    except Exception as e:
        logger.error(f"Pusher aborted: {e}", exc_info=True)
        result.outcome = RunOutcome.FATAL
        result.error = f"{type(e).__name__}: {e}"
    finally:
        await runtime.aclose()

    log = logger.error if result.outcome is RunOutcome.FATAL else logger.info
    log(result.summary())
    return result


async def _push(
    runtime: Runtime,
    result: RunResult,
    guard: TimeBudgetGuard | None,
    sleep: Callable[[float], Awaitable[None]],
) -> RunResult:
    settings = runtime.settings(JOB_NAME)
    guard = guard or TimeBudgetGuard(settings.time_limit, settings.safety_margin)
    store = runtime.store
    mirror = runtime.mirror()
    if not mirror.exists():
        raise ConfigurationError(
            f"Mirror {mirror.mirror_id} does not exist yet; run the puller first",
            details={"mirror_id": mirror.mirror_id},
        )
    target = IndexedTarget(mirror, runtime.identifier_format)

    stored = store.get_index(PUSH_INDEX)
    start = stored or 0
    result.checkpoint = None if stored is None else str(stored)

    client = await runtime.api(guard)
    try:
        listed = await PaginatedSource(client).list_all(guard)
    except BudgetExhausted:
        logger.warning("Time budget ran out during the membership listing")
        result.outcome = RunOutcome.YIELDED_ON_BUDGET
        result.elapsed = guard.elapsed()
        return result
    except Exception as e:
        failure = runtime.classifier.wrap(e)
        if failure.is_fatal:
            raise
        logger.warning(f"Membership listing failed, index left at {start}: {failure}")
        result.outcome = RunOutcome.YIELDED_ON_QUOTA if failure.is_quota else RunOutcome.YIELDED_ON_ERROR
        result.error = str(failure)
        result.elapsed = guard.elapsed()
        return result

    remote = DedupFilter((record.identifier for record in listed), identifier_format=runtime.identifier_format)
    total = target.count()
    if start >= total and start > 0:
        logger.info(f"Stored index {start} is past the last row ({total}); starting over")
        start = 0
    candidates = target.candidates_from(start)
    present = remote.mark(candidates)
    logger.info(
        f"{len(remote)} remote memberships; {len(candidates)} rows from index {start}, {present} already present"
    )

    capabilities = PusherCapabilities(
        client, target, candidates, start, store, remote, unit_delay=settings.unit_delay
    )
    loop = SyncLoop(capabilities, guard, runtime.classifier, sleep=sleep)
    result = await loop.run(start, result)
    result.details["remote_memberships"] = len(listed)
    result.details["rows"] = total
    return result
