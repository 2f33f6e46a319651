"""
Puller: mirror the remote membership list into the tabular mirror.

Each scheduled invocation resumes from the stored page token, appends the
not-yet-mirrored items of every page it fetches, and stores the token of
the next page once a page's rows are written. When the last page is done
the token is deleted so the next invocation starts a fresh pass.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from subsync.config.loader import Config
from subsync.core.budget import TimeBudgetGuard
from subsync.core.dedup import DedupFilter
from subsync.core.loop import SyncLoop
from subsync.core.state import PULL_CURSOR, CheckpointStore
from subsync.core.types import Page, RunOutcome, RunResult, Unit, UnitStatus
from subsync.jobs.runtime import Runtime
from subsync.mirror.table import MirrorTable
from subsync.remote.source import MembershipLister, PaginatedSource
from subsync.utils.async_utils import dual
from subsync.utils.logging import get_logger

logger = get_logger("subsync.jobs.puller")

JOB_NAME = "puller"


class PullerCapabilities:
    """
    Page-token units for the SyncLoop.

    A unit is one listing page. Applying it appends the page's new rows to
    the mirror in one write, after which the next page's token is committed.
    """

    name = JOB_NAME
    commit_each_unit = True
    unit_delay = 0.0

    def __init__(self, source: PaginatedSource, mirror: MirrorTable, store: CheckpointStore, dedup: DedupFilter):
        self.source = source
        self.mirror = mirror
        self.store = store
        self.dedup = dedup
        self.rows_written = 0

    async def fetch_next(self, cursor: str | None) -> Unit[str | None]:
        page = await self.source.next_page(cursor)
        return Unit(
            position=cursor,
            next_position=page.next_cursor or None,
            payload=page,
            label=f"page {self.source.pages_fetched}",
        )

    async def apply_unit(self, unit: Unit[str | None]) -> UnitStatus:
        page: Page = unit.payload
        fresh = self.dedup.new_records(page.items)
        if not fresh:
            logger.debug(f"{unit.label}: {len(page.items)} items, nothing new")
            return UnitStatus.SKIPPED
        self.mirror.append_rows(fresh)
        self.dedup.add_all(fresh)
        self.rows_written += len(fresh)
        logger.info(f"{unit.label}: appended {len(fresh)} of {len(page.items)} items")
        return UnitStatus.APPLIED

    def persist_checkpoint(self, cursor: str | None) -> None:
        self.store.set(PULL_CURSOR, cursor)

    def clear_checkpoint(self) -> None:
        self.store.delete(PULL_CURSOR)


@dual
async def run_puller_sync(
    config: Config | dict[str, Any],
    *,
    api: MembershipLister | None = None,
    guard: TimeBudgetGuard | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> RunResult:
    """
    Run one Puller invocation.

    Never raises: setup, store and mirror failures come back as a FATAL
    result, quota and budget exhaustion as yields.

    Args:
        config: Project configuration
        api: Remote lister to use instead of building one from ``remote``
        guard: Time budget (default: from ``jobs.puller`` settings, started now)
        sleep: Awaitable sleep, replaceable in tests

    Returns:
        RunResult with the outcome and the checkpoint left behind
    """
    runtime = Runtime(config, api=api)
    result = RunResult(job=JOB_NAME, outcome=RunOutcome.COMPLETED)
    try:
        settings = runtime.settings(JOB_NAME)
        guard = guard or TimeBudgetGuard(settings.time_limit, settings.safety_margin)
        store = runtime.store
        mirror = runtime.mirror()
        mirror.ensure()

        cursor = store.get(PULL_CURSOR)
        dedup = DedupFilter(
            (value for value in mirror.read_column("identifier") if value),
            identifier_format=runtime.identifier_format,
        )
        logger.info(f"Mirror {mirror.mirror_id} holds {len(dedup)} identifiers; resuming at {cursor or '<start>'}")

        source = PaginatedSource(await runtime.api(guard))
        capabilities = PullerCapabilities(source, mirror, store, dedup)
        loop = SyncLoop(capabilities, guard, runtime.classifier, sleep=sleep)
        result = await loop.run(cursor, result)
        result.details["rows_written"] = capabilities.rows_written
        result.details["pages"] = source.pages_fetched
    except Exception as e:
        logger.error(f"Puller aborted: {e}", exc_info=True)
        result.outcome = RunOutcome.FATAL
        result.error = f"{type(e).__name__}: {e}"
    finally:
        await runtime.aclose()

    log = logger.error if result.outcome is RunOutcome.FATAL else logger.info
    log(result.summary())
    return result
