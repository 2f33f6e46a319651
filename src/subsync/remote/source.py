"""
Paginated access to the remote membership list.
"""

from __future__ import annotations

from typing import Protocol

from subsync.core.budget import BudgetExhausted, TimeBudgetGuard
from subsync.core.types import MirrorRecord, Page
from subsync.exceptions import RemoteAPIError
from subsync.utils.logging import get_logger

logger = get_logger("subsync.remote.source")


class MembershipLister(Protocol):
    """Anything that can return one page of memberships for a page token."""

    async def list_page(self, page_token: str | None) -> Page: ...


class PaginatedSource:
    """
    "Fetch the next page given an opaque cursor."

    The Puller drives ``next_page`` one page per loop iteration and persists
    the cursor itself. ``list_all`` walks every page without persisting
    anything; the Pusher uses it for its run-scoped pre-flight listing.
    """

    def __init__(self, lister: MembershipLister):
        self.lister = lister
        self.pages_fetched = 0

    async def next_page(self, cursor: str | None) -> Page:
        page = await self.lister.list_page(cursor)
        self.pages_fetched += 1
        if page.next_cursor is not None and page.next_cursor == cursor:
            raise RemoteAPIError(f"Listing returned its own page token {cursor!r} as the next one")
        return page

    async def list_all(self, guard: TimeBudgetGuard | None = None) -> list[MirrorRecord]:
        """
        Every item of the remote collection, in listing order.

        Raises:
            BudgetExhausted: If the guard expires before the listing finishes
            RemoteAPIError: If any page fetch fails (quota included)
        """
        records: list[MirrorRecord] = []
        seen_tokens: set[str] = set()
        cursor: str | None = None
        while True:
            if guard is not None and guard.expired():
                raise BudgetExhausted(guard)
            page = await self.next_page(cursor)
            records.extend(page.items)
            if page.is_last:
                break
            if page.next_cursor in seen_tokens:
                raise RemoteAPIError(f"Listing revisited page token {page.next_cursor!r}")
            seen_tokens.add(page.next_cursor)
            cursor = page.next_cursor
        logger.debug(f"Listed {len(records)} remote items over {self.pages_fetched} pages")
        return records
