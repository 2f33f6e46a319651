"""
Shared fixtures: an in-process membership API, a controllable clock and a
project config backed by a DuckDB file under tmp_path.
"""

from pathlib import Path

import pytest

from subsync.core.state import MIRROR_ID
from subsync.core.types import MirrorRecord, Page
from subsync.jobs.runtime import Runtime


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeMembershipAPI:
    """
    Remote membership list held in memory.

    Pages hold ``page_size`` items; page ``n`` (0-based) is requested with
    token ``tok{n}``. Errors can be scripted per listing call number or per
    joined identifier, and every call can cost simulated time.
    """

    def __init__(self, remote=(), *, page_size=2, clock=None, list_cost=0.0, join_cost=0.0):
        self.remote: list[str] = list(remote)
        self.page_size = page_size
        self.clock = clock
        self.list_cost = list_cost
        self.join_cost = join_cost
        self.list_calls: list[str | None] = []
        self.join_calls: list[str] = []
        self.list_errors: dict[int, Exception] = {}
        self.join_errors: dict[str, Exception] = {}

    async def list_page(self, page_token):
        call_number = len(self.list_calls)
        self.list_calls.append(page_token)
        if self.clock is not None:
            self.clock.advance(self.list_cost)
        if call_number in self.list_errors:
            raise self.list_errors[call_number]
        index = int(page_token[3:]) if page_token else 0
        start = index * self.page_size
        chunk = self.remote[start : start + self.page_size]
        has_more = start + self.page_size < len(self.remote)
        return Page(
            items=[MirrorRecord.for_channel(identifier, f"Channel {identifier}") for identifier in chunk],
            next_cursor=f"tok{index + 1}" if has_more else None,
        )

    async def join(self, identifier):
        self.join_calls.append(identifier)
        if self.clock is not None:
            self.clock.advance(self.join_cost)
        if identifier in self.join_errors:
            raise self.join_errors[identifier]
        if identifier in self.remote:
            return False
        self.remote.append(identifier)
        return True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_api():
    """Factory for FakeMembershipAPI instances."""
    return FakeMembershipAPI


@pytest.fixture
def project_config(tmp_path: Path) -> dict:
    """Config with state and mirror in one DuckDB file and no pauses."""
    return {
        "connections": {"main": {"type": "duckdb", "path": str(tmp_path / "data" / "subsync.duckdb")}},
        "state": {"connection": "main"},
        "mirror": {"connection": "main"},
        "remote": {"quota_markers": ["quotaExceeded", "dailyLimitExceeded"]},
        "identifier_prefix": "UC",
        "jobs": {
            "puller": {"time_limit": 100, "safety_margin": 10},
            "pusher": {"time_limit": 100, "safety_margin": 10, "unit_delay": 0},
        },
    }


@pytest.fixture
def with_mirror(project_config):
    """Configure mirror ``subs`` and return a helper that seeds it with rows."""
    runtime = Runtime(project_config)
    runtime.store.set(MIRROR_ID, "subs")
    runtime.mirror("subs").ensure()
    runtime.close()

    def seed(*identifiers: str) -> None:
        seeding = Runtime(project_config)
        try:
            seeding.mirror().append_rows([MirrorRecord.for_channel(i) for i in identifiers])
        finally:
            seeding.close()

    return seed


def read_state(config: dict) -> tuple[dict[str, str], list[str]]:
    """Stored checkpoints and the mirror's identifier column, read from disk."""
    runtime = Runtime(config)
    try:
        stored = runtime.store.items()
        mirror = runtime.mirror(stored[MIRROR_ID]) if MIRROR_ID in stored else None
        rows = mirror.read_column("identifier") if mirror is not None and mirror.exists() else []
    finally:
        runtime.close()
    return stored, rows


@pytest.fixture
def state(project_config):
    """Callable returning (checkpoints, mirror identifiers) for the project."""
    return lambda: read_state(project_config)
