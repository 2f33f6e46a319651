"""
Tests for the Pusher job (mirror -> remote memberships).
"""

from unittest.mock import AsyncMock

import pytest

from subsync.core.budget import TimeBudgetGuard
from subsync.core.state import MIRROR_ID, PUSH_INDEX
from subsync.core.types import RunOutcome
from subsync.exceptions import QuotaExhaustedError, RemoteAPIError
from subsync.jobs.pusher import run_pusher_sync
from subsync.jobs.runtime import Runtime

QUOTA_ERROR = RemoteAPIError("The request cannot be completed", status=403, reason="quotaExceeded")


def set_push_index(config, value):
    runtime = Runtime(config)
    try:
        runtime.store.set(PUSH_INDEX, value)
    finally:
        runtime.close()


class TestPusherCompletes:
    """Full passes over the mirror."""

    @pytest.mark.asyncio
    async def test_three_new_identifiers_are_all_joined(self, project_config, with_mirror, fake_api, state):
        with_mirror("UC1", "UC2", "UC3")
        api = fake_api([])

        result = await run_pusher_sync(project_config, api=api)

        assert result.outcome is RunOutcome.COMPLETED
        assert api.join_calls == ["UC1", "UC2", "UC3"]
        assert result.applied == 3
        assert PUSH_INDEX not in state()[0]

    @pytest.mark.asyncio
    async def test_joins_only_missing_identifiers(self, project_config, with_mirror, fake_api, state):
        with_mirror("UC1", "UC2", "UC3", "UC4")
        api = fake_api(["UC2"])

        result = await run_pusher_sync(project_config, api=api)

        assert result.outcome is RunOutcome.COMPLETED
        assert api.join_calls == ["UC1", "UC3", "UC4"]
        assert result.applied == 3
        assert result.skipped == 1
        assert PUSH_INDEX not in state()[0]

    @pytest.mark.asyncio
    async def test_nothing_to_do_makes_no_join_calls(self, project_config, with_mirror, fake_api, state):
        with_mirror("UC1", "UC2")
        api = fake_api(["UC1", "UC2"])

        result = await run_pusher_sync(project_config, api=api)

        assert result.outcome is RunOutcome.COMPLETED
        assert api.join_calls == []
        assert PUSH_INDEX not in state()[0]

    @pytest.mark.asyncio
    async def test_empty_mirror_completes(self, project_config, with_mirror, fake_api):
        result = await run_pusher_sync(project_config, api=fake_api([]))

        assert result.outcome is RunOutcome.COMPLETED
        assert result.units == 0

    @pytest.mark.asyncio
    async def test_malformed_and_blank_rows_are_skipped(self, project_config, with_mirror, fake_api):
        with_mirror("UC1", "not-a-channel", "", "UC3")
        api = fake_api([])

        result = await run_pusher_sync(project_config, api=api)

        assert result.outcome is RunOutcome.COMPLETED
        assert api.join_calls == ["UC1", "UC3"]
        assert result.skipped == 2

    @pytest.mark.asyncio
    async def test_repeated_identifier_is_joined_once(self, project_config, with_mirror, fake_api):
        with_mirror("UC1", "UC1")
        api = fake_api([])

        result = await run_pusher_sync(project_config, api=api)

        assert api.join_calls == ["UC1"]
        assert result.applied == 1
        assert result.skipped == 1

    @pytest.mark.asyncio
    async def test_already_joined_response_counts_as_skip(self, project_config, with_mirror, fake_api):
        with_mirror("UC1")
        api = fake_api([])
        api.join = AsyncMock(return_value=False)

        result = await run_pusher_sync(project_config, api=api)

        assert result.outcome is RunOutcome.COMPLETED
        assert result.applied == 0
        assert result.skipped == 1

    @pytest.mark.asyncio
    async def test_pause_after_each_join(self, project_config, with_mirror, fake_api):
        project_config["jobs"]["pusher"]["unit_delay"] = 0.5
        with_mirror("UC1", "UC2", "UC3")
        sleep = AsyncMock()

        await run_pusher_sync(project_config, api=fake_api(["UC2"]), sleep=sleep)

        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.5)

    @pytest.mark.asyncio
    async def test_transient_join_failure_moves_on(self, project_config, with_mirror, fake_api, state):
        with_mirror("UC1", "UC2", "UC3")
        api = fake_api([])
        api.join_errors["UC2"] = RemoteAPIError("backend error", status=500)

        result = await run_pusher_sync(project_config, api=api)

        assert result.outcome is RunOutcome.COMPLETED
        assert result.failed == 1
        assert api.join_calls == ["UC1", "UC2", "UC3"]
        assert PUSH_INDEX not in state()[0]


class TestPusherResumes:
    """Checkpoint behaviour across invocations."""

    @pytest.mark.asyncio
    async def test_quota_on_second_join_stops_at_its_index(self, project_config, with_mirror, fake_api, state):
        with_mirror("UC1", "UC2", "UC3")
        api = fake_api([])
        api.join_errors["UC2"] = QUOTA_ERROR

        result = await run_pusher_sync(project_config, api=api)

        assert result.outcome is RunOutcome.YIELDED_ON_QUOTA
        assert result.applied == 1
        assert api.join_calls == ["UC1", "UC2"]
        assert state()[0][PUSH_INDEX] == "1"

        api.join_errors.clear()
        api.join_calls.clear()
        await run_pusher_sync(project_config, api=api)

        assert api.join_calls == ["UC2", "UC3"]

    @pytest.mark.asyncio
    async def test_quota_on_join_keeps_failed_row(self, project_config, with_mirror, fake_api, state):
        with_mirror("UC1", "UC2", "UC3", "UC4")
        api = fake_api(["UC2"])
        api.join_errors["UC3"] = QUOTA_ERROR

        result = await run_pusher_sync(project_config, api=api)

        assert result.outcome is RunOutcome.YIELDED_ON_QUOTA
        assert result.checkpoint == "2"
        assert state()[0][PUSH_INDEX] == "2"

        api.join_errors.clear()
        api.join_calls.clear()
        again = await run_pusher_sync(project_config, api=api)

        assert again.outcome is RunOutcome.COMPLETED
        assert api.join_calls == ["UC3", "UC4"]
        assert PUSH_INDEX not in state()[0]

    @pytest.mark.asyncio
    async def test_quota_exhausted_error_is_quota(self, project_config, with_mirror, fake_api, state):
        with_mirror("UC1", "UC2")
        api = fake_api([])
        api.join_errors["UC1"] = QuotaExhaustedError("daily quota used up")

        result = await run_pusher_sync(project_config, api=api)

        assert result.outcome is RunOutcome.YIELDED_ON_QUOTA
        assert state()[0][PUSH_INDEX] == "0"

    @pytest.mark.asyncio
    async def test_budget_yield_and_resume(self, project_config, with_mirror, fake_api, clock, state):
        with_mirror("UC1", "UC2", "UC3", "UC4")
        api = fake_api([], clock=clock, join_cost=40)

        first = await run_pusher_sync(project_config, api=api, guard=TimeBudgetGuard(100, 10, clock=clock))

        assert first.outcome is RunOutcome.YIELDED_ON_BUDGET
        assert api.join_calls == ["UC1", "UC2", "UC3"]
        assert state()[0][PUSH_INDEX] == "3"

        second = await run_pusher_sync(project_config, api=api, guard=TimeBudgetGuard(100, 10, clock=clock))

        assert second.outcome is RunOutcome.COMPLETED
        assert api.join_calls == ["UC1", "UC2", "UC3", "UC4"]
        assert PUSH_INDEX not in state()[0]

    @pytest.mark.asyncio
    async def test_index_never_moves_backwards_within_a_pass(
        self, project_config, with_mirror, fake_api, clock, state
    ):
        with_mirror(*[f"UC{i}" for i in range(6)])
        api = fake_api([], clock=clock, join_cost=40)
        seen = []

        for _ in range(3):
            result = await run_pusher_sync(project_config, api=api, guard=TimeBudgetGuard(100, 10, clock=clock))
            stored = state()[0]
            seen.append(int(stored[PUSH_INDEX]) if PUSH_INDEX in stored else None)
            if result.outcome is RunOutcome.COMPLETED:
                break

        positions = [p for p in seen if p is not None]
        assert positions == sorted(positions)
        assert seen[-1] is None
        assert sorted(api.join_calls) == sorted(f"UC{i}" for i in range(6))
        assert len(api.join_calls) == 6

    @pytest.mark.asyncio
    async def test_preflight_quota_leaves_index(self, project_config, with_mirror, fake_api, state):
        with_mirror("UC1", "UC2", "UC3")
        set_push_index(project_config, 2)
        api = fake_api([])
        api.list_errors[0] = QUOTA_ERROR

        result = await run_pusher_sync(project_config, api=api)

        assert result.outcome is RunOutcome.YIELDED_ON_QUOTA
        assert api.join_calls == []
        assert state()[0][PUSH_INDEX] == "2"

    @pytest.mark.asyncio
    async def test_preflight_transient_failure_leaves_index(self, project_config, with_mirror, fake_api, state):
        with_mirror("UC1", "UC2", "UC3")
        set_push_index(project_config, 1)
        api = fake_api([])
        api.list_errors[0] = RemoteAPIError("connection reset")

        result = await run_pusher_sync(project_config, api=api)

        assert result.outcome is RunOutcome.YIELDED_ON_ERROR
        assert api.join_calls == []
        assert state()[0][PUSH_INDEX] == "1"

    @pytest.mark.asyncio
    async def test_budget_exhausted_during_preflight(self, project_config, with_mirror, fake_api, clock, state):
        with_mirror("UC1")
        api = fake_api([f"UCr{i}" for i in range(6)], clock=clock, list_cost=50)

        result = await run_pusher_sync(project_config, api=api, guard=TimeBudgetGuard(100, 10, clock=clock))

        assert result.outcome is RunOutcome.YIELDED_ON_BUDGET
        assert api.join_calls == []
        assert PUSH_INDEX not in state()[0]

    @pytest.mark.asyncio
    async def test_stale_index_restarts_from_zero(self, project_config, with_mirror, fake_api):
        with_mirror("UC1", "UC2")
        set_push_index(project_config, 10)
        api = fake_api([])

        result = await run_pusher_sync(project_config, api=api)

        assert result.outcome is RunOutcome.COMPLETED
        assert api.join_calls == ["UC1", "UC2"]

    @pytest.mark.asyncio
    async def test_corrupt_index_restarts_from_zero(self, project_config, with_mirror, fake_api):
        with_mirror("UC1", "UC2")
        set_push_index(project_config, "garbage")
        api = fake_api([])

        result = await run_pusher_sync(project_config, api=api)

        assert result.outcome is RunOutcome.COMPLETED
        assert api.join_calls == ["UC1", "UC2"]

    @pytest.mark.asyncio
    async def test_rows_appended_behind_index_are_picked_up(self, project_config, with_mirror, fake_api):
        with_mirror("UC1", "UC2")
        set_push_index(project_config, 1)
        with_mirror("UC3")
        api = fake_api([])

        await run_pusher_sync(project_config, api=api)

        assert api.join_calls == ["UC2", "UC3"]


class TestPusherFatal:
    """Setup problems end the run as FATAL without touching state."""

    @pytest.mark.asyncio
    async def test_missing_mirror_id(self, project_config, fake_api, state):
        api = fake_api([])

        result = await run_pusher_sync(project_config, api=api)

        assert result.outcome is RunOutcome.FATAL
        assert api.list_calls == []
        assert PUSH_INDEX not in state()[0]

    @pytest.mark.asyncio
    async def test_mirror_table_missing(self, project_config, fake_api):
        runtime = Runtime(project_config)
        runtime.store.set(MIRROR_ID, "never_created")
        runtime.close()
        api = fake_api([])

        result = await run_pusher_sync(project_config, api=api)

        assert result.outcome is RunOutcome.FATAL
        assert "never_created" in result.error
        assert api.list_calls == []
