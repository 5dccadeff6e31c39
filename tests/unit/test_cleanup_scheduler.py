import asyncio
import pytest
from unittest.mock import AsyncMock, patch

from shadowchat.schemas.capacity import CapacitySnapshot, CleanupCheckResult, CleanupResult
from shadowchat.services.cleanup_scheduler import (
    CleanupScheduler,
    CleanupState,
    check_and_cleanup_if_needed,
    manual_cleanup,
)

NOW_MS = 1_700_000_000_000


def usage(percent: float) -> AsyncMock:
    return AsyncMock(return_value=CapacitySnapshot(
        usage_mb=percent * 2, percent_used=percent, status="warning"
    ))


def cleanup_done() -> AsyncMock:
    return AsyncMock(return_value=CleanupResult(cleaned=True, status="safe", deleted=10))


class TestCleanupState:

    def test_defaults(self):
        state = CleanupState()
        assert state.last_cleanup_ms == 0
        assert state.min_interval_ms == 60_000

    def test_debounce_window(self):
        state = CleanupState(last_cleanup_ms=NOW_MS)
        assert state.is_debounced(NOW_MS + 59_999)
        assert not state.is_debounced(NOW_MS + 60_000)

    def test_reset(self):
        state = CleanupState(last_cleanup_ms=NOW_MS)
        state.reset()
        assert not state.is_debounced(NOW_MS)


class TestCheckAndCleanup:
    """주기 점검 테스트"""

    @pytest.mark.asyncio
    async def test_above_threshold_runs_cleanup(self, test_session):
        state = CleanupState()
        auto = cleanup_done()

        with patch("shadowchat.services.capacity_service.check_database_usage", new=usage(95)), \
             patch("shadowchat.services.cleanup_service.auto_cleanup", new=auto):
            result = await check_and_cleanup_if_needed(test_session, state, NOW_MS)

        assert result.needs_cleanup is True
        assert result.result.deleted == 10
        assert state.last_cleanup_ms == NOW_MS
        auto.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_below_threshold_skips(self, test_session):
        state = CleanupState()
        auto = cleanup_done()

        with patch("shadowchat.services.capacity_service.check_database_usage", new=usage(89.99)), \
             patch("shadowchat.services.cleanup_service.auto_cleanup", new=auto):
            result = await check_and_cleanup_if_needed(test_session, state, NOW_MS)

        assert result.needs_cleanup is False
        assert result.result is None
        assert state.last_cleanup_ms == 0
        auto.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_second_call_within_interval_is_ignored(self, test_session):
        state = CleanupState()
        check = usage(95)
        auto = cleanup_done()

        with patch("shadowchat.services.capacity_service.check_database_usage", new=check), \
             patch("shadowchat.services.cleanup_service.auto_cleanup", new=auto):
            first = await check_and_cleanup_if_needed(test_session, state, NOW_MS)
            second = await check_and_cleanup_if_needed(test_session, state, NOW_MS + 30_000)

        assert first.needs_cleanup is True
        assert second.needs_cleanup is False
        # 디바운스 구간에서는 사용량 조회도 하지 않음
        assert check.await_count == 1
        assert auto.await_count == 1

    @pytest.mark.asyncio
    async def test_runs_again_after_interval(self, test_session):
        state = CleanupState()
        auto = cleanup_done()

        with patch("shadowchat.services.capacity_service.check_database_usage", new=usage(95)), \
             patch("shadowchat.services.cleanup_service.auto_cleanup", new=auto):
            await check_and_cleanup_if_needed(test_session, state, NOW_MS)
            result = await check_and_cleanup_if_needed(test_session, state, NOW_MS + 60_000)

        assert result.needs_cleanup is True
        assert auto.await_count == 2

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, test_session):
        failing = AsyncMock(side_effect=RuntimeError("boom"))

        with patch("shadowchat.services.capacity_service.check_database_usage", new=failing):
            result = await check_and_cleanup_if_needed(test_session, CleanupState(), NOW_MS)

        assert result == CleanupCheckResult(needs_cleanup=False)


class TestManualCleanup:

    @pytest.mark.asyncio
    async def test_ignores_debounce(self, test_session):
        state = CleanupState(last_cleanup_ms=NOW_MS)
        auto = cleanup_done()

        with patch("shadowchat.services.cleanup_service.auto_cleanup", new=auto):
            result = await manual_cleanup(test_session, state)

        assert result.cleaned is True
        assert state.last_cleanup_ms == 0
        auto.assert_awaited_once()


class TestCleanupScheduler:
    """백그라운드 점검 타이머 테스트"""

    @pytest.mark.asyncio
    async def test_start_ticks_and_stop_handle(self, session_factory):
        check = AsyncMock(return_value=CleanupCheckResult(needs_cleanup=False))
        scheduler = CleanupScheduler(session_factory=session_factory, interval_ms=10)

        with patch("shadowchat.services.cleanup_scheduler.check_and_cleanup_if_needed", new=check):
            stop = scheduler.start()
            await asyncio.sleep(0.1)
            await stop()

        assert check.await_count >= 1
        assert scheduler.running is False
        assert scheduler.task is None

    @pytest.mark.asyncio
    async def test_start_twice_keeps_single_task(self, session_factory):
        scheduler = CleanupScheduler(session_factory=session_factory, interval_ms=60_000)

        scheduler.start()
        task = scheduler.task
        scheduler.start()

        assert scheduler.task is task
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_tick_error_does_not_stop_loop(self, session_factory):
        calls = []

        async def flaky(db, state):
            calls.append(state)
            if len(calls) == 1:
                raise RuntimeError("store down")
            return CleanupCheckResult(needs_cleanup=False)

        check = AsyncMock(side_effect=flaky)
        scheduler = CleanupScheduler(session_factory=session_factory, interval_ms=10)

        with patch("shadowchat.services.cleanup_scheduler.check_and_cleanup_if_needed", new=check):
            scheduler.start()
            await asyncio.sleep(0.1)
            await scheduler.stop()

        assert check.await_count >= 2
