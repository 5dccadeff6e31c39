import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from shadowchat.core.config import settings
from shadowchat.models.messages import Message
from shadowchat.services import cleanup_service
from shadowchat.services.cleanup_service import (
    auto_cleanup,
    cleanup_old_messages,
    cleanup_threshold_percent,
    get_capacity_monitor_data,
    get_cleanup_config,
    get_statistics,
    keep_only_recent_messages,
)

MB = 1024 * 1024


async def remaining_contents(session):
    result = await session.execute(select(Message.content).order_by(Message.id))
    return list(result.scalars().all())


class TestThreshold:

    def test_threshold_percent_is_exact(self):
        # 0.9 * 100 부동소수점 오차 없이 90
        assert cleanup_threshold_percent() == 90.0

    def test_cleanup_config(self):
        config = get_cleanup_config()
        assert config.db_limit_mb == 200
        assert config.storage_limit_mb == 1024
        assert config.cleanup_threshold == 0.9
        assert config.keep_messages == 100_000
        assert config.keep_days == 90
        assert config.cleanup_interval == "60s"


class TestAgeCutoff:
    """기간 기준 정리 테스트"""

    @pytest.mark.asyncio
    async def test_deletes_only_messages_older_than_cutoff(self, test_session, test_room, make_messages):
        now = datetime.utcnow()
        await make_messages(test_room.id, 3, now - timedelta(days=120), step=timedelta(days=1))
        await make_messages(test_room.id, 2, now - timedelta(days=10))

        result = await cleanup_old_messages(test_session, days=90)

        assert result.deleted == 3
        assert result.error is None
        assert len(await remaining_contents(test_session)) == 2

    @pytest.mark.asyncio
    async def test_nothing_to_delete(self, test_session, test_room, make_messages):
        await make_messages(test_room.id, 2, datetime.utcnow() - timedelta(hours=1))

        result = await cleanup_old_messages(test_session)

        assert result.deleted == 0


class TestCountCap:
    """개수 기준 정리 테스트"""

    @pytest.mark.asyncio
    async def test_keeps_most_recent(self, test_session, test_room, make_messages):
        await make_messages(test_room.id, 10, datetime.utcnow() - timedelta(hours=1))

        result = await keep_only_recent_messages(test_session, keep_count=4)

        assert result.deleted == 6
        assert result.remaining == 4
        assert await remaining_contents(test_session) == [
            "message 6", "message 7", "message 8", "message 9"
        ]

    @pytest.mark.asyncio
    async def test_equal_timestamps_break_ties_by_id(self, test_session, test_room, make_messages):
        same_time = datetime.utcnow() - timedelta(minutes=5)
        await make_messages(test_room.id, 5, same_time, step=timedelta(0))

        result = await keep_only_recent_messages(test_session, keep_count=2)

        assert result.deleted == 3
        # 가장 작은 id 부터 삭제
        assert await remaining_contents(test_session) == ["message 3", "message 4"]

    @pytest.mark.asyncio
    async def test_under_cap_deletes_nothing(self, test_session, test_room, make_messages):
        await make_messages(test_room.id, 3, datetime.utcnow())

        result = await keep_only_recent_messages(test_session, keep_count=3)

        assert result.deleted == 0
        assert result.remaining == 3

    @pytest.mark.asyncio
    async def test_deletes_in_batches(self, test_session, test_room, make_messages, monkeypatch):
        monkeypatch.setattr(cleanup_service, "DELETE_BATCH_SIZE", 2)
        await make_messages(test_room.id, 7, datetime.utcnow() - timedelta(hours=1))

        result = await keep_only_recent_messages(test_session, keep_count=2)

        assert result.deleted == 5
        assert await remaining_contents(test_session) == ["message 5", "message 6"]

    @pytest.mark.asyncio
    async def test_logs_each_batch_delete(self, test_session, test_room, make_messages, monkeypatch):
        monkeypatch.setattr(cleanup_service, "DELETE_BATCH_SIZE", 2)
        await make_messages(test_room.id, 5, datetime.utcnow() - timedelta(hours=1))

        with patch.object(cleanup_service, "log_database_operation") as log_operation:
            await keep_only_recent_messages(test_session, keep_count=2)

        assert [c.kwargs["affected_rows"] for c in log_operation.call_args_list] == [2, 1]
        assert all(c.args[1:] == ("DELETE", "messages") for c in log_operation.call_args_list)


class TestAutoCleanup:
    """자동 정리 테스트"""

    @pytest.mark.asyncio
    async def test_below_threshold_does_nothing(self, test_session, test_room, make_messages, table_size):
        await make_messages(test_room.id, 5, datetime.utcnow() - timedelta(days=200))

        with table_size(100 * MB):
            result = await auto_cleanup(test_session)

        assert result.cleaned is False
        assert result.deleted == 0
        assert result.status == "safe"
        assert len(await remaining_contents(test_session)) == 5

    @pytest.mark.asyncio
    async def test_exact_threshold_runs_both_phases(
        self, test_session, test_room, make_messages, table_size, monkeypatch
    ):
        monkeypatch.setattr(settings, "keep_messages", 3)
        now = datetime.utcnow()
        await make_messages(test_room.id, 4, now - timedelta(days=100))
        await make_messages(test_room.id, 5, now - timedelta(days=1))

        # 180MB / 200MB = 90% (임계치와 같음)
        with table_size(180 * MB):
            result = await auto_cleanup(test_session)

        assert result.cleaned is True
        assert result.deleted == 4 + 2
        assert result.error is None
        assert await remaining_contents(test_session) == ["message 2", "message 3", "message 4"]

    @pytest.mark.asyncio
    async def test_count_failure_keeps_age_cutoff_deletions(
        self, test_session, test_room, make_messages, table_size
    ):
        now = datetime.utcnow()
        await make_messages(test_room.id, 3, now - timedelta(days=100))
        await make_messages(test_room.id, 2, now - timedelta(days=1))
        count_failure = OperationalError("SELECT count(*) FROM messages", {}, Exception("database is down"))

        with table_size(190 * MB), patch.object(
            cleanup_service, "count_messages", new=AsyncMock(side_effect=count_failure)
        ):
            result = await auto_cleanup(test_session)

        assert result.cleaned is True
        assert result.deleted == 3
        assert "database is down" in result.error
        # 기간 기준으로 지운 메시지는 되돌리지 않음
        assert len(await remaining_contents(test_session)) == 2

    @pytest.mark.asyncio
    async def test_size_failure_reports_error_status(self, test_session):
        result = await auto_cleanup(test_session)

        # 사용률 0% (error 스냅샷) 이므로 정리하지 않음
        assert result.cleaned is False
        assert result.status == "error"


class TestStatistics:

    @pytest.mark.asyncio
    async def test_counts_by_type(self, test_session, test_room, test_user, make_messages, table_size):
        now = datetime.utcnow()
        await make_messages(test_room.id, 3, now)
        await make_messages(test_room.id, 2, now, message_type="image")
        await make_messages(test_room.id, 1, now, message_type="video")

        with table_size(20 * MB):
            stats = await get_statistics(test_session)

        assert stats.message_count == 6
        assert stats.user_count == 1
        assert stats.image_count == 2
        assert stats.video_count == 1
        assert stats.db_usage_mb == 20.0
        assert stats.percent_used == 10.0

    @pytest.mark.asyncio
    async def test_monitor_data(self, test_session, test_room, make_messages, table_size):
        await make_messages(test_room.id, 1, datetime.utcnow(), message_type="image")

        with table_size(170 * MB):
            data = await get_capacity_monitor_data(test_session)

        assert data.database.status == "warning"
        assert data.database.limit_mb == 200
        assert data.database.threshold == 90.0
        assert data.storage.limit_mb == 1024
        assert data.storage.estimated_image_count == 1
        assert data.statistics.message_count == 1
