"""
Retention policy engine.

Deletes old chat history once the messages table crosses the cleanup
threshold. Two phases run in order:

1. age cutoff: every message older than ``keep_days`` is deleted;
2. count cap: if more than ``keep_messages`` rows remain, the oldest
   surplus rows (``created_at`` then ``id`` ascending) are deleted by id.

No transaction spans the phases. A phase that fails reports its error and
deletions that already committed stay deleted.
"""

import time
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import select, delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shadowchat.core.config import settings
from shadowchat.core.logging import get_logger, log_cleanup_event, log_database_operation
from shadowchat.database import postgres
from shadowchat.models.messages import Message
from shadowchat.models.users import User
from shadowchat.schemas.capacity import (
    CapacityMonitorData,
    CleanupConfig,
    CleanupResult,
    CleanupStepResult,
    DatabaseCapacity,
    Statistics,
    StorageCapacity,
)
from shadowchat.services import capacity_service

logger = get_logger(__name__)

# 한 번의 DELETE ... WHERE id IN (...) 에 담는 최대 id 수
DELETE_BATCH_SIZE = 1000


def cleanup_threshold_percent() -> float:
    """정리를 시작하는 사용률(%)"""
    return round(settings.cleanup_threshold * 100, 2)


# =============================================================================
# Phase A: 기간 기준 정리
# =============================================================================

async def cleanup_old_messages(db: AsyncSession, days: Optional[int] = None) -> CleanupStepResult:
    """days 일보다 오래된 메시지 삭제"""
    days = settings.keep_days if days is None else days
    cutoff = datetime.utcnow() - timedelta(days=days)

    start_time = time.time()
    try:
        result = await db.execute(
            delete(Message)
            .where(Message.created_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except SQLAlchemyError as e:
        logger.error(f"Failed to delete messages older than {days} days: {e}")
        await db.rollback()
        return CleanupStepResult(deleted=0, error=str(e))

    deleted = max(result.rowcount or 0, 0)
    log_database_operation(
        logger, "DELETE", "messages",
        duration_ms=(time.time() - start_time) * 1000,
        affected_rows=deleted
    )
    log_cleanup_event(logger, "age_cutoff", deleted=deleted, cutoff=cutoff.isoformat())
    return CleanupStepResult(deleted=deleted)


# =============================================================================
# Phase B: 개수 기준 정리
# =============================================================================

async def count_messages(db: AsyncSession) -> int:
    return await db.scalar(select(func.count()).select_from(Message)) or 0


async def keep_only_recent_messages(db: AsyncSession, keep_count: Optional[int] = None) -> CleanupStepResult:
    """최근 keep_count 개만 남기고 오래된 메시지 삭제"""
    keep_count = settings.keep_messages if keep_count is None else keep_count

    # 1. 전체 개수 (실패 시 이 단계 중단)
    try:
        total = await count_messages(db)
    except SQLAlchemyError as e:
        logger.error(f"Failed to count messages: {e}")
        await db.rollback()
        return CleanupStepResult(deleted=0, remaining=0, error=str(e))

    if total <= keep_count:
        return CleanupStepResult(deleted=0, remaining=total)

    surplus = total - keep_count

    # 2. 삭제 대상 id 선택 (created_at 동률은 id 순)
    try:
        result = await db.execute(
            select(Message.id)
            .order_by(Message.created_at.asc(), Message.id.asc())
            .limit(surplus)
        )
        ids: List[int] = list(result.scalars().all())
    except SQLAlchemyError as e:
        logger.error(f"Failed to select messages to delete: {e}")
        await db.rollback()
        return CleanupStepResult(deleted=0, remaining=total, error=str(e))

    # 3. id 배치 단위 삭제
    deleted = 0
    for start in range(0, len(ids), DELETE_BATCH_SIZE):
        batch = ids[start:start + DELETE_BATCH_SIZE]
        start_time = time.time()
        try:
            result = await db.execute(
                delete(Message)
                .where(Message.id.in_(batch))
                .execution_options(synchronize_session=False)
            )
            await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete message batch at offset {start}: {e}")
            await db.rollback()
            return CleanupStepResult(deleted=deleted, remaining=total - deleted, error=str(e))
        batch_deleted = max(result.rowcount or 0, 0)
        deleted += batch_deleted
        log_database_operation(
            logger, "DELETE", "messages",
            duration_ms=(time.time() - start_time) * 1000,
            affected_rows=batch_deleted,
            batch_offset=start
        )

    log_cleanup_event(logger, "count_cap", deleted=deleted, keep_count=keep_count, total=total)
    return CleanupStepResult(deleted=deleted, remaining=total - deleted)


# =============================================================================
# 자동 정리
# =============================================================================

async def auto_cleanup(db: AsyncSession) -> CleanupResult:
    """사용률이 임계치를 넘었을 때 기간 → 개수 순서로 정리"""
    try:
        logger.info("Starting automatic cleanup")

        usage = await capacity_service.check_database_usage(db)
        logger.info(f"Current usage: {usage.usage_mb} MB ({usage.percent_used}%)")

        if usage.percent_used < cleanup_threshold_percent():
            logger.info("Usage below cleanup threshold, skipping cleanup")
            return CleanupResult(cleaned=False, status=usage.status, deleted=0)

        log_cleanup_event(
            logger, "started",
            usage_mb=usage.usage_mb,
            percent_used=usage.percent_used
        )

        old_result = await cleanup_old_messages(db, settings.keep_days)
        count_result = await keep_only_recent_messages(db, settings.keep_messages)

        final_usage = await capacity_service.check_database_usage(db)
        deleted = old_result.deleted + count_result.deleted
        errors = [step.error for step in (old_result, count_result) if step.error]

        log_cleanup_event(
            logger, "finished",
            deleted=deleted,
            usage_mb=final_usage.usage_mb,
            percent_used=final_usage.percent_used,
            remaining=count_result.remaining
        )

        return CleanupResult(
            cleaned=True,
            status=final_usage.status,
            deleted=deleted,
            error="; ".join(errors) if errors else None
        )

    except Exception as e:
        logger.error(f"Automatic cleanup failed: {e}", exc_info=True)
        return CleanupResult(cleaned=False, status="error", deleted=0, error=str(e))


# =============================================================================
# 통계 / 모니터링
# =============================================================================

async def _count(db: AsyncSession, stmt, label: str) -> int:
    try:
        return await db.scalar(stmt) or 0
    except SQLAlchemyError as e:
        logger.error(f"Failed to count {label}: {e}")
        await db.rollback()
        return 0


async def get_statistics(db: AsyncSession) -> Optional[Statistics]:
    """채팅 통계 조회 (메시지 수 조회 실패 시 None)"""
    try:
        message_count = await count_messages(db)
    except SQLAlchemyError as e:
        logger.error(f"Failed to load message statistics: {e}")
        await db.rollback()
        return None

    # 사용자 테이블은 선택 사항이므로 실패해도 0
    user_count = await _count(db, select(func.count()).select_from(User), "users")
    image_count = await _count(
        db, select(func.count()).select_from(Message).where(Message.type == "image"), "images"
    )
    video_count = await _count(
        db, select(func.count()).select_from(Message).where(Message.type == "video"), "videos"
    )

    try:
        size_bytes = await postgres.get_table_size_bytes(db, capacity_service.MESSAGES_TABLE)
    except Exception as e:
        logger.error(f"Failed to read table size: {e}")
        await db.rollback()
        size_bytes = 0

    usage_mb = size_bytes / capacity_service.BYTES_PER_MB

    return Statistics(
        message_count=message_count,
        user_count=user_count,
        db_usage_mb=round(usage_mb, 2),
        percent_used=round(usage_mb / settings.db_limit_mb * 100, 2),
        image_count=image_count,
        video_count=video_count
    )


async def get_capacity_monitor_data(db: AsyncSession) -> CapacityMonitorData:
    """화면 표시용 용량 모니터링 데이터"""
    usage = await capacity_service.check_database_usage(db)
    stats = await get_statistics(db)

    return CapacityMonitorData(
        database=DatabaseCapacity(
            usage_mb=usage.usage_mb,
            limit_mb=settings.db_limit_mb,
            percent_used=usage.percent_used,
            status=usage.status,
            threshold=cleanup_threshold_percent()
        ),
        storage=StorageCapacity(
            limit_mb=settings.storage_limit_mb,
            estimated_image_count=stats.image_count if stats else 0,
            estimated_video_count=stats.video_count if stats else 0
        ),
        statistics=stats,
        timestamp=datetime.utcnow()
    )


def get_cleanup_config() -> CleanupConfig:
    """현재 정리 정책 설정"""
    return CleanupConfig(
        db_limit_mb=settings.db_limit_mb,
        storage_limit_mb=settings.storage_limit_mb,
        cleanup_threshold=settings.cleanup_threshold,
        keep_messages=settings.keep_messages,
        keep_days=settings.keep_days,
        cleanup_interval=f"{settings.cleanup_min_interval_ms / 1000:g}s"
    )
