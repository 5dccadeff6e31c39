"""
Capacity monitor.

Measures the byte size of the messages table in the hosted store and
classifies it against the fixed database budget.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from shadowchat.core.config import settings
from shadowchat.core.logging import get_logger
from shadowchat.database import postgres
from shadowchat.schemas.capacity import CapacitySnapshot

logger = get_logger(__name__)

MESSAGES_TABLE = "messages"

# 상태 구간 (사용률 %)
WARNING_PERCENT = 80
CRITICAL_PERCENT = 100

BYTES_PER_MB = 1024 * 1024


def get_capacity_status(percent_used: float) -> str:
    """사용률을 safe / warning / critical 로 분류"""
    if percent_used >= CRITICAL_PERCENT:
        return "critical"
    if percent_used >= WARNING_PERCENT:
        return "warning"
    return "safe"


def error_snapshot() -> CapacitySnapshot:
    return CapacitySnapshot(usage_mb=0, percent_used=0, status="error")


async def check_database_usage(db: AsyncSession) -> CapacitySnapshot:
    """
    messages 테이블 사용량 조회

    조회 실패 시 예외를 올리지 않고 status="error" 인 0 스냅샷을 반환합니다.
    """
    try:
        size_bytes = await postgres.get_table_size_bytes(db, MESSAGES_TABLE)
    except Exception as e:
        logger.error(f"Failed to read table size for {MESSAGES_TABLE}: {e}")
        await db.rollback()
        return error_snapshot()

    size_mb = (size_bytes or 0) / BYTES_PER_MB
    percent_used = (size_mb / settings.db_limit_mb) * 100

    return CapacitySnapshot(
        usage_mb=round(size_mb, 2),
        percent_used=round(percent_used, 2),
        status=get_capacity_status(percent_used)
    )
