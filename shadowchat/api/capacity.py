from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shadowchat.core.errors import ExternalServiceException
from shadowchat.database.postgres import get_db
from shadowchat.schemas.capacity import CapacityMonitorData, CleanupConfig, CleanupResult, Statistics
from shadowchat.services import cleanup_scheduler, cleanup_service
from shadowchat.services.cleanup_scheduler import CleanupState

router = APIRouter(prefix="/capacity", tags=["Capacity"])


def get_cleanup_state() -> CleanupState:
    """스케줄러와 공유하는 정리 상태"""
    return cleanup_scheduler.get_cleanup_scheduler().state


@router.get("", response_model=CapacityMonitorData)
async def get_capacity(db: AsyncSession = Depends(get_db)) -> CapacityMonitorData:
    """용량 모니터링 데이터"""
    return await cleanup_service.get_capacity_monitor_data(db)


@router.get("/config", response_model=CleanupConfig)
async def get_config() -> CleanupConfig:
    """정리 정책 설정"""
    return cleanup_service.get_cleanup_config()


@router.get("/statistics", response_model=Statistics)
async def get_statistics(db: AsyncSession = Depends(get_db)) -> Statistics:
    """채팅 통계"""
    stats = await cleanup_service.get_statistics(db)
    if stats is None:
        raise ExternalServiceException("store", "Failed to load statistics")
    return stats


@router.post("/cleanup", response_model=CleanupResult)
async def run_cleanup(
    db: AsyncSession = Depends(get_db),
    state: CleanupState = Depends(get_cleanup_state)
) -> CleanupResult:
    """수동 정리 (최소 간격 무시, 임계치 미만이면 정리하지 않음)"""
    return await cleanup_scheduler.manual_cleanup(db, state)
