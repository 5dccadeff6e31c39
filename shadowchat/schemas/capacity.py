from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class CapacitySnapshot(BaseModel):
    """저장소 사용량 스냅샷 (저장되지 않는 파생 값)"""
    usage_mb: float = Field(..., description="messages 테이블 크기(MB)")
    percent_used: float = Field(..., description="한도 대비 사용률(%)")
    status: str = Field(..., description="safe | warning | critical | error")


class CleanupStepResult(BaseModel):
    """정리 단계별 결과"""
    deleted: int = 0
    remaining: Optional[int] = None
    error: Optional[str] = None


class CleanupResult(BaseModel):
    """자동 정리 결과"""
    cleaned: bool
    status: str
    deleted: int = 0
    error: Optional[str] = None


class CleanupCheckResult(BaseModel):
    """주기 점검 결과"""
    needs_cleanup: bool
    result: Optional[CleanupResult] = None


class CleanupConfig(BaseModel):
    db_limit_mb: int
    storage_limit_mb: int
    cleanup_threshold: float
    keep_messages: int
    keep_days: int
    cleanup_interval: str


class Statistics(BaseModel):
    """채팅 통계"""
    message_count: int
    user_count: int
    db_usage_mb: float
    percent_used: float
    image_count: int
    video_count: int


class DatabaseCapacity(BaseModel):
    usage_mb: float
    limit_mb: int
    percent_used: float
    status: str
    threshold: float


class StorageCapacity(BaseModel):
    limit_mb: int
    estimated_image_count: int
    estimated_video_count: int


class CapacityMonitorData(BaseModel):
    """용량 모니터링 데이터 (화면 표시용)"""
    database: DatabaseCapacity
    storage: StorageCapacity
    statistics: Optional[Statistics] = None
    timestamp: datetime
