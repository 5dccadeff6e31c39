"""
정리 스케줄러

일정 주기로 사용량을 확인하고 임계치를 넘으면 자동 정리를 실행합니다.
마지막 실행 시각은 CleanupState 로 명시적으로 전달되며, 최소 간격 안의
재호출은 사용량과 무관하게 무시됩니다.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shadowchat.core.config import settings
from shadowchat.core.logging import get_logger
from shadowchat.database.postgres import AsyncSessionLocal
from shadowchat.schemas.capacity import CleanupCheckResult, CleanupResult
from shadowchat.services import capacity_service, cleanup_service

logger = get_logger(__name__)


def now_ms() -> float:
    return time.time() * 1000


class CleanupState:
    """마지막 자동 정리 시각(ms)"""

    def __init__(self, last_cleanup_ms: float = 0, min_interval_ms: Optional[int] = None):
        self.last_cleanup_ms = last_cleanup_ms
        self.min_interval_ms = settings.cleanup_min_interval_ms if min_interval_ms is None else min_interval_ms

    def is_debounced(self, current_ms: float) -> bool:
        return current_ms - self.last_cleanup_ms < self.min_interval_ms

    def reset(self):
        self.last_cleanup_ms = 0


async def check_and_cleanup_if_needed(
    db: AsyncSession,
    state: CleanupState,
    current_ms: Optional[float] = None
) -> CleanupCheckResult:
    """최소 간격이 지났고 사용률이 임계치 이상이면 정리 실행"""
    try:
        current_ms = now_ms() if current_ms is None else current_ms

        if state.is_debounced(current_ms):
            return CleanupCheckResult(needs_cleanup=False)

        usage = await capacity_service.check_database_usage(db)

        if usage.percent_used >= cleanup_service.cleanup_threshold_percent():
            # 정리 전에 갱신해야 타이머가 겹쳐도 중복 실행되지 않음
            state.last_cleanup_ms = current_ms
            result = await cleanup_service.auto_cleanup(db)
            return CleanupCheckResult(needs_cleanup=True, result=result)

        return CleanupCheckResult(needs_cleanup=False)

    except Exception as e:
        logger.error(f"Cleanup check failed: {e}", exc_info=True)
        return CleanupCheckResult(needs_cleanup=False)


async def manual_cleanup(db: AsyncSession, state: CleanupState) -> CleanupResult:
    """최소 간격을 무시하고 즉시 정리"""
    logger.info("Manual cleanup requested")
    state.reset()
    return await cleanup_service.auto_cleanup(db)


class CleanupScheduler:
    """주기적 용량 점검 백그라운드 작업"""

    def __init__(
        self,
        session_factory: async_sessionmaker = AsyncSessionLocal,
        interval_ms: Optional[int] = None,
        state: Optional[CleanupState] = None
    ):
        self.session_factory = session_factory
        self.interval_ms = settings.cleanup_check_interval_ms if interval_ms is None else interval_ms
        self.state = state or CleanupState()
        self.running = False
        self.task: Optional[asyncio.Task] = None

    def start(self) -> Callable[[], Awaitable[None]]:
        """점검 타이머 시작. 중지 핸들(self.stop)을 반환"""
        if self.running:
            logger.warning("Cleanup scheduler is already running")
            return self.stop

        self.running = True
        self.task = asyncio.create_task(self._run())
        logger.info(f"Cleanup scheduler started (every {self.interval_ms} ms)")
        return self.stop

    async def stop(self):
        """점검 타이머 중지"""
        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            self.task = None
        logger.info("Cleanup scheduler stopped")

    async def tick(self) -> CleanupCheckResult:
        async with self.session_factory() as db:
            return await check_and_cleanup_if_needed(db, self.state)

    async def _run(self):
        try:
            while self.running:
                await asyncio.sleep(self.interval_ms / 1000)
                try:
                    result = await self.tick()
                    if result.needs_cleanup:
                        logger.info(f"Scheduled cleanup finished: {result.result}")
                except Exception as e:
                    logger.error(f"Error in cleanup scheduler: {e}")
        except asyncio.CancelledError:
            logger.info("Cleanup scheduler cancelled")
            raise


# 싱글톤 인스턴스
_cleanup_scheduler = None


def get_cleanup_scheduler() -> CleanupScheduler:
    """CleanupScheduler 싱글톤 인스턴스 반환"""
    global _cleanup_scheduler
    if _cleanup_scheduler is None:
        _cleanup_scheduler = CleanupScheduler()
    return _cleanup_scheduler
