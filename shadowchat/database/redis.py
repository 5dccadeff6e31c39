"""
Redis 연결 설정 및 관리

메시지 실시간 피드(pub/sub)를 위한 Redis 연결을 제공합니다.
"""

from typing import Optional
import redis.asyncio as redis
from redis.asyncio import ConnectionPool
from redis.exceptions import ConnectionError

from shadowchat.core.config import settings
from shadowchat.core.logging import get_logger

logger = get_logger(__name__)

# Redis 연결 인스턴스들
redis_client: Optional[redis.Redis] = None
redis_pool: Optional[ConnectionPool] = None


async def create_redis_pool() -> ConnectionPool:
    """Redis 연결 풀 생성"""
    try:
        pool = ConnectionPool.from_url(
            settings.redis_url,
            max_connections=20,
            retry_on_timeout=True,
            decode_responses=True,  # 자동으로 bytes를 string으로 디코딩
            encoding='utf-8'
        )

        logger.info("Redis connection pool created")
        return pool

    except Exception as e:
        logger.error(f"Failed to create Redis connection pool: {e}")
        raise


async def init_redis():
    """Redis 연결 초기화"""
    global redis_client, redis_pool

    try:
        redis_pool = await create_redis_pool()
        redis_client = redis.Redis(connection_pool=redis_pool)

        # 연결 테스트
        await redis_client.ping()

        logger.info("Redis connection initialized successfully")

    except ConnectionError as e:
        logger.error(f"Redis connection failed: {e}")
        raise
    except Exception as e:
        logger.error(f"Redis initialization failed: {e}")
        raise


async def close_redis():
    """Redis 연결 종료"""
    global redis_client, redis_pool

    try:
        if redis_client:
            await redis_client.aclose()
            logger.info("Redis client closed")

        if redis_pool:
            await redis_pool.aclose()
            logger.info("Redis connection pool closed")

    except Exception as e:
        logger.error(f"Error closing Redis connections: {e}")
    finally:
        redis_client = None
        redis_pool = None


async def get_redis() -> redis.Redis:
    """Redis 클라이언트 인스턴스 반환 (최초 사용 시 연결)"""
    global redis_client

    if redis_client is None:
        await init_redis()

    return redis_client


async def check_redis_connection() -> bool:
    """Redis 연결 상태 확인"""
    try:
        client = await get_redis()
        return bool(await client.ping())
    except Exception as e:
        logger.error(f"Redis connection check failed: {e}")
        return False
