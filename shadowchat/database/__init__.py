from shadowchat.core.logging import get_logger
from .postgres import init_postgres_db, close_postgres_db, check_postgres_connection, get_db
from .redis import close_redis, check_redis_connection, get_redis

logger = get_logger(__name__)


async def init_databases():
    """Initialize the hosted store (Redis connects lazily on first use)"""
    try:
        await init_postgres_db()
        logger.info("All databases initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


async def close_databases():
    """Close all database connections"""
    try:
        await close_postgres_db()
        await close_redis()
        logger.info("All database connections closed")
    except Exception as e:
        logger.error(f"Error closing database connections: {e}")


async def check_database_health():
    """Check health of all database connections"""
    store_status = await check_postgres_connection()
    redis_status = await check_redis_connection()

    return {
        "store": store_status,
        "redis": redis_status,
        "overall": store_status and redis_status
    }

__all__ = [
    "init_databases",
    "close_databases",
    "check_database_health",
    "get_db",
    "get_redis"
]
