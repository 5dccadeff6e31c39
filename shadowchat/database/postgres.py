from typing import AsyncGenerator
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy import text
from shadowchat.core.config import settings
from shadowchat.core.logging import get_logger

# Base class for SQLAlchemy models
Base = declarative_base()

logger = get_logger(__name__)


def build_database_url() -> URL:
    """Hosted store DSN with the access key injected as the password"""
    url = make_url(settings.chat_service_url)
    if url.get_backend_name() == "postgresql" and settings.chat_service_key:
        url = url.set(password=settings.chat_service_key)
    return url


def _engine_options(url: URL) -> dict:
    if url.get_backend_name() == "sqlite":
        return {"echo": settings.debug}
    return {
        "echo": settings.debug,  # Log SQL queries in debug mode
        "pool_size": 10,
        "max_overflow": 20,
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "pool_pre_ping": True,  # Validate connections before use
    }


database_url = build_database_url()

# Database engine with connection pooling
engine = create_async_engine(database_url, **_engine_options(database_url))

# Async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.error(f"Database session error: {e}")
            raise
        finally:
            await session.close()


async def get_table_size_bytes(db: AsyncSession, table_name: str) -> int:
    """테이블의 전체 크기(바이트, 인덱스/TOAST 포함) 조회"""
    result = await db.execute(
        text("SELECT pg_total_relation_size(CAST(:table_name AS regclass))"),
        {"table_name": table_name}
    )
    return int(result.scalar() or 0)


async def init_postgres_db():
    """Create missing tables in the hosted store"""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Chat store initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize chat store: {e}")
        raise


async def check_postgres_connection() -> bool:
    """Check hosted store connection"""
    try:
        async with engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            return result.fetchone() is not None
    except Exception as e:
        logger.error(f"Chat store connection check failed: {e}")
        return False


async def close_postgres_db():
    """Close hosted store connections"""
    await engine.dispose()
    logger.info("Chat store connections closed")
