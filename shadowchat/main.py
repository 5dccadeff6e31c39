"""
Shadow Chat - FastAPI Application

익명 채팅방, 메시지 전송/조회, 실시간 피드와 저장소 용량 관리를 담당하는 게이트웨이
"""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

import shadowchat.api as api
from shadowchat.api import include_routers
from shadowchat.core.config import settings
from shadowchat.core.logging import get_logger, setup_logging
from shadowchat.database import init_databases, close_databases
from shadowchat.middleware.error_handler import ErrorHandlerMiddleware, create_http_exception_handler
from shadowchat.middleware.logging_middleware import LoggingMiddleware
from shadowchat.services.cleanup_scheduler import get_cleanup_scheduler

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    # Startup
    setup_logging(Path(settings.log_dir))
    logger.info(f"{settings.app_name} starting up...")

    await init_databases()
    Path(settings.storage_root).mkdir(parents=True, exist_ok=True)

    stop_scheduler = get_cleanup_scheduler().start() if settings.cleanup_enabled else None

    yield

    # Shutdown
    logger.info(f"{settings.app_name} shutting down...")

    if stop_scheduler:
        await stop_scheduler()

    await close_databases()


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    lifespan=lifespan
)

# Middleware (마지막에 추가한 것이 가장 바깥)
app.add_middleware(ErrorHandlerMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(HTTPException, create_http_exception_handler())

# Include routers
include_routers(app, "api", api.__path__)

# 업로드된 첨부파일 공개 URL
app.mount(
    settings.storage_public_url,
    StaticFiles(directory=settings.storage_root, check_dir=False),
    name="storage"
)


@app.get("/")
async def root():
    return {
        "service": settings.app_name,
        "version": settings.version,
        "status": "running"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "shadowchat.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
