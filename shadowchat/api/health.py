from datetime import datetime

from fastapi import APIRouter, HTTPException

from shadowchat.core.config import settings
from shadowchat.database import check_database_health

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check():
    """Application health check endpoint"""
    try:
        db_health = await check_database_health()

        overall_status = "healthy" if db_health["overall"] else "unhealthy"

        return {
            "status": overall_status,
            "timestamp": datetime.utcnow(),
            "databases": {
                "store": "connected" if db_health["store"] else "disconnected",
                "redis": "connected" if db_health["redis"] else "disconnected"
            },
            "service": settings.app_name
        }
    except Exception as e:
        raise HTTPException(
            status_code=503,
            detail=f"Health check failed: {str(e)}"
        )


@router.get("/health/ready")
async def readiness_check():
    """Readiness probe endpoint"""
    db_health = await check_database_health()

    if not db_health["overall"]:
        raise HTTPException(
            status_code=503,
            detail="Service not ready - database connections failed"
        )

    return {"status": "ready"}


@router.get("/health/live")
async def liveness_check():
    """Liveness probe endpoint"""
    return {"status": "alive", "timestamp": datetime.utcnow()}
