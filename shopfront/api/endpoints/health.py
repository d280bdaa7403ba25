"""Health check endpoints."""
import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from shopfront.core.config import settings
from shopfront.core.database import get_db
from shopfront.core.redis import get_redis, RedisClient

router = APIRouter()
logger = structlog.get_logger()


@router.get("/health")
async def health_check():
    """Basic health check."""
    return {"status": "healthy", "version": settings.APP_VERSION}


@router.get("/health/ready")
async def readiness_check(
    db: AsyncSession = Depends(get_db),
    redis: RedisClient = Depends(get_redis),
):
    """
    Readiness check - verify the database and Redis are reachable.
    Used by Kubernetes readiness probe.
    """
    checks = {
        "database": "unknown",
        "redis": "unknown",
    }

    # Check database
    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except SQLAlchemyError as e:
        checks["database"] = f"unhealthy: {str(e)}"

    # Check Redis
    try:
        if await redis.ping():
            checks["redis"] = "healthy"
        else:
            checks["redis"] = "unhealthy: not connected"
    except RedisError as e:
        checks["redis"] = f"unhealthy: {str(e)}"

    # Overall status
    is_healthy = all(status == "healthy" for status in checks.values())
    if not is_healthy:
        logger.warning("readiness_check_failed", checks=checks)

    return JSONResponse(
        status_code=200 if is_healthy else 503,
        content={
            "status": "healthy" if is_healthy else "unhealthy",
            "checks": checks,
        },
    )


@router.get("/health/live")
async def liveness_check():
    """
    Liveness check - verify application is running.
    Used by Kubernetes liveness probe.
    """
    return {"status": "alive"}
