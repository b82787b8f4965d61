"""Health check endpoints.

``/health/ready`` is the probe for load balancers: the database is
required, Redis is reported but optional because the cache and the
sweep limiter degrade without it.
"""

import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from agencydesk.core.config import settings
from agencydesk.db.redis import get_redis
from agencydesk.db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


async def _database_status(db: AsyncSession) -> str | None:
    """None when the database answers, else the error text."""
    try:
        await db.scalar(text("SELECT 1"))
    except Exception as e:
        logger.exception("Database health check failed")
        return str(e)
    return None


async def _redis_status() -> str | None:
    try:
        redis = await get_redis()
        await redis.ping()
    except Exception as e:
        logger.exception("Redis health check failed")
        return str(e)
    return None


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Liveness: the process is up."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }


@router.get("/health/db")
async def health_check_db(response: Response, db: AsyncSession = Depends(get_db)) -> dict[str, str]:
    error = await _database_status(db)
    if error:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "unhealthy", "database": error}
    return {"status": "healthy", "database": "connected"}


@router.get("/health/redis")
async def health_check_redis(response: Response) -> dict[str, str]:
    error = await _redis_status()
    if error:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "unhealthy", "redis": error}
    return {"status": "healthy", "redis": "connected"}


@router.get("/health/ready")
async def readiness_check(response: Response, db: AsyncSession = Depends(get_db)) -> dict[str, str]:
    """Readiness: database reachable. A Redis outage only degrades the status."""
    db_error = await _database_status(db)
    redis_error = await _redis_status()

    if db_error:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        overall = "unhealthy"
    elif redis_error:
        overall = "degraded"
    else:
        overall = "healthy"

    return {
        "status": overall,
        "database": "connected" if not db_error else "unavailable",
        "redis": "connected" if not redis_error else "unavailable",
    }
