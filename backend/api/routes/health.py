"""Health check endpoints."""

import asyncio
import logging
from datetime import UTC, datetime

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, HTTPException
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.config import get_settings
from infrastructure.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])
settings = get_settings()


async def _ping_redis(timeout: float) -> None:
    client = aioredis.from_url(settings.redis_url)
    try:
        await asyncio.wait_for(client.ping(), timeout=timeout)
    finally:
        await client.aclose()


async def _ping_db(db: AsyncSession) -> None:
    result = await asyncio.wait_for(db.execute(text("SELECT 1")), timeout=5.0)
    result.scalar()


@router.get("/health")
async def health_check():
    """Basic health check."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/health/db")
async def health_check_db(db: AsyncSession = Depends(get_db)):
    """Health check with database connectivity."""
    try:
        await _ping_db(db)
        db_status = "connected"
    except TimeoutError:
        logger.error("Health check DB timeout")
        db_status = "error: database timeout"
    except SQLAlchemyError as e:
        logger.error("Health check DB error: %s", e)
        db_status = "error: database check failed"

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "app": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "database": db_status,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/health/redis")
async def health_redis():
    """Check Redis connectivity."""
    try:
        await _ping_redis(timeout=3.0)
    except TimeoutError:
        raise HTTPException(status_code=503, detail="Redis timeout")
    except (RedisError, OSError) as e:
        logger.warning("Health check Redis error: %s", e)
        raise HTTPException(status_code=503, detail="Redis unavailable")
    return {"status": "healthy", "service": "redis"}


@router.get("/health/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """
    Readiness probe.

    The database is required. Redis only backs webhook deduplication, so
    losing it is reported as degraded.
    """
    try:
        await _ping_db(db)
        db_ok = True
    except (TimeoutError, SQLAlchemyError) as e:
        logger.error("Readiness DB check failed: %s", e)
        db_ok = False

    try:
        await _ping_redis(timeout=2.0)
        redis_ok = True
    except (TimeoutError, RedisError, OSError) as e:
        logger.warning("Readiness Redis check failed: %s", e)
        redis_ok = False

    return {
        "ready": db_ok,
        "database": "ok" if db_ok else "unavailable",
        "redis": "ok" if redis_ok else "degraded",
    }


@router.get("/health/live")
async def liveness_check():
    """Liveness probe."""
    return {"alive": True}
