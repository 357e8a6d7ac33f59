# deckshare/routers/health.py
# Health check endpoints for monitoring and load balancers
# PostgreSQL is required; Redis only backs caching and jobs, so losing it degrades

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict

from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from sqlalchemy import text

from deckshare.db.base import get_session
from deckshare.utils import cache

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

PROBE_TIMEOUT_SECONDS = 3.0


class HealthStatus(BaseModel):
    status: str  # "healthy", "degraded", "unhealthy"
    timestamp: float
    version: str = "1.0.0"
    checks: Dict[str, Dict[str, Any]] = {}


class ComponentHealth(BaseModel):
    status: str
    latency_ms: float = 0.0
    message: str = ""


async def _probe(name: str, check: Callable[[], Awaitable[bool]], timeout: float) -> ComponentHealth:
    """Run one dependency check and time it. Any error marks the component unhealthy."""
    start = time.monotonic()
    try:
        ok = await asyncio.wait_for(check(), timeout=timeout)
        message = "" if ok else f"{name} returned an unexpected result"
    except asyncio.TimeoutError:
        ok, message = False, f"{name} timeout"
    except Exception as e:
        logger.error(f"{name} health check failed: {e}")
        ok, message = False, f"{name} error: {type(e).__name__}"
    return ComponentHealth(
        status="healthy" if ok else "unhealthy",
        latency_ms=round((time.monotonic() - start) * 1000, 2),
        message=message,
    )


async def _select_one() -> bool:
    async with get_session() as session:
        result = await session.execute(text("SELECT 1"))
        return result.scalar() == 1


async def check_database_health(timeout: float = PROBE_TIMEOUT_SECONDS) -> ComponentHealth:
    return await _probe("Database", _select_one, timeout)


async def check_redis_health(timeout: float = PROBE_TIMEOUT_SECONDS) -> ComponentHealth:
    return await _probe("Redis", cache.ping, timeout)


@router.get("/health", response_model=HealthStatus)
async def health_check(response: Response):
    database, redis = await asyncio.gather(check_database_health(), check_redis_health())

    if database.status == "unhealthy":
        overall = "unhealthy"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif redis.status == "unhealthy":
        overall = "degraded"
    else:
        overall = "healthy"

    return HealthStatus(
        status=overall,
        timestamp=time.time(),
        checks={"database": database.model_dump(), "redis": redis.model_dump()},
    )


@router.get("/health/live")
async def liveness_probe():
    """Process is up; no dependency is touched."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_probe(response: Response):
    database = await check_database_health()
    if database.status == "unhealthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not_ready", "reason": database.message}
    return {"status": "ready"}
