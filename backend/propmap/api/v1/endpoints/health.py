"""
Liveness and readiness endpoints.

Readiness reads one row id from ``gov_properties`` rather than running a bare
``SELECT 1``, so a database without the migrated table reports not ready.
"""

import logging
import time
from typing import Any, Awaitable, Callable, Dict

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from propmap.core.database import DRIVER_CONNECTION_ERRORS, get_db
from propmap.core.redis import STATE_STORE_ERRORS, get_redis
from propmap.models.properties import GovProperty

logger = logging.getLogger(__name__)

router = APIRouter()

Check = Dict[str, Any]


async def _timed(name: str, call: Callable[[], Awaitable[Any]], errors) -> Check:
    start = time.perf_counter()
    try:
        await call()
    except errors as exc:
        logger.warning("readiness_check_failed", extra={"check": name, "error": str(exc)})
        return {"status": "fail", "reason": str(exc)}
    return {"status": "pass", "latency_ms": round((time.perf_counter() - start) * 1000, 1)}


async def _check_database(db: AsyncSession) -> Check:
    async def read_one_id():
        result = await db.execute(select(GovProperty.id).limit(1))
        result.scalar_one_or_none()

    return await _timed("database", read_one_id, (SQLAlchemyError,) + DRIVER_CONNECTION_ERRORS)


async def _check_redis(redis: Redis) -> Check:
    return await _timed("redis", redis.ping, STATE_STORE_ERRORS)


@router.get("/liveness", status_code=status.HTTP_200_OK)
async def liveness() -> Dict[str, str]:
    return {"status": "alive"}


@router.get("/readiness")
async def readiness(
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis),
):
    """503 unless both the property table and the state store answer."""
    checks = {
        "database": await _check_database(db),
        "redis": await _check_redis(redis),
    }
    ready = all(check["status"] == "pass" for check in checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if ready else "not_ready", "checks": checks},
    )
