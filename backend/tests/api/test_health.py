"""
Tests for health endpoints.
"""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from propmap.main import app
from propmap.core.database import get_db
from propmap.core.redis import get_redis

READINESS_URL = "/api/v1/health/readiness"


async def _readiness_with(api_client, dependency, override):
    original = app.dependency_overrides.get(dependency)
    app.dependency_overrides[dependency] = override
    try:
        return await api_client.get(READINESS_URL)
    finally:
        app.dependency_overrides[dependency] = original


@pytest.mark.asyncio
async def test_liveness_endpoint(api_client):
    response = await api_client.get("/api/v1/health/liveness")
    assert response.status_code == 200
    assert response.json() == {"status": "alive"}


@pytest.mark.asyncio
async def test_readiness_healthy(api_client):
    response = await api_client.get(READINESS_URL)
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ready"
    assert payload["checks"]["database"]["status"] == "pass"
    assert payload["checks"]["redis"]["status"] == "pass"
    assert payload["checks"]["database"]["latency_ms"] >= 0


@pytest.mark.asyncio
async def test_readiness_database_failure(api_client):
    class FailingSession:
        async def execute(self, *_args, **_kwargs):
            raise OperationalError("SELECT", {}, Exception("database timeout"))

    async def failing_db():
        yield FailingSession()

    response = await _readiness_with(api_client, get_db, failing_db)

    assert response.status_code == 503
    payload = response.json()
    assert payload["status"] == "not_ready"
    assert payload["checks"]["database"]["status"] == "fail"
    assert "database timeout" in payload["checks"]["database"]["reason"]
    assert payload["checks"]["redis"]["status"] == "pass"


@pytest.mark.asyncio
async def test_readiness_requires_the_property_table(api_client):
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    unmigrated = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def unmigrated_db():
        async with unmigrated() as session:
            yield session

    try:
        response = await _readiness_with(api_client, get_db, unmigrated_db)
    finally:
        await engine.dispose()

    assert response.status_code == 503
    assert "gov_properties" in response.json()["checks"]["database"]["reason"]


@pytest.mark.asyncio
async def test_readiness_redis_failure(api_client):
    class FailingRedis:
        async def ping(self):
            raise RedisConnectionError("redis unreachable")

    async def failing_redis():
        return FailingRedis()

    response = await _readiness_with(api_client, get_redis, failing_redis)

    assert response.status_code == 503
    payload = response.json()
    assert payload["status"] == "not_ready"
    assert payload["checks"]["redis"] == {"status": "fail", "reason": "redis unreachable"}
