"""
Pytest configuration and fixtures.
"""
from typing import AsyncGenerator, Callable, List

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from propmap.core.database import Base
from propmap.models import GovProperty


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """In-memory SQLite database with the gov_properties table."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    yield factory
    await engine.dispose()


@pytest.fixture
def seed(session_factory) -> Callable:
    """Insert GovProperty rows into the test database."""

    async def _seed(rows: List[GovProperty]) -> None:
        async with session_factory() as session:
            session.add_all(rows)
            await session.commit()

    return _seed


@pytest_asyncio.fixture
async def api_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTPX AsyncClient configured against the FastAPI app with test overrides."""
    from propmap.main import app
    from propmap.core.database import get_db
    from propmap.core.redis import get_redis
    from propmap.core.rate_limiter import limiter

    class StubRedis:
        async def ping(self):
            return True

    async def override_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def override_redis():
        return StubRedis()

    limiter.reset()
    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_redis] = override_redis
    app.state.test_db_override = override_db
    app.state.test_redis_override = override_redis

    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client
    finally:
        app.dependency_overrides.pop(get_db, None)
        app.dependency_overrides.pop(get_redis, None)
        if hasattr(app.state, "test_db_override"):
            delattr(app.state, "test_db_override")
        if hasattr(app.state, "test_redis_override"):
            delattr(app.state, "test_redis_override")
