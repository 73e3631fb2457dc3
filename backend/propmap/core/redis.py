"""
Redis client configuration and the Redis-backed UI state port.
"""

from typing import Optional

from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError

from propmap.core.config import settings
from propmap.core.metrics import record_state_operation

redis_client: Optional[Redis] = None

# Failures a state port may raise when its backing store is unreachable.
STATE_STORE_ERRORS = (RedisError, OSError)


async def get_redis() -> Redis:
    """Get Redis client instance."""
    global redis_client
    if redis_client is None:
        redis_client = from_url(
            str(settings.REDIS_URL),
            encoding="utf-8",
            decode_responses=True,
        )
    return redis_client


async def close_redis():
    """Close Redis connection."""
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None


class RedisStatePort:
    """
    Persist serialized UI state entries in Redis.

    Keys are namespaced with ``namespace`` so several map clients can share one
    Redis instance. Entries never expire; ``clear`` removes them.
    """

    def __init__(self, redis: Redis, namespace: str = "default"):
        self.redis = redis
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"state:{self.namespace}:{key}"

    async def load(self, key: str) -> Optional[str]:
        """Return the raw stored value for ``key`` or None."""
        value = await self.redis.get(self._key(key))
        record_state_operation("hit" if value is not None else "miss")
        return value

    async def save(self, key: str, value: str) -> None:
        """Store the raw serialized value for ``key``."""
        await self.redis.set(self._key(key), value)
        record_state_operation("save")

    async def clear(self, key: str) -> None:
        """Remove ``key`` from the store."""
        if await self.redis.delete(self._key(key)):
            record_state_operation("clear")
