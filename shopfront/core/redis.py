"""
Redis connection and request throttling helpers.
"""
from typing import Optional
from redis import asyncio as aioredis
from shopfront.core.config import settings


class RedisClient:
    """Async Redis client wrapper used for fixed-window counters."""

    def __init__(self):
        self.redis: Optional[aioredis.Redis] = None

    async def connect(self):
        """Establish Redis connection."""
        self.redis = await aioredis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            max_connections=10,
        )

    async def disconnect(self):
        """Close Redis connection."""
        if self.redis:
            await self.redis.close()

    async def ping(self) -> bool:
        """Check that the server answers."""
        if not self.redis:
            return False
        return await self.redis.ping()

    async def incr(self, key: str, amount: int = 1) -> int:
        """Increment counter."""
        if not self.redis:
            return 0
        return await self.redis.incrby(key, amount)

    async def expire(self, key: str, seconds: int) -> bool:
        """Set expiration on key."""
        if not self.redis:
            return False
        return await self.redis.expire(key, seconds)

    async def hit(self, key: str, window_seconds: int) -> int:
        """
        Count one hit in a fixed window.

        Args:
            key: Counter key
            window_seconds: Window length; the counter expires with it

        Returns:
            Number of hits in the current window, 0 when Redis is unavailable
        """
        count = await self.incr(key)
        if count == 1:
            await self.expire(key, window_seconds)
        return count


# Global Redis client instance
redis_client = RedisClient()


async def get_redis() -> RedisClient:
    """Dependency for getting Redis client."""
    return redis_client
