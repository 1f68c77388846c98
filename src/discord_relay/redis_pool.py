"""Redis connection pool.

Learn: Redis only backs the HTTP rate limiter. It is optional — when
RELAY_REDIS_URL is empty or the server is down, init_redis() fails,
the lifespan logs a warning and everything else keeps working.
"""

from typing import Optional

import redis.asyncio as aioredis

from discord_relay.config import settings

# Global Redis connection pool (initialized in lifespan)
_redis: Optional[aioredis.Redis] = None


async def init_redis() -> aioredis.Redis:
    """Initialize the Redis connection pool."""
    global _redis
    if not settings.redis_url:
        raise RuntimeError("RELAY_REDIS_URL is empty")
    client = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    # Verify connection
    try:
        await client.ping()
    except Exception:
        await client.aclose()
        raise
    _redis = client
    return _redis


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    """Get the Redis connection (must be initialized first)."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis
