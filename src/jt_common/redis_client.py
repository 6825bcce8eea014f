"""Redis client factory: backs the shared stock reservation store.

Only connected when STOCK_STORE_BACKEND=redis; the in-memory store never
touches it.
"""

import logging

import redis.asyncio as aioredis

from config.settings import settings

logger = logging.getLogger(__name__)

_redis_pool: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """Get or create the Redis connection pool.

    The first call pings the server, so a misconfigured REDIS_URL fails at
    startup instead of on the first stock lock.
    """
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        pool = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
        await pool.ping()
        logger.info("Connected to Redis for stock reservations")
        _redis_pool = pool
    return _redis_pool


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None
