"""Redis client factory — used for rate-limit counters only.

Escrow state (listings, transactions, payments) never lives in Redis;
PostgreSQL is the single source of truth. Losing Redis loses nothing but
the current rate-limit windows.
"""

import redis.asyncio as aioredis

from config.settings import settings

_redis_pool: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """Get or create the shared Redis client (lazily connects)."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=settings.REDIS_CONNECT_TIMEOUT_SECONDS,
        )
    return _redis_pool


async def ping_redis() -> None:
    """Fail fast at startup; from_url() alone never opens a connection."""
    await (await get_redis()).ping()


async def close_redis() -> None:
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None
