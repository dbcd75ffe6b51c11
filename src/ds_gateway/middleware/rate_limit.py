"""Per-user fixed-window rate limiting backed by Redis.

Applied as a route dependency on the mutation endpoints that hit the payment
gateway or the contended listing row:

  - transaction create:  5 req/min/user
  - payment request:    10 req/hour/user
  - bids:               30 req/min/user

Redis logic (key pattern "ratelimit:{group}:{user_id}"):
    count = INCR key
    if count == 1: EXPIRE key window
    if count > limit: raise RateLimitError(retry_after=TTL key)
"""

import logging
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis
from fastapi import Depends

from src.ds_common.errors import RateLimitError
from src.ds_common.redis_client import get_redis
from src.ds_gateway.auth.dependencies import get_current_user
from src.ds_gateway.user.db_models import UserModel

logger = logging.getLogger(__name__)


class RateLimiter:
    def __init__(
        self,
        group: str,
        limit: int,
        window_seconds: int,
        redis_factory: Callable[[], Awaitable[aioredis.Redis]] = get_redis,
    ) -> None:
        self.group = group
        self.limit = limit
        self.window_seconds = window_seconds
        self._redis_factory = redis_factory

    def key_for(self, user_id: str) -> str:
        return f"ratelimit:{self.group}:{user_id}"

    async def hit(self, user_id: str) -> int:
        """Count one request; raise RateLimitError once the window is exhausted."""
        redis = await self._redis_factory()
        key = self.key_for(user_id)
        count = int(await redis.incr(key))
        if count == 1:
            await redis.expire(key, self.window_seconds)
        if count > self.limit:
            ttl = int(await redis.ttl(key))
            # ttl is -1 if the EXPIRE after the first INCR was lost
            if ttl < 0:
                await redis.expire(key, self.window_seconds)
                ttl = self.window_seconds
            logger.info("Rate limit hit: group=%s user=%s count=%d", self.group, user_id, count)
            raise RateLimitError(retry_after=ttl)
        return count

    async def __call__(
        self, current_user: UserModel = Depends(get_current_user)
    ) -> None:
        await self.hit(str(current_user.id))


transaction_create_limit = RateLimiter("transaction_create", limit=5, window_seconds=60)
payment_request_limit = RateLimiter("payment_request", limit=10, window_seconds=3600)
bid_limit = RateLimiter("bid", limit=30, window_seconds=60)
