"""Fixed-window rate limiting backed by Redis.

Used for the faucet endpoint: at most FAUCET_RATE_LIMIT_PER_MINUTE credits
per address per minute. A limit of 0 disables the check entirely (no Redis
round-trip).

Redis logic:
    count = INCR key
    if count == 1: EXPIRE key window
    if count > limit: reject
"""

import logging
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis

from config.settings import settings
from src.pm_common.errors import RateLimitError
from src.pm_common.redis_client import get_redis

logger = logging.getLogger(__name__)


class FixedWindowRateLimiter:
    def __init__(
        self,
        group: str,
        limit: int,
        window_seconds: int = 60,
        redis_factory: Callable[[], Awaitable[aioredis.Redis]] = get_redis,
    ) -> None:
        self._group = group
        self._limit = limit
        self._window = window_seconds
        self._redis_factory = redis_factory

    @property
    def enabled(self) -> bool:
        return self._limit > 0

    async def hit(self, subject: str) -> int:
        """Count one request for `subject`; raise RateLimitError past the limit."""
        if not self.enabled:
            return 0
        redis = await self._redis_factory()
        key = f"ratelimit:{subject}:{self._group}"
        count = int(await redis.incr(key))
        if count == 1:
            await redis.expire(key, self._window)
        if count > self._limit:
            logger.warning("Rate limit hit: group=%s subject=%s count=%d", self._group, subject, count)
            raise RateLimitError()
        return count


_faucet_limiter = FixedWindowRateLimiter("faucet", settings.FAUCET_RATE_LIMIT_PER_MINUTE)


def get_faucet_limiter() -> FixedWindowRateLimiter:
    """FastAPI dependency (tests override it)."""
    return _faucet_limiter
