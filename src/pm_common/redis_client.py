"""Shared async Redis client.

Only the faucet rate limiter talks to Redis; balances and positions live in
the relational store. The client is created lazily so that deployments with
FAUCET_RATE_LIMIT_PER_MINUTE=0 never open a connection.
"""

import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from config.settings import settings

logger = logging.getLogger(__name__)

_client: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    global _client  # noqa: PLW0603
    if _client is None:
        _client = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    return _client


async def ping_redis() -> bool:
    """Startup probe. A failure is logged, not raised: only the faucet depends on Redis."""
    try:
        return bool(await (await get_redis()).ping())
    except RedisError:
        logger.warning("Redis unreachable at %s; faucet requests will fail", settings.REDIS_URL)
        return False


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None
