"""Redis client management for the shortlink cache.

This module owns the process-wide Redis connection pool. The alias service
never reaches for it directly: the bootstrap layer wraps the client in a
:class:`~shortlink.cache.RedisAliasCache` and injects that.

Flow Diagram: Redis Startup
=============================
::
    ┌─────────────┐
    │ get_redis()  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check global │
    │ client var   │
    └──────┬──────┘
    EXISTS?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Create  │  │ Return  │
│ client  │  │ existing│
└────┬────┘  └─────────┘
     ▼
┌─────────────┐
│ PING up to   │
│ N times      │
└─────────────┘

Key Behaviours
===============
- The client is created lazily on first access and reused afterwards.
- Startup pings the server a bounded number of times before giving up.
- UTF-8 encoding with decode_responses so cached targets come back as str.

Functions:
    get_redis():  Shared client, pinged on creation.
    ping_with_retries():  Bounded connectivity check.
    close_redis():  Cleanup function for shutdown.
"""

import asyncio
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from shortlink.config import get_settings

__all__ = ["close_redis", "get_redis", "ping_with_retries"]

logger = logging.getLogger("shortlink.redis")

redis_client: redis.Redis | None = None


async def ping_with_retries(client: redis.Redis, retries: int, delay_seconds: float) -> None:
    """PING ``client`` until it answers or ``retries`` attempts fail.

    Raises:
        ConnectionError: The server never answered.
    """
    last_error: Exception | None = None
    for attempt in range(1, retries + 1):
        try:
            await client.ping()
            return
        except (RedisError, OSError) as exc:
            last_error = exc
            logger.error(f"Redis ping failed ({retries - attempt} attempts left): {exc}")
            if attempt < retries:
                await asyncio.sleep(delay_seconds)
    raise ConnectionError(f"Redis did not answer after {retries} pings") from last_error


async def get_redis() -> redis.Redis:
    global redis_client
    if redis_client is None:
        settings = get_settings()
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
        )
        try:
            await ping_with_retries(client, settings.REDIS_PING_RETRIES, settings.REDIS_PING_DELAY_SECONDS)
        except ConnectionError:
            await client.aclose()
            raise
        redis_client = client
    return redis_client


async def close_redis() -> None:
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None
