"""Redis-backed alias cache.

Implements the :class:`~shortlink.interfaces.AliasCache` protocol. Keys are
namespaced with a prefix (``url:`` by default) and every write applies the
configured TTL, so callers never pass one.

Reply Translation
=================
::
    GET    -> None      ──▶ CacheKeyNotFoundError
    EXPIRE -> False/0   ──▶ CacheKeyNotFoundError
    DEL    -> 0         ──▶ CacheKeyNotFoundError
    RedisError/OSError  ──▶ CacheUnavailableError
    empty key           ──▶ InvalidInputError
"""

import redis.asyncio as redis
from redis.exceptions import RedisError

from shortlink.errors import CacheKeyNotFoundError, CacheUnavailableError, InvalidInputError

__all__ = ["RedisAliasCache"]


class RedisAliasCache:
    """TTL cache of alias -> target on top of a shared ``redis.asyncio`` client.

    Args:
        client: Redis client created with ``decode_responses=True``.
        ttl_seconds: Lifetime applied on every ``set`` and ``expire``.
        key_prefix: Namespace prepended to every alias.
    """

    def __init__(self, client: redis.Redis, ttl_seconds: int, key_prefix: str = "url:") -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self._client = client
        self._ttl = ttl_seconds
        self._prefix = key_prefix

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def _key(self, key: str) -> str:
        if not key:
            raise InvalidInputError("cache key must not be empty")
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> str:
        cache_key = self._key(key)
        try:
            value = await self._client.get(cache_key)
        except (RedisError, OSError) as exc:
            raise CacheUnavailableError(f"cache get failed: {exc}", alias=key) from exc
        if value is None:
            raise CacheKeyNotFoundError(alias=key)
        return value

    async def set(self, key: str, value: str) -> None:
        cache_key = self._key(key)
        try:
            await self._client.set(cache_key, value, ex=self._ttl)
        except (RedisError, OSError) as exc:
            raise CacheUnavailableError(f"cache set failed: {exc}", alias=key) from exc

    async def expire(self, key: str) -> None:
        cache_key = self._key(key)
        try:
            refreshed = await self._client.expire(cache_key, self._ttl)
        except (RedisError, OSError) as exc:
            raise CacheUnavailableError(f"cache expire failed: {exc}", alias=key) from exc
        if not refreshed:
            raise CacheKeyNotFoundError(alias=key)

    async def delete(self, key: str) -> None:
        cache_key = self._key(key)
        try:
            removed = await self._client.delete(cache_key)
        except (RedisError, OSError) as exc:
            raise CacheUnavailableError(f"cache delete failed: {exc}", alias=key) from exc
        if not removed:
            raise CacheKeyNotFoundError(alias=key)

    async def close(self) -> None:
        # The client and its pool are owned by shortlink.redis.
        return None
