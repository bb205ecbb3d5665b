"""Capability protocols consumed by the alias service.

The service depends only on these structural types; the Postgres and Redis
adapters satisfy them, and so do the in-memory doubles used by the tests.
"""

from typing import Protocol, runtime_checkable

__all__ = ["AliasCache", "AliasStore"]


@runtime_checkable
class AliasStore(Protocol):
    """Authoritative alias -> target mapping with a unique alias constraint."""

    async def get(self, alias: str) -> str:
        """Return the target for ``alias``; raise NotFoundError when absent."""
        ...

    async def save(self, target: str, alias: str) -> None:
        """Insert a mapping; raise AlreadyExistsError on a unique violation."""
        ...

    async def save_generated(self, target: str, length: int, max_attempts: int) -> str:
        """Insert under a freshly allocated alias; raise MaxRetriesExceededError when exhausted."""
        ...

    async def delete(self, alias: str) -> int:
        """Delete a mapping and return the number of rows affected."""
        ...

    async def close(self) -> None: ...


@runtime_checkable
class AliasCache(Protocol):
    """Volatile TTL cache. Misses raise CacheKeyNotFoundError."""

    async def get(self, key: str) -> str: ...

    async def set(self, key: str, value: str) -> None: ...

    async def expire(self, key: str) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def close(self) -> None: ...
