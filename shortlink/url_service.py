"""Alias Service Layer - Resolution and Allocation Engine

This module holds the core business logic of shortlink: resolving aliases
through a cache-aside read path, allocating random aliases, saving explicit
aliases and removing mappings.

Architecture Overview
=====================
::
    ┌─────────────────────────────────────────────────────────────┐
    │                     AliasService                            │
    │  ┌─────────────────┐  ┌─────────────────┐  ┌──────────────┐ │
    │  │    resolve()     │  │   allocate()    │  │   remove()   │ │
    │  │ cache → store   │  │ store.save_     │  │ store → cache│ │
    │  │ → bg populate   │  │ generated()     │  │              │ │
    │  └─────────────────┘  └─────────────────┘  └──────────────┘ │
    └─────────────────────────────────────────────────────────────┘
                │                                        │
                ▼                                        ▼
    ┌─────────────────┐                      ┌─────────────────┐
    │   AliasStore    │                      │   AliasCache    │
    │ (authoritative) │                      │   (advisory)    │
    └─────────────────┘                      └─────────────────┘

Resolve Flow
============
::
    ┌─────────────┐
    │ cache.get    │
    └──────┬──────┘
    HIT?   │
    ┌──────┴──────────────┐
    │ YES                  │ MISS / cache error
    ▼                      ▼
┌─────────────┐     ┌─────────────┐
│ cache.expire│     │ store.get   │──── NOT_FOUND ───▶ NotFoundError
│ (errors     │     └──────┬──────┘
│  logged)    │            ▼
└──────┬──────┘     ┌─────────────┐
       │            │ spawn task: │
       │            │ cache.set   │  (own deadline, result discarded)
       │            │ under       │
       │            │ timeout     │
       │            └──────┬──────┘
       ▼                   ▼
       └──────┬────────────┘
              ▼
       return target

Key Behaviours
===============
- The cache is advisory: no cache failure ever fails a resolve. Correctness
  only depends on the store.
- Population runs in a detached task with its own ``asyncio.timeout``; the
  caller neither waits for it nor can cancel it.
- Only NOT_FOUND, ALREADY_EXISTS, MAX_RETRIES_EXCEEDED and INVALID_INPUT are
  surfaced with meaning. Unexpected exceptions are wrapped as InternalError.
- The service holds no locks. The set of in-flight population tasks exists
  only so the event loop keeps them alive until they finish.

Example Usage
=============
```python
service = AliasService(store, cache, populate_timeout=1.0)
alias = await service.allocate("https://example.com", 6, 10)
target = await service.resolve(alias)
await service.remove(alias)
```
"""

import asyncio
import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager

from prometheus_client import Counter, Histogram

from shortlink.allocator import validate_allocation_args
from shortlink.config import Settings
from shortlink.enums import CacheStatus, ErrorKind, RequestStatus
from shortlink.errors import (
    CacheUnavailableError,
    InternalError,
    InvalidInputError,
    NotFoundError,
    ShortlinkError,
    error_kind,
)
from shortlink.interfaces import AliasCache, AliasStore

__all__ = ["AliasService", "DEFAULT_POPULATE_TIMEOUT_SECONDS"]

DEFAULT_POPULATE_TIMEOUT_SECONDS = 1.0


# ============================================================================
# PROMETHEUS METRICS
# ============================================================================

RESOLVE_REQUESTS_TOTAL = Counter(
    "shortlink_resolve_requests_total",
    "Total alias resolve requests",
    ["status", "cache_hit"],
)
RESOLVE_DURATION = Histogram(
    "shortlink_resolve_duration_seconds",
    "Time taken to resolve an alias",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25],
)
ALIAS_WRITES_TOTAL = Counter(
    "shortlink_alias_writes_total",
    "Alias creation and removal requests",
    ["operation", "status"],
)
CACHE_DEGRADED_TOTAL = Counter(
    "shortlink_cache_degraded_total",
    "Cache failures absorbed by the service",
    ["operation"],
)
CACHE_POPULATION_FAILURES_TOTAL = Counter(
    "shortlink_cache_population_failures_total",
    "Background cache populations that did not complete",
    ["reason"],
)


class AliasService:
    """Caller-facing facade over an injected store and cache.

    One instance is shared by every request; it carries no per-request state.

    Args:
        store: Authoritative mapping with a unique alias constraint.
        cache: Volatile TTL cache, used only through single-key operations.
        populate_timeout: Wall-clock budget of each background cache write.
        logger: Logger or adapter; defaults to the ``shortlink`` logger.
    """

    def __init__(
        self,
        store: AliasStore,
        cache: AliasCache,
        *,
        populate_timeout: float = DEFAULT_POPULATE_TIMEOUT_SECONDS,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        if populate_timeout <= 0:
            raise ValueError(f"populate_timeout must be positive, got {populate_timeout}")
        self._store = store
        self._cache = cache
        self._populate_timeout = populate_timeout
        self._logger = logger or logging.getLogger("shortlink")
        self._population_tasks: set[asyncio.Task[None]] = set()

    @classmethod
    def from_settings(
        cls,
        store: AliasStore,
        cache: AliasCache,
        settings: Settings,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> "AliasService":
        return cls(store, cache, populate_timeout=settings.CACHE_SET_TIMEOUT_SECONDS, logger=logger)

    @property
    def pending_populations(self) -> int:
        return len(self._population_tasks)

    # ========================================================================
    # PUBLIC API METHODS
    # ========================================================================

    async def resolve(self, alias: str) -> str:
        """Return the target URL of ``alias``.

        Args:
            alias: Non-empty alias to look up.

        Returns:
            str: The target, taken from the cache on a hit or from the store.

        Raises:
            InvalidInputError: Empty alias.
            NotFoundError: The store has no mapping for the alias.
            InternalError: Store failure.
        """
        if not alias:
            raise InvalidInputError("alias must not be empty")

        start_time = time.perf_counter()

        cached = await self._lookup_from_cache(alias)
        if cached is not None:
            await self._refresh_ttl(alias)
            RESOLVE_DURATION.observe(time.perf_counter() - start_time)
            RESOLVE_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS, cache_hit=CacheStatus.HIT).inc()
            self._logger.debug(f"Cache hit for {alias}")
            return cached

        try:
            with self._opaque_failures("resolve", alias):
                target = await self._store.get(alias)
        except ShortlinkError as exc:
            RESOLVE_DURATION.observe(time.perf_counter() - start_time)
            RESOLVE_REQUESTS_TOTAL.labels(status=RequestStatus.from_kind(exc.kind), cache_hit=CacheStatus.MISS).inc()
            raise

        self._schedule_population(alias, target)

        RESOLVE_DURATION.observe(time.perf_counter() - start_time)
        RESOLVE_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS, cache_hit=CacheStatus.MISS).inc()
        return target

    async def allocate(self, target: str, length: int, max_attempts: int) -> str:
        """Bind ``target`` to a fresh random alias of exactly ``length`` characters.

        Raises:
            InvalidInputError: Empty target, non-positive length or budget.
            MaxRetriesExceededError: Every candidate was already taken.
            InternalError: Store failure.
        """
        validate_allocation_args(target, length, max_attempts)

        with self._track_write("allocate"), self._opaque_failures("allocate", None):
            alias = await self._store.save_generated(target, length, max_attempts)

        self._logger.info(f"Allocated alias {alias} for {target}")
        return alias

    async def save(self, target: str, alias: str) -> None:
        """Bind ``target`` to the caller-chosen ``alias``.

        Raises:
            InvalidInputError: Empty target or alias.
            AlreadyExistsError: The alias is taken.
            InternalError: Store failure.
        """
        if not target:
            raise InvalidInputError("url must not be empty")
        if not alias:
            raise InvalidInputError("alias must not be empty")

        with self._track_write("save"), self._opaque_failures("save", alias):
            await self._store.save(target, alias)

        self._logger.info(f"Saved alias {alias} for {target}")

    async def remove(self, alias: str) -> None:
        """Delete the mapping of ``alias`` from the store, then from the cache.

        A missing cache entry is not an error. Any other cache failure is
        raised as CacheUnavailableError after the store row is already gone;
        the stale entry then lives at most until its TTL runs out.

        Raises:
            InvalidInputError: Empty alias.
            NotFoundError: No row was deleted.
            InternalError: Store failure, or cache failure after the delete.
        """
        if not alias:
            raise InvalidInputError("alias must not be empty")

        with self._track_write("remove"):
            with self._opaque_failures("remove", alias):
                rows = await self._store.delete(alias)
            if rows == 0:
                raise NotFoundError(alias=alias)

            self._logger.info(f"Deleted alias {alias} from store")

            try:
                await self._cache.delete(alias)
            except Exception as exc:
                if error_kind(exc) is ErrorKind.NOT_FOUND:
                    self._logger.debug(f"Alias {alias} already absent from cache")
                    return
                CACHE_DEGRADED_TOTAL.labels(operation="delete").inc()
                self._logger.error(f"Cache delete failed for {alias}: {exc}")
                raise CacheUnavailableError(f"cache delete failed: {exc}", alias=alias) from exc

    async def drain(self) -> None:
        """Wait for every in-flight background population to finish."""
        while self._population_tasks:
            await asyncio.gather(*list(self._population_tasks), return_exceptions=True)

    # ========================================================================
    # PRIVATE HELPER METHODS
    # ========================================================================

    async def _lookup_from_cache(self, alias: str) -> str | None:
        try:
            return await self._cache.get(alias)
        except Exception as exc:
            if error_kind(exc) is not ErrorKind.NOT_FOUND:
                CACHE_DEGRADED_TOTAL.labels(operation="get").inc()
                self._logger.warning(f"Cache get failed for {alias}, falling back to store: {exc}")
            return None

    async def _refresh_ttl(self, alias: str) -> None:
        try:
            await self._cache.expire(alias)
        except Exception as exc:
            CACHE_DEGRADED_TOTAL.labels(operation="expire").inc()
            self._logger.warning(f"Cache TTL refresh failed for {alias}: {exc}")

    def _schedule_population(self, alias: str, target: str) -> None:
        task = asyncio.create_task(self._populate_cache(alias, target), name=f"shortlink-populate:{alias}")
        self._population_tasks.add(task)
        task.add_done_callback(self._population_tasks.discard)

    async def _populate_cache(self, alias: str, target: str) -> None:
        try:
            async with asyncio.timeout(self._populate_timeout):
                await self._cache.set(alias, target)
        except TimeoutError:
            CACHE_POPULATION_FAILURES_TOTAL.labels(reason="timeout").inc()
            self._logger.error(f"Cache population timed out after {self._populate_timeout}s for {alias}")
        except Exception as exc:
            CACHE_POPULATION_FAILURES_TOTAL.labels(reason=error_kind(exc)).inc()
            self._logger.error(f"Cache population failed for {alias}: {exc}")
        else:
            self._logger.debug(f"Cached {alias} -> {target}")

    @contextmanager
    def _opaque_failures(self, operation: str, alias: str | None) -> Iterator[None]:
        try:
            yield
        except ShortlinkError:
            raise
        except Exception as exc:
            self._logger.exception(f"Unexpected store failure during {operation} (alias={alias})")
            raise InternalError(alias=alias) from exc

    @contextmanager
    def _track_write(self, operation: str) -> Iterator[None]:
        try:
            yield
        except ShortlinkError as exc:
            ALIAS_WRITES_TOTAL.labels(operation=operation, status=RequestStatus.from_kind(exc.kind)).inc()
            log = self._logger.error if exc.kind is ErrorKind.INTERNAL else self._logger.info
            log(f"{operation} failed: {exc}")
            raise
        else:
            ALIAS_WRITES_TOTAL.labels(operation=operation, status=RequestStatus.SUCCESS).inc()
