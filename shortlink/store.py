"""PostgreSQL-backed alias store.

Implements the :class:`~shortlink.interfaces.AliasStore` protocol on top of the
SQLAlchemy async session factory. Each call borrows one pooled connection for
the duration of a single short transaction.

Error Translation
=================
::
    no row on SELECT            ──▶ NotFoundError
    IntegrityError, SQLSTATE 23505 ──▶ AlreadyExistsError
    any other SQLAlchemyError   ──▶ StoreError (INTERNAL)
    OSError (connect refused…)  ──▶ StoreError (INTERNAL)

Cancellation (``asyncio.CancelledError``) is never caught here: a caller that
goes away aborts the query it was waiting on.
"""

import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shortlink.allocator import AliasAllocator
from shortlink.errors import AlreadyExistsError, NotFoundError, StoreError
from shortlink.models import ShortURL

__all__ = ["PostgresAliasStore", "UNIQUE_VIOLATION"]

UNIQUE_VIOLATION = "23505"

logger = logging.getLogger("shortlink.store")


def _sqlstate(exc: IntegrityError) -> str | None:
    # The asyncpg adapter keeps the driver exception as __cause__ of orig.
    for candidate in (exc.orig, getattr(exc.orig, "__cause__", None)):
        code = getattr(candidate, "pgcode", None) or getattr(candidate, "sqlstate", None)
        if code:
            return code
    return None


class PostgresAliasStore:
    """Authoritative alias -> target mapping stored in the ``urls`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], allocator: AliasAllocator | None = None) -> None:
        self._session_factory = session_factory
        self._allocator = allocator or AliasAllocator()

    async def get(self, alias: str) -> str:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(ShortURL.url).where(ShortURL.alias == alias))
                target = result.scalar_one_or_none()
        except (SQLAlchemyError, OSError) as exc:
            raise StoreError(f"failed to get url: {exc}", alias=alias) from exc

        if target is None:
            raise NotFoundError(alias=alias)
        return target

    async def save(self, target: str, alias: str) -> None:
        """Insert one mapping in its own transaction.

        Raises:
            AlreadyExistsError: The alias is taken (unique violation).
            StoreError: Any other database failure.
        """
        try:
            async with self._session_factory() as session:
                session.add(ShortURL(url=target, alias=alias))
                try:
                    await session.commit()
                except IntegrityError as exc:
                    await session.rollback()
                    if _sqlstate(exc) == UNIQUE_VIOLATION:
                        raise AlreadyExistsError(alias=alias) from exc
                    raise
        except AlreadyExistsError:
            raise
        except (SQLAlchemyError, OSError) as exc:
            raise StoreError(f"failed to save url: {exc}", alias=alias) from exc

    async def save_generated(self, target: str, length: int, max_attempts: int) -> str:
        return await self._allocator.allocate(self.save, target, length, max_attempts)

    async def delete(self, alias: str) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.execute(delete(ShortURL).where(ShortURL.alias == alias))
                await session.commit()
        except (SQLAlchemyError, OSError) as exc:
            raise StoreError(f"failed to delete url: {exc}", alias=alias) from exc

        rows = result.rowcount or 0
        logger.debug(f"Deleted {rows} row(s) for alias {alias}")
        return rows

    async def close(self) -> None:
        # The engine (and its pool) is owned by shortlink.database.
        return None
