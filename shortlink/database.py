"""Database engine and session management for the shortlink service.

This module provides SQLAlchemy async engine setup, the session factory that
the Postgres alias store borrows sessions from, and database lifecycle
operations using PostgreSQL as the backend.

Flow Diagram: Database Operations
=================================
::
    ┌─────────────┐
    │ Store call   │
    │ (get/save/…) │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ session_     │
    │ factory()    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Execute +    │
    │ commit       │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Auto-close   │
    │ (async with) │
    └─────────────┘

How to Use
===========
**Step 1: Initialize on startup**::
    await init_db()  # CREATE TABLE IF NOT EXISTS urls

**Step 2: Hand the factory to the store**::
    store = PostgresAliasStore(get_session_factory(), AliasAllocator())

**Step 3: Cleanup on shutdown**::
    await close_db()

Key Behaviours
===============
- The engine is created lazily on first access, so importing the package never
  touches the database driver configuration.
- Connections are pooled and pre-pinged.
- ``init_db`` only creates missing tables; schema migrations are out of scope.

Classes:
    Base:  SQLAlchemy declarative base for all models.

Functions:
    get_engine():  Lazily build the shared async engine.
    get_session_factory():  Session factory bound to the engine.
    get_db():  FastAPI dependency for a raw session (health checks).
    init_db():  Creates all tables on startup.
    close_db():  Disposes the engine on shutdown.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from shortlink.config import get_settings

__all__ = ["Base", "close_db", "get_db", "get_engine", "get_session_factory", "init_db"]

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


class Base(DeclarativeBase):
    pass


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(
            settings.DATABASE_URL,
            echo=False,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_pre_ping=True,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with get_session_factory()() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db() -> None:
    # Registers ShortURL on Base.metadata before create_all runs.
    from shortlink import models  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
