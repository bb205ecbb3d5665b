"""Shared pytest fixtures: in-memory collaborators, mocked drivers and an HTTP client."""

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
import redis.asyncio as redis
from httpx import ASGITransport, AsyncClient

from shortlink.allocator import AliasAllocator
from shortlink.config import Settings, get_settings
from shortlink.dependencies import get_alias_service
from shortlink.main import app
from shortlink.url_service import AliasService
from tests.fakes import InMemoryAliasCache, InMemoryAliasStore


@pytest.fixture
def settings() -> Settings:
    """Get test settings."""
    return get_settings()


@pytest.fixture
def store() -> InMemoryAliasStore:
    return InMemoryAliasStore(AliasAllocator())


@pytest.fixture
def cache() -> InMemoryAliasCache:
    return InMemoryAliasCache()


@pytest.fixture
def mock_logger() -> MagicMock:
    """Mock logger."""
    logger = MagicMock()
    logger.info = MagicMock()
    logger.debug = MagicMock()
    logger.warning = MagicMock()
    logger.error = MagicMock()
    logger.exception = MagicMock()
    return logger


@pytest.fixture
def service(store: InMemoryAliasStore, cache: InMemoryAliasCache, mock_logger: MagicMock) -> AliasService:
    return AliasService(store, cache, populate_timeout=0.2, logger=mock_logger)


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Mock Redis client."""
    redis_client = AsyncMock(spec=redis.Redis)
    redis_client.get = AsyncMock(return_value=None)
    redis_client.set = AsyncMock(return_value=True)
    redis_client.expire = AsyncMock(return_value=True)
    redis_client.delete = AsyncMock(return_value=1)
    redis_client.ping = AsyncMock(return_value=True)
    return redis_client


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> None:
    """Start every test with empty rate limit counters."""
    if app.state.rate_limiter is not None:
        app.state.rate_limiter.reset()


@pytest.fixture
async def client(service: AliasService) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_alias_service() -> AliasService:
        return service

    app.dependency_overrides[get_alias_service] = override_get_alias_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    await service.drain()
