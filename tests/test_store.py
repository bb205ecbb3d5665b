"""Tests for the Postgres alias store against a mocked SQLAlchemy session."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.allocator import AliasAllocator
from shortlink.errors import AlreadyExistsError, MaxRetriesExceededError, NotFoundError, StoreError
from shortlink.models import ShortURL
from shortlink.store import UNIQUE_VIOLATION, PostgresAliasStore


class FakeDriverError(Exception):
    def __init__(self, pgcode: str | None) -> None:
        super().__init__(f"driver error {pgcode}")
        self.pgcode = pgcode


def integrity_error(pgcode: str | None) -> IntegrityError:
    return IntegrityError("INSERT INTO urls ...", {}, FakeDriverError(pgcode))


@pytest.fixture
def mock_session() -> AsyncMock:
    """Mock database session."""
    session = AsyncMock(spec=AsyncSession)
    session.execute = AsyncMock()
    session.add = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest.fixture
def session_factory(mock_session) -> MagicMock:
    factory = MagicMock()
    factory.return_value.__aenter__ = AsyncMock(return_value=mock_session)
    factory.return_value.__aexit__ = AsyncMock(return_value=False)
    return factory


@pytest.fixture
def pg_store(session_factory) -> PostgresAliasStore:
    return PostgresAliasStore(session_factory, AliasAllocator())


@pytest.mark.asyncio
async def test_get_returns_target(pg_store, mock_session):
    result = MagicMock()
    result.scalar_one_or_none.return_value = "https://example.com"
    mock_session.execute.return_value = result

    assert await pg_store.get("abc") == "https://example.com"


@pytest.mark.asyncio
async def test_get_missing_row_is_not_found(pg_store, mock_session):
    result = MagicMock()
    result.scalar_one_or_none.return_value = None
    mock_session.execute.return_value = result

    with pytest.raises(NotFoundError) as exc_info:
        await pg_store.get("abc")
    assert exc_info.value.alias == "abc"


@pytest.mark.asyncio
async def test_get_driver_failure_is_store_error(pg_store, mock_session):
    mock_session.execute.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))

    with pytest.raises(StoreError):
        await pg_store.get("abc")


@pytest.mark.asyncio
async def test_save_adds_row_and_commits(pg_store, mock_session):
    await pg_store.save("https://example.com", "abc")

    added = mock_session.add.call_args.args[0]
    assert isinstance(added, ShortURL)
    assert added.url == "https://example.com"
    assert added.alias == "abc"
    mock_session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_save_unique_violation_is_already_exists(pg_store, mock_session):
    mock_session.commit.side_effect = integrity_error(UNIQUE_VIOLATION)

    with pytest.raises(AlreadyExistsError):
        await pg_store.save("https://example.com", "abc")
    mock_session.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_save_unique_violation_found_on_driver_cause(pg_store, mock_session):
    wrapper = Exception("adapted")
    wrapper.__cause__ = FakeDriverError(None)
    wrapper.__cause__.sqlstate = UNIQUE_VIOLATION
    mock_session.commit.side_effect = IntegrityError("INSERT", {}, wrapper)

    with pytest.raises(AlreadyExistsError):
        await pg_store.save("https://example.com", "abc")


@pytest.mark.asyncio
async def test_save_other_integrity_error_is_store_error(pg_store, mock_session):
    mock_session.commit.side_effect = integrity_error("23502")

    with pytest.raises(StoreError):
        await pg_store.save("https://example.com", "abc")


@pytest.mark.asyncio
async def test_save_connection_failure_is_store_error(pg_store, mock_session):
    mock_session.commit.side_effect = OSError("connection reset")

    with pytest.raises(StoreError):
        await pg_store.save("https://example.com", "abc")


@pytest.mark.asyncio
async def test_save_generated_retries_on_collisions(session_factory, mock_session):
    mock_session.commit.side_effect = [integrity_error(UNIQUE_VIOLATION), integrity_error(UNIQUE_VIOLATION), None]
    candidates = iter(["aaaaaa", "bbbbbb", "cccccc"])
    store = PostgresAliasStore(session_factory, AliasAllocator(random_source=lambda alphabet, length: next(candidates)))

    assert await store.save_generated("https://example.com", 6, 5) == "cccccc"
    assert mock_session.commit.await_count == 3


@pytest.mark.asyncio
async def test_save_generated_exhausts_budget(session_factory, mock_session):
    mock_session.commit.side_effect = integrity_error(UNIQUE_VIOLATION)
    store = PostgresAliasStore(session_factory, AliasAllocator(random_source=lambda alphabet, length: "abc123"))

    with pytest.raises(MaxRetriesExceededError):
        await store.save_generated("https://example.com", 6, 3)
    assert mock_session.commit.await_count == 3


@pytest.mark.asyncio
@pytest.mark.parametrize(("rowcount", "expected"), [(1, 1), (0, 0)])
async def test_delete_returns_row_count(pg_store, mock_session, rowcount, expected):
    result = MagicMock()
    result.rowcount = rowcount
    mock_session.execute.return_value = result

    assert await pg_store.delete("abc") == expected
    mock_session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_delete_driver_failure_is_store_error(pg_store, mock_session):
    mock_session.execute.side_effect = OperationalError("DELETE", {}, Exception("gone"))

    with pytest.raises(StoreError):
        await pg_store.delete("abc")
