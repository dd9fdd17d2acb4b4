"""
Tests for the query gateway, dedicated connections, and retry logic.
"""

import pytest
from unittest.mock import AsyncMock, patch
from sqlalchemy.exc import OperationalError

from accounts import db


@pytest.mark.asyncio
async def test_retry_on_db_error_success():
    """Test retry logic succeeds on first attempt."""
    call_count = 0

    async def successful_func():
        nonlocal call_count
        call_count += 1
        return "success"

    result = await db.retry_on_db_error(successful_func)
    assert result == "success"
    assert call_count == 1


@pytest.mark.asyncio
async def test_retry_on_db_error_retries_on_connection_error():
    """Test retry logic retries on connection errors."""
    call_count = 0

    async def failing_then_success():
        nonlocal call_count
        call_count += 1
        if call_count < 2:
            raise OperationalError("connection reset by peer", None, None)
        return "success"

    result = await db.retry_on_db_error(failing_then_success, max_retries=3, base_delay=0.01)
    assert result == "success"
    assert call_count == 2


@pytest.mark.asyncio
async def test_retry_on_db_error_fails_after_max_retries():
    """Test retry logic fails after max retries exhausted."""
    call_count = 0

    async def always_failing():
        nonlocal call_count
        call_count += 1
        raise OperationalError("connection timeout", None, None)

    with pytest.raises(OperationalError):
        await db.retry_on_db_error(always_failing, max_retries=2, base_delay=0.01)

    assert call_count == 2


@pytest.mark.asyncio
async def test_retry_on_db_error_no_retry_on_constraint_violation():
    """Test retry logic does NOT retry on non-retryable errors."""
    call_count = 0

    async def constraint_error():
        nonlocal call_count
        call_count += 1
        raise OperationalError("unique constraint violated", None, None)

    with pytest.raises(OperationalError):
        await db.retry_on_db_error(constraint_error, max_retries=3, base_delay=0.01)

    assert call_count == 1


@pytest.mark.asyncio
async def test_get_new_connection_releases_on_error():
    """The connection is closed even when the block raises, and the block's error wins."""
    fake_connection = AsyncMock()
    fake_engine = AsyncMock()
    fake_engine.connect = AsyncMock(return_value=fake_connection)
    fake_connection.close = AsyncMock(side_effect=RuntimeError("close failed"))

    with patch('accounts.db.create_async_engine', return_value=fake_engine):
        with pytest.raises(KeyError):
            async with db.get_new_connection() as connection:
                assert connection is fake_connection
                raise KeyError("primary")

    fake_connection.close.assert_awaited_once()
    fake_engine.dispose.assert_awaited_once()


@pytest.mark.asyncio
async def test_get_new_connection_disposes_engine_when_connect_fails():
    fake_engine = AsyncMock()
    fake_engine.connect = AsyncMock(side_effect=ConnectionRefusedError())

    with patch('accounts.db.create_async_engine', return_value=fake_engine):
        with pytest.raises(ConnectionRefusedError):
            async with db.get_new_connection():
                pass

    fake_engine.dispose.assert_awaited_once()


# ==================== Against the test database ====================


@pytest.mark.asyncio
async def test_check_db_connection_healthy(test_db_engine):
    assert await db.check_db_connection() is True


@pytest.mark.asyncio
async def test_query_with_positional_values(test_db_engine):
    result = await db.query("SELECT $1::int + $2::int AS total;", [2, 3])

    assert result.rowcount == 1
    assert result.rows == [{"total": 5}]


@pytest.mark.asyncio
async def test_query_without_rows(migrated_db):
    result = await db.query(
        "UPDATE users SET username = username WHERE username_normalized = $1;",
        ["nobody"],
    )

    assert result.rowcount == 0
    assert result.rows == []
