"""Database connection pooling, query gateway, and resilience utilities."""

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Sequence
import asyncio

from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.exc import OperationalError, DBAPIError
from sqlalchemy.pool import NullPool
from sqlalchemy import MetaData, text

from .config import settings
from .logger import logger

# ==================== Connection Pool Setup ====================

CONNECT_ARGS = {
    "timeout": settings.DB_CONNECT_TIMEOUT,
    "command_timeout": settings.DB_QUERY_TIMEOUT,
}

engine = create_async_engine(
    settings.get_async_db_url(),
    echo=False,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_timeout=settings.DB_POOL_TIMEOUT,
    pool_recycle=settings.DB_POOL_RECYCLE,
    pool_pre_ping=True,  # Verify connections before use
    connect_args=CONNECT_ARGS,
)

logger.info(
    f"Database engine configured: pool_size={settings.DB_POOL_SIZE}, "
    f"max_overflow={settings.DB_MAX_OVERFLOW}, timeout={settings.DB_POOL_TIMEOUT}s"
)

# Session factory for creating database sessions
async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

# Constraint names must match the ones created by the Alembic revisions
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "pk": "pk_%(table_name)s",
}

# Base class for ORM models
Base = declarative_base(metadata=MetaData(naming_convention=NAMING_CONVENTION))

# ==================== Query Gateway ====================


@dataclass
class QueryResult:
    """Rows returned by a raw query, as plain dicts."""
    rowcount: int
    rows: list[dict[str, Any]] = field(default_factory=list)


async def query(statement: str, values: Sequence[Any] | None = None) -> QueryResult:
    """Run one SQL statement with positional ``$1..$n`` parameters.

    The asyncpg driver binds ``$n`` placeholders natively, so the statement is
    sent as-is. A pooled connection is held only for the duration of the call
    and the statement is committed before it is released.

    Args:
        statement: SQL text, a single statement
        values: Positional parameter values

    Returns:
        QueryResult with the row count and the rows as dicts
    """
    async with engine.begin() as connection:
        result = await connection.exec_driver_sql(statement, tuple(values or ()))
        if result.returns_rows:
            rows = [dict(row) for row in result.mappings().all()]
            return QueryResult(rowcount=len(rows), rows=rows)
        return QueryResult(rowcount=result.rowcount)


@asynccontextmanager
async def get_new_connection() -> AsyncIterator[AsyncConnection]:
    """Open a dedicated, non-pooled connection.

    The connection and its engine are always released when the block exits.
    Release failures are logged and never replace the error raised inside the
    block.
    """
    standalone_engine = create_async_engine(
        settings.get_async_db_url(),
        poolclass=NullPool,
        connect_args=CONNECT_ARGS,
    )
    connection: AsyncConnection | None = None
    try:
        connection = await standalone_engine.connect()
        yield connection
    finally:
        if connection is not None:
            try:
                await connection.close()
            except Exception as e:
                logger.warning(f"Failed to close dedicated database connection: {str(e)}")
        try:
            await standalone_engine.dispose()
        except Exception as e:
            logger.warning(f"Failed to dispose dedicated database engine: {str(e)}")

# ==================== Database Resilience ====================


async def retry_on_db_error(func, max_retries: int = 3, base_delay: float = 0.5):
    """Retry database operations with exponential backoff.

    Args:
        func: Async function to retry
        max_retries: Maximum number of retry attempts
        base_delay: Base delay in seconds (doubles each retry)

    Returns:
        Result of the function call

    Raises:
        Last exception if all retries fail
    """
    last_exception = None

    for attempt in range(max_retries):
        try:
            return await func()
        except (OperationalError, DBAPIError, OSError) as e:
            last_exception = e

            # Connection issues are retryable, constraint violations are not
            error_msg = str(e).lower()
            is_retryable = any([
                "connection" in error_msg,
                "timeout" in error_msg,
                "server closed the connection" in error_msg,
                "connection reset" in error_msg,
                "connect call failed" in error_msg,
            ])

            if not is_retryable or attempt == max_retries - 1:
                logger.error(
                    f"Database operation failed (attempt {attempt + 1}/{max_retries}): {str(e)}"
                )
                raise

            delay = base_delay * (2 ** attempt)  # Exponential backoff
            logger.warning(
                f"Database error on attempt {attempt + 1}/{max_retries}, "
                f"retrying in {delay}s: {str(e)}"
            )
            await asyncio.sleep(delay)

    raise last_exception


async def check_db_connection() -> bool:
    """Check if database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        async def _check():
            async with engine.connect() as connection:
                await connection.execute(text("SELECT 1"))

        await retry_on_db_error(
            _check,
            max_retries=settings.DB_RETRY_MAX_ATTEMPTS,
            base_delay=settings.DB_RETRY_BASE_DELAY,
        )
        return True
    except (OperationalError, DBAPIError, OSError) as e:
        logger.error(f"Database health check failed: {str(e)}")
        return False

# ==================== Cleanup ====================

async def dispose_engine():
    """Gracefully close all pooled database connections on shutdown."""
    logger.info("Disposing database engine and closing connections")
    try:
        await engine.dispose()
        logger.info("Database connections closed successfully")
    except Exception as e:
        logger.error(f"Error disposing database engine: {str(e)}", exc_info=True)
