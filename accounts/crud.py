"""Database operations for user records.

All functions take the caller's ``AsyncSession``; the session is owned (and
closed) by whoever created it.
"""

import re
from uuid import UUID

from sqlalchemy import func, select, insert, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import User
from .logger import logger

UNIQUE_CONSTRAINT_PATTERN = re.compile(r'unique constraint "([^"]+)"')


# ==================== Helper Functions ====================

def _duplicate_field(error: IntegrityError) -> str | None:
    """Name of the identity field behind a unique violation, if any.

    Constraint names carry the column name (``uq_users_email_normalized``).
    """
    match = UNIQUE_CONSTRAINT_PATTERN.search(str(error.orig))
    if match is None:
        return None
    constraint = match.group(1)
    if constraint.startswith("uq_users_email"):
        return "email"
    if constraint.startswith("uq_users_username"):
        return "username"
    return None


async def _write_user(session: AsyncSession, statement) -> User:
    """Execute an INSERT/UPDATE ... RETURNING and commit it.

    Unique violations become ``ValueError('duplicate <field>')``.
    """
    try:
        result = await session.execute(statement)
        user = result.scalars().one()
        await session.commit()
        return user
    except IntegrityError as e:
        await session.rollback()
        field = _duplicate_field(e)
        if field is None:
            raise
        logger.debug(f"Duplicate {field} rejected by the database")
        raise ValueError(f"duplicate {field}") from e


# ==================== Lookups ====================


async def select_user_by_username(session: AsyncSession, username_normalized: str) -> User | None:
    """Retrieve a user by normalized username."""
    result = await session.execute(
        select(User).where(User.username_normalized == username_normalized).limit(1)
    )
    return result.scalars().first()


async def email_exists(session: AsyncSession, email_normalized: str) -> bool:
    """Check whether a normalized email is already taken."""
    result = await session.execute(
        select(User.id).where(User.email_normalized == email_normalized).limit(1)
    )
    return result.scalar() is not None


async def username_exists(session: AsyncSession, username_normalized: str) -> bool:
    """Check whether a normalized username is already taken."""
    result = await session.execute(
        select(User.id).where(User.username_normalized == username_normalized).limit(1)
    )
    return result.scalar() is not None


# ==================== Writes ====================


async def insert_user(
    session: AsyncSession,
    username: str,
    username_normalized: str,
    email: str,
    email_normalized: str,
    password: str,
) -> User:
    """Insert a new user and return the stored row.

    Raises ValueError('duplicate email' | 'duplicate username') on unique violations.
    """
    statement = (
        insert(User)
        .values(
            username=username,
            username_normalized=username_normalized,
            email=email,
            email_normalized=email_normalized,
            password=password,
        )
        .returning(User)
    )
    return await _write_user(session, statement)


async def update_user(
    session: AsyncSession,
    user_id: UUID,
    username: str,
    username_normalized: str,
    email: str,
    email_normalized: str,
    password: str,
) -> User:
    """Overwrite a user's identity fields and refresh ``updated_at``.

    Raises ValueError('duplicate email' | 'duplicate username') on unique violations.
    """
    statement = (
        update(User)
        .where(User.id == user_id)
        .values(
            username=username,
            username_normalized=username_normalized,
            email=email,
            email_normalized=email_normalized,
            password=password,
            updated_at=func.now(),
        )
        .returning(User)
        .execution_options(populate_existing=True, synchronize_session=False)
    )
    return await _write_user(session, statement)
