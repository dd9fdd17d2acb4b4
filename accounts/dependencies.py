"""FastAPI dependencies injected into route handlers."""

from functools import lru_cache
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from . import db
from .password import PasswordHasher


# ==================== Database Dependencies ====================

async def get_session() -> AsyncIterator[AsyncSession]:
    """Request-scoped session; closed when the request finishes, even on errors."""
    async with db.async_session() as session:
        yield session


# ==================== Security Dependencies ====================

@lru_cache
def get_password_hasher() -> PasswordHasher:
    """Password hasher configured from settings."""
    return PasswordHasher()
