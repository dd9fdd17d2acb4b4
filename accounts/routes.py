# API route definitions (HTTP layer)
# Defines ENDPOINTS; errors are rendered by error_handlers

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .schemas import (
    ErrorResponse,
    MethodNotAllowedResponse,
    MigrationOut,
    StatusOut,
    UserCreate,
    UserOut,
    UserUpdate,
)
from .dependencies import get_password_hasher, get_session
from .errors import ServiceError
from .password import PasswordHasher
from . import db, migrator, services
from .config import settings
from .logger import logger


router = APIRouter(
    prefix=settings.API_PREFIX,
    responses={500: {"model": ErrorResponse}},
)

VALIDATION_ERROR = {400: {"model": ErrorResponse}}
NOT_FOUND_ERROR = {404: {"model": ErrorResponse}}
SERVICE_ERROR = {503: {"model": ErrorResponse}}
MIGRATIONS_ERRORS = {
    **SERVICE_ERROR,
    405: {"model": MethodNotAllowedResponse, "description": "Any method other than GET or POST"},
}


# ============================================================================
# Status Endpoint
# ============================================================================

@router.get("/status", response_model=StatusOut, responses=SERVICE_ERROR)
async def status():
    """Report service liveness and database details.

    Returns:
        - 200 OK with database version and connection usage
        - 503 Service Unavailable if the database is unreachable
    """
    updated_at = datetime.now(timezone.utc)
    database_name = db.engine.url.database

    try:
        version_result = await db.query("SHOW server_version;")
        max_connections_result = await db.query("SHOW max_connections;")
        opened_connections_result = await db.query(
            "SELECT count(*)::int AS opened_connections FROM pg_stat_activity WHERE datname = $1;",
            [database_name],
        )
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Status check failed: {str(e)}")
        raise ServiceError(
            message="Database is unreachable.",
            action="Check that the database is running and reachable.",
            cause=e,
        ) from e

    return {
        "updated_at": updated_at,
        "dependencies": {
            "database": {
                "version": version_result.rows[0]["server_version"],
                "max_connections": int(max_connections_result.rows[0]["max_connections"]),
                "opened_connections": opened_connections_result.rows[0]["opened_connections"],
            }
        },
    }


# ============================================================================
# Migration Endpoints
# ============================================================================

@router.get("/migrations", response_model=list[MigrationOut], responses=MIGRATIONS_ERRORS)
async def list_migrations():
    """List pending migrations without applying them."""
    return await migrator.list_pending_migrations()


@router.post("/migrations", response_model=list[MigrationOut], responses=MIGRATIONS_ERRORS)
async def run_migrations(response: Response):
    """Apply pending migrations.

    Returns:
        201 with the applied migrations, or 200 with [] if nothing was pending
    """
    applied = await migrator.run_pending_migrations()
    response.status_code = 201 if applied else 200
    return applied


# ============================================================================
# User Endpoints
# ============================================================================

@router.post("/users", response_model=UserOut, status_code=201, responses=VALIDATION_ERROR)
async def create_user(
    user: UserCreate,
    session: AsyncSession = Depends(get_session),
    hasher: PasswordHasher = Depends(get_password_hasher),
):
    """Register a new user.

    Raises:
        400: missing fields or email/username already in use
    """
    return await services.create_user(session, hasher, user.model_dump())


@router.get("/users/{username}", response_model=UserOut, responses=NOT_FOUND_ERROR)
async def get_user(username: str, session: AsyncSession = Depends(get_session)):
    return await services.find_one_by_username(session, username)


@router.patch(
    "/users/{username}",
    response_model=UserOut,
    responses={**VALIDATION_ERROR, **NOT_FOUND_ERROR},
)
async def update_user(
    username: str,
    user: UserUpdate,
    session: AsyncSession = Depends(get_session),
    hasher: PasswordHasher = Depends(get_password_hasher),
):
    """Update username, email and/or password of an existing user.

    Raises:
        400: new email/username already in use
        404: unknown username
    """
    changes = user.model_dump(exclude_unset=True, exclude_none=True)
    return await services.update_user(session, hasher, username, changes)
