"""Business logic for user records: normalization, validation, persistence.

Every operation receives its collaborators explicitly: the request-scoped
``AsyncSession`` and a ``PasswordHasher``.
"""

from typing import Any

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from .config import settings
from .crud import (
    email_exists,
    insert_user,
    select_user_by_username,
    update_user as crud_update_user,
    username_exists,
)
from .errors import NotFoundError, ValidationError
from .logger import logger
from .models import User
from .password import PasswordHasher
from .utils import normalize_email, normalize_username

REQUIRED_FIELDS = ("username", "email", "password")

# ==================== Helper Functions ====================


def _duplicate_email_error() -> ValidationError:
    return ValidationError(
        message="The email provided is already in use.",
        action="Use a different email to perform this operation.",
    )


def _duplicate_username_error() -> ValidationError:
    return ValidationError(
        message="The username provided is already in use.",
        action="Use a different username to perform this operation.",
    )


def _duplicate_error(reason: str) -> ValidationError:
    """Map a crud ``ValueError('duplicate <field>')`` to a ValidationError."""
    if reason == "duplicate email":
        return _duplicate_email_error()
    return _duplicate_username_error()


def normalize_user_data(user_input: dict[str, Any]) -> dict[str, Any]:
    """Copy of the input with ``username_normalized`` and ``email_normalized`` added."""
    return {
        **user_input,
        "username_normalized": normalize_username(user_input.get("username")),
        "email_normalized": normalize_email(user_input.get("email")),
    }


def _validate_required_fields(user_data: dict[str, Any]) -> None:
    """Report every missing required field at once."""
    missing_fields = [
        field for field in REQUIRED_FIELDS
        if user_data.get(field) is None or user_data.get(field) == ""
    ]
    if missing_fields:
        raise ValidationError(
            message="Input validation failed due to missing data.",
            action="Fill in all required fields.",
            details={field: f"The {field} field is required." for field in missing_fields},
        )


def _validate_normalized_lengths(user_data: dict[str, Any]) -> None:
    """Normalized values must fit their columns; lowercasing can lengthen a string."""
    limits = {
        "username": settings.USERNAME_MAX_LENGTH,
        "email": settings.EMAIL_MAX_LENGTH,
    }
    too_long = {
        field: f"The {field} field is too long once normalized (max {limit} characters)."
        for field, limit in limits.items()
        if user_data.get(f"{field}_normalized") and len(user_data[f"{field}_normalized"]) > limit
    }
    if too_long:
        raise ValidationError(
            message="Input validation failed.",
            action="Check the data sent and try again.",
            details=too_long,
        )


async def _validate_unique_email(session: AsyncSession, email_normalized: str) -> None:
    if await email_exists(session, email_normalized):
        logger.warning(f"Email already in use: {email_normalized}")
        raise _duplicate_email_error()


async def _validate_unique_username(session: AsyncSession, username_normalized: str) -> None:
    if await username_exists(session, username_normalized):
        logger.warning(f"Username already in use: {username_normalized}")
        raise _duplicate_username_error()


async def _hash_password(hasher: PasswordHasher, password: str) -> str:
    # bcrypt is CPU bound; keep it off the event loop
    return await run_in_threadpool(hasher.hash, password)


# ==================== User Operations ====================


async def create_user(
    session: AsyncSession,
    hasher: PasswordHasher,
    user_input: dict[str, Any],
) -> User:
    """Validate, normalize, and store a new user.

    Raises:
        ValidationError: missing fields (with ``details``) or a duplicated
            normalized email/username (email is checked first)
    """
    user_data = normalize_user_data(user_input)

    _validate_required_fields(user_data)
    _validate_normalized_lengths(user_data)
    await _validate_unique_email(session, user_data["email_normalized"])
    await _validate_unique_username(session, user_data["username_normalized"])

    hashed_password = await _hash_password(hasher, user_data["password"])

    try:
        user = await insert_user(
            session,
            username=user_data["username"],
            username_normalized=user_data["username_normalized"],
            email=user_data["email"],
            email_normalized=user_data["email_normalized"],
            password=hashed_password,
        )
    except ValueError as e:
        # Lost a race with a concurrent registration
        logger.warning(f"Registration rejected by unique constraint: {str(e)}")
        raise _duplicate_error(str(e)) from e

    logger.info(f"User created: id={user.id} username={user.username}")
    return user


async def find_one_by_username(session: AsyncSession, username: str) -> User:
    """Look a user up by username, case-insensitively.

    Raises:
        NotFoundError: no user has that normalized username
    """
    user = await select_user_by_username(session, normalize_username(username))
    if user is None:
        logger.debug(f"User not found: username={username}")
        raise NotFoundError(
            message="The username provided was not found in the system.",
            action="Check that the username is spelled correctly.",
        )
    return user


async def update_user(
    session: AsyncSession,
    hasher: PasswordHasher,
    username: str,
    user_input: dict[str, Any],
) -> User:
    """Apply a partial update to the user identified by ``username``.

    Only the fields present in ``user_input`` are re-normalized and
    re-validated. The uniqueness checks do not exclude the user being
    updated, so resubmitting a user's own email or username is rejected.

    Raises:
        NotFoundError: unknown username
        ValidationError: the new email/username is already taken
    """
    current_user = await find_one_by_username(session, username)
    _validate_normalized_lengths(normalize_user_data(user_input))

    new_values = {
        "username": current_user.username,
        "username_normalized": current_user.username_normalized,
        "email": current_user.email,
        "email_normalized": current_user.email_normalized,
        "password": current_user.password,
    }

    if "email" in user_input:
        email_normalized = normalize_email(user_input["email"])
        await _validate_unique_email(session, email_normalized)
        new_values["email"] = user_input["email"]
        new_values["email_normalized"] = email_normalized

    if "username" in user_input:
        username_normalized = normalize_username(user_input["username"])
        await _validate_unique_username(session, username_normalized)
        new_values["username"] = user_input["username"]
        new_values["username_normalized"] = username_normalized

    if "password" in user_input:
        new_values["password"] = await _hash_password(hasher, user_input["password"])

    try:
        user = await crud_update_user(session, current_user.id, **new_values)
    except ValueError as e:
        logger.warning(f"Update rejected by unique constraint: {str(e)}")
        raise _duplicate_error(str(e)) from e

    logger.info(f"User updated: id={user.id} fields={sorted(user_input)}")
    return user
