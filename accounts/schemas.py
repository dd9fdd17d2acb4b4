"""Pydantic schemas for request/response validation and serialization."""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from uuid import UUID
from .config import settings


# ==================== Error Schemas ====================

class ErrorResponse(BaseModel):
    """Standardized error body returned by every failing endpoint."""
    name: str
    message: str
    action: str
    status_code: int
    details: dict[str, str] | None = None


class MethodNotAllowedResponse(BaseModel):
    """Body returned for an unsupported HTTP method; uses the camelCase key."""
    name: str
    message: str
    action: str
    statusCode: int


# ==================== User Schemas ====================

PASSWORD_MAX_BYTES = 72  # bcrypt rejects longer input


def _password_within_bcrypt_limit(value: str | None) -> str | None:
    if value is not None and len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes long")
    return value


class UserOut(BaseModel):
    """Stored user record, as returned by the API."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    username_normalized: str
    email: str
    email_normalized: str
    password: str
    created_at: datetime
    updated_at: datetime


class UserCreate(BaseModel):
    """Schema for user registration.

    Fields are optional here so the model layer can report every missing field
    in a single validation error.
    """
    username: str | None = Field(None, max_length=settings.USERNAME_MAX_LENGTH)
    email: str | None = Field(None, max_length=settings.EMAIL_MAX_LENGTH)
    password: str | None = None

    @field_validator("password")
    @classmethod
    def validate_password_length(cls, v: str | None) -> str | None:
        """bcrypt limits input by bytes, not characters."""
        return _password_within_bcrypt_limit(v)


class UserUpdate(BaseModel):
    """Schema for partial user updates; only fields sent are changed."""
    username: str | None = Field(None, min_length=1, max_length=settings.USERNAME_MAX_LENGTH)
    email: str | None = Field(None, min_length=1, max_length=settings.EMAIL_MAX_LENGTH)
    password: str | None = Field(None, min_length=1)

    @field_validator("password")
    @classmethod
    def validate_password_length(cls, v: str | None) -> str | None:
        """bcrypt limits input by bytes, not characters."""
        return _password_within_bcrypt_limit(v)


# ==================== Migration Schemas ====================

class MigrationOut(BaseModel):
    """Alembic revision descriptor."""
    revision: str
    down_revision: str | list[str] | None = None
    name: str
    path: str


# ==================== Status Schemas ====================

class DatabaseStatus(BaseModel):
    version: str
    max_connections: int
    opened_connections: int


class DependenciesStatus(BaseModel):
    database: DatabaseStatus


class StatusOut(BaseModel):
    """Service liveness report."""
    updated_at: datetime
    dependencies: DependenciesStatus
