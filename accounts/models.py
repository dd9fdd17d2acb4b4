"""SQLAlchemy ORM models for database tables."""

from sqlalchemy import Column, String, DateTime, Uuid, text
from .db import Base
from .config import settings


# Default for timestamptz columns
NOW = text("now()")


class User(Base):
    """User model mapped to 'users' table."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, server_default=text("gen_random_uuid()"))
    username = Column(String(settings.USERNAME_MAX_LENGTH), nullable=False, unique=True)
    username_normalized = Column(String(settings.USERNAME_MAX_LENGTH), nullable=False, unique=True)
    email = Column(String(settings.EMAIL_MAX_LENGTH), nullable=False, unique=True)
    email_normalized = Column(String(settings.EMAIL_MAX_LENGTH), nullable=False, unique=True)
    password = Column(String(60), nullable=False)  # bcrypt output is always 60 chars
    created_at = Column(DateTime(timezone=True), server_default=NOW, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=NOW, nullable=False)
