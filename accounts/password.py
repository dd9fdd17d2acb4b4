"""Password hashing with bcrypt."""

import bcrypt
from .config import settings


class PasswordHasher:
    """One-way password hashing and verification.

    Passed into the user model operations so tests can use a cheap work factor.
    """

    def __init__(self, rounds: int = settings.BCRYPT_ROUNDS):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        """Hash a plain text password for storage (60 character string)."""
        # bcrypt requires bytes and returns bytes
        salt = bcrypt.gensalt(rounds=self.rounds)
        hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
        return hashed.decode('utf-8')

    def compare(self, provided_password: str, stored_password: str) -> bool:
        """Verify a plain text password against a stored hash."""
        return bcrypt.checkpw(
            provided_password.encode('utf-8'),
            stored_password.encode('utf-8'),
        )
