"""Typed application errors and their public JSON representation.

Every error raised by the model layer or the migration runner is an
``AppError`` tagged with an ``ErrorKind``. The HTTP layer never inspects
messages: it renders ``to_dict()`` with ``status_code``.
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Error categories surfaced to API clients."""
    VALIDATION = "ValidationError"
    NOT_FOUND = "NotFoundError"
    SERVICE = "ServiceError"
    METHOD_NOT_ALLOWED = "MethodNotAllowedError"
    INTERNAL = "InternalServerError"


class AppError(Exception):
    """Base exception for all errors with a public representation."""

    kind: ErrorKind = ErrorKind.INTERNAL
    status_code: int = 500
    default_message: str = "An unexpected internal error occurred."
    default_action: str = "Contact support."

    def __init__(
        self,
        message: str | None = None,
        action: str | None = None,
        details: dict[str, str] | None = None,
        cause: BaseException | None = None,
    ):
        self.message = message or self.default_message
        self.action = action or self.default_action
        self.details = details
        self.cause = cause
        super().__init__(self.message)
        if cause is not None:
            self.__cause__ = cause

    @property
    def name(self) -> str:
        return self.kind.value

    def to_dict(self) -> dict[str, Any]:
        """Public error body; ``details`` is only present when set."""
        body: dict[str, Any] = {
            "name": self.name,
            "message": self.message,
            "action": self.action,
            "status_code": self.status_code,
        }
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    """Missing required fields or a duplicated normalized value."""
    kind = ErrorKind.VALIDATION
    status_code = 400
    default_message = "A validation error occurred."
    default_action = "Adjust the data sent and try again."


class NotFoundError(AppError):
    """Requested resource does not exist."""
    kind = ErrorKind.NOT_FOUND
    status_code = 404
    default_message = "The requested resource was not found."
    default_action = "Check that the parameters sent in the request are correct."


class ServiceError(AppError):
    """A dependency (database, migration runner) failed."""
    kind = ErrorKind.SERVICE
    status_code = 503
    default_message = "Service unavailable at the moment."
    default_action = "Check that the service is available."


class MethodNotAllowedError(AppError):
    """HTTP method not supported by the endpoint."""
    kind = ErrorKind.METHOD_NOT_ALLOWED
    status_code = 405
    default_message = "Method not allowed for this endpoint."
    default_action = "Check that the HTTP method is valid for this endpoint"

    def to_dict(self) -> dict[str, Any]:
        # Clients of this endpoint read the camelCase key
        return {
            "name": self.name,
            "message": self.message,
            "action": self.action,
            "statusCode": self.status_code,
        }


class InternalServerError(AppError):
    """Unhandled failure; never exposes internal details."""
    kind = ErrorKind.INTERNAL
    status_code = 500
