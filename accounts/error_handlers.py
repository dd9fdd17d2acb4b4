"""Global exception handlers turning errors into the public JSON body.

- AppError -> its own body and status code
- RequestValidationError -> ValidationError with per-field details
- Starlette 404/405 -> NotFoundError / MethodNotAllowedError
- anything else -> InternalServerError, never leaking internals
"""

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import (
    AppError,
    InternalServerError,
    MethodNotAllowedError,
    NotFoundError,
    ValidationError,
)
from .logger import logger


def _error_response(error: AppError, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_dict(), headers=headers)


def _field_name(location: tuple) -> str:
    """Dotted field path of a pydantic error location, without the 'body' prefix."""
    parts = [str(part) for part in location if part != "body"]
    return ".".join(parts) if parts else "body"


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{exc.name} on {request.method} {request.url.path}: {exc.message}", exc_info=exc.cause)
    else:
        logger.info(f"{exc.name} on {request.method} {request.url.path}: {exc.message}")
    return _error_response(exc)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = {_field_name(tuple(error["loc"])): error["msg"] for error in exc.errors()}
    logger.info(f"Invalid request on {request.url.path}: {details}")
    error = ValidationError(
        message="Input validation failed.",
        action="Check the data sent and try again.",
        details=details,
    )
    return _error_response(error)


async def starlette_http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 405:
        return _error_response(MethodNotAllowedError(), headers=exc.headers)
    if exc.status_code == 404:
        return _error_response(NotFoundError(
            message="This endpoint does not exist.",
            action="Check the URL of the request.",
        ))
    return await http_exception_handler(request, exc)


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {str(exc)}", exc_info=exc)
    return _error_response(InternalServerError(cause=exc))


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, starlette_http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
