"""HTTP middleware: request correlation, access logging, response headers."""

import time
import uuid

from fastapi import Request

from .config import settings
from .logger import logger, request_id_var

REQUEST_ID_HEADER = "X-Request-ID"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

HSTS_HEADER = ("Strict-Transport-Security", "max-age=31536000; includeSubDomains")


# ==================== Request ID Middleware ====================

async def add_request_id_middleware(request: Request, call_next):
    """Reuse the caller's X-Request-ID or mint one, and echo it back.

    The id is bound to ``request_id_var`` so every log line written while
    serving the request carries it.
    """
    request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    request.state.request_id = request_id
    token = request_id_var.set(request_id)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)

    response.headers[REQUEST_ID_HEADER] = request_id
    return response


# ==================== Access Log Middleware ====================

async def request_logging_middleware(request: Request, call_next):
    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception(
            f"{request.method} {request.url.path} failed after "
            f"{(time.perf_counter() - start) * 1000:.1f}ms"
        )
        raise

    elapsed_ms = (time.perf_counter() - start) * 1000
    log = logger.warning if response.status_code >= 500 else logger.info
    log(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)")
    return response


# ==================== Security Headers Middleware ====================

async def security_headers_middleware(request: Request, call_next):
    response = await call_next(request)

    response.headers.update(SECURITY_HEADERS)
    if settings.APP_ENV == "production":
        response.headers[HSTS_HEADER[0]] = HSTS_HEADER[1]

    return response
