"""FastAPI application entry point: app assembly and lifecycle."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .db import check_db_connection, dispose_engine
from .error_handlers import register_error_handlers
from .logger import logger
from .middleware import (
    add_request_id_middleware,
    request_logging_middleware,
    security_headers_middleware,
)
from .monitoring import setup_monitoring
from .routes import router

# ==================== Application Lifecycle ====================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Probe the database on startup and release the pool on shutdown.

    An unreachable database does not block startup: /status and the
    migration endpoints report it as a 503 instead.
    """
    logger.info(f"Starting {settings.APP_NAME} in {settings.APP_ENV} mode")
    if await check_db_connection():
        logger.info("Database reachable")
    else:
        logger.warning("Database unreachable at startup, serving anyway")
    logger.info(f"Schema migrations are read from {settings.MIGRATIONS_DIR}")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")
    await dispose_engine()
    logger.info(f"{settings.APP_NAME} shutdown complete")

# ==================== Application Setup ====================


def configure_middleware(app: FastAPI) -> None:
    """Register middleware; the last one registered runs outermost."""
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(request_logging_middleware)
    app.middleware("http")(add_request_id_middleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

configure_middleware(app)
register_error_handlers(app)
app.include_router(router)
setup_monitoring(app)
