"""Centralized logging configuration for the application.

Every record carries the id of the request being served (``-`` outside a
request), set by the request id middleware through ``request_id_var``.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from .config import settings

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


class RequestIdFilter(logging.Filter):
    """Attach the current request id to each record."""

    def filter(self, record):
        record.request_id = request_id_var.get()
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record):
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", "-"),
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


def _build_formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return JSONFormatter()
    return logging.Formatter(
        fmt='%(asctime)s %(levelname)-8s [%(name)s] [%(request_id)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def setup_logger(name: str = "accounts") -> logging.Logger:
    """Configure the service logger: stdout always, plus LOG_FILE when set.

    LOG_FORMAT applies to both handlers.
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper()))

    if logger.handlers:
        return logger

    formatter = _build_formatter(settings.LOG_FORMAT)
    request_id_filter = RequestIdFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(request_id_filter)
    logger.addHandler(console_handler)

    if settings.LOG_FILE:
        try:
            file_handler = logging.FileHandler(settings.LOG_FILE)
        except OSError as e:
            logger.error(f"Failed to create file handler for {settings.LOG_FILE}: {e}")
        else:
            file_handler.setFormatter(formatter)
            file_handler.addFilter(request_id_filter)
            logger.addHandler(file_handler)

    return logger


logger = setup_logger()
