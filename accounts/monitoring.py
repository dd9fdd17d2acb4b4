"""Prometheus metrics for the HTTP surface."""

from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator, metrics

from .config import settings

METRICS_PATH = "/metrics"


def build_instrumentator() -> Instrumentator:
    """Instrumentator keyed by route template, so /users/{username} is one series.

    The status probe is excluded; it is polled too often to be useful.
    """
    instrumentator = Instrumentator(
        should_group_status_codes=False,
        should_ignore_untemplated=True,
        should_respect_env_var=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=[METRICS_PATH, f"{settings.API_PREFIX}/status"],
        env_var_name="ENABLE_METRICS",
        inprogress_name="accounts_http_requests_inprogress",
        inprogress_labels=True,
    )
    instrumentator.add(metrics.default(metric_namespace="accounts"))
    return instrumentator


def setup_monitoring(app: FastAPI) -> None:
    build_instrumentator().instrument(app).expose(
        app, endpoint=METRICS_PATH, include_in_schema=False
    )
