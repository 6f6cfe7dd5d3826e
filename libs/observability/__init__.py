"""Logging and metrics wiring shared by every ordering service."""

from fastapi import FastAPI

from .logging import RequestContextMiddleware, configure_logging, get_correlation_id, get_request_id
from .metrics import setup_metrics


def instrument(app: FastAPI, *, service_name: str) -> None:
    """Apply logging, request context and metrics to ``app``."""

    configure_logging(service_name)
    app.add_middleware(RequestContextMiddleware, service_name=service_name)
    setup_metrics(app, service_name=service_name)


__all__ = [
    "RequestContextMiddleware",
    "configure_logging",
    "get_correlation_id",
    "get_request_id",
    "instrument",
    "setup_metrics",
]
