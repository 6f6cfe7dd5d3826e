"""JSON logging with per-request correlation identifiers."""

from __future__ import annotations

import contextvars
import json
import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.types import ASGIApp

from libs.network import get_client_ip

CORRELATION_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"

_CORRELATION_ID_CTX: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)
_REQUEST_ID_CTX: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "request_id", default=None
)
_CLIENT_IP_CTX: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "client_ip", default=None
)
_CONFIGURED_SERVICES: set[str] = set()

_RESERVED_KEYS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime"}


class RequestContextFilter(logging.Filter):
    """Copy the active request context onto every record."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self._service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self._service_name
        record.correlation_id = _CORRELATION_ID_CTX.get()
        record.request_id = _REQUEST_ID_CTX.get()
        record.client_ip = _CLIENT_IP_CTX.get()
        return True


class JsonLogFormatter(logging.Formatter):
    def __init__(self, service_name: str) -> None:
        super().__init__()
        self._service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "service": getattr(record, "service", self._service_name),
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RESERVED_KEYS or key in payload or value is None:
                continue
            try:
                json.dumps(value)
            except TypeError:
                value = str(value)
            payload[key] = value
        return json.dumps(payload, default=str)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign correlation and request identifiers to each request."""

    def __init__(self, app: ASGIApp, *, service_name: str) -> None:
        super().__init__(app)
        self._service_name = service_name

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
        request_id = uuid.uuid4().hex

        tokens = (
            (_CORRELATION_ID_CTX, _CORRELATION_ID_CTX.set(correlation_id)),
            (_REQUEST_ID_CTX, _REQUEST_ID_CTX.set(request_id)),
            (_CLIENT_IP_CTX, _CLIENT_IP_CTX.set(get_client_ip(request))),
        )
        request.state.correlation_id = correlation_id
        request.state.request_id = request_id
        try:
            response = await call_next(request)
            response.headers.setdefault(CORRELATION_HEADER, correlation_id)
            response.headers.setdefault(REQUEST_ID_HEADER, request_id)
            return response
        finally:
            for ctx, token in tokens:
                ctx.reset(token)


def configure_logging(service_name: str, level: str | None = None) -> None:
    """Route the root and uvicorn loggers through the JSON formatter.

    ``level`` falls back to ``LOG_LEVEL`` and then ``INFO``.
    """

    if service_name in _CONFIGURED_SERVICES:
        return

    resolved_level = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter(service_name))
    handler.addFilter(RequestContextFilter(service_name))

    root_logger = logging.getLogger()
    root_logger.setLevel(resolved_level)
    root_logger.handlers = [handler]

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(logger_name)
        logger.handlers = [handler]
        logger.setLevel(resolved_level)
        logger.propagate = False

    _CONFIGURED_SERVICES.add(service_name)


def get_correlation_id() -> Optional[str]:
    return _CORRELATION_ID_CTX.get()


def get_request_id() -> Optional[str]:
    return _REQUEST_ID_CTX.get()
