"""Prometheus request metrics plus the shared health and metrics routes."""

from __future__ import annotations

import time

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

_REQUEST_COUNTER = Counter(
    "ordering_http_requests_total",
    "HTTP requests handled, by route template and status",
    labelnames=("service", "method", "route", "status"),
)
_REQUEST_LATENCY = Histogram(
    "ordering_http_request_latency_seconds",
    "Latency of HTTP requests in seconds",
    labelnames=("service", "method", "route"),
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)


class MetricsMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, *, service_name: str) -> None:
        super().__init__(app)
        self._service_name = service_name

    def _record(self, request: Request, status: str, started: float) -> None:
        route = request.scope.get("route")
        template: str = getattr(route, "path", "unmatched")
        method = request.method.upper()
        _REQUEST_COUNTER.labels(self._service_name, method, template, status).inc()
        _REQUEST_LATENCY.labels(self._service_name, method, template).observe(
            time.perf_counter() - started
        )

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            self._record(request, "500", started)
            raise
        self._record(request, str(response.status_code), started)
        return response


def setup_metrics(app: FastAPI, *, service_name: str) -> None:
    """Attach the metrics middleware and expose ``/metrics`` and ``/health``."""

    if getattr(app.state, "_metrics_configured", False):
        return

    app.add_middleware(MetricsMiddleware, service_name=service_name)

    async def metrics_endpoint() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    async def health_endpoint() -> dict[str, str]:
        return {"status": "ok", "service": service_name}

    app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], include_in_schema=False)
    app.add_api_route("/health", health_endpoint, methods=["GET"], include_in_schema=False)
    app.state._metrics_configured = True
