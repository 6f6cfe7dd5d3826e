"""Error taxonomy shared by every service.

Each error carries the HTTP status it maps to and a client-safe message.
Internal detail (store errors, identity-provider strings) belongs in operator
logs only and is never placed in ``message``.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class PlatformError(Exception):
    """Base class for errors rendered as ``{"error": message}``."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def headers(self) -> Mapping[str, str] | None:
        return None

    def body(self) -> dict[str, Any]:
        return {"error": self.message}


class Unauthorized(PlatformError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Authentication required"


class Forbidden(PlatformError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Insufficient permissions"


class NotFound(PlatformError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found"


class InvalidInput(PlatformError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid request"


class InvalidTransition(PlatformError):
    """The order state machine refused the requested move."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, current: str, requested: str, message: str | None = None) -> None:
        self.current = current
        self.requested = requested
        super().__init__(message or f"Cannot transition from {current} to {requested}")


class Conflict(PlatformError):
    """Another caller changed the target between our read and our write."""

    status_code = status.HTTP_409_CONFLICT
    message = "The order was modified concurrently, reload and retry"


class RateLimited(PlatformError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    message = "Too many attempts. Please wait before trying again."

    def __init__(
        self,
        *,
        retry_after: int,
        limit: int | None = None,
        remaining: int | None = None,
        reset_at: int | None = None,
        message: str | None = None,
    ) -> None:
        self.limit = limit
        self.remaining = remaining
        self.reset_at = reset_at
        self.retry_after = max(retry_after, 0)
        super().__init__(message)

    def headers(self) -> Mapping[str, str]:
        headers = {"Retry-After": str(self.retry_after)}
        if self.limit is not None:
            headers["X-RateLimit-Limit"] = str(self.limit)
            headers["X-RateLimit-Remaining"] = str(self.remaining or 0)
            headers["X-RateLimit-Reset"] = str(self.reset_at or 0)
        return headers

    def body(self) -> dict[str, Any]:
        return {"error": self.message, "retry_after_seconds": self.retry_after}


class UpstreamFailure(PlatformError):
    """Storage or identity-provider failure."""

    message = "Service temporarily unavailable"


def _first_validation_message(exc: RequestValidationError) -> str:
    for error in exc.errors():
        message = error.get("msg")
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        if message:
            return f"{'.'.join(location)}: {message}" if location else str(message)
    return InvalidInput.message


def install_error_handlers(app: FastAPI) -> None:
    """Render the taxonomy and body validation failures as ``{"error": ...}``."""

    @app.exception_handler(PlatformError)
    async def _platform_error_handler(request: Request, exc: PlatformError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "Request failed with upstream error",
                extra={"path": request.url.path, "error_type": type(exc).__name__},
            )
        return JSONResponse(status_code=exc.status_code, content=exc.body(), headers=exc.headers())

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": _first_validation_message(exc)},
        )


__all__ = [
    "Conflict",
    "Forbidden",
    "InvalidInput",
    "InvalidTransition",
    "NotFound",
    "PlatformError",
    "RateLimited",
    "Unauthorized",
    "UpstreamFailure",
    "install_error_handlers",
]
