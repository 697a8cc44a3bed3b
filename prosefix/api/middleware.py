"""API middleware for request correlation, logging and timing, plus exception handlers."""

import time
import uuid
from collections.abc import Callable
from datetime import UTC, datetime

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from ..core.config import settings
from ..core.exceptions import ProsefixException
from ..utils.logging import get_logger, log_request

logger = get_logger(__name__)

# Polled by the browser every few seconds
_SKIP_LOGGING_PATHS = frozenset(["/api/health", "/favicon.ico"])


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a request ID for log correlation."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Add request timing and log slow requests.

    For streaming routes the time covers only the response headers; the body
    keeps flowing after this middleware returns.
    """

    def __init__(self, app):
        super().__init__(app)
        self._slow_threshold = settings.SLOW_REQUEST_THRESHOLD

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        response = await call_next(request)
        process_time = time.perf_counter() - start_time
        response.headers["X-Process-Time"] = f"{process_time:.4f}"

        if process_time > self._slow_threshold:
            logger.warning(
                "Slow request: %s %s took %.2fs",
                request.method,
                request.url.path,
                process_time,
            )

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every API request with its request ID."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path in _SKIP_LOGGING_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        log_request(
            request.method,
            path,
            response.status_code,
            (time.perf_counter() - start_time) * 1000,
            request_id=getattr(request.state, "request_id", None),
        )
        return response


async def exception_handler(request: Request, exc: ProsefixException):
    """Render application exceptions as JSON."""
    logger.error(
        f"Exception: {exc.error_code} - {exc.detail}",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "status_code": exc.status_code,
        },
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def generic_exception_handler(request: Request, exc: Exception):
    """Catch-all for unexpected exceptions."""
    logger.error(
        f"Unhandled exception: {exc!s}",
        exc_info=True,
        extra={"request_id": getattr(request.state, "request_id", None)},
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "message": "Internal server error",
            "status_code": 500,
            "timestamp": datetime.now(UTC).isoformat(),
        },
    )
