"""
Application Middleware for the Short Video API.

Cross-cutting request handling shared by every route.

Key Middleware Components:
- `CorrelationMiddleware`: Assigns a correlation ID to every request (or reuses
  the caller's ``X-Correlation-ID`` / ``X-Request-ID``) and echoes it back.
- `ErrorHandlingMiddleware`: Converts `VideoAPIException` subclasses into the
  JSON error envelope with the exception's status code, and any other
  exception into a logged 500 ``INTERNAL_ERROR``.
- `PerformanceMiddleware`: Logs request start and completion, adds the
  ``X-Process-Time`` header and flags slow requests.
- `RequestValidationMiddleware`: Rejects oversized bodies and unsupported
  content types before they reach the routes.

Ordering: `main.py` registers `ErrorHandlingMiddleware` first so it sits
closest to the routes, and `CorrelationMiddleware` last so the correlation ID
is set before anything else runs.
"""

import time
import uuid
from typing import Any, Callable, Dict, Optional
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from core import config
from .logging_config import set_correlation_id, get_logger
from .exceptions import VideoAPIException

logger = get_logger("core.middleware")


def create_error_response(
    error_type: str,
    error_code: str,
    message: str,
    status_code: int = 400,
    correlation_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Create standardized error response"""

    error_data = {"error": {"type": error_type, "code": error_code, "message": message}}

    if correlation_id:
        error_data["error"]["correlation_id"] = correlation_id

    if details:
        error_data["error"]["details"] = details

    return JSONResponse(status_code=status_code, content=error_data)


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Middleware to add correlation IDs to requests"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = (
            request.headers.get("X-Correlation-ID")
            or request.headers.get("X-Request-ID")
            or str(uuid.uuid4())
        )

        set_correlation_id(correlation_id)
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware for centralized error handling"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except VideoAPIException as e:
            log = logger.error if e.status_code >= 500 else logger.warning
            log(
                f"Application error: {str(e)}",
                extra={
                    "error_type": type(e).__name__,
                    "error_code": e.error_code,
                    "path": request.url.path,
                    "method": request.method,
                },
            )
            return create_error_response(
                type(e).__name__,
                e.error_code,
                e.message,
                status_code=e.status_code,
                correlation_id=getattr(request.state, "correlation_id", None),
                details=e.details,
            )

        except Exception as e:
            logger.error(
                f"Unexpected error: {str(e)}",
                extra={
                    "error_type": type(e).__name__,
                    "path": request.url.path,
                    "method": request.method,
                },
                exc_info=True,
            )
            return create_error_response(
                "InternalServerError",
                "INTERNAL_ERROR",
                "An unexpected error occurred",
                status_code=500,
                correlation_id=getattr(request.state, "correlation_id", None),
            )


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Middleware for performance monitoring and logging"""

    def __init__(self, app: ASGIApp, slow_request_seconds: float = 1.0):
        super().__init__(app)
        self.slow_request_seconds = slow_request_seconds

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        logger.debug(
            f"Request started: {request.method} {request.url.path}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "query_params": dict(request.query_params),
                "client_ip": request.client.host if request.client else None,
            },
        )

        response = await call_next(request)

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(round(process_time * 1000, 2))

        logger.info(
            f"Request completed: {request.method} {request.url.path} - {response.status_code}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "process_time_ms": round(process_time * 1000, 2),
            },
        )

        if process_time > self.slow_request_seconds:
            logger.warning(
                f"Slow request detected: {request.method} {request.url.path}",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "process_time_ms": round(process_time * 1000, 2),
                    "threshold_exceeded": True,
                },
            )

        return response


class RequestValidationMiddleware(BaseHTTPMiddleware):
    """Middleware for request validation"""

    ALLOWED_CONTENT_TYPES = (
        "application/json",
        "application/x-www-form-urlencoded",
        "multipart/form-data",
    )

    def __init__(self, app: ASGIApp, max_request_size: Optional[int] = None):
        super().__init__(app)
        # Room for multipart framing on top of the largest allowed upload
        self.max_request_size = max_request_size or config.get_max_upload_bytes() + 1024 * 1024

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("content-length")
        try:
            body_size = int(content_length) if content_length else 0
        except ValueError:
            return create_error_response(
                "BadRequest", "INVALID_CONTENT_LENGTH", "Invalid Content-Length header"
            )

        if body_size > self.max_request_size:
            logger.warning(
                f"Request too large: {body_size} bytes",
                extra={
                    "content_length": body_size,
                    "max_size": self.max_request_size,
                    "path": request.url.path,
                },
            )
            return create_error_response(
                "PayloadTooLarge",
                "REQUEST_TOO_LARGE",
                f"Request size exceeds maximum allowed size of {self.max_request_size} bytes",
                status_code=413,
            )

        # Bodiless POSTs (likes, follows) carry no content type
        if request.method in ("POST", "PUT", "PATCH") and body_size > 0:
            content_type = request.headers.get("content-type", "")
            if not any(allowed in content_type for allowed in self.ALLOWED_CONTENT_TYPES):
                logger.warning(
                    f"Invalid content type: {content_type}",
                    extra={
                        "content_type": content_type,
                        "path": request.url.path,
                        "method": request.method,
                    },
                )
                return create_error_response(
                    "UnsupportedMediaType",
                    "INVALID_CONTENT_TYPE",
                    f"Content type '{content_type}' is not supported",
                    status_code=415,
                )

        return await call_next(request)
