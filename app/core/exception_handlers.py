"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain, routing and unexpected) and return consistent JSON responses with
proper HTTP status codes and traceability.

Envelope:
    {"success": false, "message": ..., "code": ..., "requestId": ..., "details"?: ...}

- AppError subclasses → their own ``status_code`` (400, 401, 404, 413, 429, 503)
- RateLimitExceededError additionally carries ``retryAfter`` and limiter headers
- Starlette HTTP errors (unknown route, wrong method) → same envelope
- Unexpected Exception → generic 500 (safety net)
"""

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.errors import AppError, RateLimitExceededError
from app.core.logging import get_request_id

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Resource not found"


def _limit_headers(request: Request, extra: dict[str, str] | None = None) -> dict[str, str] | None:
    """Rate-limit headers of an allowed decision, merged with ``extra``."""
    headers = {**getattr(request.state, "rate_limit_headers", {}), **(extra or {})}
    return headers or None


def _error_body(message: str, code: str, details: Any = None) -> dict[str, Any]:
    body: dict[str, Any] = {
        "success": False,
        "message": message,
        "code": code,
        "requestId": get_request_id(),
    }
    if details:
        body["details"] = details
    return body


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with the error's status code and envelope.
    """
    status_code = exc.status_code
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
        },
    )

    content = _error_body(exc.message, exc.code, exc.details)
    extra: dict[str, str] = {}

    if isinstance(exc, RateLimitExceededError):
        content["retryAfter"] = exc.retry_after
        extra = {**exc.headers, "Retry-After": str(exc.retry_after)}

    return JSONResponse(
        status_code=status_code,
        content=content,
        headers=_limit_headers(request, extra),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render framework HTTP errors (404, 405, ...) in the error envelope."""
    if exc.status_code == 404:
        message = NOT_FOUND_MESSAGE
        code = "not_found"
    else:
        message = str(exc.detail)
        code = f"http_{exc.status_code}"

    logger.info(
        "http_error_handled",
        extra={
            "status_code": exc.status_code,
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(message, code),
        headers=_limit_headers(request, getattr(exc, "headers", None)),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request parsing errors (e.g. a missing upload field) as 400."""
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg")}
        for error in exc.errors()
    ]
    logger.warning(
        "request_validation_failed",
        extra={"request_path": request.url.path, "errors": errors},
    )
    return JSONResponse(
        status_code=400,
        content=_error_body("Invalid request", "invalid_request", {"context": {"errors": errors}}),
        headers=_limit_headers(request),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic
    message. No stack traces reach the client.
    """
    logger.error(
        "unhandled_exception",
        exc_info=exc,
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content=_error_body(
            "An unexpected error occurred. Please try again later.",
            "internal_server_error",
        ),
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Must be called during app initialization, before route registration.

    Example:
        >>> from fastapi import FastAPI
        >>> from app.core.exception_handlers import setup_exception_handlers
        >>> app = FastAPI()
        >>> setup_exception_handlers(app)
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(RequestValidationError)(request_validation_handler)
    app.exception_handler(Exception)(general_exception_handler)
