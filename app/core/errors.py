"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.

Cache and rate-limiter infrastructure failures are deliberately absent: they
are recovered inside the adapters and never reach the HTTP layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Every key is optional; an error sets only the ones that apply.
    """

    hint: str
    max_bytes: int
    content_type: str
    chapter_id: str
    chapter: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    status_code = 400

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when admin authentication fails."""

    status_code = 401


class NotFoundAppError(AppError):
    """Raised when a requested record does not exist."""

    status_code = 404


class PayloadTooLargeAppError(AppError):
    """Raised when an upload exceeds the configured size limit."""

    status_code = 413


class DuplicateChapterError(ValidationAppError):
    """Raised by the store when a chapter name is already taken."""


@dataclass
class RateLimitExceededError(AppError):
    """Raised when a client exhausts its request allowance.

    This is a business rule, not a failure: the handler turns it into a 429
    with retry guidance and the limiter's headers.
    """

    retry_after: int = 0
    headers: dict[str, str] = field(default_factory=dict)

    status_code = 429


class StoreAppError(AppError):
    """Raised when the document store (source of truth) fails."""

    status_code = 503
