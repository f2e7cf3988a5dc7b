"""Admin token authentication for mutating endpoints.

The bulk upload route is the only mutating endpoint. It requires the shared
admin secret (``AUTH_ADMIN_TOKEN``) in the ``X-Admin-Token`` header, or as an
``Authorization: Bearer`` token.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Annotated

from fastapi import Header, Request

from app.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)


def extract_token(x_admin_token: str | None, authorization: str | None) -> str | None:
    """Return the presented admin token, preferring ``X-Admin-Token``.

    Examples:
        >>> extract_token("abc", None)
        'abc'
        >>> extract_token(None, "Bearer abc")
        'abc'
        >>> extract_token(None, "Basic abc") is None
        True
    """
    if x_admin_token and x_admin_token.strip():
        return x_admin_token.strip()
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
    return None


def validate_admin_token(provided_token: str | None, expected: str | None) -> None:
    """Validate the presented token against the configured admin token.

    Pure validation logic without FastAPI dependencies for easy testing.

    Raises:
        AuthenticationAppError: If no token is configured, none was presented,
            or the token does not match.
    """
    if not expected:
        logger.error(
            "auth.failed",
            extra={"reason": "admin_token_not_configured"},
        )
        raise AuthenticationAppError(
            code="admin_token_not_configured",
            message="Admin authentication is not configured",
            details={"hint": "Set the AUTH_ADMIN_TOKEN environment variable"},
        )

    if not provided_token:
        logger.warning("auth.failed", extra={"reason": "missing_admin_token"})
        raise AuthenticationAppError(
            code="missing_admin_token",
            message="Authentication token is required",
        )

    if not hmac.compare_digest(provided_token.encode(), expected.encode()):
        logger.warning(
            "auth.failed",
            extra={
                "reason": "invalid_admin_token",
                "token_hash": hashlib.sha256(provided_token.encode()).hexdigest()[:16],
            },
        )
        raise AuthenticationAppError(
            code="invalid_admin_token",
            message="Invalid authentication token",
        )


async def verify_admin_token(
    request: Request,
    x_admin_token: Annotated[str | None, Header(alias="X-Admin-Token")] = None,
    authorization: Annotated[str | None, Header(alias="Authorization")] = None,
) -> None:
    """FastAPI dependency guarding admin-only routes.

    The expected token comes from the settings the application was built
    with (``app.state.settings``).

    Usage:
        @router.post("/chapters", dependencies=[Depends(verify_admin_token)])
        async def upload_chapters(): ...

    Raises:
        AuthenticationAppError: 401 if authentication fails.
    """
    validate_admin_token(
        extract_token(x_admin_token, authorization),
        request.app.state.settings.auth.admin_token,
    )
    logger.info("auth.success")
