"""HTTP middleware for request correlation and access logging.

Every request gets an id (the caller's ``X-Request-ID`` when provided, a UUID
otherwise). The id lives in a contextvar for the duration of the request so
every log line and error body carries it, and it is echoed back on the
response together with the handling time.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from app.core.logging import clear_request_id, set_request_id

logger = logging.getLogger("app.access")

# Longer ids are replaced rather than echoed into logs and headers
_MAX_REQUEST_ID_LENGTH = 128


def _incoming_request_id(request: Request, header_name: str) -> str:
    candidate = (request.headers.get(header_name) or "").strip()
    if candidate and len(candidate) <= _MAX_REQUEST_ID_LENGTH and candidate.isprintable():
        return candidate
    return str(uuid.uuid4())


async def request_id_middleware(request: Request, call_next) -> Response:
    """Propagate a request id and log one access line per request.

    Side Effects:
        - Sets request_id in contextvars (accessible via get_request_id())
        - Adds the request id header and ``X-Request-Duration-ms`` to the response
        - Logs ``http.request`` with method, path, status and duration
    """

    header_name = request.app.state.settings.log.request_id_header
    request_id = _incoming_request_id(request, header_name)
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "http.request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
