"""HTTP middleware for request ID propagation and correlation.

Every request/response pair carries a request ID for log correlation:
- an incoming request ID header (``LOG_REQUEST_ID_HEADER``) is reused,
  otherwise a UUID is generated
- the ID lives in contextvars for the duration of the request
- the ID and total duration are returned as response headers

Installed outermost so throttled (429) responses are correlated as well.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from school_api.core.config import settings_for
from school_api.core.exception_handlers import general_exception_handler
from school_api.core.logging import clear_request_id, set_request_id

logger = logging.getLogger(__name__)


async def request_id_middleware(request: Request, call_next) -> Response:
    """Bind a request ID to the request and report its duration.

    Unhandled exceptions are rendered here, while the ID is still bound, so
    500 responses carry the same ID in their body and headers.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with the request ID and
            ``X-Request-Duration-ms`` headers added.
    """

    header_name = settings_for(request.app).log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        try:
            response: Response = await call_next(request)
        except Exception as exc:
            response = await general_exception_handler(request, exc)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "request.completed",
            extra={
                "request_method": request.method,
                "request_path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
