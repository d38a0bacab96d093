"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain, validation, HTTP and unexpected) and return consistent JSON
responses with proper HTTP status codes and traceability.

Design:
- AppError subclasses → the status carried by the subclass
- RequestValidationError → 400 VALIDATION_ERROR (INVALID_JSON for bad bodies)
- Unmatched routes → 404 ROUTE_NOT_FOUND
- Unexpected Exception → generic 500 (safety net)
- Throttling has its own handler and keeps the rate limit body
"""

import logging
import traceback

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from school_api.core.config import settings_for
from school_api.core.errors import AppError, RateLimitExceededError
from school_api.core.logging import get_request_id
from school_api.core.rate_limit import rate_limit_body

logger = logging.getLogger(__name__)

_HTTP_STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    413: "PAYLOAD_TOO_LARGE",
    415: "UNSUPPORTED_MEDIA_TYPE",
    429: "RATE_LIMIT_EXCEEDED",
}


def error_body(code: str, message: str, details: object = None) -> dict[str, object]:
    """Build the error payload shared by every handler."""
    body: dict[str, object] = {
        "success": False,
        "message": message,
        "code": code,
        "request_id": get_request_id(),
    }
    # Include details only if present (optional structured context)
    if details:
        body["details"] = details
    return body


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    The HTTP status comes from the error class (``ValidationAppError`` → 400,
    ``NotFoundAppError`` → 404, ...).

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
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

    return JSONResponse(
        status_code=status_code,
        content=error_body(exc.code, exc.message, exc.details),
    )


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
    """Render a throttled route dependency exactly like the middleware does."""
    return JSONResponse(
        status_code=exc.status_code,
        content=rate_limit_body(exc.message, exc.retry_after),
        headers=exc.headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Map request validation failures to 400 with per-field details."""
    errors = exc.errors()
    if any(err.get("type") == "json_invalid" for err in errors):
        return JSONResponse(
            status_code=400,
            content=error_body("INVALID_JSON", "Invalid JSON in request body"),
        )

    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", ""),
        }
        for err in errors
    ]
    message = details[0]["message"] if details else "Validation failed"

    logger.info(
        "request_validation_failed",
        extra={"request_path": request.url.path, "error_count": len(details)},
    )
    return JSONResponse(
        status_code=400,
        content=error_body("VALIDATION_ERROR", message or "Validation failed", details),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle framework HTTP errors, including unmatched routes."""
    if exc.status_code == 404 and exc.detail == "Not Found":
        return JSONResponse(
            status_code=404,
            content=error_body(
                "ROUTE_NOT_FOUND",
                f"Route {request.method} {request.url.path} not found",
            ),
        )

    code = _HTTP_STATUS_CODES.get(exc.status_code, "HTTP_ERROR")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Catches any exception not handled by specific handlers.
    Logs detailed information for debugging while returning generic message.
    Stack traces are only returned to clients in debug mode.

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with generic error (no implementation details leaked).
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
        exc_info=exc,
    )

    content = error_body(
        "INTERNAL_ERROR",
        "An unexpected error occurred. Please try again later.",
    )
    if settings_for(request.app).app.debug:
        content["stack"] = "".join(traceback.format_exception(exc))

    return JSONResponse(status_code=500, content=content)


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Must be called during app initialization, before route registration.
    Order matters: specific handlers registered before general fallback.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(RateLimitExceededError)(rate_limit_exceeded_handler)
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(Exception)(general_exception_handler)
