"""Rate limiting for the HTTP layer.

This module wires the limiters owned by the application's
``RateLimiterRegistry`` into request handling.

Two entry points:
- ``rate_limit_middleware``: guards whole route groups. Every limiter mounted
  on a prefix of the request path is checked in registration order; the
  first rejection short-circuits with a 429 response.
- ``enforce_rate_limit(name)``: FastAPI dependency for a single route
  (e.g., sensitive operations or uploads).

A throttled request is an expected outcome: it is logged at warning level
and answered with a structured body, never treated as a server error.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse

from school_api.core.errors import ConfigurationAppError, RateLimitExceededError
from school_api.services.limiter_registry import POLICY_NAMES, RateLimiterRegistry
from school_api.services.rate_limiter import RateLimitDecision, hash_limiter_key

logger = logging.getLogger(__name__)

RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"


def get_rate_limiters(request: Request) -> RateLimiterRegistry | None:
    """Return the registry installed by the app factory, or None when disabled."""
    return getattr(request.app.state, "rate_limiters", None)


def rate_limit_body(message: str, retry_after: int) -> dict[str, object]:
    """JSON body returned to throttled clients."""
    return {
        "success": False,
        "message": message,
        "code": RATE_LIMIT_EXCEEDED,
        "retryAfter": retry_after,
    }


def rate_limit_response(decision: RateLimitDecision) -> JSONResponse:
    """Build the 429 response for a rejected decision."""
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=rate_limit_body(decision.message, decision.retry_after_seconds),
        headers=decision.headers(),
    )


def _log_decision(decision: RateLimitDecision, request: Request) -> None:
    fields = {
        "limiter": decision.limiter,
        "key_hash": hash_limiter_key(decision.key),
        "limit": decision.limit,
        "remaining": decision.remaining,
        "request_path": request.url.path,
        "request_method": request.method,
    }
    if decision.allowed:
        logger.debug("rate_limit.allowed", extra=fields)
        return
    logger.warning(
        "rate_limit.exceeded",
        extra={**fields, "retry_after_s": decision.retry_after_seconds},
    )


async def rate_limit_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """HTTP middleware enforcing the limiters mounted on the request path.

    Usage:
        app.middleware("http")(rate_limit_middleware)

    When several limiters match (``/api`` and ``/api/auth``), each one counts
    the request; the response carries the headers of the last limiter that
    checked it. Headers already set further in (by a route dependency) are
    left untouched.

    Args:
        request: Incoming request.
        call_next: Next middleware/route handler in the stack.

    Returns:
        The downstream response, or a 429 response if any limiter rejected.
    """
    registry = get_rate_limiters(request)
    if registry is None:
        return await call_next(request)

    last: RateLimitDecision | None = None
    for limiter in registry.limiters_for_path(request.url.path):
        decision = limiter.check(request)
        _log_decision(decision, request)
        if not decision.allowed:
            return rate_limit_response(decision)
        last = decision

    response = await call_next(request)
    if last is not None:
        for name, value in last.headers().items():
            response.headers.setdefault(name, value)
    return response


def _unknown_limiter(name: str) -> ConfigurationAppError:
    return ConfigurationAppError(
        code="unknown_rate_limiter",
        message=f"No rate limiter named {name!r} is configured",
        details={"limiter": name, "hint": "Use one of: " + ", ".join(POLICY_NAMES)},
    )


def enforce_rate_limit(name: str) -> Callable[[Request, Response], Awaitable[None]]:
    """Build a FastAPI dependency that applies the named limiter to one route.

    Usage:
        @router.post("/uploads", dependencies=[Depends(enforce_rate_limit("upload"))])

    Args:
        name: Name of a preconfigured limiter (``api``, ``auth``, ``strict``,
            ``upload``).

    Returns:
        Dependency callable. It sets the ``X-RateLimit-*`` headers when the
        request is allowed and raises ``RateLimitExceededError`` otherwise.

    Raises:
        ConfigurationAppError: If ``name`` is not a known policy, so the
            route fails to wire up instead of failing its requests.
    """
    if name not in POLICY_NAMES:
        raise _unknown_limiter(name)

    async def dependency(request: Request, response: Response) -> None:
        registry = get_rate_limiters(request)
        if registry is None:
            return

        if name not in registry:
            raise _unknown_limiter(name)

        decision = registry.get(name).check(request)
        _log_decision(decision, request)
        if not decision.allowed:
            raise RateLimitExceededError(
                decision.message,
                retry_after=decision.retry_after_seconds,
                headers=decision.headers(),
            )
        response.headers.update(decision.headers())

    dependency.__name__ = f"enforce_{name}_rate_limit"
    return dependency
