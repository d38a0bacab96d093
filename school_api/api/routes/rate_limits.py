from __future__ import annotations

from fastapi import APIRouter, Request

from school_api.core.rate_limit import get_rate_limiters
from school_api.schemas.rate_limit import (
    RateLimitExceededResponse,
    RateLimitPolicyInfo,
    RateLimitsResponse,
)

router = APIRouter(tags=["Rate limits"])


@router.get(
    "/rate-limits",
    response_model=RateLimitsResponse,
    responses={429: {"model": RateLimitExceededResponse}},
)
def list_rate_limits(request: Request) -> RateLimitsResponse:
    """List configured limiters and how many clients each one tracks.

    Counts are per process. With several workers each reports its own view.
    """

    registry = get_rate_limiters(request)
    if registry is None:
        return RateLimitsResponse(enabled=False)

    limiters = [
        RateLimitPolicyInfo(**limiter.stats(), paths=registry.paths_for(limiter.name))
        for limiter in registry
    ]
    return RateLimitsResponse(enabled=True, limiters=limiters)
