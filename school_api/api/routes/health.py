from __future__ import annotations

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from school_api.schemas.health import HealthResponse

router = APIRouter(tags=["Health"])

_STARTED_AT = time.monotonic()


@router.get("/health", response_model=HealthResponse)
def health_check(request: Request) -> HealthResponse:
    """Health check endpoint.

    Used by load balancers and monitoring systems to determine service health.
    Not mounted under ``/api``, so it is never rate limited.
    """

    return HealthResponse(
        timestamp=datetime.now(timezone.utc).isoformat(),
        environment=request.app.state.environment,
        uptime=round(time.monotonic() - _STARTED_AT, 3),
    )
