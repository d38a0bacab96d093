"""Pydantic schemas for rate limiting responses."""

from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field


class RateLimitExceededResponse(BaseModel):
    """Body returned with HTTP 429 when a client exceeds its budget."""

    model_config = ConfigDict(populate_by_name=True)

    success: Literal[False] = False
    message: str = Field(..., description="Configured message of the limiter that rejected the request.")
    code: Literal["RATE_LIMIT_EXCEEDED"] = "RATE_LIMIT_EXCEEDED"
    retry_after: int = Field(
        ...,
        alias="retryAfter",
        description="Seconds until the client's window resets (same value as Retry-After).",
    )


class RateLimitPolicyInfo(BaseModel):
    """Public view of one configured limiter."""

    name: str = Field(..., description="Limiter (and store) name.")
    window_ms: int = Field(..., description="Fixed window length in milliseconds.")
    max_requests: int = Field(..., description="Requests allowed per client per window.")
    paths: List[str] = Field(
        default_factory=list,
        description="Path prefixes guarded by this limiter (empty when applied per route).",
    )
    tracked_keys: int = Field(..., description="Clients currently holding a window in this process.")


class RateLimitsResponse(BaseModel):
    """Listing of every limiter in the running process."""

    success: bool = True
    enabled: bool = Field(..., description="Whether rate limiting is enforced.")
    limiters: List[RateLimitPolicyInfo] = Field(default_factory=list)
