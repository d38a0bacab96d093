"""Pydantic schema for the health check."""

from __future__ import annotations

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    success: bool = True
    status: str = Field("healthy", description="Always 'healthy' when the process answers.")
    timestamp: str = Field(..., description="Current UTC time in ISO-8601.")
    environment: str = Field(..., description="Value of APP_ENV.")
    uptime: float = Field(..., description="Seconds since the process started serving.")
