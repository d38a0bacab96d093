"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.

Each subclass carries the HTTP status it maps to, so the exception handlers
never need to know about individual error types.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    field: str
    limiter: str
    window_ms: int
    max_requests: int
    retry_after: int
    resource: str
    request_id: str
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
    details: ErrorDetails | list[dict[str, Any]] | None = None

    status_code: ClassVar[int] = 500

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when request input fails validation."""

    status_code: ClassVar[int] = 400


class AuthenticationAppError(AppError):
    """Raised when a caller is not authenticated."""

    status_code: ClassVar[int] = 401


class AuthorizationAppError(AppError):
    """Raised when an authenticated caller lacks access."""

    status_code: ClassVar[int] = 403


class NotFoundAppError(AppError):
    """Raised when a requested resource does not exist."""

    status_code: ClassVar[int] = 404

    @classmethod
    def for_resource(cls, resource: str = "Resource") -> "NotFoundAppError":
        return cls(
            code="NOT_FOUND",
            message=f"{resource} not found",
            details={"resource": resource},
        )


class ConflictAppError(AppError):
    """Raised when a write collides with existing state."""

    status_code: ClassVar[int] = 409


class ConfigurationAppError(AppError):
    """Raised at setup time when configuration is invalid.

    These are fatal: they are expected to abort application startup rather
    than surface on a request.
    """

    status_code: ClassVar[int] = 500


class RateLimitExceededError(AppError):
    """Raised by the per-route rate limit dependency when a caller is throttled.

    Rendered by its own handler with the throttling body, never by the
    generic application error handler.
    """

    status_code: ClassVar[int] = 429

    def __init__(self, message: str, *, retry_after: int, headers: dict[str, str]) -> None:
        super().__init__(
            code="RATE_LIMIT_EXCEEDED",
            message=message,
            details={"retry_after": retry_after},
        )
        self.retry_after = retry_after
        self.headers = headers
