"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat required fields as required
    constructor arguments, which is not how BaseSettings is intended to be used.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_rate_limit_settings() -> "RateLimitSettings":
    return RateLimitSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


def split_paths(value: str | None) -> tuple[str, ...]:
    """Parse a comma-separated list of path prefixes.

    Examples:
        >>> split_paths("/api, /api/auth")
        ('/api', '/api/auth')
        >>> split_paths("")
        ()
    """
    if not value:
        return ()
    return tuple(part.strip() for part in value.split(",") if part.strip())


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    name: str = Field(
        "School Portal API",
        description="Service name shown in OpenAPI docs",
    )
    debug: bool = Field(
        False,
        description="Enable debug mode (stack traces in error responses)",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Rate limiting policies.

    Each policy is a parameterization of the same fixed-window mechanism.
    Window and ceiling are validated as positive here so a misconfiguration
    fails at startup, not on the first request.
    """

    enabled: bool = Field(
        True,
        description="Enable rate limiting on every mounted route group",
    )
    sweep_enabled: bool = Field(
        True,
        description="Run the background sweep that evicts expired windows",
    )
    sweep_interval_seconds: float = Field(
        60.0,
        description="Seconds between background sweeps (independent of any window)",
        gt=0,
    )

    api_window_ms: int = Field(60_000, ge=1)
    api_max_requests: int = Field(100, ge=1)
    api_message: str = "Too many API requests. Please wait a moment."
    api_paths: str = Field("/api", description="Comma-separated path prefixes")

    auth_window_ms: int = Field(15 * 60_000, ge=1)
    auth_max_requests: int = Field(5, ge=1)
    auth_message: str = "Too many login attempts. Please try again in 15 minutes."
    auth_paths: str = Field("/api/auth", description="Comma-separated path prefixes")

    strict_window_ms: int = Field(60 * 60_000, ge=1)
    strict_max_requests: int = Field(10, ge=1)
    strict_message: str = "Rate limit exceeded for this operation. Please try again later."
    strict_paths: str = Field("", description="Comma-separated path prefixes")

    upload_window_ms: int = Field(60 * 60_000, ge=1)
    upload_max_requests: int = Field(20, ge=1)
    upload_message: str = "Too many file uploads. Please try again later."
    upload_paths: str = Field("", description="Comma-separated path prefixes")

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="json or plain")
    output: str = Field("stdout", description="stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10 * 1024 * 1024, description="Rotate after this many bytes (0 disables)")
    backup_count: int = Field(5, description="Rotated files to keep")
    request_id_header: str = Field("X-Request-ID", description="Correlation header name")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()


def settings_for(app) -> Settings:
    """Settings the app was created with, or the process-wide ones."""
    return getattr(app.state, "settings", settings)
