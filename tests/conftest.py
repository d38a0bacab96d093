"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before any settings import so the test
process never picks up a developer's .env file.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_FORMAT", "plain")

from typing import Callable

import pytest
from fastapi import Request

from school_api.core.app_factory import create_app
from school_api.core.config import AppSettings, LogSettings, RateLimitSettings, Settings
from school_api.services.limiter_registry import build_default_registry


class FakeClock:
    """Deterministic clock returning UNIX seconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


def make_request(host: str | None = "1.2.3.4", path: str = "/api/things", method: str = "GET") -> Request:
    """Build a bare Starlette request with the given client address."""
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "headers": [],
        "query_string": b"",
        "client": (host, 50000) if host is not None else None,
    }
    return Request(scope)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def request_factory() -> Callable[..., Request]:
    return make_request


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Build isolated Settings with app/log groups and rate limit overrides."""

    def _make(
        *,
        app: AppSettings | None = None,
        log: LogSettings | None = None,
        **rate_limit: object,
    ) -> Settings:
        rate_limit.setdefault("sweep_enabled", False)
        return Settings(
            app_env="testing",
            app=app or AppSettings(),
            rate_limit=RateLimitSettings(**rate_limit),
            log=log or LogSettings(level="WARNING", format="plain"),
        )

    return _make


@pytest.fixture
def make_app(make_settings, clock: FakeClock):
    """Build an app whose limiters share the fake clock."""

    def _make(**overrides: object):
        cfg = make_settings(**overrides)
        registry = build_default_registry(cfg.rate_limit, clock=clock) if cfg.rate_limit.enabled else None
        return create_app(cfg, registry=registry)

    return _make
