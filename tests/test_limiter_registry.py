"""Unit tests for the limiter registry and the preconfigured policies."""

import pytest

from school_api.core.config import RateLimitSettings
from school_api.core.errors import ConfigurationAppError
from school_api.services.limiter_registry import (
    RateLimiterRegistry,
    build_default_registry,
    path_matches,
)
from school_api.services.rate_limiter import RateLimiter, RateLimitPolicy


def _limiter(name: str, clock, max_requests: int = 1) -> RateLimiter:
    return RateLimiter(RateLimitPolicy(name=name, window_ms=60_000, max_requests=max_requests), clock=clock)


@pytest.mark.parametrize(
    ("path", "prefix", "expected"),
    [
        ("/api", "/api", True),
        ("/api/", "/api", True),
        ("/api/students", "/api", True),
        ("/api/auth/login", "/api/auth", True),
        ("/apix", "/api", False),
        ("/health", "/api", False),
        ("/api/auth", "/api/auth/", True),
        ("/anything", "/", True),
    ],
)
def test_path_matches(path: str, prefix: str, expected: bool) -> None:
    assert path_matches(path, prefix) is expected


def test_duplicate_names_are_rejected(clock) -> None:
    registry = RateLimiterRegistry()
    registry.register(_limiter("api", clock))

    with pytest.raises(ConfigurationAppError) as exc_info:
        registry.register(_limiter("api", clock))

    assert exc_info.value.code == "duplicate_rate_limiter"


def test_same_key_tracked_independently_per_limiter(clock) -> None:
    registry = RateLimiterRegistry()
    api = registry.register(_limiter("api", clock))
    login = registry.register(_limiter("login", clock))

    assert api.consume("1.2.3.4").allowed is True
    assert api.consume("1.2.3.4").allowed is False

    assert login.consume("1.2.3.4").allowed is True


def test_limiters_for_path_in_registration_order(clock) -> None:
    registry = RateLimiterRegistry()
    registry.register(_limiter("api", clock), paths=("/api",))
    registry.register(_limiter("auth", clock), paths=("/api/auth",))
    registry.register(_limiter("upload", clock))

    assert [limiter.name for limiter in registry.limiters_for_path("/api/auth/login")] == ["api", "auth"]
    assert [limiter.name for limiter in registry.limiters_for_path("/api/students")] == ["api"]
    assert registry.limiters_for_path("/health") == []


def test_limiter_mounted_twice_matches_once(clock) -> None:
    registry = RateLimiterRegistry()
    registry.register(_limiter("api", clock), paths=("/api", "/api/v2"))

    assert [limiter.name for limiter in registry.limiters_for_path("/api/v2/x")] == ["api"]
    assert registry.paths_for("api") == ["/api", "/api/v2"]


def test_lookup_and_container_protocol(clock) -> None:
    registry = RateLimiterRegistry()
    limiter = registry.register(_limiter("api", clock))

    assert registry.get("api") is limiter
    assert "api" in registry
    assert "auth" not in registry
    assert len(registry) == 1
    assert list(registry) == [limiter]
    with pytest.raises(KeyError):
        registry.get("auth")


def test_sweep_all_covers_every_store(clock) -> None:
    registry = RateLimiterRegistry()
    api = registry.register(_limiter("api", clock))
    auth = registry.register(_limiter("auth", clock))
    api.consume("a")
    auth.consume("a")
    auth.consume("b")

    clock.advance(60)

    assert registry.sweep_all() == 3
    assert len(api.store) == 0
    assert len(auth.store) == 0


def test_default_registry_policies(clock) -> None:
    registry = build_default_registry(RateLimitSettings(), clock=clock)

    assert registry.names() == ["api", "auth", "strict", "upload"]

    api = registry.get("api")
    assert (api.window_ms, api.max_requests) == (60_000, 100)
    assert api.policy.message == "Too many API requests. Please wait a moment."
    assert registry.paths_for("api") == ["/api"]

    auth = registry.get("auth")
    assert (auth.window_ms, auth.max_requests) == (900_000, 5)
    assert registry.paths_for("auth") == ["/api/auth"]

    strict = registry.get("strict")
    assert (strict.window_ms, strict.max_requests) == (3_600_000, 10)
    assert registry.paths_for("strict") == []

    upload = registry.get("upload")
    assert (upload.window_ms, upload.max_requests) == (3_600_000, 20)
    assert upload.policy.message == "Too many file uploads. Please try again later."


def test_default_registry_reads_overrides(clock) -> None:
    cfg = RateLimitSettings(
        upload_max_requests=3,
        upload_paths="/api/uploads, /api/files",
    )

    registry = build_default_registry(cfg, clock=clock)

    assert registry.get("upload").max_requests == 3
    assert registry.paths_for("upload") == ["/api/uploads", "/api/files"]
    assert [limiter.name for limiter in registry.limiters_for_path("/api/files/1")] == ["api", "upload"]


def test_default_registry_limiters_do_not_share_stores(clock) -> None:
    registry = build_default_registry(RateLimitSettings(), clock=clock)

    stores = {id(limiter.store) for limiter in registry}

    assert len(stores) == 4
