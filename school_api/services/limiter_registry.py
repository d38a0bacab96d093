"""Named rate limiters and the route groups they guard.

The registry is the explicit owner of every limiter in the application.
It is built once by the app factory and stored on ``app.state``; nothing
else holds limiter state.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterator

from school_api.core.config import RateLimitSettings, split_paths
from school_api.core.errors import ConfigurationAppError
from school_api.services.rate_limiter import RateLimiter, RateLimitPolicy

logger = logging.getLogger(__name__)

POLICY_NAMES = ("api", "auth", "strict", "upload")


def path_matches(path: str, prefix: str) -> bool:
    """Segment-aware prefix match (``/api`` matches ``/api/x`` but not ``/apix``)."""
    prefix = prefix.rstrip("/")
    if not prefix:
        return True
    return path == prefix or path.startswith(prefix + "/")


@dataclass(frozen=True)
class _Mount:
    prefix: str
    limiter: RateLimiter


class RateLimiterRegistry:
    """Ordered collection of uniquely named limiters and their mount points."""

    def __init__(self) -> None:
        self._limiters: dict[str, RateLimiter] = {}
        self._mounts: list[_Mount] = []

    def register(self, limiter: RateLimiter, *, paths: tuple[str, ...] = ()) -> RateLimiter:
        """Add a limiter, optionally mounting it on path prefixes.

        Raises:
            ConfigurationAppError: If a limiter with the same name exists.
        """
        if limiter.name in self._limiters:
            raise ConfigurationAppError(
                code="duplicate_rate_limiter",
                message=f"A rate limiter named {limiter.name!r} is already registered",
                details={"limiter": limiter.name},
            )
        self._limiters[limiter.name] = limiter
        for prefix in paths:
            self._mounts.append(_Mount(prefix=prefix, limiter=limiter))

        logger.info(
            "rate_limit.registered",
            extra={
                "limiter": limiter.name,
                "window_ms": limiter.window_ms,
                "max_requests": limiter.max_requests,
                "paths": list(paths),
            },
        )
        return limiter

    def get(self, name: str) -> RateLimiter:
        """Return the limiter registered under ``name``.

        Raises:
            KeyError: If no such limiter exists.
        """
        return self._limiters[name]

    def names(self) -> list[str]:
        return list(self._limiters)

    def paths_for(self, name: str) -> list[str]:
        return [mount.prefix for mount in self._mounts if mount.limiter.name == name]

    def limiters_for_path(self, path: str) -> list[RateLimiter]:
        """Limiters mounted on a prefix of ``path``, in registration order."""
        matched: list[RateLimiter] = []
        for mount in self._mounts:
            if path_matches(path, mount.prefix) and mount.limiter not in matched:
                matched.append(mount.limiter)
        return matched

    def sweep_all(self, now_ms: int | None = None) -> int:
        """Evict expired windows from every limiter; returns the total removed."""
        return sum(limiter.sweep(now_ms) for limiter in self._limiters.values())

    def __iter__(self) -> Iterator[RateLimiter]:
        return iter(list(self._limiters.values()))

    def __len__(self) -> int:
        return len(self._limiters)

    def __contains__(self, name: object) -> bool:
        return name in self._limiters


def build_policy(cfg: RateLimitSettings, name: str) -> RateLimitPolicy:
    """Read one named policy from settings."""
    return RateLimitPolicy(
        name=name,
        window_ms=getattr(cfg, f"{name}_window_ms"),
        max_requests=getattr(cfg, f"{name}_max_requests"),
        message=getattr(cfg, f"{name}_message"),
    )


def build_default_registry(
    cfg: RateLimitSettings,
    *,
    clock: Callable[[], float] = time.time,
) -> RateLimiterRegistry:
    """Build the preconfigured ``api``, ``auth``, ``strict`` and ``upload`` limiters.

    ``api`` is registered first so that a request under ``/api/auth`` is
    counted by the general limiter before the login limiter.

    Args:
        cfg: Rate limit settings.
        clock: Time source shared by all limiters (injectable for tests).

    Returns:
        RateLimiterRegistry with one limiter per policy.
    """
    registry = RateLimiterRegistry()
    for name in POLICY_NAMES:
        limiter = RateLimiter(build_policy(cfg, name), clock=clock)
        registry.register(limiter, paths=split_paths(getattr(cfg, f"{name}_paths")))
    return registry
