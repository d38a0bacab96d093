"""Fixed-window request limiter.

A limiter counts requests per client key inside a fixed window and decides,
for every request, whether the client may proceed. The request that crosses
the ceiling is itself counted and rejected.

Reading and incrementing a key's count happen with no suspension point in
between; ``check`` and ``consume`` stay synchronous.
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

from fastapi import Request

from school_api.adapters.rate_limit.base import AbstractRateLimitStore
from school_api.adapters.rate_limit.in_memory import InMemoryRateLimitStore
from school_api.core.errors import ConfigurationAppError

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT_KEY = "unknown"
DEFAULT_MESSAGE = "Too many requests, please try again later"

KeyGenerator = Callable[[Request], str]


def client_ip_key(request: Request) -> str:
    """Default key generator: the remote address of the transport.

    Clients whose address cannot be determined share the ``"unknown"`` key
    and therefore a single budget.
    """
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT_KEY


def hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing client identity."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


@dataclass(frozen=True)
class RateLimitPolicy:
    """Parameters of one named limiter.

    Attributes:
        name: Identifier of the limiter's isolated store.
        window_ms: Fixed window length in milliseconds.
        max_requests: Inclusive ceiling of requests per key per window.
        message: Text returned to throttled clients.
    """

    name: str
    window_ms: int
    max_requests: int
    message: str = DEFAULT_MESSAGE

    def validate(self) -> None:
        """Raise ConfigurationAppError if the policy cannot be enforced."""
        problems: list[str] = []
        if not self.name:
            problems.append("name must be a non-empty string")
        for field, value in (("window_ms", self.window_ms), ("max_requests", self.max_requests)):
            # bool is an int subclass; True must not pass as a ceiling of 1.
            if isinstance(value, bool) or not isinstance(value, int):
                problems.append(f"{field} must be an integer")
            elif value <= 0:
                problems.append(f"{field} must be > 0")
        if problems:
            raise ConfigurationAppError(
                code="invalid_rate_limit_config",
                message=f"Invalid rate limit policy {self.name!r}: " + "; ".join(problems),
                details={
                    "limiter": self.name,
                    "window_ms": self.window_ms,
                    "max_requests": self.max_requests,
                },
            )


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a single limiter check.

    Attributes:
        allowed: Whether the request may proceed.
        limiter: Name of the limiter that produced the decision.
        key: Client key the request was counted against.
        limit: Configured ceiling.
        remaining: Requests left in the window, floored at 0.
        reset_time_ms: UNIX epoch milliseconds when the window resets.
        retry_after_seconds: Whole seconds until the window resets.
        message: Message to return when the request is rejected.
    """

    allowed: bool
    limiter: str
    key: str
    limit: int
    remaining: int
    reset_time_ms: int
    retry_after_seconds: int
    message: str

    def headers(self) -> dict[str, str]:
        """Response headers describing the caller's budget.

        ``Retry-After`` is included only when the request was rejected.
        """
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_time_ms),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after_seconds)
        return headers


class RateLimiter:
    """Fixed-window limiter that owns its counting store.

    Two limiters never share a store, so the same client key is tracked
    independently under, e.g., ``api`` and ``auth``.
    """

    def __init__(
        self,
        policy: RateLimitPolicy,
        *,
        store: AbstractRateLimitStore | None = None,
        key_generator: KeyGenerator = client_ip_key,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            policy: Window, ceiling, message and store name.
            store: Counting store; a fresh in-memory store when omitted.
            key_generator: Maps a request to the key it is counted against.
            clock: Time source returning UNIX time in seconds.

        Raises:
            ConfigurationAppError: If the policy is invalid.
        """
        policy.validate()
        self._policy = policy
        self._store = store if store is not None else InMemoryRateLimitStore()
        self._key_generator = key_generator
        self._clock = clock

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"RateLimiter(name={self.name!r}, window_ms={self.window_ms}, "
            f"max_requests={self.max_requests}, keys={len(self._store)})"
        )

    @property
    def name(self) -> str:
        return self._policy.name

    @property
    def policy(self) -> RateLimitPolicy:
        return self._policy

    @property
    def window_ms(self) -> int:
        return self._policy.window_ms

    @property
    def max_requests(self) -> int:
        return self._policy.max_requests

    @property
    def store(self) -> AbstractRateLimitStore:
        return self._store

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def key_for(self, request: Request) -> str:
        """Derive the client key, falling back to ``"unknown"``."""
        try:
            key = self._key_generator(request)
        except Exception:
            logger.warning(
                "rate_limit.key_generator_failed",
                extra={"limiter": self.name},
                exc_info=True,
            )
            return UNKNOWN_CLIENT_KEY
        return key or UNKNOWN_CLIENT_KEY

    def check(self, request: Request) -> RateLimitDecision:
        """Count the request and decide whether it may proceed."""
        return self.consume(self.key_for(request))

    def consume(self, key: str) -> RateLimitDecision:
        """Count one request for an already-derived key.

        Args:
            key: Client key.

        Returns:
            RateLimitDecision with the allowance and header metadata.
        """
        key = key or UNKNOWN_CLIENT_KEY
        now_ms = self.now_ms()
        entry = self._store.increment(key, window_ms=self.window_ms, now_ms=now_ms)

        remaining = max(0, self.max_requests - entry.count)
        retry_after = math.ceil((entry.reset_time_ms - now_ms) / 1000)

        return RateLimitDecision(
            allowed=entry.count <= self.max_requests,
            limiter=self.name,
            key=key,
            limit=self.max_requests,
            remaining=remaining,
            reset_time_ms=entry.reset_time_ms,
            retry_after_seconds=retry_after,
            message=self._policy.message,
        )

    def sweep(self, now_ms: int | None = None) -> int:
        """Remove entries whose window has ended; returns how many."""
        return self._store.sweep(self.now_ms() if now_ms is None else now_ms)

    def stats(self) -> dict[str, int | str]:
        """Return lightweight limiter metrics without exposing keys."""
        return {
            "name": self.name,
            "window_ms": self.window_ms,
            "max_requests": self.max_requests,
            "tracked_keys": len(self._store),
        }
