"""Periodic eviction of expired rate limit windows.

The sweep only bounds memory held by clients that made a request and never
came back. Correctness does not depend on it: limiters lazily replace an
expired window on the next request for that key.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from school_api.services.limiter_registry import RateLimiterRegistry

logger = logging.getLogger(__name__)


class StoreSweeper:
    """Background task that sweeps every limiter store on a fixed interval.

    Attributes:
        interval_seconds: Delay between sweeps, unrelated to any window size.
    """

    def __init__(self, registry: RateLimiterRegistry, *, interval_seconds: float = 60.0) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._registry = registry
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep_once(self, now_ms: int | None = None) -> int:
        """Run a single sweep pass synchronously.

        Args:
            now_ms: Override of the current time; each limiter's clock otherwise.

        Returns:
            Number of entries removed across all stores.
        """
        removed = self._registry.sweep_all(now_ms)
        logger.debug(
            "rate_limit.sweep",
            extra={"removed": removed, "limiters": len(self._registry)},
        )
        return removed

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop (idempotent)."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="rate-limit-sweeper"
        )
        logger.info(
            "rate_limit.sweeper_started",
            extra={"interval_s": self.interval_seconds},
        )

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("rate_limit.sweeper_stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.sweep_once()
            except Exception:
                logger.exception("rate_limit.sweep_failed")
