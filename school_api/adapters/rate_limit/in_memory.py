"""In-memory fixed-window rate limit store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import threading
from dataclasses import replace

from school_api.adapters.rate_limit.base import AbstractRateLimitStore, WindowEntry


class InMemoryRateLimitStore(AbstractRateLimitStore):
    """Dictionary of window entries keyed by client identity.

    Important:
        This store is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker keeps its own
        counts, so a client may receive up to ``workers * max_requests``
        requests per window. A shared store with an atomic
        increment-with-expiry primitive is required to enforce the ceiling
        across processes.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._entries: dict[str, WindowEntry] = {}

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"InMemoryRateLimitStore(size={len(self._entries)})"

    def increment(self, key: str, *, window_ms: int, now_ms: int) -> WindowEntry:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.is_expired(now_ms):
                entry = WindowEntry(count=0, reset_time_ms=now_ms + window_ms)
                self._entries[key] = entry
            entry.count += 1
            return replace(entry)

    def get(self, key: str) -> WindowEntry | None:
        with self._lock:
            entry = self._entries.get(key)
            return replace(entry) if entry is not None else None

    def sweep(self, now_ms: int) -> int:
        with self._lock:
            expired_keys = [k for k, entry in self._entries.items() if entry.is_expired(now_ms)]
            for key in expired_keys:
                del self._entries[key]
            return len(expired_keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
