"""Rate limit store interfaces.

Limiters depend on this abstraction (not the concrete implementation)
so the storage backend can be swapped later (e.g., Redis) with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class WindowEntry:
    """Counter for one key within its current fixed window.

    Attributes:
        count: Requests observed in the current window.
        reset_time_ms: UNIX epoch milliseconds at which the window ends.
    """

    count: int
    reset_time_ms: int

    def is_expired(self, now_ms: int) -> bool:
        return self.reset_time_ms <= now_ms


class AbstractRateLimitStore(ABC):
    """Interface for per-limiter counting stores."""

    @abstractmethod
    def increment(self, key: str, *, window_ms: int, now_ms: int) -> WindowEntry:
        """Record one request for ``key`` and return a snapshot of its window.

        A fresh window (count 0, reset at ``now_ms + window_ms``) is created
        when the key is unknown or its window has ended; the count is then
        incremented. Create-or-reset and increment must be atomic per key.

        Args:
            key: Client identity (e.g., IP address).
            window_ms: Window length in milliseconds.
            now_ms: Current UNIX time in milliseconds.

        Returns:
            Copy of the entry after the increment.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, key: str) -> WindowEntry | None:
        """Return a copy of the entry for ``key`` if one is stored."""
        raise NotImplementedError

    @abstractmethod
    def sweep(self, now_ms: int) -> int:
        """Delete every entry whose window has ended.

        Returns:
            Number of entries removed.
        """
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        """Remove all entries."""
        raise NotImplementedError

    @abstractmethod
    def __len__(self) -> int:
        raise NotImplementedError
