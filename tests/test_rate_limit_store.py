"""Unit tests for the in-memory rate limit store."""

import threading

from school_api.adapters.rate_limit.in_memory import InMemoryRateLimitStore


def test_first_increment_creates_window() -> None:
    store = InMemoryRateLimitStore()

    entry = store.increment("k", window_ms=60_000, now_ms=1_000)

    assert entry.count == 1
    assert entry.reset_time_ms == 61_000
    assert len(store) == 1


def test_increments_within_window_keep_reset_time() -> None:
    store = InMemoryRateLimitStore()

    store.increment("k", window_ms=60_000, now_ms=1_000)
    entry = store.increment("k", window_ms=60_000, now_ms=30_000)

    assert entry.count == 2
    assert entry.reset_time_ms == 61_000


def test_window_resets_at_reset_time() -> None:
    store = InMemoryRateLimitStore()

    store.increment("k", window_ms=10_000, now_ms=0)
    store.increment("k", window_ms=10_000, now_ms=5_000)

    entry = store.increment("k", window_ms=10_000, now_ms=10_000)

    assert entry.count == 1
    assert entry.reset_time_ms == 20_000


def test_returned_entry_is_a_snapshot() -> None:
    store = InMemoryRateLimitStore()

    snapshot = store.increment("k", window_ms=60_000, now_ms=0)
    snapshot.count = 999

    assert store.get("k").count == 1


def test_get_unknown_key_returns_none() -> None:
    assert InMemoryRateLimitStore().get("missing") is None


def test_sweep_removes_only_expired_entries() -> None:
    store = InMemoryRateLimitStore()
    store.increment("old", window_ms=1_000, now_ms=0)
    store.increment("fresh", window_ms=60_000, now_ms=0)

    removed = store.sweep(now_ms=1_000)

    assert removed == 1
    assert store.get("old") is None
    assert store.get("fresh") is not None


def test_clear_drops_everything() -> None:
    store = InMemoryRateLimitStore()
    store.increment("a", window_ms=1_000, now_ms=0)
    store.increment("b", window_ms=1_000, now_ms=0)

    store.clear()

    assert len(store) == 0


def test_concurrent_increments_are_not_lost() -> None:
    store = InMemoryRateLimitStore()
    threads = [
        threading.Thread(
            target=lambda: [store.increment("k", window_ms=60_000, now_ms=0) for _ in range(200)]
        )
        for _ in range(8)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert store.get("k").count == 1_600
