"""Integration tests for rate limiting with a real HTTP server.

These tests start an actual Uvicorn server so the limiter keys on the real
client address and headers travel over the wire.
"""

import multiprocessing
import os
import time
from typing import Generator

import httpx
import pytest
import uvicorn

PORT = 8017


def run_server():
    """Run the FastAPI server in a separate process with a tiny API budget."""
    os.environ["RATE_LIMIT_API_MAX_REQUESTS"] = "3"
    os.environ["RATE_LIMIT_API_WINDOW_MS"] = "600000"
    os.environ["RATE_LIMIT_SWEEP_INTERVAL_SECONDS"] = "1"

    # Settings are rebuilt here: a forked child inherits already-imported modules
    from school_api.core.app_factory import create_app
    from school_api.core.config import Settings

    uvicorn.run(
        create_app(Settings()),
        host="127.0.0.1",
        port=PORT,
        log_level="error",
        access_log=False,
    )


@pytest.fixture(scope="module")
def server() -> Generator[str, None, None]:
    """Start server in background process for integration tests."""
    process = multiprocessing.Process(target=run_server, daemon=True)
    process.start()

    base_url = f"http://127.0.0.1:{PORT}"
    for _ in range(50):
        try:
            response = httpx.get(f"{base_url}/health", timeout=1.0)
            if response.status_code == 200:
                break
        except (httpx.ConnectError, httpx.ReadTimeout):
            time.sleep(0.1)
    else:
        process.terminate()
        pytest.fail("Server failed to start")

    yield base_url

    process.terminate()
    process.join(timeout=5)


def test_budget_enforced_over_http(server: str) -> None:
    responses = [httpx.get(f"{server}/api/rate-limits", timeout=2.0) for _ in range(4)]

    assert [r.status_code for r in responses[:3]] == [200, 200, 200]
    assert [r.headers["X-RateLimit-Remaining"] for r in responses[:3]] == ["2", "1", "0"]

    throttled = responses[3]
    assert throttled.status_code == 429
    assert throttled.json()["code"] == "RATE_LIMIT_EXCEEDED"
    assert 0 < int(throttled.headers["Retry-After"]) <= 600
    assert throttled.headers["X-RateLimit-Reset"].isdigit()


def test_health_stays_available_when_throttled(server: str) -> None:
    response = httpx.get(f"{server}/health", timeout=2.0)

    assert response.status_code == 200
    assert "X-RateLimit-Limit" not in response.headers
