from fastapi.testclient import TestClient


def test_health_payload(make_app):
    client = TestClient(make_app())

    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["status"] == "healthy"
    assert data["environment"] == "testing"
    assert data["uptime"] >= 0
    assert data["timestamp"]


def test_lifespan_starts_and_stops_sweeper(make_app):
    app = make_app(sweep_enabled=True, sweep_interval_seconds=3600)

    with TestClient(app) as client:
        assert app.state.sweeper.running is True
        assert client.get("/health").status_code == 200

    assert app.state.sweeper.running is False


def test_no_sweeper_when_disabled(make_app):
    app = make_app(sweep_enabled=False)

    with TestClient(app):
        assert app.state.sweeper is None
