"""
API Tests

Validates the HTTP surface:
1. Health, readiness and liveness probes report the bus and run mode
2. Startup announces the app on the progress bus
3. /progress/history returns recent events filtered by type prefix
4. /metrics exposes the collector summary
"""

from fastapi.testclient import TestClient

from api.server import create_app
from core.config import load_settings
from core.progress import EventType, ProgressBus


def make_app(bus=None, **env):
    return create_app(bus=bus, settings=load_settings(env))


class TestProbes:
    """Health endpoints."""

    def test_health(self):
        with TestClient(make_app(MIGRATION_MODE="live")) as client:
            body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["services"]["progress"] == "up"
        assert body["services"]["mode"] == "live"
        assert body["services"]["sseClients"] == "0"

    def test_ready_before_startup(self):
        client = TestClient(make_app())
        response = client.get("/ready")
        assert response.status_code == 503
        assert response.json() == {"status": "starting"}

    def test_ready_and_live(self):
        with TestClient(make_app()) as client:
            assert client.get("/ready").json() == {"status": "ready"}
            assert client.get("/live").json() == {"status": "alive"}

    def test_metrics(self):
        with TestClient(make_app()) as client:
            body = client.get("/metrics").json()
        assert {"extractors", "migration", "protocols", "timings"} <= set(body)


class TestProgressHistory:
    """Event history endpoint."""

    def test_startup_event(self):
        bus = ProgressBus()
        with TestClient(make_app(bus, APP_NAME="forensics-test")):
            started = bus.get_history(1, "system:")[0]
        assert started.data == {"status": "started", "app": "forensics-test"}
        assert bus.get_history(1)[0].data["status"] == "stopping"

    def test_history_filtered(self):
        bus = ProgressBus()
        with TestClient(make_app(bus)) as client:
            bus.emit(EventType.MIGRATION_START, {"objectId": "GL_BALANCE"})
            bus.emit("extractor:complete", {"extractorId": "FI_GL_ACCOUNTS"})
            bus.emit(EventType.MIGRATION_START, {"objectId": "COST_CENTER"})

            body = client.get("/progress/history", params={"type": "migration:"}).json()
            assert body["count"] == 2
            assert [e["data"]["objectId"] for e in body["events"]] == ["GL_BALANCE", "COST_CENTER"]

            latest = client.get("/progress/history", params={"count": 1}).json()
            assert latest["events"][0]["data"]["objectId"] == "COST_CENTER"

    def test_count_bounds(self):
        with TestClient(make_app()) as client:
            assert client.get("/progress/history", params={"count": 0}).status_code == 422
            assert client.get("/progress/history", params={"count": 1001}).status_code == 422

