"""
Connection Manager Tests

Validates named SAP connections:
1. Profiles derive their auth type and redact secrets
2. Environment variables group into profiles, CLIENT_SECRET beats CLIENT
3. Ping status: connected, degraded on slow or flaky, disconnected on failure
4. Telemetry counts requests and latency percentiles
5. Aggregate health rolls up and is published on the progress bus
6. connect_all connects every profile concurrently and reports failures per profile
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from connectors import ConnectionManager, ConnectionProfile, ConnectionStatus
from connectors.auth import BasicAuthProvider, OAuth2ClientCredentialsProvider, OAuth2Token
from connectors.connection import Connection
from connectors.manager import profiles_from_env
from core.errors import ConfigurationError, ErpConnectionError, ODataError
from core.progress import ProgressBus


class SteppingTimer:
    """Each call advances by the next configured step (seconds)."""

    def __init__(self, steps):
        self.steps = list(steps)
        self.now = 0.0

    def __call__(self):
        value = self.now
        if self.steps:
            self.now += self.steps.pop(0)
        return value


class FakeClient:
    def __init__(self, failures=None):
        self.failures = list(failures or [])
        self.closed = False

    async def head(self, path=""):
        if self.failures and self.failures.pop(0):
            raise ODataError("service unavailable", status_code=503)
        return 200

    async def close(self):
        self.closed = True


def profile(name="dev", **overrides):
    data = {"name": name, "base_url": "https://dev.example.com/sap/opu/odata/sap/API_BP", "timeout": 1000}
    data.update(overrides)
    return ConnectionProfile(**data)


class TestProfiles:
    """Profile model."""

    def test_auth_type_derived(self):
        assert profile(username="u", password="p").auth_type == "basic"
        assert profile(token_url="https://auth/token", client_id="c").auth_type == "oauth2"
        assert profile().auth_type == "none"

    def test_build_auth(self):
        assert isinstance(profile(username="u").build_auth(), BasicAuthProvider)
        oauth = profile(token_url="https://auth/token", client_id="c", client_secret="s").build_auth()
        assert isinstance(oauth, OAuth2ClientCredentialsProvider)

    def test_redacted(self):
        redacted = profile(username="u", password="secret", client_secret="x").redacted()
        assert "password" not in redacted and "client_secret" not in redacted
        assert redacted["username"] == "u"

    def test_invalid_version(self):
        with pytest.raises(ValueError):
            profile(version="v3")

    def test_invalid_dict_raises_configuration_error(self):
        with pytest.raises(ConfigurationError) as exc:
            ConnectionManager().add_profile({"name": "x"})
        assert exc.value.details["errors"]


class TestEnvironment:
    """SAP_CONN_<NAME>_<PROPERTY> loading."""

    def test_grouping(self):
        env = {
            "SAP_CONN_QA_EU_BASE_URL": "https://qa",
            "SAP_CONN_QA_EU_CLIENT_SECRET": "s",
            "SAP_CONN_QA_EU_CLIENT": "200",
            "SAP_CONN_BROKEN": "x",
            "OTHER": "y",
        }
        grouped = profiles_from_env(environ=env)
        assert grouped == {"qa_eu": {"name": "qa_eu", "base_url": "https://qa", "client_secret": "s", "client": "200"}}

    def test_incomplete_profiles_skipped(self):
        manager = ConnectionManager()
        loaded = manager.load_from_env(environ={
            "SAP_CONN_DEV_BASE_URL": "https://dev",
            "SAP_CONN_DEV_USERNAME": "u",
            "SAP_CONN_PRD_USERNAME": "u",
        })
        assert loaded == ["dev"]
        assert manager.has("dev") and not manager.has("prd")


class TestConnection:
    """Ping status rules."""

    def test_fast_ping_connected(self):
        conn = Connection(profile(), client_factory=lambda p: FakeClient(), timer=SteppingTimer([0.1]))
        result = asyncio.run(conn.ping())
        assert result == {"ok": True, "latencyMs": 100.0, "status": "connected"}

    def test_slow_ping_degraded(self):
        conn = Connection(profile(), client_factory=lambda p: FakeClient(), timer=SteppingTimer([0.9]))
        assert asyncio.run(conn.ping())["status"] == "degraded"

    def test_failure_after_success_degraded_then_disconnected(self):
        client = FakeClient(failures=[False, True, True, True])
        conn = Connection(profile(), client_factory=lambda p: client, timer=SteppingTimer([0.01] * 8))

        async def scenario():
            return [(await conn.ping())["status"] for _ in range(4)]

        assert asyncio.run(scenario()) == ["connected", "degraded", "degraded", "disconnected"]
        telemetry = conn.get_telemetry()
        assert telemetry["totalRequests"] == 4
        assert telemetry["errorCount"] == 3
        assert telemetry["errorRate"] == 0.75
        assert telemetry["lastError"]["message"]

    def test_first_failure_disconnected(self):
        conn = Connection(profile(), client_factory=lambda p: FakeClient(failures=[True]), timer=SteppingTimer([0.01]))
        result = asyncio.run(conn.ping())
        assert result["ok"] is False
        assert conn.status == ConnectionStatus.DISCONNECTED

    def test_factory_error_wrapped(self):
        def factory(p):
            raise ConfigurationError("bad auth")

        conn = Connection(profile(), client_factory=factory)
        with pytest.raises(ErpConnectionError):
            asyncio.run(conn.connect())
        assert conn.status == ConnectionStatus.DISCONNECTED

    def test_percentiles(self):
        conn = Connection(profile())
        for latency in range(1, 101):
            conn.record(float(latency))
        telemetry = conn.get_telemetry()
        assert telemetry["p95LatencyMs"] == 96.0
        assert telemetry["avgLatencyMs"] == 50.5

    def test_disconnect_closes_client(self):
        client = FakeClient()
        conn = Connection(profile(), client_factory=lambda p: client)

        async def scenario():
            await conn.connect()
            await conn.disconnect()

        asyncio.run(scenario())
        assert client.closed
        assert not conn.is_connected


class TestManager:
    """Aggregate health."""

    def test_unknown_connection(self):
        with pytest.raises(ConfigurationError):
            ConnectionManager().get("nope")

    def test_health_rollup_published(self):
        bus = ProgressBus()
        clients = {"dev": FakeClient(), "qa": FakeClient(failures=[True])}
        manager = ConnectionManager(bus=bus, client_factory=lambda p: clients[p.name])
        manager.load_profiles([profile("dev"), profile("qa")])

        report = asyncio.run(manager.health_check())
        assert report["overall"] == "degraded"
        assert report["healthy"] == 1 and report["total"] == 2
        assert report["connections"]["qa"]["ok"] is False
        assert bus.get_history(1)[0].type == "system:health"

    def test_no_connections(self):
        report = asyncio.run(ConnectionManager().health_check())
        assert report["overall"] == "no_connections"

    def test_list_profiles_status(self):
        manager = ConnectionManager(client_factory=lambda p: FakeClient())
        manager.add_profile(profile("dev", password="secret", username="u"))
        asyncio.run(manager.connect_all())
        listed = manager.list_profiles()
        assert listed[0]["status"] == "connected"
        assert "password" not in listed[0]

    def test_connect_all_runs_profiles_concurrently(self):
        fast_ready = asyncio.Event()

        async def factory(p):
            if p.name == "slow":
                # completes only once the fast profile has connected
                await fast_ready.wait()
            else:
                fast_ready.set()
            return FakeClient()

        manager = ConnectionManager(client_factory=factory)
        manager.add_profile(profile("slow"))
        manager.add_profile(profile("fast"))

        results = asyncio.run(asyncio.wait_for(manager.connect_all(), timeout=2))
        assert results == {"slow": {"status": "connected"}, "fast": {"status": "connected"}}
        assert list(results) == ["slow", "fast"]

    def test_connect_all_reports_failures_per_profile(self):
        def factory(p):
            if p.name == "qa":
                raise ConfigurationError("no credentials")
            return FakeClient()

        manager = ConnectionManager(client_factory=factory)
        manager.add_profile(profile("qa"))
        manager.add_profile(profile("dev"))

        results = asyncio.run(manager.connect_all())
        assert results["qa"]["status"] == "error"
        assert "no credentials" in results["qa"]["error"]
        assert results["dev"] == {"status": "connected"}
        assert manager.get("qa").status == ConnectionStatus.DISCONNECTED


class TestOAuthToken:
    """Token expiry with a five-minute buffer."""

    def test_fresh_token_valid(self):
        token = OAuth2Token(access_token="t", expires_in=3600)
        assert token.obtained_at.tzinfo is not None
        assert not token.is_expired

    def test_inside_buffer_is_expired(self):
        obtained = datetime.now(timezone.utc) - timedelta(seconds=3400)
        assert OAuth2Token(access_token="t", expires_in=3600, obtained_at=obtained).is_expired

    def test_naive_obtained_at_read_as_utc(self):
        obtained = datetime.now(timezone.utc).replace(tzinfo=None)
        assert not OAuth2Token(access_token="t", expires_in=3600, obtained_at=obtained).is_expired
