"""
Named SAP OData connections with health telemetry.

A ``Connection`` owns one ``ODataClient`` built from a ``ConnectionProfile``
and tracks request outcomes so the health endpoint can report latency
percentiles and error rates per system.

Status rules for ``ping()``:
- success and latency <= 80% of the profile timeout -> connected
- success but slower than that -> degraded
- failure after earlier successes and fewer than 3 errors -> degraded
- any other failure -> disconnected
"""

import inspect
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from connectors.auth import AuthProvider, BasicAuthProvider, OAuth2ClientCredentialsProvider
from connectors.odata.client import ODATA_VERSIONS, ODataClient
from core.clock import utc_now_iso
from core.errors import ConfigurationError, ErpConnectionError, ForensicsError
from core.observability.logging import get_logger
from core.observability.metrics import record_protocol_call
from core.resilience import BoundedRing

logger = get_logger(__name__)

LATENCY_HISTORY = 1000
DEGRADED_LATENCY_RATIO = 0.8
DEGRADED_ERROR_LIMIT = 3


# =============================================================================
# PROFILE
# =============================================================================

class ConnectionProfile(BaseModel):
    """Immutable connection settings for one SAP system."""
    model_config = ConfigDict(frozen=True)

    name: str
    base_url: str
    auth_type: Literal["basic", "oauth2", "none"] = "none"
    username: Optional[str] = None
    password: Optional[str] = None
    token_url: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    scope: Optional[str] = None
    version: str = "v2"
    timeout: int = Field(default=30000, gt=0, description="Request timeout in milliseconds")
    client: Optional[str] = Field(default=None, description="SAP client (sap-client)")
    ping_path: str = ""

    @field_validator("version")
    @classmethod
    def _check_version(cls, v: str) -> str:
        v = (v or "v2").lower()
        if v not in ODATA_VERSIONS:
            raise ValueError(f"unsupported OData version '{v}'")
        return v

    @model_validator(mode="before")
    @classmethod
    def _derive_auth_type(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("auth_type"):
            data = dict(data)
            if data.get("token_url"):
                data["auth_type"] = "oauth2"
            elif data.get("username"):
                data["auth_type"] = "basic"
        return data

    @property
    def timeout_seconds(self) -> float:
        return self.timeout / 1000.0

    def build_auth(self) -> AuthProvider:
        if self.auth_type == "oauth2":
            return OAuth2ClientCredentialsProvider(
                self.token_url or "", self.client_id or "", self.client_secret or "", scope=self.scope
            )
        if self.auth_type == "basic":
            if not self.username:
                raise ConfigurationError(
                    f"Connection {self.name}: basic auth requires a username",
                    details={"connection": self.name},
                )
            return BasicAuthProvider(self.username, self.password or "")
        return AuthProvider()

    def redacted(self) -> Dict[str, Any]:
        """Profile without secrets, for listings."""
        return self.model_dump(exclude={"password", "client_secret"})


class ConnectionStatus(str, Enum):
    NEW = "new"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DEGRADED = "degraded"
    DISCONNECTED = "disconnected"


def _percentile(sorted_values, ratio: float) -> float:
    if not sorted_values:
        return 0.0
    index = min(int(len(sorted_values) * ratio), len(sorted_values) - 1)
    return sorted_values[index]


def _now_iso() -> str:
    return utc_now_iso()


# may be async, e.g. to fetch a token before the first request
ClientFactory = Callable[[ConnectionProfile], Union[ODataClient, Awaitable[ODataClient]]]


def default_client_factory(profile: ConnectionProfile) -> ODataClient:
    return ODataClient(
        profile.base_url,
        version=profile.version,
        auth=profile.build_auth(),
        timeout=profile.timeout_seconds,
        sap_client=profile.client,
    )


# =============================================================================
# CONNECTION
# =============================================================================

class Connection:
    """
    One SAP system behind an OData client.

    Args:
        profile: connection settings
        client_factory: builds the client; tests pass a factory returning a fake
        timer: monotonic clock in seconds
    """

    def __init__(
        self,
        profile: ConnectionProfile,
        client_factory: Optional[ClientFactory] = None,
        timer: Callable[[], float] = time.perf_counter,
    ):
        self.profile = profile
        self._client_factory = client_factory or default_client_factory
        self._timer = timer
        self._client: Optional[ODataClient] = None
        self._status = ConnectionStatus.NEW
        self._latencies: BoundedRing[float] = BoundedRing(LATENCY_HISTORY)
        self.total_requests = 0
        self.success_count = 0
        self.error_count = 0
        self.last_error: Optional[Dict[str, str]] = None
        self.connected_since: Optional[str] = None
        self.last_ping_at: Optional[str] = None

    @property
    def name(self) -> str:
        return self.profile.name

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self._status in (ConnectionStatus.CONNECTED, ConnectionStatus.DEGRADED)

    async def connect(self) -> ODataClient:
        if self._client is not None:
            return self._client
        self._status = ConnectionStatus.CONNECTING
        try:
            client = self._client_factory(self.profile)
            if inspect.isawaitable(client):
                client = await client
            self._client = client
        except ForensicsError as e:
            self._status = ConnectionStatus.DISCONNECTED
            self._record_error(e)
            raise ErpConnectionError(
                f"Failed to create client for connection {self.name}: {e}",
                details={"connection": self.name},
                cause=e,
            )
        self._status = ConnectionStatus.CONNECTED
        self.connected_since = _now_iso()
        logger.info(f"Connection {self.name} ready ({self.profile.base_url}, OData {self.profile.version})")
        return self._client

    async def get_client(self) -> ODataClient:
        return await self.connect()

    def record(self, latency_ms: float, error: Optional[BaseException] = None) -> None:
        """Record the outcome of one request made through this connection."""
        self.total_requests += 1
        self._latencies.append(latency_ms)
        if error is None:
            self.success_count += 1
        else:
            self._record_error(error)
        record_protocol_call("odata", latency_ms, error=error is not None)

    def _record_error(self, error: BaseException) -> None:
        self.error_count += 1
        self.last_error = {"message": str(error), "timestamp": _now_iso()}

    async def ping(self) -> Dict[str, Any]:
        """Round-trip the service root and update status."""
        client = await self.connect()
        started = self._timer()
        self.last_ping_at = _now_iso()
        try:
            await client.head(self.profile.ping_path)
        except ForensicsError as e:
            latency_ms = (self._timer() - started) * 1000
            self.total_requests += 1
            self._latencies.append(latency_ms)
            self._record_error(e)
            record_protocol_call("odata", latency_ms, error=True)
            if self.success_count > 0 and self.error_count < DEGRADED_ERROR_LIMIT:
                self._status = ConnectionStatus.DEGRADED
            else:
                self._status = ConnectionStatus.DISCONNECTED
            logger.warning(f"Ping {self.name} failed ({self._status.value}): {e}")
            return {
                "ok": False,
                "latencyMs": round(latency_ms, 2),
                "status": self._status.value,
                "error": str(e),
            }

        latency_ms = (self._timer() - started) * 1000
        self.record(latency_ms)
        if latency_ms > self.profile.timeout * DEGRADED_LATENCY_RATIO:
            self._status = ConnectionStatus.DEGRADED
        else:
            self._status = ConnectionStatus.CONNECTED
        return {"ok": True, "latencyMs": round(latency_ms, 2), "status": self._status.value}

    def get_telemetry(self) -> Dict[str, Any]:
        latencies = sorted(self._latencies)
        avg = sum(latencies) / len(latencies) if latencies else 0.0
        return {
            "name": self.name,
            "status": self._status.value,
            "totalRequests": self.total_requests,
            "successCount": self.success_count,
            "errorCount": self.error_count,
            "errorRate": round(self.error_count / self.total_requests, 4) if self.total_requests else 0.0,
            "avgLatencyMs": round(avg, 2),
            "p95LatencyMs": round(_percentile(latencies, 0.95), 2),
            "p99LatencyMs": round(_percentile(latencies, 0.99), 2),
            "lastError": self.last_error,
            "connectedSince": self.connected_since,
            "lastPingAt": self.last_ping_at,
        }

    async def disconnect(self) -> None:
        client, self._client = self._client, None
        self._status = ConnectionStatus.DISCONNECTED
        self.connected_since = None
        if client is not None:
            await client.close()
