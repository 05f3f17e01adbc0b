"""
Registry of named SAP connections.

Profiles come from code, from a list of dicts (a JSON config file), or from
environment variables of the form ``SAP_CONN_<NAME>_<PROPERTY>``:

    SAP_CONN_DEV_BASE_URL=https://dev.example.com/sap/opu/odata/sap/API_BP
    SAP_CONN_DEV_USERNAME=migration
    SAP_CONN_DEV_PASSWORD=...
    SAP_CONN_QA_EU_TOKEN_URL=https://auth.example.com/oauth/token

Connections are created lazily on first ``get()``.
"""

import asyncio
import os
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import ValidationError

from connectors.connection import ClientFactory, Connection, ConnectionProfile, ConnectionStatus
from core.errors import ConfigurationError, ForensicsError
from core.observability.logging import get_logger
from core.progress import EventType, ProgressBus

logger = get_logger(__name__)

DEFAULT_ENV_PREFIX = "SAP_CONN_"

# environment suffix -> profile field
ENV_PROPERTY_MAP = {
    "BASE_URL": "base_url",
    "USERNAME": "username",
    "PASSWORD": "password",
    "VERSION": "version",
    "TIMEOUT": "timeout",
    "CLIENT": "client",
    "TOKEN_URL": "token_url",
    "CLIENT_ID": "client_id",
    "CLIENT_SECRET": "client_secret",
    "SCOPE": "scope",
    "PING_PATH": "ping_path",
}

# longest first so CLIENT_SECRET wins over CLIENT
_ENV_SUFFIXES = sorted(ENV_PROPERTY_MAP, key=len, reverse=True)


def _split_env_key(rest: str):
    for suffix in _ENV_SUFFIXES:
        marker = "_" + suffix
        if rest.endswith(marker) and len(rest) > len(marker):
            return rest[: -len(marker)].lower(), ENV_PROPERTY_MAP[suffix]
    return None, None


def profiles_from_env(prefix: str = DEFAULT_ENV_PREFIX, environ: Optional[Mapping[str, str]] = None) -> Dict[str, Dict[str, Any]]:
    """Group ``<prefix><NAME>_<PROPERTY>`` variables into raw profile dicts."""
    env = os.environ if environ is None else environ
    grouped: Dict[str, Dict[str, Any]] = {}
    for key, value in env.items():
        if not key.startswith(prefix):
            continue
        name, field = _split_env_key(key[len(prefix):])
        if name is None:
            logger.debug(f"Ignoring unrecognised connection variable {key}")
            continue
        grouped.setdefault(name, {"name": name})[field] = value
    return grouped


class ConnectionManager:
    """
    Named connections with lazy creation and aggregate health.

    Usage:
        manager = ConnectionManager(bus=bus)
        manager.load_from_env()
        client = await manager.get("dev").get_client()
        report = await manager.health_check()
    """

    def __init__(self, bus: Optional[ProgressBus] = None, client_factory: Optional[ClientFactory] = None):
        self.bus = bus
        self._client_factory = client_factory
        self._profiles: Dict[str, ConnectionProfile] = {}
        self._connections: Dict[str, Connection] = {}

    # =========================================================================
    # Profiles
    # =========================================================================

    def add_profile(self, profile) -> ConnectionProfile:
        """Register a profile (model or dict). Replacing a profile drops its live connection."""
        if not isinstance(profile, ConnectionProfile):
            try:
                profile = ConnectionProfile.model_validate(profile)
            except ValidationError as e:
                raise ConfigurationError(
                    f"Invalid connection profile: {e.error_count()} error(s)",
                    details={"errors": e.errors(include_url=False)},
                    cause=e,
                )
        self._profiles[profile.name] = profile
        self._connections.pop(profile.name, None)
        return profile

    def load_profiles(self, profiles: Iterable[Any]) -> List[str]:
        return [self.add_profile(p).name for p in profiles]

    def load_from_env(self, prefix: str = DEFAULT_ENV_PREFIX, environ: Optional[Mapping[str, str]] = None) -> List[str]:
        """Load every complete profile found in the environment; returns the names loaded."""
        loaded = []
        for name, raw in sorted(profiles_from_env(prefix, environ).items()):
            if not raw.get("base_url"):
                logger.warning(f"Connection {name} has no {prefix}{name.upper()}_BASE_URL, skipping")
                continue
            self.add_profile(raw)
            loaded.append(name)
        if loaded:
            logger.info(f"Loaded {len(loaded)} connection profile(s) from environment: {', '.join(loaded)}")
        return loaded

    def has(self, name: str) -> bool:
        return name in self._profiles

    def get(self, name: str) -> Connection:
        connection = self._connections.get(name)
        if connection is None:
            profile = self._profiles.get(name)
            if profile is None:
                raise ConfigurationError(
                    f"Unknown connection: {name}. Available: {sorted(self._profiles)}",
                    details={"connection": name},
                )
            connection = Connection(profile, client_factory=self._client_factory)
            self._connections[name] = connection
        return connection

    def list_profiles(self) -> List[Dict[str, Any]]:
        result = []
        for name, profile in self._profiles.items():
            connection = self._connections.get(name)
            entry = profile.redacted()
            entry["status"] = connection.status.value if connection else ConnectionStatus.NEW.value
            result.append(entry)
        return result

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def connect_all(self) -> Dict[str, Dict[str, Any]]:
        """Connect every profile concurrently; one failure does not stop the rest."""
        names = list(self._profiles)
        outcomes = await asyncio.gather(*(self._connect(name) for name in names))
        return dict(zip(names, outcomes))

    async def _connect(self, name: str) -> Dict[str, Any]:
        try:
            await self.get(name).connect()
        except ForensicsError as e:
            logger.error(f"Connection {name} failed: {e}")
            return {"status": "error", "error": str(e)}
        return {"status": "connected"}

    async def health_check(self) -> Dict[str, Any]:
        """Ping every connection concurrently and roll the results up."""
        names = list(self._profiles)
        if not names:
            report: Dict[str, Any] = {"overall": "no_connections", "connections": {}, "healthy": 0, "total": 0}
        else:
            pings = await asyncio.gather(*(self._ping(name) for name in names))
            connections = dict(zip(names, pings))
            healthy = sum(1 for p in pings if p["ok"] and p["status"] == ConnectionStatus.CONNECTED.value)
            reachable = sum(1 for p in pings if p["ok"])
            if healthy == len(names):
                overall = "healthy"
            elif reachable or any(p["status"] == ConnectionStatus.DEGRADED.value for p in pings):
                overall = "degraded"
            else:
                overall = "down"
            report = {"overall": overall, "connections": connections, "healthy": healthy, "total": len(names)}
        if self.bus is not None:
            self.bus.emit(EventType.SYSTEM_HEALTH, report)
        return report

    async def _ping(self, name: str) -> Dict[str, Any]:
        try:
            return await self.get(name).ping()
        except ForensicsError as e:
            return {"ok": False, "latencyMs": 0, "status": ConnectionStatus.DISCONNECTED.value, "error": str(e)}

    def get_telemetry(self) -> Dict[str, Dict[str, Any]]:
        return {name: conn.get_telemetry() for name, conn in self._connections.items()}

    async def disconnect_all(self) -> None:
        for name, connection in list(self._connections.items()):
            try:
                await connection.disconnect()
            except Exception as e:
                logger.warning(f"Error closing connection {name}: {e}")
        self._connections.clear()
