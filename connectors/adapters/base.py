"""Source adapter interface.

Every source ERP is reached through a ``SourceAdapter``. Extractors and
migration objects depend only on this interface, never on a protocol
client, so the same extractor code runs against SAP, Infor or mock data.

Adapters register themselves by source system id:

    @register_adapter("INFOR_LN")
    class LNAdapter(SourceAdapter):
        source_system = "INFOR_LN"
        ...

    adapter = create_adapter("INFOR_LN", mode="mock")
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Type

from connectors.adapters.fixtures import project
from connectors.rfc.table_reader import TableData
from core.errors import ConfigurationError, TableReadError

logger = logging.getLogger(__name__)

ADAPTER_MODES = ("mock", "live")


class SourceAdapter(ABC):
    """Uniform read access to one source system.

    Public methods dispatch on ``mode``: mock serves inline fixtures without
    any network I/O, live delegates to the ``_live_*`` hooks implemented by
    each variant.

    Args:
        mode: "mock" or "live"
        fixtures: table name -> rows, replacing the built-in mock tables
        denied_tables: tables that fail with an authorization error in mock
            mode, for exercising gap reporting
    """

    source_system: Optional[str] = None
    product: str = ""

    def __init__(
        self,
        mode: str = "mock",
        fixtures: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        denied_tables: Optional[List[str]] = None,
    ):
        if not self.source_system:
            raise ConfigurationError(
                f"{type(self).__name__} must define source_system",
                details={"adapter": type(self).__name__},
            )
        if mode not in ADAPTER_MODES:
            raise ConfigurationError(f"Unknown adapter mode: {mode}", details={"mode": mode})
        self.mode = mode
        self.fixtures = fixtures if fixtures is not None else self.default_fixtures()
        self.denied_tables = {t.upper() for t in (denied_tables or [])}
        self._connected = False

    @property
    def is_mock(self) -> bool:
        return self.mode == "mock"

    @property
    def connected(self) -> bool:
        return self._connected

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def connect(self) -> Dict[str, Any]:
        if not self.is_mock:
            await self._live_connect()
        self._connected = True
        logger.info(f"{self.source_system} adapter connected ({self.mode} mode)")
        return {"success": True, "systemInfo": await self.get_system_info()}

    async def disconnect(self) -> None:
        if not self.is_mock and self._connected:
            await self._live_disconnect()
        self._connected = False
        logger.info(f"{self.source_system} adapter disconnected")

    async def health_check(self) -> Dict[str, Any]:
        started = time.perf_counter()
        if self.is_mock:
            return {"ok": True, "latencyMs": 0.0, "status": "mock", "product": self.product}
        try:
            await self._live_ping()
        except Exception as e:
            latency = (time.perf_counter() - started) * 1000
            return {"ok": False, "latencyMs": latency, "status": "error", "error": str(e), "product": self.product}
        latency = (time.perf_counter() - started) * 1000
        return {"ok": True, "latencyMs": latency, "status": "connected", "product": self.product}

    # =========================================================================
    # Reads
    # =========================================================================

    async def read_table(
        self,
        name: str,
        fields: Optional[List[str]] = None,
        where: Optional[str] = None,
        max_rows: int = 0,
        offset: int = 0,
    ) -> TableData:
        """Read rows of one table.

        ``where`` is passed through in the source's own filter syntax and is
        ignored in mock mode.

        Raises:
            TableReadError: the source could not serve the table
        """
        if self.is_mock:
            return self._mock_read_table(name, fields, max_rows, offset)
        return await self._live_read_table(name, fields, where, max_rows, offset)

    async def query_entities(
        self,
        entity_type: str,
        filter: Optional[str] = None,
        top: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Query business entities; returns ``{entities, totalCount}``."""
        if self.is_mock:
            rows = self.mock_rows(entity_type, None)
            if top:
                rows = rows[:top]
            return {"entities": rows, "totalCount": len(rows), "mock": True}
        return await self._live_query_entities(entity_type, filter, top)

    async def get_system_info(self) -> Dict[str, Any]:
        if self.is_mock:
            return self.mock_system_info()
        return await self._live_system_info()

    async def call_api(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Invoke a source-specific API (function module, MI transaction...)."""
        raise ConfigurationError(
            f"{self.source_system} adapter does not support call_api",
            details={"endpoint": endpoint},
        )

    # =========================================================================
    # Mock mode
    # =========================================================================

    def default_fixtures(self) -> Dict[str, List[Dict[str, Any]]]:
        return {}

    def mock_system_info(self) -> Dict[str, Any]:
        return {"product": self.product, "sourceSystem": self.source_system, "mock": True}

    def mock_rows(self, name: str, fields: Optional[List[str]]) -> List[Dict[str, Any]]:
        return project(self.fixtures.get(name, []), fields)

    def _mock_read_table(self, name: str, fields, max_rows: int, offset: int) -> TableData:
        if name.upper() in self.denied_tables:
            raise TableReadError(
                f"No authorization to read table {name} (S_TABU_DIS)",
                details={"table": name, "cause": "not authorized"},
            )
        rows = self.mock_rows(name, fields)
        if offset:
            rows = rows[offset:]
        if max_rows:
            rows = rows[:max_rows]
        columns = list(fields) if fields else (list(rows[0]) if rows else [])
        return TableData(
            rows=rows,
            fields=columns,
            total_rows=len(rows),
            metadata={"table": name, "source": "mock", "sourceSystem": self.source_system},
        )

    # =========================================================================
    # Live hooks
    # =========================================================================

    async def _live_connect(self) -> None:
        pass

    async def _live_disconnect(self) -> None:
        pass

    @abstractmethod
    async def _live_ping(self) -> None:
        """Raise when the source is unreachable."""

    @abstractmethod
    async def _live_read_table(self, name, fields, where, max_rows, offset) -> TableData:
        ...

    @abstractmethod
    async def _live_query_entities(self, entity_type, filter, top) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def _live_system_info(self) -> Dict[str, Any]:
        ...

    def _require(self, client: Any, what: str) -> Any:
        if client is None:
            raise ConfigurationError(
                f"{self.source_system} live mode requires {what}",
                details={"sourceSystem": self.source_system},
            )
        return client


# =============================================================================
# Registry
# =============================================================================

_adapter_registry: Dict[str, Type[SourceAdapter]] = {}


def register_adapter(source_system: str):
    """Decorator to register an adapter implementation."""
    def decorator(cls):
        _adapter_registry[source_system.upper()] = cls
        return cls
    return decorator


def create_adapter(source_system: str, **options) -> SourceAdapter:
    """Create an adapter instance for a source system.

    Raises:
        ValueError: If source_system is not registered
    """
    key = (source_system or "").upper()
    if key not in _adapter_registry:
        available = list(_adapter_registry.keys())
        raise ValueError(
            f"Unknown source system: {source_system}. "
            f"Available: {available}"
        )
    return _adapter_registry[key](**options)


def list_available_adapters() -> List[str]:
    """List all registered source systems."""
    return list(_adapter_registry.keys())
