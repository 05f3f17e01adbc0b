"""SAP ECC / S/4HANA source adapter.

Tables are read over RFC through ``TableReader``; business entities come
from OData services; function modules go through ``FunctionCaller``.
"""

import logging
from typing import Any, Dict, List, Optional

from connectors.adapters.base import SourceAdapter, register_adapter
from connectors.adapters.fixtures import SAP_SYSTEM_INFO, SAP_TABLES, synthesize_rows, project
from connectors.auth import BasicAuthProvider
from connectors.odata.client import ODataClient
from connectors.rfc.function_caller import FunctionCaller
from connectors.rfc.pool import RfcPool
from connectors.rfc.table_reader import TableData, TableReader

logger = logging.getLogger(__name__)


@register_adapter("SAP")
class SapAdapter(SourceAdapter):
    """Adapter over RFC and OData.

    Args:
        rfc_params: pyrfc connection parameters; a pool is opened on connect
        odata_config: ``{base_url, username, password, version, client}``
        pool / table_reader / function_caller / odata_client: prebuilt
            collaborators, used as given
    """

    source_system = "SAP"
    product = "SAP ERP"

    def __init__(
        self,
        mode: str = "mock",
        rfc_params: Optional[Dict[str, Any]] = None,
        odata_config: Optional[Dict[str, Any]] = None,
        pool: Optional[RfcPool] = None,
        table_reader: Optional[TableReader] = None,
        function_caller: Optional[FunctionCaller] = None,
        odata_client: Optional[ODataClient] = None,
        pool_size: int = 3,
        **kwargs,
    ):
        super().__init__(mode=mode, **kwargs)
        self.rfc_params = dict(rfc_params or {})
        self.odata_config = dict(odata_config or {})
        self.pool_size = pool_size
        self.pool = pool
        self.table_reader = table_reader
        self.function_caller = function_caller
        self.odata_client = odata_client

    def default_fixtures(self) -> Dict[str, List[Dict[str, Any]]]:
        return {name: list(rows) for name, rows in SAP_TABLES.items()}

    def mock_rows(self, name: str, fields: Optional[List[str]]) -> List[Dict[str, Any]]:
        if name in self.fixtures:
            return project(self.fixtures[name], fields)
        return synthesize_rows(fields)

    def mock_system_info(self) -> Dict[str, Any]:
        return dict(SAP_SYSTEM_INFO, mock=True)

    # =========================================================================
    # Live
    # =========================================================================

    async def _live_connect(self) -> None:
        if self.pool is None and (self.rfc_params.get("ashost") or self.rfc_params.get("mshost")):
            self.pool = RfcPool(self.rfc_params, size=self.pool_size)
        if self.pool is not None:
            self.table_reader = self.table_reader or TableReader(self.pool)
            self.function_caller = self.function_caller or FunctionCaller(self.pool)
        if self.odata_client is None and self.odata_config.get("base_url"):
            auth = None
            if self.odata_config.get("username"):
                auth = BasicAuthProvider(self.odata_config["username"], self.odata_config.get("password", ""))
            self.odata_client = ODataClient(
                self.odata_config["base_url"],
                version=self.odata_config.get("version", "v2"),
                auth=auth,
                sap_client=self.odata_config.get("client"),
            )

    async def _live_disconnect(self) -> None:
        if self.pool is not None:
            await self.pool.drain()
        if self.odata_client is not None:
            await self.odata_client.close()

    async def _live_ping(self) -> None:
        if self.pool is not None:
            if not await self.pool.ping():
                raise ConnectionError(f"RFC_PING to {self.pool.destination} failed")
            return
        await self._require(self.odata_client, "rfc_params or odata_config").head("")

    async def _live_read_table(self, name, fields, where, max_rows, offset) -> TableData:
        reader = self._require(self.table_reader, "rfc_params (table reads go over RFC)")
        return await reader.read_table(name, fields=fields, where=where, max_rows=max_rows, row_skips=offset)

    async def _live_query_entities(self, entity_type, filter, top) -> Dict[str, Any]:
        client = self._require(self.odata_client, "odata_config")
        params = {"$filter": filter, "$top": top}
        entities = await client.get_entities(entity_type, params)
        return {"entities": entities, "totalCount": len(entities)}

    async def _live_system_info(self) -> Dict[str, Any]:
        if self.pool is None:
            return {"systemType": "SAP", "client": self.odata_config.get("client", "")}
        async with self.pool.connection() as client:
            info = await client.get_system_info()
        return {
            "systemId": info.get("RFCSYSID", ""),
            "systemType": "SAP",
            "release": info.get("RFCSAPRL", ""),
            "hostname": info.get("RFCHOST", ""),
            "client": self.rfc_params.get("client", ""),
            "database": info.get("RFCDBSYS", ""),
            "kernel": info.get("RFCKERNRL", ""),
            "operatingSystem": info.get("RFCOPSYS", ""),
            "unicode": info.get("RFCUNICODE", "") not in ("", "N"),
        }

    # =========================================================================
    # Function modules
    # =========================================================================

    async def call_api(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Call a function module; ``endpoint`` is its name."""
        if self.is_mock:
            return {"functionModule": endpoint, "params": params or {}, "mock": True}
        caller = self._require(self.function_caller, "rfc_params")
        result = await caller.call(endpoint, imports=params)
        return result.data

    async def search_functions(self, pattern: str) -> List[Dict[str, str]]:
        if self.is_mock:
            return [{"FUNCNAME": pattern.replace("*", ""), "GROUPNAME": "MOCK", "APPL": ""}]
        pool = self._require(self.pool, "rfc_params")
        async with pool.connection() as client:
            return await client.search_functions(pattern)
