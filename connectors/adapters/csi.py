"""Infor CSI (SyteLine) source adapter.

CSI data is exposed as IDO collections; a "table" here is an IDO name such
as ``SLItems`` and fields are IDO properties.
"""

import logging
from typing import Any, Dict, List, Optional

from connectors.adapters.base import SourceAdapter, register_adapter
from connectors.adapters.fixtures import CSI_TABLES
from connectors.infor.ido_client import IDOClient
from connectors.rfc.table_reader import TableData
from core.errors import ForensicsError, InforError, TableReadError

logger = logging.getLogger(__name__)


@register_adapter("INFOR_CSI")
class CSIAdapter(SourceAdapter):
    source_system = "INFOR_CSI"
    product = "Infor CSI"

    def __init__(self, mode: str = "mock", ido: Optional[IDOClient] = None, site: Optional[str] = None, **kwargs):
        super().__init__(mode=mode, **kwargs)
        self.ido = ido
        self.site = site

    def default_fixtures(self) -> Dict[str, List[Dict[str, Any]]]:
        return {name: list(rows) for name, rows in CSI_TABLES.items()}

    def mock_system_info(self) -> Dict[str, Any]:
        return {
            "product": self.product,
            "sourceSystem": self.source_system,
            "site": self.site or "MAIN",
            "version": "10.0",
            "idos": list(self.fixtures),
            "mock": True,
        }

    async def _live_connect(self) -> None:
        self._require(self.ido, "ido")

    async def _live_disconnect(self) -> None:
        if self.ido is not None:
            await self.ido.close()

    async def _live_ping(self) -> None:
        await self._require(self.ido, "ido").get_metadata()

    async def _live_read_table(self, name, fields, where, max_rows, offset) -> TableData:
        ido = self._require(self.ido, "ido")
        # IDO loads have no skip; over-fetch and slice
        cap = (max_rows + offset) if max_rows else None
        try:
            result = await ido.load_collection(name, properties=fields, filter=where, record_cap=cap)
        except ForensicsError as e:
            raise TableReadError(
                f"Failed to load IDO {name}: {e}",
                details={"table": name, "cause": str(e), "causeCode": e.code},
                cause=e,
            )
        rows = result["items"][offset:]
        if max_rows:
            rows = rows[:max_rows]
        columns = list(fields) if fields else (list(rows[0]) if rows else [])
        return TableData(
            rows=rows,
            fields=columns,
            total_rows=len(rows),
            metadata={"table": name, "source": "ido", "totalCount": result["totalCount"]},
        )

    async def _live_query_entities(self, entity_type, filter, top) -> Dict[str, Any]:
        result = await self._require(self.ido, "ido").load_collection(entity_type, filter=filter, record_cap=top)
        return {"entities": result["items"], "totalCount": result["totalCount"]}

    async def _live_system_info(self) -> Dict[str, Any]:
        info: Dict[str, Any] = {"product": self.product, "sourceSystem": self.source_system, "site": self.site}
        try:
            parms = await self.read_table("SLParms", max_rows=1)
            if parms.rows:
                info["siteName"] = parms.rows[0].get("SiteName") or parms.rows[0].get("Site")
        except TableReadError as e:
            logger.warning(f"CSI site lookup failed: {e}")
        return info

    async def call_api(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Invoke ``"IDO/Method"`` with ``params["parameters"]`` as the argument list."""
        ido_name, _, method = endpoint.partition("/")
        if not ido_name or not method:
            raise InforError(
                f"Invalid IDO endpoint '{endpoint}', expected 'IdoName/Method'",
                details={"endpoint": endpoint},
            )
        if self.is_mock:
            return {"ido": ido_name, "method": method, "params": params or {}, "mock": True}
        arguments = (params or {}).get("parameters", [])
        return await self._require(self.ido, "ido").invoke_method(ido_name, method, arguments)
