"""Infor LN source adapter.

LN tables carry the three-digit company number as a suffix: the item master
``tcibd001`` of company 100 is ``tcibd001100``. Callers always use the base
name; the adapter adds the suffix for direct SQL reads.
"""

import logging
from typing import Any, Dict, List, Optional

from connectors.adapters.base import SourceAdapter, register_adapter
from connectors.adapters.fixtures import LN_TABLES
from connectors.infor.db_adapter import InforDbAdapter
from connectors.infor.ion_client import IONClient
from connectors.rfc.table_reader import TableData
from core.errors import ForensicsError, TableReadError

logger = logging.getLogger(__name__)


@register_adapter("INFOR_LN")
class LNAdapter(SourceAdapter):
    """LN over direct SQL (preferred) or ION BODs."""

    source_system = "INFOR_LN"
    product = "Infor LN"

    def __init__(
        self,
        mode: str = "mock",
        company: str = "100",
        db: Optional[InforDbAdapter] = None,
        ion: Optional[IONClient] = None,
        **kwargs,
    ):
        super().__init__(mode=mode, **kwargs)
        self.company = str(company)
        self.db = db
        self.ion = ion

    def default_fixtures(self) -> Dict[str, List[Dict[str, Any]]]:
        return {name: list(rows) for name, rows in LN_TABLES.items()}

    def company_table(self, name: str) -> str:
        return f"{name}{self.company.zfill(3)}"

    def mock_system_info(self) -> Dict[str, Any]:
        return {
            "product": self.product,
            "sourceSystem": self.source_system,
            "company": self.company,
            "companyName": "Main Company",
            "currency": "USD",
            "version": "10.7",
            "packages": [row["t$cpac"] for row in self.fixtures.get("tcemm030", [])],
            "mock": True,
        }

    # =========================================================================
    # Live
    # =========================================================================

    async def _live_connect(self) -> None:
        if self.db is not None and not self.db.is_connected:
            await self.db.connect()
        self._require(self.db or self.ion, "db or ion")

    async def _live_disconnect(self) -> None:
        if self.db is not None:
            await self.db.disconnect()
        if self.ion is not None:
            await self.ion.close()

    async def _live_ping(self) -> None:
        if self.db is not None:
            if not await self.db.health_check():
                raise ConnectionError("LN database health check failed")
            return
        await self._require(self.ion, "db or ion").list_nouns()

    async def _live_read_table(self, name, fields, where, max_rows, offset) -> TableData:
        try:
            if self.db is not None:
                full_name = self.company_table(name)
                result = await self.db.select(full_name, fields, where, max_rows, offset)
                rows = result["rows"]
                metadata = {"table": full_name, "baseTable": name, "company": self.company, "source": "database"}
            else:
                ion = self._require(self.ion, "db or ion")
                rows = await ion.query_bod(name, filter=where, top=max_rows or None, skip=offset or None)
                metadata = {"table": name, "company": self.company, "source": "ion"}
        except ForensicsError as e:
            if isinstance(e, TableReadError):
                raise
            raise TableReadError(
                f"Failed to read LN table {name}: {e}",
                details={"table": name, "cause": str(e), "causeCode": e.code},
                cause=e,
            )
        columns = list(fields) if fields else (list(rows[0]) if rows else [])
        return TableData(rows=rows, fields=columns, total_rows=len(rows), metadata=metadata)

    async def _live_query_entities(self, entity_type, filter, top) -> Dict[str, Any]:
        ion = self._require(self.ion, "ion")
        entities = await ion.query_bod(entity_type, filter=filter, top=top)
        return {"entities": entities, "totalCount": len(entities)}

    async def _live_system_info(self) -> Dict[str, Any]:
        company = await self.read_table("tccom000", where=f"t$comp = '{self.company}'", max_rows=1)
        row = company.rows[0] if company.rows else {}
        return {
            "product": self.product,
            "sourceSystem": self.source_system,
            "company": self.company,
            "companyName": row.get("t$dsca", ""),
            "currency": row.get("t$ccur", ""),
            "country": row.get("t$ctry", ""),
        }

    async def call_api(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET an ION API path."""
        if self.is_mock:
            return {"endpoint": endpoint, "params": params or {}, "mock": True}
        return await self._require(self.ion, "ion").get(endpoint, params=params)
