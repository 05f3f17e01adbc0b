"""Infor M3 source adapter.

Tables are read through direct SQL when a database adapter is given, else
through the MI program listed for the table in ``TABLE_PROGRAM_MAP``. Reads
are always restricted to the configured company (``CONO``).
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from connectors.adapters.base import SourceAdapter, register_adapter
from connectors.adapters.fixtures import M3_TABLES
from connectors.infor.db_adapter import InforDbAdapter
from connectors.infor.m3_api_client import M3ApiClient
from connectors.rfc.table_reader import TableData
from core.errors import ForensicsError, InforError, TableReadError

logger = logging.getLogger(__name__)

# table -> (MI program, list transaction, key field)
TABLE_PROGRAM_MAP: Dict[str, Tuple[str, str, str]] = {
    "MITMAS": ("MMS200MI", "LstByNam", "ITNO"),
    "MITBAL": ("MMS200MI", "LstItmWhsByItm", "ITNO"),
    "OCUSMA": ("CRS610MI", "LstByName", "CUNO"),
    "CIDMAS": ("CRS620MI", "LstByName", "SUNO"),
    "OOLINE": ("OIS100MI", "LstLine", "ORNO"),
    "MPLINE": ("PPS200MI", "LstLine", "PUNO"),
    "FSLEDG": ("GLS200MI", "LstVoucher", "VONO"),
    "FCHACC": ("GLS040MI", "LstAccounts", "AITM"),
}

# two-letter column prefix per table (MITMAS.MMITNO, OCUSMA.OKCUNO...)
COLUMN_PREFIXES = {
    "MITMAS": "MM",
    "MITBAL": "MB",
    "OCUSMA": "OK",
    "CIDMAS": "ID",
    "OOLINE": "OB",
    "MPLINE": "IB",
    "FSLEDG": "ES",
    "FCHACC": "AI",
}


def company_column(table: str) -> str:
    """``CONO`` column of a table: ``MITMAS`` -> ``MMCONO``."""
    return f"{COLUMN_PREFIXES.get(table.upper(), '')}CONO"


@register_adapter("INFOR_M3")
class M3Adapter(SourceAdapter):
    """M3 over SQL or MI programs."""

    source_system = "INFOR_M3"
    product = "Infor M3"

    def __init__(
        self,
        mode: str = "mock",
        company: str = "100",
        division: Optional[str] = None,
        m3: Optional[M3ApiClient] = None,
        db: Optional[InforDbAdapter] = None,
        **kwargs,
    ):
        super().__init__(mode=mode, **kwargs)
        self.company = str(company)
        self.division = division
        self.m3 = m3
        self.db = db

    def default_fixtures(self) -> Dict[str, List[Dict[str, Any]]]:
        return {name: list(rows) for name, rows in M3_TABLES.items()}

    def mock_system_info(self) -> Dict[str, Any]:
        return {
            "product": self.product,
            "sourceSystem": self.source_system,
            "company": self.company,
            "division": self.division or "AAA",
            "currency": "USD",
            "version": "13.4",
            "tableMappings": list(TABLE_PROGRAM_MAP),
            "mock": True,
        }

    def get_program(self, table: str) -> Optional[Tuple[str, str, str]]:
        return TABLE_PROGRAM_MAP.get(table.upper())

    # =========================================================================
    # Live
    # =========================================================================

    async def _live_connect(self) -> None:
        if self.db is not None and not self.db.is_connected:
            await self.db.connect()
        self._require(self.db or self.m3, "m3 or db")

    async def _live_disconnect(self) -> None:
        if self.db is not None:
            await self.db.disconnect()
        if self.m3 is not None:
            await self.m3.close()

    async def _live_ping(self) -> None:
        if self.db is not None:
            if not await self.db.health_check():
                raise ConnectionError("M3 database health check failed")
            return
        await self._require(self.m3, "m3 or db").list_programs()

    async def _live_read_table(self, name, fields, where, max_rows, offset) -> TableData:
        table = name.upper()
        try:
            if self.db is not None:
                conditions = [f"{company_column(table)} = {int(self.company)}"]
                if where:
                    conditions.append(f"({where})")
                result = await self.db.select(table, fields, " AND ".join(conditions), max_rows, offset)
                rows = result["rows"]
                metadata = {"table": table, "company": self.company, "source": "database"}
            else:
                m3 = self._require(self.m3, "m3 or db")
                mapping = self.get_program(table)
                if mapping is None:
                    raise InforError(
                        f"No MI program mapping for table {table}. Known tables: {', '.join(TABLE_PROGRAM_MAP)}",
                        details={"table": table},
                    )
                program, transaction, _ = mapping
                params = {"CONO": self.company}
                if self.division:
                    params["DIVI"] = self.division
                result = await m3.execute(program, transaction, params)
                rows = result["records"][offset:]
                if max_rows:
                    rows = rows[:max_rows]
                metadata = {
                    "table": table,
                    "company": self.company,
                    "program": program,
                    "transaction": transaction,
                    "source": "mi-program",
                }
        except TableReadError:
            raise
        except ForensicsError as e:
            raise TableReadError(
                f"Failed to read M3 table {table}: {e}",
                details={"table": table, "cause": str(e), "causeCode": e.code},
                cause=e,
            )
        columns = list(fields) if fields else (list(rows[0]) if rows else [])
        return TableData(rows=rows, fields=columns, total_rows=len(rows), metadata=metadata)

    async def _live_query_entities(self, entity_type, filter, top) -> Dict[str, Any]:
        data = await self.read_table(entity_type, where=filter, max_rows=top or 0)
        return {"entities": data.rows, "totalCount": data.total_rows}

    async def _live_system_info(self) -> Dict[str, Any]:
        info: Dict[str, Any] = {"product": self.product, "sourceSystem": self.source_system, "company": self.company}
        if self.m3 is not None:
            try:
                result = await self.m3.execute("CRS008MI", "GetBasicData", {"CONO": self.company})
                record = result["records"][0] if result["records"] else {}
                info.update({"companyName": record.get("TX40", ""), "currency": record.get("LOCD", "")})
            except ForensicsError as e:
                logger.warning(f"M3 company lookup failed: {e}")
        return info

    async def call_api(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Run ``"PROGRAM/Transaction"`` (e.g. ``"MMS200MI/GetItmBasic"``)."""
        program, _, transaction = endpoint.partition("/")
        if not program or not transaction:
            raise InforError(
                f"Invalid M3 endpoint '{endpoint}', expected 'Program/Transaction'",
                details={"endpoint": endpoint},
            )
        if self.is_mock:
            return {"program": program, "transaction": transaction, "params": params or {}, "mock": True}
        return await self._require(self.m3, "m3").execute(program, transaction, params)
