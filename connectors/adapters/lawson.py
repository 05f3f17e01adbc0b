"""Infor Lawson source adapter over Landmark entities."""

import logging
from typing import Any, Dict, List, Optional

from connectors.adapters.base import SourceAdapter, register_adapter
from connectors.adapters.fixtures import LAWSON_TABLES
from connectors.infor.landmark_client import LandmarkClient
from connectors.rfc.table_reader import TableData
from core.errors import ForensicsError, TableReadError

logger = logging.getLogger(__name__)

# entity type -> Lawson module
ENTITY_MODULES = {
    "GLAccount": "GL",
    "GLTransaction": "GL",
    "GLChartAccount": "GL",
    "Vendor": "AP",
    "APInvoice": "AP",
    "Customer": "AR",
    "Employee": "HR",
    "SecurityClass": "SEC",
    "UserSecurity": "SEC",
}


@register_adapter("INFOR_LAWSON")
class LawsonAdapter(SourceAdapter):
    source_system = "INFOR_LAWSON"
    product = "Infor Lawson"

    def __init__(self, mode: str = "mock", landmark: Optional[LandmarkClient] = None, **kwargs):
        super().__init__(mode=mode, **kwargs)
        self.landmark = landmark

    def default_fixtures(self) -> Dict[str, List[Dict[str, Any]]]:
        return {name: list(rows) for name, rows in LAWSON_TABLES.items()}

    def module_for(self, entity: str) -> str:
        return ENTITY_MODULES.get(entity, "GEN")

    def mock_system_info(self) -> Dict[str, Any]:
        return {
            "product": self.product,
            "sourceSystem": self.source_system,
            "version": "11.0",
            "dataArea": "prod",
            "modules": sorted(set(ENTITY_MODULES.values())),
            "mock": True,
        }

    async def _live_connect(self) -> None:
        self._require(self.landmark, "landmark")

    async def _live_disconnect(self) -> None:
        if self.landmark is not None:
            await self.landmark.close()

    async def _live_ping(self) -> None:
        await self._require(self.landmark, "landmark").get_entity_metadata()

    async def _live_read_table(self, name, fields, where, max_rows, offset) -> TableData:
        landmark = self._require(self.landmark, "landmark")
        try:
            result = await landmark.query_entity(
                self.module_for(name),
                name,
                fields=fields,
                filter=where,
                limit=max_rows or None,
                skip=offset or None,
            )
        except ForensicsError as e:
            raise TableReadError(
                f"Failed to query Landmark entity {name}: {e}",
                details={"table": name, "cause": str(e), "causeCode": e.code},
                cause=e,
            )
        rows = result["entities"]
        columns = list(fields) if fields else (list(rows[0]) if rows else [])
        return TableData(
            rows=rows,
            fields=columns,
            total_rows=len(rows),
            metadata={"table": name, "module": result["module"], "source": "landmark"},
        )

    async def _live_query_entities(self, entity_type, filter, top) -> Dict[str, Any]:
        result = await self._require(self.landmark, "landmark").query_entity(
            self.module_for(entity_type), entity_type, filter=filter, limit=top
        )
        return {"entities": result["entities"], "totalCount": result["totalCount"]}

    async def _live_system_info(self) -> Dict[str, Any]:
        landmark = self._require(self.landmark, "landmark")
        entity_types = await landmark.list_entity_types()
        return {
            "product": self.product,
            "sourceSystem": self.source_system,
            "dataArea": landmark.data_area,
            "entityTypeCount": len(entity_types),
        }
