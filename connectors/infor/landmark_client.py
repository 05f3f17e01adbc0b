"""Infor Lawson Landmark REST client."""

import logging
from typing import Any, Dict, Iterable, List, Optional

from connectors.http_client import HttpClient
from connectors.odata.client import extract_results
from core.errors import LandmarkError

logger = logging.getLogger(__name__)


class LandmarkClient(HttpClient):
    """Queries Landmark business-class entities.

    Entities live under ``/data/erp/{dataArea}/{entityType}``; the data area
    defaults to the one given at construction.
    """

    error_class = LandmarkError
    protocol = "landmark"

    def __init__(self, base_url: str, data_area: Optional[str] = None, **kwargs):
        kwargs.setdefault("csrf", False)
        super().__init__(base_url, **kwargs)
        self.data_area = data_area

    def _entity_path(self, entity: str, data_area: Optional[str] = None) -> str:
        area = data_area or self.data_area
        return f"/data/erp/{area}/{entity}" if area else f"/data/erp/{entity}"

    async def query_entity(
        self,
        module: str,
        entity: str,
        fields: Optional[Iterable[str]] = None,
        filter: Optional[str] = None,
        limit: Optional[int] = None,
        skip: Optional[int] = None,
        data_area: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Query one entity type.

        ``module`` (GL, AP, HR...) is informational and is echoed back so
        callers can group results.

        Returns:
            {entities, totalCount, entityType, module}
        """
        params = {
            "$filter": filter,
            "$top": limit,
            "$skip": skip,
            "$select": ",".join(fields) if fields else None,
        }
        data = await self.get(self._entity_path(entity, data_area), params=params)
        entities = extract_results(data)
        total = len(entities)
        if isinstance(data, dict):
            total = data.get("@odata.count") or data.get("totalCount") or total
        logger.debug(f"Landmark {module}/{entity} returned {len(entities)} entities")
        return {"entities": entities, "totalCount": total, "entityType": entity, "module": module}

    async def get_entity(self, entity: str, key: str, data_area: Optional[str] = None) -> Any:
        return await self.get(f"{self._entity_path(entity, data_area)}('{key}')")

    async def get_entity_metadata(self, entity: Optional[str] = None) -> Any:
        if entity:
            return await self.get(f"/data/erp/metadata/entityTypes/{entity}")
        data = await self.get("/data/erp/metadata/entityTypes")
        return extract_results(data) if isinstance(data, (dict, list)) else []

    async def list_entity_types(self) -> List[str]:
        types = await self.get_entity_metadata()
        return [t.get("name") or t.get("entityType") or "" for t in types if isinstance(t, dict)]
