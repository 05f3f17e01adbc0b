"""OData V2/V4 client.

Built on ``HttpClient``: adds version-aware query options, result
unwrapping, pagination over ``@odata.nextLink`` / ``d.__next``, ``$metadata``
parsing and ``$batch``.
"""

import logging
from typing import Any, Dict, List, Optional

from connectors.http_client import HttpClient
from connectors.odata.batch import BatchRequest, BatchResult, build_batch, parse_batch_response
from connectors.odata.metadata import ServiceMetadata, parse_metadata
from core.errors import ConfigurationError, ODataError

logger = logging.getLogger(__name__)

ODATA_VERSIONS = ("v2", "v4")


def extract_results(data: Any) -> List[Dict[str, Any]]:
    """Unwrap the entity list from a V4 or V2 response body."""
    if data is None:
        return []
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        if isinstance(data.get("value"), list):
            return data["value"]
        d = data.get("d")
        if isinstance(d, dict):
            if isinstance(d.get("results"), list):
                return d["results"]
            return [d]
        if isinstance(d, list):
            return d
        return [data]
    return []


def next_link(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    link = data.get("@odata.nextLink")
    if link:
        return link
    d = data.get("d")
    if isinstance(d, dict):
        return d.get("__next")
    return None


class ODataClient(HttpClient):
    """Client for one OData service root.

    Usage:
        client = ODataClient(
            "https://host/sap/opu/odata/sap/API_BUSINESS_PARTNER",
            auth=BasicAuthProvider(user, password),
            version="v2",
        )
        partners = await client.get_all("A_BusinessPartner", {"$top": 500})
    """

    error_class = ODataError
    protocol = "odata"

    def __init__(self, base_url: str, version: str = "v2", **kwargs):
        version = (version or "v2").lower()
        if version not in ODATA_VERSIONS:
            raise ConfigurationError(f"Unsupported OData version '{version}'", details={"versions": list(ODATA_VERSIONS)})
        super().__init__(base_url, **kwargs)
        self.version = version

    def _query(self, params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        query = dict(params or {})
        if self.version == "v2" and "$format" not in query:
            query["$format"] = "json"
        return query

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None) -> Any:
        return await self.request("GET", path, params=self._query(params), headers=headers)

    async def get_entities(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """One page of entities."""
        return extract_results(await self.get(path, params))

    async def get_all(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        max_pages: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Follow server-driven paging until exhausted or ``max_pages`` reached."""
        results: List[Dict[str, Any]] = []
        data = await self.get(path, params)
        pages = 1
        while True:
            results.extend(extract_results(data))
            link = next_link(data)
            if not link or (max_pages is not None and pages >= max_pages):
                break
            # next links already carry the query options
            data = await self.request("GET", link)
            pages += 1
        logger.debug(f"get_all {path}: {len(results)} entities in {pages} page(s)")
        return results

    async def count(self, path: str, params: Optional[Dict[str, Any]] = None) -> int:
        query = dict(params or {})
        if self.version == "v4":
            query["$count"] = "true"
            query["$top"] = 0
            data = await self.get(path, query)
            return int((data or {}).get("@odata.count", 0))
        data = await self.request("GET", f"{path.rstrip('/')}/$count", params=query)
        return int(str(data).strip() or 0)

    async def get_metadata(self) -> ServiceMetadata:
        response = await self.send("GET", "$metadata", headers={"Accept": "application/xml"})
        return parse_metadata(response.text)

    async def batch(self, requests: List[BatchRequest]) -> List[BatchResult]:
        """Send requests as one ``$batch``; results come back in request order."""
        if not requests:
            return []
        content_type, body = build_batch(requests)
        response = await self.send(
            "POST",
            "$batch",
            data=body.encode("utf-8"),
            headers={"Content-Type": content_type, "Accept": "multipart/mixed"},
        )
        results = parse_batch_response(response.headers.get("Content-Type", ""), response.text)
        failed = sum(1 for r in results if not r.ok)
        if failed:
            logger.warning(f"$batch on {self.base_url}: {failed}/{len(results)} part(s) failed")
        return results
