"""Infor CSI (SyteLine) IDO request service client."""

import logging
from typing import Any, Dict, Iterable, List, Optional

from connectors.http_client import HttpClient, _decode_body
from core.errors import IDOError

logger = logging.getLogger(__name__)

SESSION_HEADER = "X-Infor-SessionId"


def parse_ido_items(data: Any) -> List[Dict[str, Any]]:
    """Rows from an IDO load response.

    Items come either as plain dicts or with a ``PropertyValues`` list of
    ``{Name, Value}`` pairs.
    """
    if not data or not isinstance(data, (dict, list)):
        return []
    items = data
    if isinstance(data, dict):
        items = data.get("Items") or data.get("items") or data.get("value") or []
    if not isinstance(items, list):
        return [items]
    rows = []
    for item in items:
        values = item.get("PropertyValues") if isinstance(item, dict) else None
        if isinstance(values, list):
            rows.append({
                (pv.get("Name") or pv.get("name")): pv.get("Value", pv.get("value"))
                for pv in values
            })
        else:
            rows.append(item)
    return rows


class IDOClient(HttpClient):
    """Loads IDO collections and invokes IDO methods.

    Usage:
        client = IDOClient(base_url, config="CSI_PRD", auth=BasicAuthProvider(u, p))
        result = await client.load_collection("SLItems", ["Item", "Description"], record_cap=500)
    """

    error_class = IDOError
    protocol = "ido"

    def __init__(self, base_url: str, config: Optional[str] = None, **kwargs):
        kwargs.setdefault("csrf", False)
        headers = dict(kwargs.pop("headers", None) or {})
        if config:
            headers["X-Infor-MongooseConfig"] = config
        super().__init__(base_url, headers=headers, **kwargs)
        self.config = config

    async def load_collection(
        self,
        ido: str,
        properties: Optional[Iterable[str]] = None,
        filter: Optional[str] = None,
        record_cap: Optional[int] = None,
        order_by: Optional[str] = None,
        distinct: bool = False,
    ) -> Dict[str, Any]:
        """Load rows of one IDO.

        Returns:
            {items, totalCount, idoName}
        """
        params = {
            "properties": ",".join(properties) if properties else None,
            "filter": filter,
            "recordCap": record_cap,
            "orderBy": order_by,
            "distinct": "true" if distinct else None,
        }
        response = await self.send("GET", f"/IDORequestService/ido/load/{ido}", params=params)
        session_id = response.headers.get(SESSION_HEADER)
        if session_id:
            self.default_headers[SESSION_HEADER] = session_id

        data = _decode_body(response.text)
        if isinstance(data, dict) and data.get("Success") is False:
            raise IDOError(
                f"IDO load of {ido} failed: {data.get('Message') or 'unknown error'}",
                details={"ido": ido, "response": data},
            )
        items = parse_ido_items(data)
        total = len(items)
        if isinstance(data, dict):
            total = data.get("TotalCount") or data.get("totalCount") or total
        return {"items": items, "totalCount": total, "idoName": ido}

    async def invoke_method(self, ido: str, method: str, parameters: Optional[List[Any]] = None) -> Any:
        return await self.post(f"/IDORequestService/ido/method/{ido}/{method}", body=list(parameters or []))

    async def get_metadata(self, ido: Optional[str] = None) -> Any:
        """IDO catalog, or the property list of one IDO."""
        if ido:
            return await self.get(f"/IDORequestService/ido/metadata/{ido}")
        return await self.get("/IDORequestService/ido/metadata/idos")
