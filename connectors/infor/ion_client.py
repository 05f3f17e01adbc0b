"""ION API gateway client.

Reads Business Object Documents from the ION data catalog. Authentication is
OAuth2 client credentials against the tenant's token endpoint.

Usage:
    client = IONClient(
        "https://mingle-ionapi.inforcloudsuite.com",
        tenant="ACME_PRD",
        auth=OAuth2ClientCredentialsProvider(token_url, client_id, client_secret),
    )
    items = await client.query_bod("ItemMaster", top=100)
"""

import logging
from typing import Any, Dict, List, Optional

from connectors.http_client import HttpClient
from connectors.odata.client import extract_results
from core.errors import ConfigurationError, IONError

logger = logging.getLogger(__name__)


def _records(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, dict) and isinstance(data.get("items"), list):
        return data["items"]
    return extract_results(data)


class IONClient(HttpClient):
    """HTTP client for the ION data catalog BOD endpoints."""

    error_class = IONError
    protocol = "ion"

    def __init__(self, base_url: str, tenant: str, **kwargs):
        if not tenant:
            raise ConfigurationError("ION client requires a tenant")
        kwargs.setdefault("csrf", False)
        super().__init__(base_url, **kwargs)
        self.tenant = tenant

    @property
    def catalog_path(self) -> str:
        return f"/{self.tenant}/IONSERVICES/datacatalog/v2/BODs"

    async def query_bod(
        self,
        noun: str,
        filter: Optional[str] = None,
        top: Optional[int] = None,
        skip: Optional[int] = None,
        select: Optional[str] = None,
        order_by: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Query documents for one BOD noun."""
        params = {
            "$filter": filter,
            "$top": top,
            "$skip": skip,
            "$select": select,
            "$orderby": order_by,
        }
        logger.debug(f"Querying BOD {noun} with {params}")
        data = await self.get(f"{self.catalog_path}/{noun}", params=params)
        return _records(data)

    async def get_bod_document(self, noun: str, document_id: str) -> Any:
        return await self.get(f"{self.catalog_path}/{noun}('{document_id}')")

    async def list_nouns(self) -> List[Dict[str, Any]]:
        data = await self.get(self.catalog_path)
        nouns = []
        for bod in _records(data):
            nouns.append({
                "noun": bod.get("noun") or bod.get("name") or bod.get("Noun") or "",
                "description": bod.get("description") or bod.get("Description") or "",
                "verbs": bod.get("verbs") or bod.get("Verbs") or [],
            })
        return nouns
