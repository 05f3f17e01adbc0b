"""M3 MI program client.

M3 exposes its business logic as MI programs (``MMS200MI``, ``CRS610MI``...)
with transactions such as ``LstItmByItm``. Every call returns a ``MIRecord``
list whose entries carry ``NameValue`` pairs; they are flattened to plain
dicts here.
"""

import logging
from typing import Any, Dict, List, Optional

from connectors.http_client import HttpClient
from core.errors import M3ApiError

logger = logging.getLogger(__name__)


def flatten_mi_record(record: Dict[str, Any]) -> Dict[str, Any]:
    """``{"NameValue": [{"Name": "ITNO", "Value": "A1 "}]}`` -> ``{"ITNO": "A1"}``."""
    pairs = record.get("NameValue")
    if not isinstance(pairs, list):
        return dict(record)
    flat = {}
    for pair in pairs:
        name = pair.get("Name") or pair.get("name")
        if not name:
            continue
        value = pair.get("Value", pair.get("value"))
        flat[name] = value.strip() if isinstance(value, str) else value
    return flat


class M3ApiClient(HttpClient):
    """Executes M3 MI transactions over the m3api-rest endpoint.

    ``company`` and ``division`` are injected as ``CONO`` / ``DIVI`` unless
    the caller passes them explicitly.
    """

    error_class = M3ApiError
    protocol = "m3"

    def __init__(
        self,
        base_url: str,
        company: Optional[str] = None,
        division: Optional[str] = None,
        tenant: Optional[str] = None,
        **kwargs,
    ):
        kwargs.setdefault("csrf", False)
        super().__init__(base_url, **kwargs)
        self.company = company
        self.division = division
        self.tenant = tenant

    def _execute_path(self, program: str, transaction: str) -> str:
        prefix = f"/{self.tenant}/M3" if self.tenant else ""
        return f"{prefix}/m3api-rest/execute/{program}/{transaction}"

    async def execute(self, program: str, transaction: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Run one MI transaction.

        Returns:
            {program, transaction, records, metadata}

        Raises:
            M3ApiError: HTTP failure or ``nrOfFailedTransactions > 0``
        """
        inputs = dict(params or {})
        if self.company and not inputs.get("CONO"):
            inputs["CONO"] = self.company
        if self.division and not inputs.get("DIVI"):
            inputs["DIVI"] = self.division

        data = await self.get(self._execute_path(program, transaction), params=inputs)
        if not isinstance(data, dict):
            raise M3ApiError(
                "M3 API response is not valid JSON",
                details={"program": program, "transaction": transaction, "response": str(data)[:500]},
            )

        if (data.get("nrOfFailedTransactions") or 0) > 0:
            failures = data.get("results") or data.get("MIRecord") or [{}]
            first = failures[0] if failures else {}
            message = first.get("errorMessage") or first.get("ErrorMessage") or "Unknown M3 transaction error"
            raise M3ApiError(
                f"M3 transaction failed: {message}",
                details={"program": program, "transaction": transaction, "results": data.get("results")},
            )

        raw = data.get("MIRecord") or data.get("results") or data.get("value") or []
        records = [flatten_mi_record(r) for r in raw]
        metadata = data.get("Metadata") or {}
        return {
            "program": program,
            "transaction": transaction,
            "records": records,
            "metadata": {
                "program": program,
                "transaction": transaction,
                "recordCount": len(records),
                "nrOfRecords": data.get("nrOfRecords") or metadata.get("nrOfRecords") or 0,
            },
        }

    async def list_programs(self) -> List[Dict[str, str]]:
        data = await self.get("/m3api-rest/v2/metadata/programs")
        programs = data if isinstance(data, list) else (data or {}).get("programs") or []
        return [
            {"program": p.get("program") or p.get("name") or "", "description": p.get("description") or ""}
            for p in programs
        ]

    async def get_fields(self, program: str, transaction: str) -> Dict[str, List[Dict[str, Any]]]:
        data = await self.get(f"/m3api-rest/v2/metadata/{program}/{transaction}") or {}
        return {
            "input": data.get("inputFields") or data.get("input") or [],
            "output": data.get("outputFields") or data.get("output") or [],
        }
