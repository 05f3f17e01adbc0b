"""Target loaders.

Migration objects hand transformed records to a ``TargetLoader`` in
batches. ``DryRunTarget`` only counts; ``ODataTarget`` posts every record of
a batch to the object's entity set in a single ``$batch`` request.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from connectors.odata.batch import BatchRequest
from connectors.odata.client import ODataClient
from core.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class LoadResult:
    """Outcome of one batch."""
    loaded: int = 0
    failed: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def merge(self, other: "LoadResult") -> None:
        self.loaded += other.loaded
        self.failed += other.failed
        self.errors.extend(other.errors)


class TargetLoader(ABC):
    """Destination of transformed records."""

    @abstractmethod
    async def load_batch(self, object_id: str, records: List[Dict[str, Any]]) -> LoadResult:
        """Load records; per-record failures are reported, not raised."""

    async def close(self) -> None:
        pass


class DryRunTarget(TargetLoader):
    """Accepts everything and remembers batch sizes."""

    def __init__(self):
        self.batches: Dict[str, List[int]] = {}

    async def load_batch(self, object_id: str, records: List[Dict[str, Any]]) -> LoadResult:
        self.batches.setdefault(object_id, []).append(len(records))
        return LoadResult(loaded=len(records))

    def total(self, object_id: str) -> int:
        return sum(self.batches.get(object_id, []))


class ODataTarget(TargetLoader):
    """Posts records to S/4HANA OData entity sets.

    Args:
        client: OData client on the target service root
        entity_sets: migration object id -> entity set path
            (``{"BUSINESS_PARTNER": "A_BusinessPartner"}``)
    """

    def __init__(self, client: ODataClient, entity_sets: Dict[str, str]):
        self.client = client
        self.entity_sets = dict(entity_sets)

    def entity_set(self, object_id: str) -> str:
        path = self.entity_sets.get(object_id)
        if not path:
            raise ConfigurationError(
                f"No target entity set configured for {object_id}",
                details={"objectId": object_id, "configured": sorted(self.entity_sets)},
            )
        return path

    async def load_batch(self, object_id: str, records: List[Dict[str, Any]]) -> LoadResult:
        path = self.entity_set(object_id)
        if not records:
            return LoadResult()
        results = await self.client.batch([BatchRequest("POST", path, body=record) for record in records])
        outcome = LoadResult()
        for result in results:
            if result.ok:
                outcome.loaded += 1
            else:
                outcome.failed += 1
                outcome.errors.append({"index": result.index, "status": result.status, "error": result.error})
        if outcome.failed:
            logger.warning(f"{object_id}: {outcome.failed}/{len(records)} record(s) rejected by {path}")
        return outcome

    async def close(self) -> None:
        await self.client.close()


def build_target(mode: str, dry_run: bool, target: Optional[TargetLoader] = None) -> TargetLoader:
    """Loader for a run: dry runs and mock runs never touch the target."""
    if mode != "live" or dry_run or target is None:
        return DryRunTarget()
    return target
