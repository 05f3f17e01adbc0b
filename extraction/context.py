"""Per-run extraction state: mode, adapter, coverage, checkpoints, cancellation."""

import threading
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from connectors.adapters.base import SourceAdapter
from core.errors import ConfigurationError
from core.observability.logging import CorrelatedLogger, get_logger
from core.progress import EventType, ProgressBus
from core.resilience import CancellationToken
from core.storage import CheckpointManager

RUN_MODES = ("mock", "live")


class CoverageStatus(str, Enum):
    EXTRACTED = "extracted"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class CoverageRecord:
    """What happened to one expected table of one extractor."""
    extractor_id: str
    table: str
    status: CoverageStatus
    row_count: int = 0
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


class CoverageTracker:
    """Coverage records keyed by ``(extractor_id, table)``; the last write wins."""

    def __init__(self):
        self._records: Dict[Tuple[str, str], CoverageRecord] = {}
        self._lock = threading.Lock()

    def track(
        self,
        extractor_id: str,
        table: str,
        status: Union[CoverageStatus, str],
        row_count: int = 0,
        reason: Optional[str] = None,
    ) -> CoverageRecord:
        record = CoverageRecord(extractor_id, table, CoverageStatus(status), row_count, reason)
        with self._lock:
            self._records[(extractor_id, table)] = record
        return record

    def get(self, extractor_id: str, table: str) -> Optional[CoverageRecord]:
        return self._records.get((extractor_id, table))

    def has(self, extractor_id: str, table: str) -> bool:
        return (extractor_id, table) in self._records

    def for_extractor(self, extractor_id: str) -> List[CoverageRecord]:
        return [r for (eid, _), r in self._records.items() if eid == extractor_id]

    def records(self) -> List[CoverageRecord]:
        return list(self._records.values())

    def gaps(self) -> List[CoverageRecord]:
        return [r for r in self._records.values() if r.status != CoverageStatus.EXTRACTED]

    def summary(self) -> Dict[str, Any]:
        records = self.records()
        counts = {status.value: 0 for status in CoverageStatus}
        for record in records:
            counts[record.status.value] += 1
        total = len(records)
        counts["total"] = total
        counts["coveragePct"] = round(counts["extracted"] / total * 100) if total else 0
        return counts


@dataclass
class ExtractionContext:
    """
    Everything an extractor needs for one run.

    ``mode`` defaults to the adapter's mode; asking for a mode the adapter
    is not in is a configuration error, so a mock run can never reach a
    live system.
    """
    adapter: SourceAdapter
    mode: Optional[str] = None
    bus: Optional[ProgressBus] = None
    coverage: CoverageTracker = field(default_factory=CoverageTracker)
    checkpoint: Optional[CheckpointManager] = None
    token: CancellationToken = field(default_factory=CancellationToken)
    human_validation: List[str] = field(default_factory=list)
    system_info: Dict[str, Any] = field(default_factory=dict)
    run_id: str = field(default_factory=lambda: f"run-{uuid.uuid4().hex[:12]}")
    logger: CorrelatedLogger = field(default_factory=lambda: get_logger("extraction"))

    def __post_init__(self):
        self.mode = self.mode or self.adapter.mode
        if self.mode not in RUN_MODES:
            raise ConfigurationError(f"Unknown run mode: {self.mode}", details={"modes": list(RUN_MODES)})
        if self.mode != self.adapter.mode:
            raise ConfigurationError(
                f"{self.mode} run cannot use a {self.adapter.mode} adapter",
                details={"mode": self.mode, "adapterMode": self.adapter.mode},
            )

    @property
    def is_mock(self) -> bool:
        return self.mode == "mock"

    @property
    def source_system(self) -> str:
        return self.adapter.source_system or ""

    def emit(self, event_type: Union[EventType, str], data: Any = None) -> None:
        if self.bus is not None:
            self.bus.emit(event_type, data)

    def flag_for_validation(self, extractor_id: str, message: str) -> None:
        self.human_validation.append(f"[{extractor_id}] {message}")
