"""Audit event logging and persistence.

Structured audit trail for engine actions, from extraction through target
load and reconciliation. Migration objects write their reconciliation
records here. Supports multiple persistence backends.
"""

import json
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.clock import as_utc, utc_now
from core.models.refs import AuditEvent, AuditSeverity, DataReference

logger = logging.getLogger(__name__)


class AuditEventType(str, Enum):
    """Standard audit event types."""
    # Run events
    RUN_STARTED = "RUN_STARTED"
    RUN_COMPLETED = "RUN_COMPLETED"
    RUN_FAILED = "RUN_FAILED"

    # Extraction events
    EXTRACTION_STARTED = "EXTRACTION_STARTED"
    EXTRACTION_COMPLETED = "EXTRACTION_COMPLETED"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"

    # Migration object events
    MIGRATION_STARTED = "MIGRATION_STARTED"
    MIGRATION_COMPLETED = "MIGRATION_COMPLETED"
    MIGRATION_FAILED = "MIGRATION_FAILED"
    RECORDS_REJECTED = "RECORDS_REJECTED"

    # Target load events
    LOAD_COMPLETED = "LOAD_COMPLETED"
    LOAD_FAILED = "LOAD_FAILED"

    # Reconciliation events
    RECONCILIATION_COMPLETED = "RECONCILIATION_COMPLETED"
    RECONCILIATION_FAILED = "RECONCILIATION_FAILED"

    # System events
    SYSTEM_ERROR = "SYSTEM_ERROR"
    CONFIGURATION_CHANGED = "CONFIGURATION_CHANGED"


def create_audit_event(
    event_type: AuditEventType,
    message: str,
    severity: AuditSeverity = AuditSeverity.INFO,
    run_id: Optional[str] = None,
    object_id: Optional[str] = None,
    extractor_id: Optional[str] = None,
    source_system: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    actor: str = "system",
    artifact_refs: Optional[List[DataReference]] = None,
) -> AuditEvent:
    """Create a new audit event with auto-generated ID and timestamp.

    Args:
        event_type: Type of event
        message: Human-readable message
        severity: Event severity level
        run_id: Forensic or migration run
        object_id: Migration object ID
        extractor_id: Extractor ID
        source_system: Source ERP identifier
        details: Additional structured details
        actor: Who/what performed the action
        artifact_refs: Related artifact references

    Returns:
        Configured AuditEvent ready for logging
    """
    return AuditEvent(
        event_id=str(uuid.uuid4()),
        timestamp=utc_now(),
        event_type=event_type.value,
        severity=severity,
        run_id=run_id,
        object_id=object_id,
        extractor_id=extractor_id,
        source_system=source_system,
        message=message,
        details=details or {},
        actor=actor,
        artifact_refs=artifact_refs or [],
    )


def _matches(
    event: AuditEvent,
    event_type: Optional[str],
    object_id: Optional[str],
    run_id: Optional[str],
    start_time: Optional[datetime],
    end_time: Optional[datetime],
) -> bool:
    if event_type and event.event_type != event_type:
        return False
    if object_id and event.object_id != object_id:
        return False
    if run_id and event.run_id != run_id:
        return False
    timestamp = as_utc(event.timestamp)
    if start_time and timestamp < as_utc(start_time):
        return False
    if end_time and timestamp > as_utc(end_time):
        return False
    return True


class AuditBackend(ABC):
    """Abstract base class for audit persistence backends."""

    @abstractmethod
    def log(self, event: AuditEvent) -> None:
        """Persist an audit event."""
        pass

    @abstractmethod
    def query(
        self,
        event_type: Optional[str] = None,
        object_id: Optional[str] = None,
        run_id: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[AuditEvent]:
        """Query audit events with filters."""
        pass


class JSONFileAuditBackend(AuditBackend):
    """Audit backend that appends events to JSON-lines files.

    Stores one file per day in YYYY-MM-DD.jsonl format.
    """

    def __init__(self, base_path: Path):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _get_file_path(self, day: datetime) -> Path:
        return self.base_path / f"{day.strftime('%Y-%m-%d')}.jsonl"

    def log(self, event: AuditEvent) -> None:
        file_path = self._get_file_path(event.timestamp)
        with open(file_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(event.model_dump(mode="json")) + "\n")

    def query(
        self,
        event_type: Optional[str] = None,
        object_id: Optional[str] = None,
        run_id: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[AuditEvent]:
        results: List[AuditEvent] = []
        for file_path in sorted(self.base_path.glob("*.jsonl")):
            with open(file_path, "r", encoding="utf-8") as f:
                for line in f:
                    if not line.strip():
                        continue
                    event = AuditEvent.model_validate_json(line)
                    if not _matches(event, event_type, object_id, run_id, start_time, end_time):
                        continue
                    results.append(event)
                    if len(results) >= limit:
                        return results
        return results


class InMemoryAuditBackend(AuditBackend):
    """In-memory audit backend for tests and mock runs."""

    def __init__(self):
        self._events: List[AuditEvent] = []

    def log(self, event: AuditEvent) -> None:
        self._events.append(event)

    def query(
        self,
        event_type: Optional[str] = None,
        object_id: Optional[str] = None,
        run_id: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[AuditEvent]:
        results = []
        for event in self._events:
            if not _matches(event, event_type, object_id, run_id, start_time, end_time):
                continue
            results.append(event)
            if len(results) >= limit:
                break
        return results

    def clear(self) -> None:
        self._events.clear()


class AuditLogger:
    """Audit logger that fans out to multiple backends.

    Usage:
        audit = AuditLogger()
        audit.add_backend(JSONFileAuditBackend(Path("./audit")))
        audit.log_info(
            AuditEventType.RECONCILIATION_COMPLETED,
            "GL_BALANCE reconciled",
            object_id="GL_BALANCE",
        )
    """

    def __init__(self, backends: Optional[List[AuditBackend]] = None):
        self._backends: List[AuditBackend] = list(backends or [])

    def add_backend(self, backend: AuditBackend) -> None:
        self._backends.append(backend)

    def log(self, event: AuditEvent) -> None:
        """Log event to all backends."""
        for backend in self._backends:
            try:
                backend.log(event)
            except Exception as e:
                # Don't let audit failures break the run
                logger.error(f"Audit logging failed for backend {type(backend).__name__}: {e}")

    def log_info(self, event_type: AuditEventType, message: str, **kwargs) -> AuditEvent:
        event = create_audit_event(event_type, message, AuditSeverity.INFO, **kwargs)
        self.log(event)
        return event

    def log_warning(self, event_type: AuditEventType, message: str, **kwargs) -> AuditEvent:
        event = create_audit_event(event_type, message, AuditSeverity.WARN, **kwargs)
        self.log(event)
        return event

    def log_error(self, event_type: AuditEventType, message: str, **kwargs) -> AuditEvent:
        event = create_audit_event(event_type, message, AuditSeverity.ERROR, **kwargs)
        self.log(event)
        return event

    def query(self, **filters) -> List[AuditEvent]:
        """Query the first backend."""
        if not self._backends:
            return []
        return self._backends[0].query(**filters)
