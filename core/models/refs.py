"""Data reference and audit models for artifact storage and tracking."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from core.clock import utc_now


class DataReference(BaseModel):
    """Reference to a stored artifact with metadata for retrieval and verification.

    Attributes:
        storage_uri: Absolute file path to the artifact
        content_hash: SHA256 hash of the content for integrity verification
        content_type: MIME type
        size_bytes: Size of the artifact in bytes
        stored_at: Timestamp when the artifact was stored
    """
    storage_uri: str = Field(..., description="Absolute file path to the artifact")
    content_hash: str = Field(..., description="SHA256 hash of content")
    content_type: str = Field(default="application/json", description="MIME type")
    size_bytes: int = Field(..., description="Size in bytes")
    stored_at: datetime = Field(default_factory=utc_now, description="Storage timestamp")


# =============================================================================
# Audit Event Models
# =============================================================================

class AuditSeverity(str, Enum):
    """Severity levels for audit events."""
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    BLOCK = "BLOCK"


class AuditEvent(BaseModel):
    """An audit event for tracking engine actions.

    Provides traceability from extraction through target load and
    reconciliation.
    """
    event_id: str = Field(..., description="Unique event identifier")
    timestamp: datetime = Field(default_factory=utc_now, description="Event timestamp")
    event_type: str = Field(..., description="Type of event (EXTRACTION_COMPLETED, LOAD_COMPLETED, ...)")
    severity: AuditSeverity = Field(default=AuditSeverity.INFO, description="Event severity")

    # Correlation
    run_id: Optional[str] = Field(None, description="Forensic or migration run")
    object_id: Optional[str] = Field(None, description="Migration object, when applicable")
    extractor_id: Optional[str] = Field(None, description="Extractor, when applicable")
    source_system: Optional[str] = Field(None, description="Source ERP")

    message: str = Field(..., description="Human-readable message")
    details: dict = Field(default_factory=dict, description="Additional event details")
    actor: str = Field(default="system", description="Who/what performed the action")
    artifact_refs: list[DataReference] = Field(default_factory=list, description="Related artifacts")


class ReconciliationReport(BaseModel):
    """Reconciliation results for one migration object run.

    Attributes:
        object_id: Migration object the checks ran against
        status: Overall status ("PASSED", "PASSED_WITH_WARNINGS", "FAILED")
        checks: Individual check results
        summary: Counts of passed checks, failures and warnings
        metrics: Key metrics (extracted, loaded, rejected, sums)
        report_ref: Reference to the report JSON if saved
    """
    object_id: str = Field(..., description="Migration object identifier")
    status: str = Field(..., description="Overall status: PASSED, PASSED_WITH_WARNINGS or FAILED")
    checks: list[dict] = Field(default_factory=list, description="Individual check results")
    summary: dict = Field(default_factory=dict, description="Summary information")
    metrics: dict = Field(default_factory=dict, description="Key metrics")
    report_ref: Optional[DataReference] = Field(None, description="Report artifact reference")
