"""
Migration object base class.

A migration object moves one business object (G/L accounts, business
partners, open items...) from the source to the target:

    extract -> canonicalize (optional) -> transform (field mapping) -> validate (quality) -> load -> reconcile

Subclasses declare the object and its rules; the base class drives the
lifecycle, emits ``migration:*`` events and writes the audit trail:

    class CostCenterObject(BaseMigrationObject):
        object_id = "COST_CENTER"
        name = "Cost Centers"
        source_table = "CSKS"
        key_fields = ("CostCenter",)

        def get_field_mappings(self):
            return [MappingRule(source="KOSTL", target="CostCenter", convert="padLeft10")]
"""

import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from connectors.adapters.base import SourceAdapter
from connectors.target import LoadResult, TargetLoader, build_target
from core.audit import AuditEventType, AuditLogger, create_audit_event
from core.errors import ConfigurationError, MigrationObjectError, is_fatal_error
from core.mapping import FieldMappingEngine, MappingRule
from core.models.source_mapping import to_canonical
from core.models.refs import AuditSeverity, ReconciliationReport
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import record_migration_run
from core.progress import EventType, ProgressBus
from core.resilience import CancellationToken
from migration.quality import DataQualityChecker
from migration.reconciliation import ReconciliationStatus, reconcile

RUN_MODES = ("mock", "live")
DEFAULT_BATCH_SIZE = 500
PROGRESS_INTERVAL = 1000


@dataclass
class MigrationContext:
    """Per-run settings and collaborators shared by every migration object.

    Args:
        mode: "mock" serves built-in records, "live" reads the source adapter
        dry_run: never write to the target, only count
        adapter: source adapter for live extraction
        target: target loader for live, non-dry runs
        batch_size: records per target call (at most 1000)
        source_data: object id -> records, used instead of extracting
    """
    mode: str = "mock"
    dry_run: bool = False
    adapter: Optional[SourceAdapter] = None
    target: Optional[TargetLoader] = None
    bus: Optional[ProgressBus] = None
    audit: Optional[AuditLogger] = None
    token: CancellationToken = field(default_factory=CancellationToken)
    batch_size: int = DEFAULT_BATCH_SIZE
    concurrency: int = 5
    source_data: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    report_dir: Optional[Path] = None
    run_id: str = field(default_factory=lambda: f"mig-{uuid.uuid4().hex[:12]}")

    def __post_init__(self):
        if self.mode not in RUN_MODES:
            raise ConfigurationError(f"Unknown run mode: {self.mode}", details={"modes": list(RUN_MODES)})
        if not 0 < self.batch_size <= PROGRESS_INTERVAL:
            raise ConfigurationError(
                f"batch_size must be between 1 and {PROGRESS_INTERVAL}, got {self.batch_size}",
                details={"batchSize": self.batch_size},
            )
        self._loader = build_target(self.mode, self.dry_run, self.target)

    @property
    def is_mock(self) -> bool:
        return self.mode == "mock"

    @property
    def loader(self) -> TargetLoader:
        return self._loader

    def emit(self, event_type: EventType, data: Any = None) -> None:
        if self.bus is not None:
            self.bus.emit(event_type, data)

    def audit_event(
        self,
        event_type: AuditEventType,
        message: str,
        severity: AuditSeverity = AuditSeverity.INFO,
        **kwargs,
    ) -> None:
        if self.audit is not None:
            self.audit.log(create_audit_event(event_type, message, severity, run_id=self.run_id, **kwargs))


@dataclass
class MigrationObjectResult:
    object_id: str
    name: str
    status: str = "completed"
    extracted: int = 0
    transformed: int = 0
    loaded: int = 0
    rejected: int = 0
    failed: int = 0
    quality: Dict[str, Any] = field(default_factory=dict)
    rejections: List[Dict[str, Any]] = field(default_factory=list)
    reconciliation: Optional[ReconciliationReport] = None
    duration_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "objectId": self.object_id,
            "name": self.name,
            "status": self.status,
            "extracted": self.extracted,
            "transformed": self.transformed,
            "loaded": self.loaded,
            "rejected": self.rejected,
            "failed": self.failed,
            "quality": self.quality,
            "rejections": self.rejections,
            "reconciliation": self.reconciliation.model_dump(mode="json") if self.reconciliation else None,
            "durationMs": self.duration_ms,
        }


class BaseMigrationObject:
    """Common lifecycle for all migration objects."""

    object_id: str = ""
    name: str = ""
    source_system: str = "SAP"
    # None: prerequisites come from the dependency graph's table
    dependencies: Optional[Tuple[str, ...]] = None
    source_table: Optional[str] = None
    source_fields: Optional[Tuple[str, ...]] = None
    key_fields: Tuple[str, ...] = ()
    aggregate_fields: Tuple[str, ...] = ()
    # Canonical entity type source rows are normalized into before mapping
    canonical_entity: Optional[str] = None
    mock_records: Tuple[Dict[str, Any], ...] = ()

    def __init__(self):
        if not self.object_id:
            raise ConfigurationError(
                f"{type(self).__name__} must define object_id",
                details={"object": type(self).__name__},
            )
        self.logger = get_logger(f"migration.{self.object_id}")
        self._engine: Optional[FieldMappingEngine] = None
        self._quality = DataQualityChecker()

    def get_field_mappings(self) -> List[MappingRule]:
        raise NotImplementedError(f"{type(self).__name__} must define get_field_mappings()")

    def metadata_rules(self) -> List[MappingRule]:
        """Constant SourceSystem / MigrationObjectId columns appended to every record."""
        return [
            MappingRule(target="SourceSystem", default=self.source_system),
            MappingRule(target="MigrationObjectId", default=self.object_id),
        ]

    def get_quality_checks(self) -> Dict[str, Any]:
        """Required fields and duplicate keys; defaults to the business key."""
        if not self.key_fields:
            return {}
        return {"required": list(self.key_fields), "exact_duplicate": {"keys": list(self.key_fields)}}

    @property
    def engine(self) -> FieldMappingEngine:
        if self._engine is None:
            self._engine = FieldMappingEngine(self.get_field_mappings())
        return self._engine

    # =========================================================================
    # Phases
    # =========================================================================

    async def extract(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        ctx.token.raise_if_cancelled()
        if self.object_id in ctx.source_data:
            return list(ctx.source_data[self.object_id])
        if ctx.is_mock:
            return await self._extract_mock(ctx)
        return await self._extract_live(ctx)

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        return [dict(r) for r in self.mock_records]

    async def _extract_live(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        if ctx.adapter is None:
            raise ConfigurationError(
                f"{self.object_id}: live extraction needs a source adapter",
                details={"objectId": self.object_id},
            )
        if not self.source_table:
            raise ConfigurationError(
                f"{self.object_id} has no source table for live extraction",
                details={"objectId": self.object_id},
            )
        fields = list(self.source_fields) if self.source_fields else None
        data = await ctx.adapter.read_table(self.source_table, fields=fields)
        return data.rows

    def canonicalize(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Normalize a source row into ``canonical_entity``; rows pass through when unset.

        Raises:
            CanonicalMappingError: the row does not form a valid entity
        """
        if self.canonical_entity is None:
            return record
        return to_canonical(self.source_system, self.canonical_entity, record).to_record()

    def transform(self, records: Sequence[Dict[str, Any]], ctx: Optional[MigrationContext] = None) -> List[Dict[str, Any]]:
        output = []
        for index, record in enumerate(records, start=1):
            output.append(self.engine.apply_record(self.canonicalize(record)))
            if ctx is not None and index % PROGRESS_INTERVAL == 0:
                ctx.token.raise_if_cancelled()
                self._progress(ctx, "transform", index, len(records))
        return output

    def validate(self, records: List[Dict[str, Any]]):
        """Return (valid, rejections, quality report)."""
        return self._quality.split_valid(records, self.get_quality_checks())

    async def load(self, ctx: MigrationContext, records: List[Dict[str, Any]]) -> Tuple[LoadResult, List[Dict[str, Any]]]:
        """Load in batches; return the merged result and the records the target accepted."""
        outcome = LoadResult()
        accepted: List[Dict[str, Any]] = []
        for start in range(0, len(records), ctx.batch_size):
            ctx.token.raise_if_cancelled()
            batch = records[start:start + ctx.batch_size]
            result = await ctx.loader.load_batch(self.object_id, batch)
            failed_rows = {e.get("index") for e in result.errors}
            accepted.extend(r for i, r in enumerate(batch) if i not in failed_rows)
            for error in result.errors:
                outcome.errors.append({**error, "row": start + error.get("index", 0)})
            outcome.loaded += result.loaded
            outcome.failed += result.failed
            self._progress(ctx, "load", start + len(batch), len(records))
        return outcome, accepted

    def reconcile(
        self,
        ctx: MigrationContext,
        extracted: int,
        source_records: List[Dict[str, Any]],
        target_records: List[Dict[str, Any]],
        rejected: int,
    ) -> ReconciliationReport:
        return reconcile(
            self.object_id,
            extracted=extracted,
            source_records=source_records,
            target_records=target_records,
            rejected=rejected,
            key_fields=self.key_fields,
            aggregate_fields=self.aggregate_fields,
            required_fields=self.get_quality_checks().get("required", []),
            audit=ctx.audit,
            run_id=ctx.run_id,
            report_dir=ctx.report_dir,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def run(self, ctx: MigrationContext) -> MigrationObjectResult:
        """Run all phases.

        Raises:
            MigrationObjectError: the object failed
            CircuitBreakerOpenError, PoolDrainedError, OperationCancelledError,
            ConfigurationError: propagated unchanged
        """
        started = time.perf_counter()
        result = MigrationObjectResult(object_id=self.object_id, name=self.name)

        with with_correlation(run_id=ctx.run_id, object_id=self.object_id, stage="migration"):
            ctx.emit(
                EventType.MIGRATION_START,
                {"objectId": self.object_id, "name": self.name, "mode": ctx.mode, "dryRun": ctx.dry_run},
            )
            ctx.audit_event(AuditEventType.MIGRATION_STARTED, f"{self.object_id} started", object_id=self.object_id)
            self.logger.info(f"Running migration object {self.name} ({ctx.mode}{', dry run' if ctx.dry_run else ''})")
            try:
                records = await self.extract(ctx)
                result.extracted = len(records)
                self._progress(ctx, "extract", len(records), len(records))

                transformed = self.transform(records, ctx)
                result.transformed = len(transformed)

                valid, rejections, report = self.validate(transformed)
                result.rejected = len(rejections)
                result.rejections = rejections
                result.quality = report.to_dict()
                if rejections:
                    self.logger.warning(f"{len(rejections)} record(s) rejected by quality checks")
                    ctx.audit_event(
                        AuditEventType.RECORDS_REJECTED,
                        f"{self.object_id}: {len(rejections)} record(s) rejected",
                        AuditSeverity.WARN,
                        object_id=self.object_id,
                        details={"rows": [r["row"] for r in rejections]},
                    )

                load_result, accepted = await self.load(ctx, valid)
                result.loaded = load_result.loaded
                result.failed = load_result.failed

                result.reconciliation = self.reconcile(ctx, result.extracted, valid, accepted, result.rejected)
            except Exception as e:
                self._fail(ctx, result, e)
                if isinstance(e, MigrationObjectError) or is_fatal_error(e):
                    raise
                raise MigrationObjectError(
                    f"Migration object {self.object_id} failed: {e}",
                    details={"objectId": self.object_id, "cause": str(e), "causeCode": getattr(e, "code", None)},
                    cause=e,
                ) from e

            result.duration_ms = round((time.perf_counter() - started) * 1000, 1)
            if result.failed or result.rejected or result.reconciliation.status == ReconciliationStatus.FAILED.value:
                result.status = "completed_with_errors"
            record_migration_run(self.object_id, result.loaded, result.rejected)
            ctx.emit(
                EventType.MIGRATION_COMPLETE,
                {
                    "objectId": self.object_id,
                    "extracted": result.extracted,
                    "transformed": result.transformed,
                    "loaded": result.loaded,
                    "rejected": result.rejected,
                    "failed": result.failed,
                    "reconciliation": result.reconciliation.status,
                    "durationMs": result.duration_ms,
                },
            )
            ctx.audit_event(
                AuditEventType.MIGRATION_COMPLETED,
                f"{self.object_id}: {result.loaded} loaded, {result.rejected} rejected",
                object_id=self.object_id,
                details={"status": result.status, "failed": result.failed},
            )
            self.logger.info(
                f"{self.name}: {result.extracted} extracted, {result.loaded} loaded, "
                f"{result.rejected} rejected ({result.duration_ms:.0f}ms)"
            )
            return result

    def _progress(self, ctx: MigrationContext, phase: str, processed: int, total: int) -> None:
        ctx.emit(
            EventType.MIGRATION_PROGRESS,
            {"objectId": self.object_id, "phase": phase, "processed": processed, "total": total},
        )

    def _fail(self, ctx: MigrationContext, result: MigrationObjectResult, error: Exception) -> None:
        record_migration_run(self.object_id, result.loaded, result.rejected, failed=True)
        ctx.emit(
            EventType.MIGRATION_ERROR,
            {"objectId": self.object_id, "error": str(error), "code": getattr(error, "code", None)},
        )
        ctx.audit_event(
            AuditEventType.MIGRATION_FAILED,
            f"{self.object_id} failed: {error}",
            AuditSeverity.ERROR,
            object_id=self.object_id,
        )
        self.logger.error(f"Migration object {self.name} failed: {error}")
