"""
Forensic orchestrator: one full extraction pass over a source system.

Usage:
    adapter = create_adapter("SAP", mode="mock")
    context = ExtractionContext(adapter=adapter, bus=bus)
    orchestrator = ForensicOrchestrator(context, ExtractorRegistry.with_builtins())
    result = await orchestrator.run(max_concurrency=5)

Extractors run concurrently behind a semaphore. A failing extractor is
recorded in ``errors`` and its result slot holds ``{"error": message}``;
the pass always completes. Cancelling the context token stops new
extractors from starting and waits for the ones in flight.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Type

from core.audit import AuditEventType, AuditLogger, create_audit_event
from core.errors import ForensicsError, is_fatal_error
from core.models.refs import AuditSeverity
from core.observability.logging import get_logger, with_correlation
from core.progress import EventType
from extraction.base import BaseExtractor
from extraction.context import CoverageRecord, CoverageStatus, ExtractionContext
from extraction.gap import GapAnalyzer
from extraction.registry import ExtractorRegistry

logger = get_logger(__name__)

DEFAULT_MAX_CONCURRENCY = 5


@dataclass
class ExtractionResult:
    results: Dict[str, Any] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    coverage: List[CoverageRecord] = field(default_factory=list)
    confidence: Dict[str, Any] = field(default_factory=dict)
    gap_report: Dict[str, Any] = field(default_factory=dict)
    human_validation: List[str] = field(default_factory=list)
    system_info: Dict[str, Any] = field(default_factory=dict)
    duration_ms: float = 0.0
    cancelled: bool = False
    run_id: Optional[str] = None
    mode: Optional[str] = None

    def succeeded(self, extractor_id: str) -> bool:
        result = self.results.get(extractor_id)
        return isinstance(result, dict) and "error" not in result

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "mode": self.mode,
            "results": self.results,
            "errors": self.errors,
            "coverage": [r.to_dict() for r in self.coverage],
            "confidence": self.confidence,
            "gap_report": self.gap_report,
            "human_validation": self.human_validation,
            "system_info": self.system_info,
            "duration_ms": self.duration_ms,
            "cancelled": self.cancelled,
        }


class ForensicOrchestrator:
    """Drives every selected extractor once and aggregates the outcome."""

    def __init__(
        self,
        context: ExtractionContext,
        registry: Optional[ExtractorRegistry] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self.context = context
        self.registry = registry or ExtractorRegistry.with_builtins()
        self.audit = audit

    def select(
        self,
        include: Optional[Iterable[str]] = None,
        exclude: Optional[Iterable[str]] = None,
    ) -> List[Type[BaseExtractor]]:
        """Extractors for this run: ``include`` verbatim, else every extractor of the source system."""
        if include:
            selected = [self.registry.get(extractor_id) for extractor_id in include]
        else:
            selected = self.registry.list_by_source_system(self.context.source_system)
        excluded = set(exclude or ())
        return [cls for cls in selected if cls.extractor_id not in excluded]

    async def run(
        self,
        include: Optional[Iterable[str]] = None,
        exclude: Optional[Iterable[str]] = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        resume: bool = False,
    ) -> ExtractionResult:
        ctx = self.context
        selected = self.select(include, exclude)
        started = time.perf_counter()
        results: Dict[str, Any] = {}
        errors: Dict[str, str] = {}
        completed = 0

        with with_correlation(run_id=ctx.run_id, source_system=ctx.source_system, stage="extraction"):
            logger.info(f"Forensic run {ctx.run_id}: {len(selected)} extractor(s), {ctx.mode} mode")
            self._audit(AuditEventType.RUN_STARTED, f"Extraction run started ({len(selected)} extractors)")
            await self._load_system_info()

            if resume:
                restored = self._restore_checkpoints(selected)
                results.update(restored)
                completed = len(restored)

            semaphore = asyncio.Semaphore(max(1, max_concurrency))
            total = len(selected)

            async def run_one(cls: Type[BaseExtractor]) -> None:
                nonlocal completed
                if cls.extractor_id in results:
                    return
                async with semaphore:
                    if ctx.token.cancelled:
                        self._mark_not_started(cls)
                        results[cls.extractor_id] = {"error": "cancelled before start"}
                        errors[cls.extractor_id] = "cancelled before start"
                        return
                    extractor = cls(ctx)
                    try:
                        results[cls.extractor_id] = await extractor.extract()
                        status = "completed"
                    except ForensicsError as e:
                        results[cls.extractor_id] = {"error": str(e)}
                        errors[cls.extractor_id] = str(e)
                        status = "failed"
                        self._audit(
                            AuditEventType.EXTRACTION_FAILED,
                            f"Extractor {cls.extractor_id} failed: {e}",
                            severity=AuditSeverity.ERROR if is_fatal_error(e) else AuditSeverity.WARN,
                            extractor_id=cls.extractor_id,
                        )
                    completed += 1
                    ctx.emit(
                        EventType.EXTRACTION_PROGRESS,
                        {"extractorId": cls.extractor_id, "status": status, "completed": completed, "total": total},
                    )

            await asyncio.gather(*(run_one(cls) for cls in selected))

            analyzer = GapAnalyzer(selected, ctx.coverage, errors)
            result = ExtractionResult(
                results={cls.extractor_id: results[cls.extractor_id] for cls in selected if cls.extractor_id in results},
                errors=errors,
                coverage=ctx.coverage.records(),
                confidence=analyzer.confidence(),
                gap_report=analyzer.analyze(),
                human_validation=list(ctx.human_validation),
                system_info=ctx.system_info,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
                cancelled=ctx.token.cancelled,
                run_id=ctx.run_id,
                mode=ctx.mode,
            )

            ctx.emit(
                EventType.SYSTEM_STATUS,
                {
                    "stage": "extraction",
                    "runId": ctx.run_id,
                    "extractors": total,
                    "failed": len(errors),
                    "confidence": result.confidence["overall"],
                    "cancelled": result.cancelled,
                },
            )
            logger.info(
                f"Forensic run {ctx.run_id} finished: {total - len(errors)}/{total} extractors, "
                f"confidence {result.confidence['overall']}%"
            )
            self._audit(
                AuditEventType.RUN_COMPLETED,
                f"Extraction run finished with {len(errors)} failed extractor(s)",
                details={"confidence": result.confidence, "missingCritical": result.gap_report["missing_critical_tables"]},
            )
            return result

    async def _load_system_info(self) -> None:
        ctx = self.context
        if ctx.system_info:
            return
        try:
            ctx.system_info = await ctx.adapter.get_system_info()
        except ForensicsError as e:
            logger.warning(f"System info unavailable: {e}")
            ctx.flag_for_validation("ORCHESTRATOR", f"System info could not be read: {e}")

    def _restore_checkpoints(self, selected: List[Type[BaseExtractor]]) -> Dict[str, Any]:
        ctx = self.context
        if ctx.checkpoint is None:
            return {}
        done = set(ctx.checkpoint.completed_ids())
        restored: Dict[str, Any] = {}
        for cls in selected:
            if cls.extractor_id not in done:
                continue
            payload = ctx.checkpoint.load(cls.extractor_id) or {}
            tables = payload.get("tables") if isinstance(payload.get("tables"), dict) else {}
            for table in cls.expected_tables:
                rows = tables.get(table.name)
                ctx.coverage.track(
                    cls.extractor_id,
                    table.name,
                    CoverageStatus.EXTRACTED if rows is not None else CoverageStatus.SKIPPED,
                    row_count=len(rows or []),
                    reason="restored from checkpoint",
                )
            restored[cls.extractor_id] = payload
        if restored:
            logger.info(f"Resumed {len(restored)} extractor(s) from checkpoints")
        return restored

    def _mark_not_started(self, cls: Type[BaseExtractor]) -> None:
        for table in cls.expected_tables:
            if not self.context.coverage.has(cls.extractor_id, table.name):
                self.context.coverage.track(cls.extractor_id, table.name, CoverageStatus.SKIPPED, reason="cancelled")

    def _audit(self, event_type: AuditEventType, message: str, severity: AuditSeverity = AuditSeverity.INFO, **kwargs) -> None:
        if self.audit is None:
            return
        self.audit.log(
            create_audit_event(
                event_type,
                message,
                severity,
                run_id=self.context.run_id,
                source_system=self.context.source_system,
                **kwargs,
            )
        )
