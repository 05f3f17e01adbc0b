"""
Extractor base class.

An extractor is a unit of forensic read. Its descriptor is class-level
data (id, name, module, category, source system, expected tables); the
base class drives the lifecycle and records one coverage entry per
expected table:

    class CompanyCodeExtractor(BaseExtractor):
        extractor_id = "FI_COMPANY_CODES"
        name = "Company Codes"
        module = "FI"
        expected_tables = (
            ExpectedTable("T001", "Company codes", critical=True),
        )

A table that cannot be read is a gap, not a failure: it is recorded in
coverage and stored as ``[]``. An open circuit breaker, a drained pool or
cancellation end the extractor instead.
"""

import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from connectors.rfc.table_reader import TableData
from core.errors import (
    ConfigurationError,
    ExtractionError,
    ForensicsError,
    OperationCancelledError,
    is_authorization_error,
    is_fatal_error,
)
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import (
    record_extractor_completed,
    record_extractor_failed,
    record_extractor_started,
)
from core.progress import EventType
from extraction.context import CoverageStatus, ExtractionContext


@dataclass(frozen=True)
class ExpectedTable:
    """A source table an extractor is expected to read."""
    name: str
    description: str = ""
    critical: bool = False
    fields: Optional[Tuple[str, ...]] = None
    max_rows: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "critical": self.critical,
            "fields": list(self.fields) if self.fields else None,
            "maxRows": self.max_rows,
        }


class BaseExtractor:
    """Common lifecycle for all extractors. Subclasses set the descriptor attributes."""

    extractor_id: str = ""
    name: str = ""
    module: str = ""
    category: str = "config"
    source_system: str = "SAP"
    expected_tables: Tuple[ExpectedTable, ...] = ()

    def __init__(self, context: ExtractionContext):
        if not self.extractor_id:
            raise ConfigurationError(
                f"{type(self).__name__} must define extractor_id",
                details={"extractor": type(self).__name__},
            )
        self.context = context
        self.logger = get_logger(f"extraction.{self.extractor_id}")

    @classmethod
    def descriptor(cls) -> Dict[str, Any]:
        return {
            "extractorId": cls.extractor_id,
            "name": cls.name,
            "module": cls.module,
            "category": cls.category,
            "sourceSystem": cls.source_system,
            "expectedTables": [t.to_dict() for t in cls.expected_tables],
        }

    def get_expected_tables(self) -> List[ExpectedTable]:
        return list(self.expected_tables)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def extract(self) -> Dict[str, Any]:
        """Run the extractor and return its payload.

        Raises:
            ExtractionError: the extractor failed as a whole
            OperationCancelledError: the run was cancelled
        """
        ctx = self.context
        ctx.token.raise_if_cancelled()
        ctx.emit(EventType.EXTRACTION_START, {"extractorId": self.extractor_id, "name": self.name, "module": self.module})
        record_extractor_started(self.extractor_id)
        started = time.perf_counter()

        with with_correlation(run_id=ctx.run_id, extractor_id=self.extractor_id, source_system=ctx.source_system):
            self.logger.info(f"Starting extraction: {self.name} ({ctx.mode})")
            try:
                if ctx.is_mock:
                    payload = await self._extract_mock()
                else:
                    payload = await self._extract_live()
            except Exception as e:
                reason = "cancelled" if isinstance(e, OperationCancelledError) else str(e)
                self._fill_untouched(CoverageStatus.FAILED, reason)
                record_extractor_failed(self.extractor_id)
                error = e if isinstance(e, (ExtractionError, OperationCancelledError)) else ExtractionError(
                    f"Extractor {self.extractor_id} failed: {e}",
                    details={
                        "extractorId": self.extractor_id,
                        "cause": str(e),
                        "causeCode": getattr(e, "code", None),
                    },
                    cause=e,
                )
                ctx.emit(
                    EventType.EXTRACTION_ERROR,
                    {"extractorId": self.extractor_id, "error": str(error), "code": error.code},
                )
                self.logger.error(f"Extraction failed: {self.name}: {e}")
                raise error

            self._fill_untouched(CoverageStatus.SKIPPED, "not read")
            duration_ms = (time.perf_counter() - started) * 1000
            record_count = self._record_count(payload)
            payload.setdefault("recordCount", record_count)
            if ctx.checkpoint is not None:
                ctx.checkpoint.save(self.extractor_id, payload)
            record_extractor_completed(self.extractor_id, record_count, duration_ms)
            ctx.emit(
                EventType.EXTRACTION_COMPLETE,
                {"extractorId": self.extractor_id, "recordCount": record_count, "durationMs": round(duration_ms, 1)},
            )
            self.logger.info(f"Extraction complete: {self.name} ({record_count} records, {duration_ms:.0f}ms)")
            return payload

    async def _extract_live(self) -> Dict[str, Any]:
        return self.summarize(await self._read_expected_tables())

    async def _extract_mock(self) -> Dict[str, Any]:
        return self.summarize(await self._read_expected_tables())

    def summarize(self, tables: Dict[str, List[Dict[str, Any]]]) -> Dict[str, Any]:
        """Build the payload from the rows read; override to add findings."""
        return {"tables": tables, "recordCount": sum(len(rows) for rows in tables.values())}

    # =========================================================================
    # Reads
    # =========================================================================

    async def _read_expected_tables(self) -> Dict[str, List[Dict[str, Any]]]:
        tables: Dict[str, List[Dict[str, Any]]] = {}
        for table in self.expected_tables:
            tables[table.name] = await self._read_or_empty(
                table.name, list(table.fields) if table.fields else None, max_rows=table.max_rows
            )
        return tables

    async def _read_or_empty(
        self,
        table: str,
        fields: Optional[List[str]] = None,
        where: Optional[str] = None,
        max_rows: int = 0,
    ) -> List[Dict[str, Any]]:
        """Read a table; a non-fatal failure is already in coverage, so yield ``[]``."""
        try:
            return (await self._read_table(table, fields, where, max_rows)).rows
        except ForensicsError as e:
            if is_fatal_error(e):
                raise
            self.logger.warning(f"Could not read {table}: {e}")
            return []

    async def _read_table(
        self,
        table: str,
        fields: Optional[List[str]] = None,
        where: Optional[str] = None,
        max_rows: int = 0,
    ) -> TableData:
        """Read through the adapter and record coverage; errors are re-raised."""
        self.context.token.raise_if_cancelled()
        try:
            data = await self.context.adapter.read_table(table, fields=fields, where=where, max_rows=max_rows)
        except ForensicsError as e:
            if is_authorization_error(e):
                self._track_coverage(table, CoverageStatus.SKIPPED, reason=f"authorization: {e}")
            else:
                self._track_coverage(table, CoverageStatus.FAILED, reason=str(e))
            raise
        self._track_coverage(table, CoverageStatus.EXTRACTED, row_count=len(data.rows))
        return data

    async def _call_api(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        self.context.token.raise_if_cancelled()
        return await self.context.adapter.call_api(endpoint, params)

    # =========================================================================
    # Coverage and findings
    # =========================================================================

    def _track_coverage(
        self,
        table: str,
        status: CoverageStatus,
        row_count: int = 0,
        reason: Optional[str] = None,
    ) -> None:
        self.context.coverage.track(self.extractor_id, table, status, row_count, reason)

    def _flag_for_validation(self, message: str) -> None:
        self.context.flag_for_validation(self.extractor_id, message)

    def _fill_untouched(self, status: CoverageStatus, reason: str) -> None:
        for table in self.expected_tables:
            if not self.context.coverage.has(self.extractor_id, table.name):
                self._track_coverage(table.name, status, reason=reason)

    @staticmethod
    def _record_count(payload: Dict[str, Any]) -> int:
        if isinstance(payload.get("recordCount"), int):
            return payload["recordCount"]
        records = payload.get("records")
        if isinstance(records, list):
            return len(records)
        tables = payload.get("tables")
        if isinstance(tables, dict):
            return sum(len(rows) for rows in tables.values() if isinstance(rows, list))
        return 0
