"""Reconciliation of a migration object run.

After a load every extracted record must be accounted for: it was either
loaded or rejected, and what reached the target must add up to what left
the source.

Exposes high-level function:
- reconcile(...) -> ReconciliationReport
"""

from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from core.audit import AuditEventType, AuditLogger, create_audit_event
from core.models.refs import AuditSeverity, ReconciliationReport
from core.observability.logging import get_logger
from core.storage.artifacts import put_json

logger = get_logger(__name__)


# =============================================================================
# Configuration & Data Structures
# =============================================================================

AMOUNT_TOLERANCE = Decimal("0.01")
NULL_RATE_WARN = 0.05
NULL_RATE_FAIL = 0.15
MAX_EXAMPLES = 5


class Severity(str, Enum):
    BLOCK = "BLOCK"
    WARN = "WARN"
    INFO = "INFO"


class ReconciliationStatus(str, Enum):
    PASSED = "PASSED"
    PASSED_WITH_WARNINGS = "PASSED_WITH_WARNINGS"
    FAILED = "FAILED"


class CheckResult:
    """Result of a single reconciliation check."""

    def __init__(
        self,
        check_id: str,
        severity: Severity,
        passed: bool,
        message: str,
        evidence: Optional[Dict] = None,
    ):
        self.check_id = check_id
        self.severity = severity
        self.passed = passed
        self.message = message
        self.evidence = evidence or {}

    def to_dict(self) -> Dict:
        return {
            "check_id": self.check_id,
            "severity": self.severity.value,
            "passed": self.passed,
            "message": self.message,
            "evidence": self.evidence,
        }


# =============================================================================
# Utility Functions
# =============================================================================

def to_decimal(value) -> Decimal:
    """Numeric value as Decimal; blanks and garbage count as zero."""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return Decimal("0")


def amounts_match(a: Decimal, b: Decimal, tolerance: Decimal = AMOUNT_TOLERANCE) -> bool:
    return abs(a - b) <= tolerance


def make_key(record: Dict[str, Any], key_fields: Sequence[str]) -> str:
    return "|".join("" if record.get(f) is None else str(record.get(f)) for f in key_fields)


# =============================================================================
# Individual Check Functions
# =============================================================================

def check_record_count(object_id: str, extracted: int, loaded: int, rejected: int) -> CheckResult:
    """R1: every extracted record was loaded or rejected."""
    accounted = loaded + rejected
    evidence = {"extracted": extracted, "loaded": loaded, "rejected": rejected, "difference": extracted - accounted}
    if accounted == extracted:
        return CheckResult(
            check_id="R1_RECORD_COUNT",
            severity=Severity.INFO,
            passed=True,
            message=f"{object_id}: {extracted} extracted = {loaded} loaded + {rejected} rejected",
            evidence=evidence,
        )
    return CheckResult(
        check_id="R1_RECORD_COUNT",
        severity=Severity.BLOCK,
        passed=False,
        message=f"{object_id}: {extracted} extracted but {loaded} loaded + {rejected} rejected",
        evidence=evidence,
    )


def check_key_coverage(
    source: List[Dict[str, Any]],
    target: List[Dict[str, Any]],
    key_fields: Sequence[str],
) -> CheckResult:
    """R2: every accepted source key is present in the target."""
    target_keys = {make_key(r, key_fields) for r in target}
    missing = [make_key(r, key_fields) for r in source if make_key(r, key_fields) not in target_keys]
    evidence = {"key_fields": list(key_fields), "source_keys": len(source), "missing": len(missing),
                "missing_examples": missing[:MAX_EXAMPLES]}
    if not missing:
        return CheckResult("R2_KEY_COVERAGE", Severity.INFO, True,
                           f"All {len(source)} source keys found in target", evidence)
    return CheckResult("R2_KEY_COVERAGE", Severity.BLOCK, False,
                       f"{len(missing)} source key(s) missing in target", evidence)


def check_aggregate(
    source: List[Dict[str, Any]],
    target: List[Dict[str, Any]],
    field: str,
    tolerance: Decimal = AMOUNT_TOLERANCE,
) -> CheckResult:
    """R3: field sums match within tolerance."""
    source_sum = sum((to_decimal(r.get(field)) for r in source), Decimal("0"))
    target_sum = sum((to_decimal(r.get(field)) for r in target), Decimal("0"))
    evidence = {
        "field": field,
        "source_sum": str(source_sum),
        "target_sum": str(target_sum),
        "difference": str(abs(source_sum - target_sum)),
        "tolerance": str(tolerance),
    }
    if amounts_match(source_sum, target_sum, tolerance):
        return CheckResult(f"R3_AGGREGATE_{field}", Severity.INFO, True,
                           f"{field} sum matches: {source_sum}", evidence)
    return CheckResult(f"R3_AGGREGATE_{field}", Severity.BLOCK, False,
                       f"{field} sum mismatch: source={source_sum}, target={target_sum}", evidence)


def check_target_duplicates(target: List[Dict[str, Any]], key_fields: Sequence[str]) -> CheckResult:
    """R4: no key appears twice in the target."""
    seen = set()
    duplicates = []
    for record in target:
        key = make_key(record, key_fields)
        if key in seen:
            duplicates.append(key)
        seen.add(key)
    evidence = {"key_fields": list(key_fields), "duplicates": len(duplicates),
                "examples": duplicates[:MAX_EXAMPLES]}
    if not duplicates:
        return CheckResult("R4_TARGET_DUPLICATES", Severity.INFO, True, "No duplicate keys in target", evidence)
    return CheckResult("R4_TARGET_DUPLICATES", Severity.BLOCK, False,
                       f"{len(duplicates)} duplicate key(s) in target", evidence)


def check_null_fields(target: List[Dict[str, Any]], fields: Sequence[str]) -> CheckResult:
    """R5: share of empty cells in required fields."""
    breakdown = {f: sum(1 for r in target if r.get(f) is None or r.get(f) == "") for f in fields}
    cells = len(target) * len(fields)
    empty = sum(breakdown.values())
    rate = empty / cells if cells else 0.0
    evidence = {"cells": cells, "empty": empty, "null_rate_pct": round(rate * 100, 2), "by_field": breakdown}
    message = f"{round(rate * 100)}% null/empty ({empty}/{cells} cells)"
    if rate < NULL_RATE_WARN:
        return CheckResult("R5_NULL_FIELDS", Severity.INFO, True, message, evidence)
    if rate < NULL_RATE_FAIL:
        return CheckResult("R5_NULL_FIELDS", Severity.WARN, False, message, evidence)
    return CheckResult("R5_NULL_FIELDS", Severity.BLOCK, False, message, evidence)


# =============================================================================
# Main Entry Point
# =============================================================================

def reconcile(
    object_id: str,
    extracted: int,
    source_records: List[Dict[str, Any]],
    target_records: List[Dict[str, Any]],
    rejected: int = 0,
    key_fields: Iterable[str] = (),
    aggregate_fields: Iterable[str] = (),
    required_fields: Iterable[str] = (),
    tolerance: Decimal = AMOUNT_TOLERANCE,
    audit: Optional[AuditLogger] = None,
    run_id: Optional[str] = None,
    report_dir: Optional[Path] = None,
) -> ReconciliationReport:
    """Run all reconciliation checks and return the report.

    Args:
        object_id: Migration object that ran
        extracted: Records read from the source
        source_records: Mapped records accepted for load
        target_records: Records the target acknowledged
        rejected: Records rejected by quality checks
        key_fields: Target fields forming the business key
        aggregate_fields: Numeric target fields whose sums must match
        required_fields: Target fields checked for empty values
        audit: Audit logger receiving the outcome
        report_dir: Directory to store the report JSON in

    Returns:
        ReconciliationReport with status, checks and metrics
    """
    key_fields = list(key_fields)
    checks: List[CheckResult] = [check_record_count(object_id, extracted, len(target_records), rejected)]
    if key_fields:
        checks.append(check_key_coverage(source_records, target_records, key_fields))
        checks.append(check_target_duplicates(target_records, key_fields))
    for field in aggregate_fields:
        checks.append(check_aggregate(source_records, target_records, field, tolerance))
    required_fields = list(required_fields)
    if required_fields:
        checks.append(check_null_fields(target_records, required_fields))

    blocking = sum(1 for c in checks if not c.passed and c.severity == Severity.BLOCK)
    warnings = sum(1 for c in checks if not c.passed and c.severity == Severity.WARN)
    if blocking:
        status = ReconciliationStatus.FAILED
    elif warnings:
        status = ReconciliationStatus.PASSED_WITH_WARNINGS
    else:
        status = ReconciliationStatus.PASSED

    report = ReconciliationReport(
        object_id=object_id,
        status=status.value,
        checks=[c.to_dict() for c in checks],
        summary={
            "status": status.value,
            "total_checks": len(checks),
            "passed_checks": sum(1 for c in checks if c.passed),
            "blocking_issues": blocking,
            "warnings": warnings,
        },
        metrics={
            "extracted": extracted,
            "loaded": len(target_records),
            "rejected": rejected,
        },
    )

    if report_dir is not None:
        report.report_ref = put_json(report, Path(report_dir) / f"{object_id}_reconciliation.json")

    logger.info(
        f"Reconciliation {object_id}: {status.value} "
        f"({report.summary['passed_checks']}/{len(checks)} checks passed)"
    )
    if audit is not None:
        failed = status == ReconciliationStatus.FAILED
        audit.log(
            create_audit_event(
                AuditEventType.RECONCILIATION_FAILED if failed else AuditEventType.RECONCILIATION_COMPLETED,
                f"{object_id} reconciliation {status.value}",
                AuditSeverity.ERROR if failed else AuditSeverity.INFO,
                run_id=run_id,
                object_id=object_id,
                details={"summary": report.summary, "metrics": report.metrics},
                artifact_refs=[report.report_ref] if report.report_ref else None,
            )
        )
    return report
