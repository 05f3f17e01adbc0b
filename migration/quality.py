"""Data quality checks for mapped migration records.

Checks are configured per migration object:

    config = {
        "required": ["SAKNR", "BUKRS"],
        "exact_duplicate": {"keys": ["SAKNR", "BUKRS"]},
        "fuzzy_duplicate": {"keys": ["NAME1"], "threshold": 0.85},
        "referential": [{"field": "WAERS", "valid": {"USD", "EUR"}}],
        "format": [{"field": "SAKNR", "pattern": r"^\\d{10}$"}],
        "range": [{"field": "WRBTR", "min": 0}],
    }

Required-field and exact-duplicate failures reject records; the other checks
only report.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from core.observability.logging import get_logger

logger = get_logger(__name__)

FUZZY_THRESHOLD = 0.85
FUZZY_RECORD_CAP = 10000


# =============================================================================
# String similarity
# =============================================================================

def levenshtein(a: str, b: str) -> int:
    """Edit distance between two strings."""
    if not a or not b:
        return len(a or b or "")
    previous = list(range(len(a) + 1))
    for j, char_b in enumerate(b, start=1):
        current = [j]
        for i, char_a in enumerate(a, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[i] + 1, current[i - 1] + 1, previous[i - 1] + cost))
        previous = current
    return previous[-1]


def normalized_similarity(a: str, b: str) -> float:
    """1.0 for identical strings, 0.0 for nothing in common."""
    longest = max(len(a or ""), len(b or ""))
    if longest == 0:
        return 1.0
    return 1 - levenshtein(a, b) / longest


# =============================================================================
# Results
# =============================================================================

class QualitySeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    PASS = "pass"


@dataclass
class QualityCheckResult:
    name: str
    severity: QualitySeverity
    message: str
    details: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.details)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "severity": self.severity.value,
            "message": self.message,
            "details": self.details,
            "count": self.count,
        }


@dataclass
class QualityReport:
    total_records: int
    checks: List[QualityCheckResult] = field(default_factory=list)

    @property
    def errors(self) -> List[QualityCheckResult]:
        return [c for c in self.checks if c.severity == QualitySeverity.ERROR]

    @property
    def warnings(self) -> List[QualityCheckResult]:
        return [c for c in self.checks if c.severity == QualitySeverity.WARNING]

    @property
    def status(self) -> str:
        if self.errors:
            return "errors"
        return "warnings" if self.warnings else "passed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "totalRecords": self.total_records,
            "checks": [c.to_dict() for c in self.checks],
            "errorCount": len(self.errors),
            "warningCount": len(self.warnings),
        }


def _blank(value: Any) -> bool:
    return value is None or value == ""


def _severity(found: bool, when_found: QualitySeverity) -> QualitySeverity:
    return when_found if found else QualitySeverity.PASS


# =============================================================================
# Checker
# =============================================================================

class DataQualityChecker:
    """Runs configured checks over a list of records."""

    def check(self, records: List[Dict[str, Any]], config: Dict[str, Any]) -> QualityReport:
        report = QualityReport(total_records=len(records))
        if config.get("required"):
            report.checks.append(self.check_required(records, config["required"]))
        if config.get("exact_duplicate"):
            report.checks.append(self.find_exact_duplicates(records, config["exact_duplicate"]["keys"]))
        if config.get("fuzzy_duplicate"):
            fuzzy = config["fuzzy_duplicate"]
            report.checks.append(
                self.find_fuzzy_duplicates(records, fuzzy["keys"], fuzzy.get("threshold", FUZZY_THRESHOLD))
            )
        for ref in config.get("referential", []):
            report.checks.append(self.check_referential(records, ref["field"], ref["valid"]))
        for fmt in config.get("format", []):
            report.checks.append(self.check_format(records, fmt["field"], fmt["pattern"], fmt.get("description")))
        for rng in config.get("range", []):
            report.checks.append(self.check_range(records, rng["field"], rng.get("min"), rng.get("max")))

        if report.checks:
            logger.debug(f"Quality check on {len(records)} records: {report.status}")
        return report

    def check_required(self, records: List[Dict[str, Any]], fields: Iterable[str]) -> QualityCheckResult:
        fields = list(fields)
        missing = [
            {"row": row, "field": name}
            for row, record in enumerate(records)
            for name in fields
            if _blank(record.get(name))
        ]
        return QualityCheckResult(
            name="required",
            severity=_severity(bool(missing), QualitySeverity.ERROR),
            message=(
                f"{len(missing)} missing required value(s) across fields: {', '.join(fields)}"
                if missing else f"All required fields present: {', '.join(fields)}"
            ),
            details=missing,
        )

    def find_exact_duplicates(self, records: List[Dict[str, Any]], keys: Iterable[str]) -> QualityCheckResult:
        """Every record after the first with the same composite key is a duplicate."""
        keys = list(keys)
        seen: Dict[Tuple[str, ...], int] = {}
        duplicates = []
        for row, record in enumerate(records):
            key = tuple("" if record.get(k) is None else str(record.get(k)) for k in keys)
            if key in seen:
                duplicates.append({"row": row, "duplicateOf": seen[key], "key": "|".join(key)})
            else:
                seen[key] = row
        return QualityCheckResult(
            name="exact_duplicate",
            severity=_severity(bool(duplicates), QualitySeverity.ERROR),
            message=(
                f"{len(duplicates)} exact duplicate(s) on keys: {', '.join(keys)}"
                if duplicates else f"No exact duplicates on keys: {', '.join(keys)}"
            ),
            details=duplicates,
        )

    def find_fuzzy_duplicates(
        self,
        records: List[Dict[str, Any]],
        keys: Iterable[str],
        threshold: float = FUZZY_THRESHOLD,
    ) -> QualityCheckResult:
        """Near-identical records (similarity >= threshold, below 1.0). Pairwise, capped."""
        keys = list(keys)
        texts = [
            " ".join(str(r.get(k) or "").lower().strip() for k in keys)
            for r in records[:FUZZY_RECORD_CAP]
        ]
        candidates = []
        for i in range(len(texts)):
            for j in range(i + 1, len(texts)):
                similarity = normalized_similarity(texts[i], texts[j])
                if threshold <= similarity < 1.0:
                    candidates.append({"rowA": i, "rowB": j, "similarity": round(similarity, 2)})
        return QualityCheckResult(
            name="fuzzy_duplicate",
            severity=_severity(bool(candidates), QualitySeverity.WARNING),
            message=(
                f"{len(candidates)} potential fuzzy duplicate(s) (threshold: {threshold})"
                if candidates else f"No fuzzy duplicates detected (threshold: {threshold})"
            ),
            details=candidates,
        )

    def check_referential(self, records: List[Dict[str, Any]], field_name: str, valid: Iterable[Any]) -> QualityCheckResult:
        valid_set = set(valid)
        violations = [
            {"row": row, "field": field_name, "value": record.get(field_name)}
            for row, record in enumerate(records)
            if not _blank(record.get(field_name)) and record.get(field_name) not in valid_set
        ]
        return QualityCheckResult(
            name="referential",
            severity=_severity(bool(violations), QualitySeverity.ERROR),
            message=(
                f"{len(violations)} referential integrity violation(s) on {field_name}"
                if violations else f"Referential integrity OK for {field_name}"
            ),
            details=violations,
        )

    def check_format(
        self,
        records: List[Dict[str, Any]],
        field_name: str,
        pattern: str,
        description: Optional[str] = None,
    ) -> QualityCheckResult:
        regex = re.compile(pattern)
        violations = [
            {"row": row, "field": field_name, "value": record.get(field_name)}
            for row, record in enumerate(records)
            if not _blank(record.get(field_name)) and not regex.search(str(record.get(field_name)))
        ]
        return QualityCheckResult(
            name="format",
            severity=_severity(bool(violations), QualitySeverity.WARNING),
            message=(
                f"{len(violations)} format violation(s) on {field_name} ({description or pattern})"
                if violations else f"Format OK for {field_name}"
            ),
            details=violations,
        )

    def check_range(
        self,
        records: List[Dict[str, Any]],
        field_name: str,
        minimum: Optional[float] = None,
        maximum: Optional[float] = None,
    ) -> QualityCheckResult:
        violations = []
        for row, record in enumerate(records):
            try:
                value = float(record.get(field_name))
            except (TypeError, ValueError):
                continue
            if minimum is not None and value < minimum:
                violations.append({"row": row, "field": field_name, "value": value, "reason": f"below min {minimum}"})
            if maximum is not None and value > maximum:
                violations.append({"row": row, "field": field_name, "value": value, "reason": f"above max {maximum}"})
        return QualityCheckResult(
            name="range",
            severity=_severity(bool(violations), QualitySeverity.WARNING),
            message=(
                f"{len(violations)} range violation(s) on {field_name}"
                if violations else f"Range OK for {field_name}"
            ),
            details=violations,
        )

    def split_valid(
        self,
        records: List[Dict[str, Any]],
        config: Dict[str, Any],
    ) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]], QualityReport]:
        """Separate loadable records from rejected ones.

        Returns:
            (valid records, rejections as {"row", "record", "reasons"}, full report)
        """
        report = self.check(records, config)
        reasons: Dict[int, List[str]] = {}
        for result in report.checks:
            if result.name not in ("required", "exact_duplicate"):
                continue
            for detail in result.details:
                if result.name == "required":
                    reason = f"missing required field {detail['field']}"
                else:
                    reason = f"duplicate of row {detail['duplicateOf']}"
                reasons.setdefault(detail["row"], []).append(reason)

        valid = [r for row, r in enumerate(records) if row not in reasons]
        rejected = [{"row": row, "record": records[row], "reasons": why} for row, why in sorted(reasons.items())]
        return valid, rejected, report
