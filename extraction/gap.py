"""Gap analysis and confidence scoring for an extraction run.

The analyzer reports what the run does NOT know: critical tables that were
not extracted, tables blocked by authorization, extractors that failed.
Confidence weighs critical tables 2 and all others 1.
"""

from collections import defaultdict
from typing import Any, Dict, Iterable, List, Mapping, Type

from extraction.base import BaseExtractor
from extraction.context import CoverageStatus, CoverageTracker

CRITICAL_WEIGHT = 2
DEFAULT_WEIGHT = 1
AUTHORIZATION_PREFIX = "authorization:"


class GapAnalyzer:
    """
    Args:
        extractors: extractor classes that took part in the run
        coverage: the run's coverage tracker
        errors: extractor id -> error message for failed extractors
    """

    def __init__(
        self,
        extractors: Iterable[Type[BaseExtractor]],
        coverage: CoverageTracker,
        errors: Mapping[str, str],
    ):
        self.extractors = list(extractors)
        self.coverage = coverage
        self.errors = dict(errors)

    def _status(self, extractor_id: str, table: str):
        record = self.coverage.get(extractor_id, table)
        return record.status if record else None

    def missing_critical_tables(self) -> List[str]:
        missing = set()
        for cls in self.extractors:
            for table in cls.expected_tables:
                if table.critical and self._status(cls.extractor_id, table.name) != CoverageStatus.EXTRACTED:
                    missing.add(table.name)
        return sorted(missing)

    def authorization_gaps(self) -> Dict[str, Any]:
        tables = [
            {"table": r.table, "extractor": r.extractor_id, "reason": r.reason}
            for r in self.coverage.gaps()
            if r.status == CoverageStatus.SKIPPED and (r.reason or "").startswith(AUTHORIZATION_PREFIX)
        ]
        return {"count": len(tables), "tables": tables}

    def failed_extractors(self) -> List[Dict[str, str]]:
        return [{"extractorId": eid, "error": message} for eid, message in self.errors.items()]

    def failed_tables(self) -> List[Dict[str, Any]]:
        return [
            {"table": r.table, "extractor": r.extractor_id, "reason": r.reason}
            for r in self.coverage.gaps()
            if r.status == CoverageStatus.FAILED
        ]

    def confidence(self) -> Dict[str, Any]:
        """Weighted share of expected tables extracted, overall and per module (integer percent)."""
        earned: Dict[str, int] = defaultdict(int)
        possible: Dict[str, int] = defaultdict(int)
        for cls in self.extractors:
            area = cls.module or "GENERAL"
            for table in cls.expected_tables:
                weight = CRITICAL_WEIGHT if table.critical else DEFAULT_WEIGHT
                possible[area] += weight
                if self._status(cls.extractor_id, table.name) == CoverageStatus.EXTRACTED:
                    earned[area] += weight
        by_area = {area: round(earned[area] / possible[area] * 100) for area in sorted(possible)}
        total_possible = sum(possible.values())
        overall = round(sum(earned.values()) / total_possible * 100) if total_possible else 0
        return {"overall": overall, "by_area": by_area}

    def analyze(self) -> Dict[str, Any]:
        return {
            "missing_critical_tables": self.missing_critical_tables(),
            "authorization": self.authorization_gaps(),
            "failed_extractors": self.failed_extractors(),
            "failed_tables": self.failed_tables(),
            "coverage": self.coverage.summary(),
        }
