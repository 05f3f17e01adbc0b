"""
Data Quality and Reconciliation Tests

Validates record checks and post-load reconciliation:
1. Required and exact-duplicate failures reject records; other checks only report
2. Fuzzy duplicates use normalized Levenshtein similarity below 1.0
3. Reconciliation accounts for every extracted record and compares keys and sums
4. Null rates grade into pass, warning and block
5. Reports are stored and audited
"""

from decimal import Decimal

from core.audit import AuditLogger, InMemoryAuditBackend
from core.storage import get_json
from migration.quality import DataQualityChecker, levenshtein, normalized_similarity
from migration.reconciliation import (
    ReconciliationStatus,
    check_aggregate,
    check_null_fields,
    check_record_count,
    reconcile,
    to_decimal,
)


class TestSimilarity:
    """String distance."""

    def test_levenshtein(self):
        assert levenshtein("kitten", "sitting") == 3
        assert levenshtein("", "abc") == 3
        assert levenshtein("same", "same") == 0

    def test_normalized(self):
        assert normalized_similarity("", "") == 1.0
        assert normalized_similarity("abcd", "abcx") == 0.75


class TestQualityChecks:
    """Checker."""

    def setup_method(self):
        self.checker = DataQualityChecker()

    def test_required_and_duplicates(self):
        records = [{"K": "1", "N": "a"}, {"K": "", "N": "b"}, {"K": "1", "N": "c"}]
        report = self.checker.check(records, {"required": ["K"], "exact_duplicate": {"keys": ["K"]}})
        assert report.status == "errors"
        assert report.checks[0].details == [{"row": 1, "field": "K"}]
        assert report.checks[1].details == [{"row": 2, "duplicateOf": 0, "key": "1"}]

    def test_split_valid(self):
        records = [{"K": "1"}, {"K": None}, {"K": "1"}, {"K": "2"}]
        valid, rejected, report = self.checker.split_valid(
            records, {"required": ["K"], "exact_duplicate": {"keys": ["K"]}}
        )
        assert valid == [{"K": "1"}, {"K": "2"}]
        assert [r["row"] for r in rejected] == [1, 2]
        assert report.to_dict()["errorCount"] == 2

    def test_fuzzy_duplicates_warn(self):
        records = [{"NAME": "Acme Corp"}, {"NAME": "ACME Corp."}, {"NAME": "Globex"}, {"NAME": "acme corp"}]
        result = self.checker.find_fuzzy_duplicates(records, ["NAME"], threshold=0.85)
        assert result.severity.value == "warning"
        assert {(c["rowA"], c["rowB"]) for c in result.details} == {(0, 1), (1, 3)}

    def test_reporting_checks_do_not_reject(self):
        records = [{"WAERS": "USD", "SAKNR": "0000001000", "WRBTR": 5}, {"WAERS": "XXX", "SAKNR": "1000", "WRBTR": -1}]
        config = {
            "referential": [{"field": "WAERS", "valid": {"USD", "EUR"}}],
            "format": [{"field": "SAKNR", "pattern": r"^\d{10}$"}],
            "range": [{"field": "WRBTR", "min": 0}],
        }
        valid, rejected, report = self.checker.split_valid(records, config)
        assert len(valid) == 2 and rejected == []
        assert {c.name: c.count for c in report.checks} == {"referential": 1, "format": 1, "range": 1}
        assert report.status == "errors"

    def test_blank_values_skip_format_and_range(self):
        records = [{"SAKNR": "", "WRBTR": "n/a"}]
        assert self.checker.check_format(records, "SAKNR", r"^\d+$").count == 0
        assert self.checker.check_range(records, "WRBTR", minimum=0).count == 0

    def test_empty_config(self):
        report = self.checker.check([{"a": 1}], {})
        assert report.status == "passed"
        assert report.checks == []


class TestReconciliationChecks:
    """Individual checks."""

    def test_record_count(self):
        assert check_record_count("X", 10, 8, 2).passed
        failed = check_record_count("X", 10, 7, 2)
        assert not failed.passed
        assert failed.evidence["difference"] == 1

    def test_aggregate_tolerance(self):
        source = [{"AMT": "100.00"}]
        assert check_aggregate(source, [{"AMT": "100.01"}], "AMT").passed
        assert not check_aggregate(source, [{"AMT": "100.02"}], "AMT").passed

    def test_to_decimal(self):
        assert to_decimal("abc") == Decimal("0")
        assert to_decimal(None) == Decimal("0")
        assert to_decimal(1.5) == Decimal("1.5")

    def test_null_rate_grades(self):
        rows = [{"F": "x"} for _ in range(19)] + [{"F": ""}]
        assert check_null_fields(rows[:19], ["F"]).passed
        warn = check_null_fields(rows, ["F"])
        assert (warn.passed, warn.severity.value) == (False, "WARN")
        block = check_null_fields([{"F": None}, {"F": "x"}], ["F"])
        assert block.severity.value == "BLOCK"


class TestReconcile:
    """Full reconciliation."""

    def test_passed(self):
        records = [{"K": "1", "AMT": 10}, {"K": "2", "AMT": 5}]
        report = reconcile("OBJ", 3, records, list(records), rejected=1, key_fields=["K"], aggregate_fields=["AMT"])
        assert report.status == ReconciliationStatus.PASSED.value
        assert report.summary["total_checks"] == 4
        assert report.metrics == {"extracted": 3, "loaded": 2, "rejected": 1}

    def test_missing_keys_fail(self):
        source = [{"K": "1"}, {"K": "2"}]
        report = reconcile("OBJ", 2, source, source[:1], key_fields=["K"])
        assert report.status == "FAILED"
        coverage = next(c for c in report.checks if c["check_id"] == "R2_KEY_COVERAGE")
        assert coverage["evidence"]["missing_examples"] == ["2"]

    def test_warning_status(self):
        rows = [{"K": str(i), "F": "x"} for i in range(19)] + [{"K": "19", "F": ""}]
        report = reconcile("OBJ", 20, rows, rows, key_fields=["K"], required_fields=["F"])
        assert report.status == "PASSED_WITH_WARNINGS"
        assert report.summary["warnings"] == 1

    def test_report_stored_and_audited(self, tmp_path):
        backend = InMemoryAuditBackend()
        report = reconcile(
            "OBJ", 1, [{"K": "1"}], [],
            key_fields=["K"], audit=AuditLogger([backend]), run_id="mig-1", report_dir=tmp_path,
        )
        stored = get_json(report.report_ref)
        assert stored["status"] == "FAILED"
        event = backend.query(object_id="OBJ")[0]
        assert event.event_type == "RECONCILIATION_FAILED"
        assert event.run_id == "mig-1"
        assert event.artifact_refs[0].storage_uri == report.report_ref.storage_uri
