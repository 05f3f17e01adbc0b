"""
Migration Object Tests

Validates the per-object lifecycle and the wave runner:
1. extract -> transform -> validate -> load -> reconcile with events and audit trail
2. Rejected records are counted and reconciled, not loaded
3. Per-record target failures surface in the result and fail reconciliation
4. Fatal errors propagate unchanged; anything else becomes MigrationObjectError
5. run_all orders by dependency, skips dependents of failures and honours cancellation
6. The built-in catalog runs end to end in mock mode
"""

import asyncio

import pytest

from connectors.target import DryRunTarget, LoadResult, TargetLoader
from core.audit import AuditLogger, InMemoryAuditBackend
from core.errors import CircuitBreakerOpenError, ConfigurationError, MigrationObjectError
from core.mapping import MappingRule
from core.progress import ProgressBus
from migration.dependency_graph import DependencyGraph
from migration.objects import BaseMigrationObject, MigrationContext, MigrationObjectRegistry


class CostObject(BaseMigrationObject):
    object_id = "TEST_COST"
    name = "Test Cost Centers"
    key_fields = ("CostCenter",)
    aggregate_fields = ("Amount",)
    mock_records = (
        {"KOSTL": "100", "AMT": "10.50"},
        {"KOSTL": "200", "AMT": "4"},
        {"KOSTL": "", "AMT": "1"},
        {"KOSTL": "100", "AMT": "2"},
    )

    def get_field_mappings(self):
        return [
            MappingRule(source="KOSTL", target="CostCenter", convert="trim"),
            MappingRule(source="AMT", target="Amount", convert="toDecimal"),
        ]


class SimpleObject(BaseMigrationObject):
    """Parameterised object for runner tests."""

    key_fields = ("Key",)

    def __init__(self, object_id, dependencies=None, error=None):
        self.object_id = object_id
        self.name = object_id.title()
        self.dependencies = dependencies
        self.error = error
        self.runs = 0
        super().__init__()

    def get_field_mappings(self):
        return [MappingRule(source="k", target="Key")]

    async def _extract_mock(self, ctx):
        self.runs += 1
        if self.error is not None:
            raise self.error
        return [{"k": f"{self.object_id}-1"}, {"k": f"{self.object_id}-2"}]


class RejectFirstTarget(TargetLoader):
    """Fails the first record of every batch."""

    async def load_batch(self, object_id, records):
        if not records:
            return LoadResult()
        return LoadResult(
            loaded=len(records) - 1,
            failed=1,
            errors=[{"index": 0, "status": 400, "error": "duplicate key"}],
        )


def mock_context(**overrides):
    options = {"bus": ProgressBus(), "audit": AuditLogger([InMemoryAuditBackend()])}
    options.update(overrides)
    return MigrationContext(**options)


class TestLifecycle:
    """Single object run."""

    def test_rejections_reconcile(self):
        ctx = mock_context()
        result = asyncio.run(CostObject().run(ctx))

        assert (result.extracted, result.transformed, result.loaded, result.rejected) == (4, 4, 2, 2)
        assert [r["row"] for r in result.rejections] == [2, 3]
        assert result.rejections[0]["reasons"] == ["missing required field CostCenter"]
        assert result.rejections[1]["reasons"] == ["duplicate of row 0"]
        assert result.reconciliation.status == "PASSED"
        assert result.status == "completed_with_errors"
        assert ctx.loader.total("TEST_COST") == 2

    def test_events_and_audit(self):
        ctx = mock_context()
        asyncio.run(CostObject().run(ctx))

        types = [e.type for e in ctx.bus.get_history(type_prefix="migration:")]
        assert types[0] == "migration:start"
        assert types[-1] == "migration:complete"
        assert "migration:progress" in types
        complete = ctx.bus.get_history(1, type_prefix="migration:")[0].data
        assert complete["reconciliation"] == "PASSED"

        audit_types = [e.event_type for e in ctx.audit.query()]
        assert audit_types == [
            "MIGRATION_STARTED",
            "RECORDS_REJECTED",
            "RECONCILIATION_COMPLETED",
            "MIGRATION_COMPLETED",
        ]

    def test_clean_run_completed(self):
        ctx = mock_context(source_data={"TEST_COST": [{"KOSTL": "100", "AMT": "1"}, {"KOSTL": "200", "AMT": "2"}]})
        result = asyncio.run(CostObject().run(ctx))
        assert result.status == "completed"
        assert result.to_dict()["reconciliation"]["status"] == "PASSED"

    def test_batches(self):
        ctx = mock_context(batch_size=1)
        asyncio.run(CostObject().run(ctx))
        assert ctx.loader.batches["TEST_COST"] == [1, 1]

    def test_target_failures_fail_reconciliation(self):
        ctx = mock_context(
            mode="live",
            target=RejectFirstTarget(),
            source_data={"TEST_COST": [{"KOSTL": "100", "AMT": "1"}, {"KOSTL": "200", "AMT": "2"}]},
        )
        result = asyncio.run(CostObject().run(ctx))

        assert (result.loaded, result.failed) == (1, 1)
        assert result.reconciliation.status == "FAILED"
        assert result.status == "completed_with_errors"
        assert "RECONCILIATION_FAILED" in [e.event_type for e in ctx.audit.query()]

    def test_dry_run_never_uses_target(self):
        ctx = MigrationContext(mode="live", dry_run=True, target=RejectFirstTarget())
        assert isinstance(ctx.loader, DryRunTarget)

    def test_report_written(self, tmp_path):
        ctx = mock_context(report_dir=tmp_path)
        result = asyncio.run(CostObject().run(ctx))
        assert (tmp_path / "TEST_COST_reconciliation.json").exists()
        assert result.reconciliation.report_ref is not None


class TestFailures:
    """Error propagation."""

    def test_unexpected_error_wrapped(self):
        ctx = mock_context()
        with pytest.raises(MigrationObjectError) as exc:
            asyncio.run(SimpleObject("BROKEN", error=ValueError("bad row")).run(ctx))
        assert exc.value.details["cause"] == "bad row"
        assert ctx.bus.get_history(1)[0].type == "migration:error"
        assert [e.event_type for e in ctx.audit.query()][-1] == "MIGRATION_FAILED"

    def test_fatal_error_propagates_unchanged(self):
        with pytest.raises(CircuitBreakerOpenError):
            asyncio.run(SimpleObject("TRIPPED", error=CircuitBreakerOpenError("open")).run(mock_context()))

    def test_live_without_adapter(self):
        with pytest.raises(ConfigurationError):
            asyncio.run(CostObject().run(MigrationContext(mode="live")))

    def test_context_validation(self):
        with pytest.raises(ConfigurationError):
            MigrationContext(batch_size=0)
        with pytest.raises(ConfigurationError):
            MigrationContext(batch_size=1001)
        with pytest.raises(ConfigurationError):
            MigrationContext(mode="replay")

    def test_missing_object_id(self):
        class Anonymous(BaseMigrationObject):
            pass

        with pytest.raises(ConfigurationError):
            Anonymous()


class TestRunAll:
    """Wave runner."""

    def test_dependents_of_failure_skipped(self):
        parent = SimpleObject("PARENT", error=ValueError("boom"))
        child = SimpleObject("CHILD", dependencies=("PARENT",))
        other = SimpleObject("OTHER")
        registry = MigrationObjectRegistry([parent, child, other], graph=DependencyGraph({}))

        report = asyncio.run(registry.run_all(mock_context()))
        results = report["results"]
        assert results["PARENT"]["status"] == "failed"
        assert results["PARENT"]["error"]["code"] == "ERR_MIGRATION_OBJECT"
        assert results["CHILD"] == {
            "objectId": "CHILD",
            "name": "Child",
            "status": "skipped",
            "reason": "prerequisite failed: PARENT",
        }
        assert results["OTHER"]["status"] == "completed"
        assert child.runs == 0
        assert report["stats"]["waves"] == 2
        assert (report["stats"]["failed"], report["stats"]["skipped"], report["stats"]["completed"]) == (1, 1, 1)

    def test_failure_skips_dependent_through_unselected_object(self):
        parent = SimpleObject("PARENT", error=ValueError("boom"))
        child = SimpleObject("CHILD", dependencies=("MIDDLE",))
        registry = MigrationObjectRegistry([parent, child], graph=DependencyGraph({"MIDDLE": ["PARENT"]}))

        report = asyncio.run(registry.run_all(mock_context()))
        assert report["stats"]["waves"] == 2
        assert report["results"]["CHILD"]["reason"] == "prerequisite failed: PARENT"
        assert child.runs == 0

    def test_cancelled_before_start(self):
        first = SimpleObject("FIRST")
        registry = MigrationObjectRegistry([first, SimpleObject("SECOND", dependencies=("FIRST",))], graph=DependencyGraph({}))
        ctx = mock_context()
        ctx.token.cancel("operator")

        report = asyncio.run(registry.run_all(ctx))
        assert report["stats"]["cancelled"]
        assert {r["reason"] for r in report["results"].values()} == {"cancelled"}
        assert first.runs == 0

    def test_fatal_error_aborts_run(self):
        registry = MigrationObjectRegistry(
            [SimpleObject("TRIPPED", error=CircuitBreakerOpenError("open")), SimpleObject("LATER", dependencies=("TRIPPED",))],
            graph=DependencyGraph({}),
        )
        with pytest.raises(CircuitBreakerOpenError):
            asyncio.run(registry.run_all(mock_context()))

    def test_subset_and_unknown_ids(self):
        registry = MigrationObjectRegistry([SimpleObject("A"), SimpleObject("B")], graph=DependencyGraph({}))
        report = asyncio.run(registry.run_all(mock_context(), ["B"]))
        assert list(report["results"]) == ["B"]
        with pytest.raises(ConfigurationError):
            asyncio.run(registry.run_all(mock_context(), ["C"]))

    def test_registration_rules(self):
        registry = MigrationObjectRegistry([SimpleObject("A", dependencies=("B",))], graph=DependencyGraph({}))
        with pytest.raises(ConfigurationError):
            registry.register(SimpleObject("A"))
        with pytest.raises(ConfigurationError):
            registry.register(SimpleObject("B", dependencies=("A",)))
        assert "B" not in registry
        assert not registry.validate()["valid"]


class TestBuiltins:
    """Built-in catalog in mock mode."""

    def test_catalog(self):
        registry = MigrationObjectRegistry.with_builtins()
        assert len(registry) == 28
        assert registry.validate()["circularDependencies"] == []

    def test_mock_run_all(self):
        registry = MigrationObjectRegistry.with_builtins()
        report = asyncio.run(registry.run_all(MigrationContext(mode="mock")))
        stats = report["stats"]
        order = stats["execution_order"]

        assert stats["total"] == 28
        assert stats["failed"] == 0 and stats["skipped"] == 0
        assert order.index("GL_ACCOUNT_MASTER") < order.index("GL_BALANCE")
        assert order.index("BANK_MASTER") < order.index("BUSINESS_PARTNER") < order.index("PURCHASE_ORDER")
        assert order.index("INFOR_LN_GL_ACCOUNT") < order.index("INFOR_LN_GL_JOURNAL")
        assert order.index("INFOR_LN_GL_JOURNAL") < order.index("INFOR_LN_FI_DOCUMENT")
        assert order.index("INFOR_M3_GL_ACCOUNT") < order.index("INFOR_M3_GL_JOURNAL")
