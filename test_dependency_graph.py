"""
Dependency Graph Tests

Validates migration object ordering:
1. Waves group independent objects; each wave only depends on earlier ones
2. Objects wait for members reached through dependencies outside the requested set
3. A registration that closes a cycle is rejected and leaves the graph unchanged
4. Depth-first order and transitive prerequisites
5. Validation reports prerequisites that are not registered
"""

import pytest

from core.errors import ConfigurationError
from migration.dependency_graph import DEPENDENCIES, DependencyGraph


class TestWaves:
    """Kahn layering."""

    def test_minimal_waves(self):
        waves = DependencyGraph().get_execution_waves(["GL_BALANCE", "FI_CONFIG", "GL_ACCOUNT_MASTER"])
        assert waves == [["FI_CONFIG", "GL_ACCOUNT_MASTER"], ["GL_BALANCE"]]

    def test_three_levels(self):
        waves = DependencyGraph().get_execution_waves(
            ["SALES_ORDER", "PRICING_CONDITION", "MATERIAL_MASTER", "BUSINESS_PARTNER", "BANK_MASTER"]
        )
        assert waves == [
            ["BANK_MASTER", "MATERIAL_MASTER"],
            ["BUSINESS_PARTNER", "PRICING_CONDITION"],
            ["SALES_ORDER"],
        ]

    def test_direct_dependency_within_set(self):
        waves = DependencyGraph().get_execution_waves(["PURCHASE_ORDER", "MATERIAL_MASTER"])
        assert waves == [["MATERIAL_MASTER"], ["PURCHASE_ORDER"]]

    def test_dependency_through_object_outside_set(self):
        # PURCHASE_ORDER needs BUSINESS_PARTNER, which needs BANK_MASTER
        waves = DependencyGraph().get_execution_waves(["PURCHASE_ORDER", "BANK_MASTER"])
        assert waves == [["BANK_MASTER"], ["PURCHASE_ORDER"]]

    def test_transitive_chain_with_gap(self):
        graph = DependencyGraph({"C": ["B"], "B": ["A"], "D": []})
        assert graph.get_execution_waves(["C", "D", "A"]) == [["A", "D"], ["C"]]

    def test_duplicates_collapsed(self):
        assert DependencyGraph({}).get_execution_waves(["B", "A", "B"]) == [["A", "B"]]

    def test_empty_set(self):
        assert DependencyGraph().get_execution_waves([]) == []


class TestCycles:
    """Acyclicity is kept on every change."""

    def test_builtin_graph_acyclic(self):
        graph = DependencyGraph()
        assert graph.detect_cycles() == []
        assert set(DEPENDENCIES) <= set(graph.nodes())

    def test_new_object_closing_cycle_rejected(self):
        graph = DependencyGraph({"A": ["B"], "B": ["C"]})
        with pytest.raises(ConfigurationError) as exc:
            graph.set_dependencies("C", ["A"])
        assert exc.value.details["cycles"]
        assert graph.get_dependencies("C") == []
        assert graph.detect_cycles() == []

    def test_replacement_closing_cycle_restores_previous(self):
        graph = DependencyGraph({"A": ["B"], "B": ["C"]})
        with pytest.raises(ConfigurationError):
            graph.set_dependencies("B", ["A"])
        assert graph.get_dependencies("B") == ["C"]

    def test_self_dependency_rejected(self):
        with pytest.raises(ConfigurationError):
            DependencyGraph({}).set_dependencies("A", ["A"])

    def test_cyclic_constructor_input_rejected(self):
        with pytest.raises(ConfigurationError):
            DependencyGraph({"A": ["B"], "B": ["A"]})


class TestOrdering:
    """Depth-first order and closure."""

    def test_execution_order_prerequisites_first(self):
        order = DependencyGraph().get_execution_order(["PURCHASE_ORDER"])
        assert order == ["BANK_MASTER", "BUSINESS_PARTNER", "MATERIAL_MASTER", "PURCHASE_ORDER"]

    def test_transitive_dependencies(self):
        deps = DependencyGraph().get_transitive_dependencies("SALES_ORDER")
        assert deps == {"BUSINESS_PARTNER", "MATERIAL_MASTER", "PRICING_CONDITION", "BANK_MASTER"}

    def test_unknown_object_has_no_dependencies(self):
        graph = DependencyGraph()
        assert graph.get_dependencies("FI_CONFIG") == []
        assert graph.get_transitive_dependencies("FI_CONFIG") == set()


class TestValidate:
    """Registry consistency."""

    def test_missing_prerequisite_reported(self):
        report = DependencyGraph().validate(["GL_BALANCE"])
        assert not report["valid"]
        assert report["issues"][0]["missingDependency"] == "GL_ACCOUNT_MASTER"

    def test_complete_set_valid(self):
        report = DependencyGraph().validate(["GL_BALANCE", "GL_ACCOUNT_MASTER"])
        assert report == {"valid": True, "issues": [], "circularDependencies": []}
