"""Dependency graph of migration objects.

An edge ``A -> B`` means A depends on B: B must be loaded first. The graph
is kept acyclic; a registration that would close a cycle is rejected and
the graph is left as it was.

    graph = DependencyGraph()
    waves = graph.get_execution_waves(["GL_BALANCE", "FI_CONFIG", "GL_ACCOUNT_MASTER"])
    # [["FI_CONFIG", "GL_ACCOUNT_MASTER"], ["GL_BALANCE"]]
"""

from typing import Dict, Iterable, List, Optional, Set

from core.errors import ConfigurationError

# Prerequisites per migration object. Objects absent here have none.
DEPENDENCIES: Dict[str, List[str]] = {
    # Finance
    "GL_BALANCE": ["GL_ACCOUNT_MASTER"],
    "CUSTOMER_OPEN_ITEM": ["BUSINESS_PARTNER"],
    "VENDOR_OPEN_ITEM": ["BUSINESS_PARTNER"],
    "FIXED_ASSET": ["COST_CENTER"],
    "ASSET_ACQUISITION": ["FIXED_ASSET"],
    # Controlling
    "COST_CENTER": ["PROFIT_CENTER"],
    "PROFIT_SEGMENT": ["PROFIT_CENTER"],
    "WBS_ELEMENT": ["PROFIT_CENTER", "COST_CENTER"],
    "INTERNAL_ORDER": ["COST_CENTER"],
    # Master data
    "BUSINESS_PARTNER": ["BANK_MASTER"],
    "EMPLOYEE_MASTER": ["BUSINESS_PARTNER"],
    "EQUIPMENT_MASTER": ["FUNCTIONAL_LOCATION"],
    "WORK_CENTER": ["COST_CENTER"],
    "BATCH_MASTER": ["MATERIAL_MASTER"],
    "PRICING_CONDITION": ["MATERIAL_MASTER"],
    # Logistics
    "PURCHASE_ORDER": ["BUSINESS_PARTNER", "MATERIAL_MASTER"],
    "SALES_ORDER": ["BUSINESS_PARTNER", "MATERIAL_MASTER", "PRICING_CONDITION"],
    "SOURCE_LIST": ["BUSINESS_PARTNER", "MATERIAL_MASTER"],
    "SCHEDULING_AGREEMENT": ["BUSINESS_PARTNER", "MATERIAL_MASTER"],
    "PURCHASE_CONTRACT": ["BUSINESS_PARTNER", "MATERIAL_MASTER"],
    "PRODUCTION_ORDER": ["MATERIAL_MASTER", "WORK_CENTER"],
    "BOM_ROUTING": ["MATERIAL_MASTER", "WORK_CENTER"],
    "INSPECTION_PLAN": ["MATERIAL_MASTER"],
    "MAINTENANCE_ORDER": ["EQUIPMENT_MASTER", "WORK_CENTER"],
    # Infor LN
    "INFOR_LN_GL_JOURNAL": ["INFOR_LN_GL_ACCOUNT"],
    "INFOR_LN_FI_DOCUMENT": ["INFOR_LN_GL_JOURNAL"],
    # Infor M3
    "INFOR_M3_GL_JOURNAL": ["INFOR_M3_GL_ACCOUNT"],
}


class DependencyGraph:
    """Acyclic prerequisite graph with Kahn-style wave layering."""

    def __init__(self, dependencies: Optional[Dict[str, Iterable[str]]] = None):
        self._deps: Dict[str, List[str]] = {}
        for object_id, deps in (DEPENDENCIES if dependencies is None else dependencies).items():
            self.set_dependencies(object_id, deps)

    def set_dependencies(self, object_id: str, dependencies: Iterable[str]) -> None:
        """Replace the prerequisites of ``object_id``.

        Raises:
            ConfigurationError: the change would create a cycle (graph unchanged)
        """
        deps = list(dict.fromkeys(dependencies))
        if object_id in deps:
            raise ConfigurationError(
                f"{object_id} cannot depend on itself",
                details={"objectId": object_id},
            )
        previous = self._deps.get(object_id)
        self._deps[object_id] = deps
        cycles = self.detect_cycles()
        if cycles:
            if previous is None:
                del self._deps[object_id]
            else:
                self._deps[object_id] = previous
            raise ConfigurationError(
                f"Circular dependency: {' -> '.join(cycles[0])}",
                details={"objectId": object_id, "cycles": cycles},
            )

    def get_dependencies(self, object_id: str) -> List[str]:
        return list(self._deps.get(object_id, []))

    def get_transitive_dependencies(self, object_id: str) -> Set[str]:
        """Every object ``object_id`` depends on, directly or indirectly."""
        seen: Set[str] = set()
        stack = list(self._deps.get(object_id, []))
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._deps.get(current, []))
        return seen

    def nodes(self) -> List[str]:
        found: Dict[str, None] = {}
        for object_id, deps in self._deps.items():
            found.setdefault(object_id, None)
            for dep in deps:
                found.setdefault(dep, None)
        return list(found)

    # =========================================================================
    # Ordering
    # =========================================================================

    def get_execution_waves(self, object_ids: Iterable[str]) -> List[List[str]]:
        """Partition ``object_ids`` into the fewest dependency-respecting waves.

        A member waits for every other member it depends on, directly or
        through objects outside the set; objects in a wave are sorted by id.
        """
        members = list(dict.fromkeys(object_ids))
        member_set = set(members)
        indegree = {m: 0 for m in members}
        dependents: Dict[str, List[str]] = {m: [] for m in members}
        for member in members:
            for dep in self.get_transitive_dependencies(member) & member_set:
                indegree[member] += 1
                dependents[dep].append(member)

        waves: List[List[str]] = []
        ready = sorted(m for m in members if indegree[m] == 0)
        placed = 0
        while ready:
            waves.append(ready)
            placed += len(ready)
            following: List[str] = []
            for member in ready:
                for dependent in dependents[member]:
                    indegree[dependent] -= 1
                    if indegree[dependent] == 0:
                        following.append(dependent)
            ready = sorted(following)

        if placed != len(members):
            stuck = sorted(m for m in members if indegree[m] > 0)
            raise ConfigurationError(
                f"Circular dependency among: {', '.join(stuck)}",
                details={"objects": stuck},
            )
        return waves

    def get_execution_order(self, object_ids: Optional[Iterable[str]] = None) -> List[str]:
        """Depth-first topological order, prerequisites first."""
        targets = list(dict.fromkeys(object_ids)) if object_ids is not None else sorted(self.nodes())
        order: List[str] = []
        visited: Set[str] = set()
        visiting: Set[str] = set()

        def visit(node: str) -> None:
            if node in visited:
                return
            if node in visiting:
                raise ConfigurationError(f"Circular dependency at {node}", details={"objectId": node})
            visiting.add(node)
            for dep in self._deps.get(node, []):
                visit(dep)
            visiting.discard(node)
            visited.add(node)
            order.append(node)

        for target in targets:
            visit(target)
        return order

    def detect_cycles(self) -> List[List[str]]:
        cycles: List[List[str]] = []
        state: Dict[str, int] = {}
        path: List[str] = []

        def visit(node: str) -> None:
            state[node] = 1
            path.append(node)
            for dep in self._deps.get(node, []):
                if state.get(dep) == 1:
                    cycles.append(path[path.index(dep):] + [dep])
                elif dep not in state:
                    visit(dep)
            path.pop()
            state[node] = 2

        for node in sorted(self._deps):
            if node not in state:
                visit(node)
        return cycles

    def validate(self, registered_ids: Iterable[str]) -> Dict[str, object]:
        """Check that every prerequisite of a registered object is registered too."""
        registered = set(registered_ids)
        issues = []
        for object_id in sorted(registered):
            for dep in self._deps.get(object_id, []):
                if dep not in registered:
                    issues.append(
                        {"objectId": object_id, "missingDependency": dep,
                         "message": f"{object_id} depends on unregistered object {dep}"}
                    )
        cycles = self.detect_cycles()
        return {"valid": not issues and not cycles, "issues": issues, "circularDependencies": cycles}
