"""Migration bridge: turns a forensic extraction result into a migration plan.

    result = await ForensicOrchestrator(context).run()
    plan = MigrationBridge().plan(result, exclude_modules=["HR"])
    for wave in plan.execution_plan.waves:
        ...

The plan lists which migration objects are in scope, the order they must
run in, how big they are, what could go wrong and what to do first.
"""

import math
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from core.observability.logging import get_logger
from extraction.orchestrator import ExtractionResult
from migration.dependency_graph import DependencyGraph

logger = get_logger(__name__)


# =============================================================================
# Planning Tables
# =============================================================================

MODULE_OBJECT_MAP: Dict[str, List[str]] = {
    "FI": ["GL_BALANCE", "GL_ACCOUNT_MASTER", "CUSTOMER_OPEN_ITEM", "VENDOR_OPEN_ITEM",
           "FIXED_ASSET", "ASSET_ACQUISITION", "FI_CONFIG"],
    "CO": ["COST_CENTER", "COST_ELEMENT", "PROFIT_CENTER", "PROFIT_SEGMENT",
           "INTERNAL_ORDER", "WBS_ELEMENT", "CO_CONFIG"],
    "MM": ["MATERIAL_MASTER", "PURCHASE_ORDER", "SOURCE_LIST", "SCHEDULING_AGREEMENT",
           "PURCHASE_CONTRACT", "BATCH_MASTER", "PRICING_CONDITION", "MM_CONFIG"],
    "SD": ["SALES_ORDER", "PRICING_CONDITION", "SD_CONFIG"],
    "PP": ["PRODUCTION_ORDER", "BOM_ROUTING", "INSPECTION_PLAN"],
    "PM": ["EQUIPMENT_MASTER", "FUNCTIONAL_LOCATION", "WORK_CENTER", "MAINTENANCE_ORDER"],
    "HR": ["EMPLOYEE_MASTER", "BANK_MASTER", "BUSINESS_PARTNER"],
    "EWM": ["WAREHOUSE_STRUCTURE"],
    "TM": ["TRANSPORT_ROUTE"],
    "GTS": ["TRADE_COMPLIANCE"],
    "BW": ["BW_EXTRACTOR"],
    "BASIS": ["RFC_DESTINATION", "IDOC_CONFIG", "WEB_SERVICE", "BATCH_JOB"],
}

# Extractors whose success shows a module is in use
MODULE_INDICATORS: Dict[str, List[str]] = {
    "FI": ["FI_TRANSACTIONS", "FI_GL_ACCOUNTS", "FI_COMPANY_CODES"],
    "CO": ["CO_COST_CENTERS", "CO_PROFIT_CENTERS", "CO_INTERNAL_ORDERS"],
    "MM": ["MM_MATERIALS", "MM_PURCHASING", "MM_INVENTORY"],
    "SD": ["SD_SALES", "SD_PRICING", "SD_CUSTOMERS"],
    "PP": ["PP_PRODUCTION", "PP_BOM", "PP_ROUTING"],
    "PM": ["PM_EQUIPMENT", "PM_MAINTENANCE", "PM_WORK_CENTERS"],
    "HR": ["HR_EMPLOYEES", "HR_ORG_STRUCTURE"],
    "EWM": ["EWM_WAREHOUSE"],
    "TM": ["TM_TRANSPORT"],
    "GTS": ["GTS_COMPLIANCE"],
    "BW": ["BW_EXTRACTORS"],
    "BASIS": ["BASIS_RFC", "BASIS_IDOC", "BASIS_BATCH_JOBS"],
}

# Volume heuristic: which extractor result sizes which object
OBJECT_EXTRACTOR_MAP: Dict[str, str] = {
    "GL_BALANCE": "FI_TRANSACTIONS",
    "GL_ACCOUNT_MASTER": "FI_GL_ACCOUNTS",
    "BUSINESS_PARTNER": "SD_CUSTOMERS",
    "MATERIAL_MASTER": "MM_MATERIALS",
    "PURCHASE_ORDER": "MM_PURCHASING",
    "SALES_ORDER": "SD_SALES",
    "COST_CENTER": "CO_COST_CENTERS",
    "PROFIT_CENTER": "CO_PROFIT_CENTERS",
    "EMPLOYEE_MASTER": "HR_EMPLOYEES",
    "EQUIPMENT_MASTER": "PM_EQUIPMENT",
}

# Effort in hours: base + per thousand records
COMPLEXITY_MAP: Dict[str, Dict[str, float]] = {
    "GL_BALANCE": {"base": 40, "per_thousand": 2},
    "GL_ACCOUNT_MASTER": {"base": 16, "per_thousand": 0.5},
    "BUSINESS_PARTNER": {"base": 60, "per_thousand": 3},
    "MATERIAL_MASTER": {"base": 48, "per_thousand": 2.5},
    "PURCHASE_ORDER": {"base": 32, "per_thousand": 1.5},
    "SALES_ORDER": {"base": 32, "per_thousand": 1.5},
    "FIXED_ASSET": {"base": 36, "per_thousand": 2},
    "COST_CENTER": {"base": 12, "per_thousand": 0.3},
    "PROFIT_CENTER": {"base": 12, "per_thousand": 0.3},
    "EMPLOYEE_MASTER": {"base": 48, "per_thousand": 3},
}
DEFAULT_COMPLEXITY = {"base": 20, "per_thousand": 1}

PRIORITY_MAP: Dict[str, int] = {
    "FI_CONFIG": 100, "CO_CONFIG": 100, "MM_CONFIG": 100, "SD_CONFIG": 100,
    "GL_ACCOUNT_MASTER": 95, "COST_CENTER": 95, "PROFIT_CENTER": 95,
    "BUSINESS_PARTNER": 90, "BANK_MASTER": 90, "MATERIAL_MASTER": 90,
    "GL_BALANCE": 85, "CUSTOMER_OPEN_ITEM": 85, "VENDOR_OPEN_ITEM": 85,
    "FIXED_ASSET": 80, "COST_ELEMENT": 80,
    "PURCHASE_ORDER": 75, "SALES_ORDER": 75,
    "EMPLOYEE_MASTER": 70,
    "EQUIPMENT_MASTER": 65, "FUNCTIONAL_LOCATION": 65,
}
DEFAULT_PRIORITY = 50

INTERFACE_OBJECTS = ("RFC_DESTINATION", "IDOC_CONFIG", "WEB_SERVICE", "BATCH_JOB")
MASTER_DATA_OBJECTS = (
    "GL_ACCOUNT_MASTER", "BUSINESS_PARTNER", "MATERIAL_MASTER", "COST_CENTER", "PROFIT_CENTER",
    "BANK_MASTER", "EMPLOYEE_MASTER", "EQUIPMENT_MASTER", "FUNCTIONAL_LOCATION", "WORK_CENTER",
)
TRANSACTIONAL_OBJECTS = (
    "GL_BALANCE", "CUSTOMER_OPEN_ITEM", "VENDOR_OPEN_ITEM", "PURCHASE_ORDER", "SALES_ORDER",
    "FIXED_ASSET", "PRODUCTION_ORDER", "MAINTENANCE_ORDER",
)

LOW_CONFIDENCE = 70
HIGH_VOLUME_RECORDS = 100_000
VALIDATION_BACKLOG = 3
HOURS_PER_CALENDAR_DAY = 12  # two people, six productive hours each
PROFILING_PRIORITY = 85


def is_config_object(object_id: str) -> bool:
    return object_id.endswith("_CONFIG")


def is_interface_object(object_id: str) -> bool:
    return object_id in INTERFACE_OBJECTS


# =============================================================================
# Plan Models
# =============================================================================

class ModuleActivity(BaseModel):
    module: str
    extractors_found: int
    extractors_total: int
    coverage: int = Field(..., description="Share of indicator extractors that succeeded, percent")
    estimated_records: int = 0


class PlannedObject(BaseModel):
    object_id: str
    priority: int
    estimated_records: int = 0
    estimated_hours: float = 0.0
    complexity_base: float = 0.0
    dependencies: List[str] = Field(default_factory=list)
    is_prerequisite: bool = Field(False, description="Added only because an in-scope object needs it")


class PlanWave(BaseModel):
    wave_number: int
    object_ids: List[str]
    can_run_in_parallel: bool = True
    objects: List[PlannedObject] = Field(default_factory=list)


class ExecutionPlan(BaseModel):
    waves: List[PlanWave] = Field(default_factory=list)
    total_waves: int = 0


class PlanRisk(BaseModel):
    model_config = ConfigDict(extra="allow")

    level: str = Field(..., description="high, medium or low")
    category: str
    description: str
    mitigation: str


class Recommendation(BaseModel):
    phase: str
    action: str
    objects: List[str] = Field(default_factory=list)
    details: List[str] = Field(default_factory=list)


class MigrationPlan(BaseModel):
    """Ordered, sized migration scope derived from one extraction run."""
    scope: Dict[str, Any] = Field(default_factory=dict)
    modules: List[ModuleActivity] = Field(default_factory=list)
    objects: List[PlannedObject] = Field(default_factory=list)
    execution_plan: ExecutionPlan = Field(default_factory=ExecutionPlan)
    effort: Dict[str, Any] = Field(default_factory=dict)
    risks: List[PlanRisk] = Field(default_factory=list)
    confidence: Dict[str, Any] = Field(default_factory=dict)
    recommendations: List[Recommendation] = Field(default_factory=list)
    unestimated_objects: List[str] = Field(
        default_factory=list,
        description="In-scope data objects without a volume estimate; size them by profiling",
    )

    def wave_of(self, object_id: str) -> Optional[int]:
        for wave in self.execution_plan.waves:
            if object_id in wave.object_ids:
                return wave.wave_number
        return None


# =============================================================================
# Bridge
# =============================================================================

ResultLike = Union[ExtractionResult, Dict[str, Any]]


def _result_view(result: ResultLike) -> Dict[str, Any]:
    if isinstance(result, ExtractionResult):
        return result.to_dict()
    return dict(result)


def _succeeded(payload: Any) -> bool:
    return isinstance(payload, dict) and "error" not in payload


def _volume(payload: Dict[str, Any]) -> Optional[int]:
    """Record volume reported by an extractor payload, if it reports one."""
    records = payload.get("records")
    if isinstance(records, list):
        return len(records)
    for key in ("count", "recordCount"):
        if isinstance(payload.get(key), int):
            return payload[key]
    return None


class MigrationBridge:
    """Plans a migration from an extraction result."""

    def __init__(self, graph: Optional[DependencyGraph] = None):
        self.graph = graph or DependencyGraph()

    def plan(
        self,
        result: ResultLike,
        include_modules: Optional[Iterable[str]] = None,
        exclude_modules: Optional[Iterable[str]] = None,
        exclude_objects: Optional[Iterable[str]] = None,
        include_interfaces: bool = True,
        include_config: bool = True,
    ) -> MigrationPlan:
        view = _result_view(result)
        results: Dict[str, Any] = view.get("results") or {}

        modules = self.identify_active_modules(results)
        logger.info(f"Active modules detected: {', '.join(m.module for m in modules) or 'none'}")
        if include_modules:
            wanted = {m.upper() for m in include_modules}
            modules = [m for m in modules if m.module in wanted]
        if exclude_modules:
            unwanted = {m.upper() for m in exclude_modules}
            modules = [m for m in modules if m.module not in unwanted]

        object_ids = self.map_modules_to_objects(modules, include_interfaces, include_config)
        if exclude_objects:
            excluded = set(exclude_objects)
            object_ids = [o for o in object_ids if o not in excluded]

        all_ids, added = self.add_prerequisites(object_ids)
        details = self.build_object_details(all_ids, results, set(added))
        by_id = {o.object_id: o for o in details}

        waves = self.graph.get_execution_waves(all_ids)
        execution = ExecutionPlan(
            waves=[
                PlanWave(wave_number=i + 1, object_ids=wave, objects=[by_id[o] for o in wave if o in by_id])
                for i, wave in enumerate(waves)
            ],
            total_waves=len(waves),
        )
        risks = self.assess_risks(view, details)
        unestimated = [
            o.object_id for o in details
            if not is_config_object(o.object_id)
            and not is_interface_object(o.object_id)
            and self.estimate_object_records(o.object_id, results) is None
        ]

        plan = MigrationPlan(
            scope={
                "active_modules": [m.module for m in modules],
                "total_objects": len(all_ids),
                "total_estimated_records": sum(o.estimated_records for o in details),
            },
            modules=modules,
            objects=details,
            execution_plan=execution,
            effort=self.estimate_effort(details),
            risks=risks,
            confidence=view.get("confidence") or {},
            recommendations=self.generate_recommendations(details, risks, unestimated),
            unestimated_objects=unestimated,
        )
        logger.info(f"Migration plan: {len(all_ids)} objects in {execution.total_waves} waves")
        if unestimated:
            logger.warning(f"No volume estimate for: {', '.join(unestimated)}")
        return plan

    # =========================================================================
    # Steps
    # =========================================================================

    def identify_active_modules(self, results: Dict[str, Any]) -> List[ModuleActivity]:
        modules = []
        for module, indicators in MODULE_INDICATORS.items():
            found = [eid for eid in indicators if _succeeded(results.get(eid))]
            if not found:
                continue
            modules.append(
                ModuleActivity(
                    module=module,
                    extractors_found=len(found),
                    extractors_total=len(indicators),
                    coverage=round(len(found) / len(indicators) * 100),
                    estimated_records=sum(_volume(results[eid]) or 0 for eid in found),
                )
            )
        # most complete first; sort is stable so table order breaks ties
        modules.sort(key=lambda m: m.coverage, reverse=True)
        return modules

    def map_modules_to_objects(
        self,
        modules: List[ModuleActivity],
        include_interfaces: bool = True,
        include_config: bool = True,
    ) -> List[str]:
        object_ids: Dict[str, None] = {}
        for module in modules:
            for object_id in MODULE_OBJECT_MAP.get(module.module, []):
                if not include_config and is_config_object(object_id):
                    continue
                if not include_interfaces and is_interface_object(object_id):
                    continue
                object_ids.setdefault(object_id, None)
        return list(object_ids)

    def add_prerequisites(self, object_ids: List[str]):
        """Return (all ids, ids added only as prerequisites)."""
        needed: Dict[str, None] = dict.fromkeys(object_ids)
        for object_id in object_ids:
            for dep in sorted(self.graph.get_transitive_dependencies(object_id)):
                needed.setdefault(dep, None)
        added = [o for o in needed if o not in set(object_ids)]
        if added:
            logger.info(f"Added {len(added)} prerequisite objects: {', '.join(added)}")
        return list(needed), added

    def estimate_object_records(self, object_id: str, results: Dict[str, Any]) -> Optional[int]:
        """Records for ``object_id`` per the extractor heuristic; None when unknown."""
        extractor_id = OBJECT_EXTRACTOR_MAP.get(object_id)
        if extractor_id is None or not _succeeded(results.get(extractor_id)):
            return None
        return _volume(results[extractor_id])

    def build_object_details(
        self,
        object_ids: List[str],
        results: Dict[str, Any],
        prerequisites: Iterable[str] = (),
    ) -> List[PlannedObject]:
        prerequisites = set(prerequisites)
        details = []
        for object_id in object_ids:
            complexity = COMPLEXITY_MAP.get(object_id, DEFAULT_COMPLEXITY)
            records = self.estimate_object_records(object_id, results) or 0
            hours = complexity["base"] + (records / 1000) * complexity["per_thousand"]
            details.append(
                PlannedObject(
                    object_id=object_id,
                    priority=PRIORITY_MAP.get(object_id, DEFAULT_PRIORITY),
                    estimated_records=records,
                    estimated_hours=round(hours, 1),
                    complexity_base=complexity["base"],
                    dependencies=self.graph.get_dependencies(object_id),
                    is_prerequisite=object_id in prerequisites,
                )
            )
        details.sort(key=lambda o: o.priority, reverse=True)
        return details

    def assess_risks(self, view: Dict[str, Any], details: List[PlannedObject]) -> List[PlanRisk]:
        risks: List[PlanRisk] = []
        confidence = view.get("confidence") or {}
        gap_report = view.get("gap_report") or {}

        overall = confidence.get("overall")
        if overall is not None and overall < LOW_CONFIDENCE:
            risks.append(PlanRisk(
                level="high",
                category="data-completeness",
                description=f"Extraction confidence is {overall}%; significant data gaps may exist",
                mitigation="Re-run extraction with elevated authorization and review the gap report",
            ))

        missing = gap_report.get("missing_critical_tables") or []
        if missing:
            risks.append(PlanRisk(
                level="high",
                category="missing-data",
                description=f"{len(missing)} critical tables not extracted",
                mitigation="Grant read authorization for the listed tables and re-extract",
                tables=list(missing),
            ))

        authorization = gap_report.get("authorization") or {}
        if authorization.get("count", 0) > 0:
            risks.append(PlanRisk(
                level="medium",
                category="authorization",
                description=f"{authorization['count']} tables could not be read due to authorization",
                mitigation="Request additional roles for the extraction user",
            ))

        high_volume = [o.object_id for o in details if o.estimated_records > HIGH_VOLUME_RECORDS]
        if high_volume:
            risks.append(PlanRisk(
                level="medium",
                category="data-volume",
                description=f"{len(high_volume)} objects have more than 100K records and may need batched migration",
                mitigation="Plan incremental or delta loads and tune batch sizes",
                objects=high_volume,
            ))

        validation = view.get("human_validation") or []
        if len(validation) > VALIDATION_BACKLOG:
            risks.append(PlanRisk(
                level="low",
                category="validation",
                description=f"{len(validation)} items require human validation before migration",
                mitigation="Schedule validation workshops with business stakeholders",
            ))
        return risks

    def estimate_effort(self, details: List[PlannedObject]) -> Dict[str, Any]:
        total = sum(o.estimated_hours for o in details)
        config = sum(o.estimated_hours for o in details if is_config_object(o.object_id))
        return {
            "total_estimated_hours": round(total),
            "configuration_hours": round(config),
            "data_migration_hours": round(total - config),
            "estimated_calendar_days": math.ceil(total / HOURS_PER_CALENDAR_DAY),
            "breakdown": {
                "configuration": sum(1 for o in details if is_config_object(o.object_id)),
                "master_data": sum(1 for o in details if o.object_id in MASTER_DATA_OBJECTS),
                "transactional": sum(1 for o in details if o.object_id in TRANSACTIONAL_OBJECTS),
                "interfaces": sum(1 for o in details if is_interface_object(o.object_id)),
            },
        }

    def generate_recommendations(
        self,
        details: List[PlannedObject],
        risks: List[PlanRisk],
        unestimated: List[str],
    ) -> List[Recommendation]:
        recommendations = [
            Recommendation(
                phase="profile",
                action="Run data profiling on all high-priority master data objects before migration",
                objects=[o.object_id for o in details if o.estimated_records > 0 and o.priority >= PROFILING_PRIORITY],
            )
        ]
        high = [r for r in risks if r.level == "high"]
        if high:
            recommendations.append(Recommendation(
                phase="pre-migration",
                action="Resolve high-risk items before starting migration",
                details=[r.description for r in high],
            ))
        config = [o.object_id for o in details if is_config_object(o.object_id)]
        if config:
            recommendations.append(Recommendation(
                phase="configure",
                action="Migrate configuration objects first; data objects depend on them",
                objects=config,
            ))
        if any(o.object_id == "BUSINESS_PARTNER" for o in details):
            recommendations.append(Recommendation(
                phase="profile",
                action="Run fuzzy duplicate detection on business partners before migration",
                objects=["BUSINESS_PARTNER"],
                details=["Customers and vendors may overlap; merge them into one business partner"],
            ))
        if unestimated:
            recommendations.append(Recommendation(
                phase="profile",
                action="Profile source volumes for objects the extraction could not size",
                objects=list(unestimated),
            ))
        return recommendations
