"""Infor M3 product structures, routings and manufacturing orders to SAP PP fields."""

from core.mapping import MappingRule, RuleSet
from migration.rules.common import hours, leading

STRUCTURE_TYPES = {"001": "1", "002": "2", "003": "3"}  # production, engineering, costing

STRUCTURE_STATUS = {"10": "02", "20": "01", "90": "02"}  # preliminary, released, blocked

COMPONENT_TYPES = {"1": "L", "2": "N", "3": "T"}

OPERATION_TYPES = {"1": "PP01", "2": "PP02", "3": "PP03"}  # internal, subcontract, inspection

WORK_CENTER_CATEGORIES = {"1": "0001", "2": "0002", "3": "0003"}

ORDER_TYPES = {"MO1": "PP01", "MO2": "PP02", "MO3": "PP03"}

ORDER_STATUS = {
    "10": "CRTD", "20": "CRTD",
    "30": "REL", "40": "REL", "50": "REL",
    "60": "TECO", "70": "TECO",
    "80": "DLT", "90": "DLT",
}

M3_PP_RULES = RuleSet(
    rule_set_id="M3_PP_RULES",
    name="Infor M3 Production Planning Transformation Rules",
    source_system="INFOR_M3",
    description="M3 product structures (MPDMAT), routings (MPDOPE) and orders (MWOHED) to SAP PP",
    rules=[
        MappingRule(source="STRT", target="STLAN", value_map=STRUCTURE_TYPES, default="1",
                    description="Structure type as BOM usage"),
        MappingRule(source="PSTS", target="STLST", value_map=STRUCTURE_STATUS, default="01",
                    description="Structure status"),
        MappingRule(source="CMTP", target="POSTP", value_map=COMPONENT_TYPES, default="L",
                    description="Component type"),
        MappingRule(source="CNQT", target="MENGE", convert="toDecimal", description="Component quantity"),
        MappingRule(source="SCPC", target="AUSCH", convert="toDecimal", description="Scrap percentage"),
        MappingRule(source="OPTP", target="STEUS", value_map=OPERATION_TYPES, default="PP01",
                    description="Operation type as control key"),
        MappingRule(source="SETI", target="VGW01", transform=hours, description="Setup time"),
        MappingRule(source="PITI", target="VGW02", transform=hours, description="Run time per piece"),
        MappingRule(source="QUEU", target="VGW03", transform=hours, description="Queue time"),
        MappingRule(source="PLGR", target="ARBPL", convert="toUpperCase", description="Work center"),
        MappingRule(source="WCTP", target="VERWE", value_map=WORK_CENTER_CATEGORIES, default="0001",
                    description="Work center type"),
        MappingRule(source="ORTY", target="AUART", value_map=ORDER_TYPES, default="PP01", description="Order type"),
        MappingRule(source="ORST", target="STATUS", value_map=ORDER_STATUS, default="CRTD",
                    description="Order status"),
        MappingRule(source="ITNO", target="MATNR", convert="toUpperCase", description="Item number"),
        MappingRule(source="FACI", target="WERKS", transform=leading(4), description="Facility as plant"),
        MappingRule(target="SourceSystem", default="INFOR_M3"),
    ],
)
