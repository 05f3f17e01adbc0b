"""Infor LN production data (tibom, tirou, tisfc) to SAP PP fields."""

from core.mapping import MappingRule, RuleSet
from migration.rules.common import hours, leading

BOM_USAGE = {"1": "1", "2": "2", "3": "3", "4": "5"}  # production, engineering, costing, sales

BOM_STATUS = {"1": "01", "2": "02", "3": "03"}  # active, inactive, in preparation

# L = stock item, N = non-stock, T = text
COMPONENT_TYPES = {"1": "L", "2": "N", "3": "T"}

CONTROL_KEYS = {"1": "PP01", "2": "PP02", "3": "PP03"}  # internal, external, milestone

WORK_CENTER_CATEGORIES = {"1": "0001", "2": "0002", "3": "0003"}  # machine, labor, subcontract

ORDER_TYPES = {"1": "PP01", "2": "PP02", "3": "PP03"}  # standard, rework, prototype

ORDER_STATUS = {
    "1": "CRTD",  # planned
    "2": "REL",   # released
    "3": "REL",   # active
    "4": "TECO",  # completed
    "5": "CLSD",  # closed
    "6": "DLT",   # cancelled
}

LN_PP_RULES = RuleSet(
    rule_set_id="LN_PP_RULES",
    name="Infor LN Production Planning Transformation Rules",
    source_system="INFOR_LN",
    description="LN bills of material, routings and production orders to SAP PP",
    rules=[
        MappingRule(source="t$bmus", target="STLAN", value_map=BOM_USAGE, default="1", description="BOM usage"),
        MappingRule(source="t$bsts", target="STLST", value_map=BOM_STATUS, default="01", description="BOM status"),
        MappingRule(source="t$bmit", target="POSTP", value_map=COMPONENT_TYPES, default="L",
                    description="Component item category"),
        MappingRule(source="t$qnty", target="MENGE", convert="toDecimal", description="Component quantity"),
        MappingRule(source="t$scrf", target="AUSCH", convert="toDecimal", description="Scrap percentage"),
        MappingRule(source="t$optp", target="STEUS", value_map=CONTROL_KEYS, default="PP01",
                    description="Operation control key"),
        MappingRule(source="t$stim", target="VGW01", transform=hours, description="Setup time"),
        MappingRule(source="t$rtim", target="VGW02", transform=hours, description="Run time"),
        MappingRule(source="t$wtim", target="VGW03", transform=hours, description="Wait time"),
        MappingRule(source="t$wctp", target="VERWE", value_map=WORK_CENTER_CATEGORIES, default="0001",
                    description="Work center category"),
        MappingRule(source="t$potp", target="AUART", value_map=ORDER_TYPES, default="PP01",
                    description="Production order type"),
        MappingRule(source="t$post", target="STATUS", value_map=ORDER_STATUS, default="CRTD",
                    description="Order status"),
        MappingRule(source="item", target="MATNR", convert="toUpperCase", description="Header material"),
        MappingRule(source="t$site", target="WERKS", transform=leading(4), description="Site as plant"),
        MappingRule(target="SourceSystem", default="INFOR_LN"),
    ],
)
