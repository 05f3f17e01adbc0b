"""Infor LN item data (tcibd001, whwmd400) to SAP material master fields."""

from core.mapping import MappingRule, RuleSet
from migration.rules.common import leading

ITEM_TYPES = {"1": "ROH", "2": "HALB", "3": "FERT", "4": "HAWA", "5": "DIEN", "6": "NLAG"}

# F = external procurement, E = in-house production, X = both
PROCUREMENT_TYPES = {"1": "F", "2": "E", "3": "E", "4": "F", "5": "F", "6": "X"}

MRP_TYPES = {"1": "PD", "2": "VB", "3": "ND"}

LN_MM_RULES = RuleSet(
    rule_set_id="LN_MM_RULES",
    name="Infor LN Materials Management Transformation Rules",
    source_system="INFOR_LN",
    description="LN item, warehouse and planning data to SAP MM material master",
    rules=[
        MappingRule(source="item", target="MATNR", convert="toUpperCase", description="Item code"),
        MappingRule(source="dsca", target="MAKTX", convert="trim", description="Item description"),
        MappingRule(source="kitm", target="MTART", value_map=ITEM_TYPES, default="HAWA",
                    description="Item type to material type"),
        MappingRule(source="kitm", target="BESKZ", value_map=PROCUREMENT_TYPES, default="F",
                    description="Item type to procurement type"),
        MappingRule(source="cuni", target="MEINS", convert="inforUomToISO", default="EA",
                    description="Inventory unit"),
        MappingRule(source="csig", target="MATKL", convert="toUpperCase", description="Item signal as material group"),
        MappingRule(source="citg", target="EXTWG", convert="toUpperCase", description="Item group"),
        MappingRule(source="wght", target="BRGEW", convert="toDecimal", description="Gross weight"),
        MappingRule(source="ntwt", target="NTGEW", convert="toDecimal", description="Net weight"),
        MappingRule(target="GEWEI", default="KG"),
        MappingRule(source="stwi", target="STPRS", convert="toDecimal", description="Standard cost"),
        MappingRule(source="cwar", target="WERKS", transform=leading(4), description="Warehouse as plant"),
        MappingRule(source="lwar", target="LGORT", transform=leading(4, "0001"), description="Storage location"),
        MappingRule(source="t$pgrp", target="EKGRP", transform=leading(3), description="Purchasing group"),
        MappingRule(source="cmnf", target="DISPO", transform=leading(3, "000"), description="MRP controller"),
        MappingRule(source="t$plng", target="DISMM", value_map=MRP_TYPES, default="PD", description="MRP type"),
        MappingRule(source="sfty", target="EISBE", convert="toDecimal", description="Safety stock"),
        MappingRule(source="reop", target="MINBE", convert="toDecimal", description="Reorder point"),
        MappingRule(source="pldt", target="PLIFZ", convert="toInteger", description="Planned delivery days"),
        MappingRule(source="erpn", target="EAN11", convert="trim", description="EAN / UPC"),
        MappingRule(target="SourceSystem", default="INFOR_LN"),
    ],
)
