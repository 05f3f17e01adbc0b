"""Infor M3 item data (MITMAS, MITBAL, MITFAC) to SAP material master fields."""

from core.mapping import MappingRule, RuleSet
from migration.rules.common import leading, zero_pad

ITEM_TYPES = {
    "PUR": "ROH",   # purchased
    "MFG": "HALB",  # manufactured
    "FIN": "FERT",
    "TRD": "HAWA",
    "SVC": "DIEN",
    "NST": "NLAG",  # non-stock
    "PKG": "VERP",
    "MRO": "HIBE",
}

PROCUREMENT_TYPES = {"PUR": "F", "MFG": "E", "FIN": "E", "TRD": "F", "SVC": "F", "NST": "F", "PKG": "F", "MRO": "F"}

MRP_TYPES = {"0": "ND", "1": "PD", "2": "VB", "3": "VV"}

M3_MM_RULES = RuleSet(
    rule_set_id="M3_MM_RULES",
    name="Infor M3 Materials Management Transformation Rules",
    source_system="INFOR_M3",
    description="M3 item master, facility and warehouse balance data to SAP MM",
    rules=[
        MappingRule(source="ITNO", target="MATNR", convert="toUpperCase", description="Item number"),
        MappingRule(source="ITDS", target="MAKTX", convert="trim", description="Item name"),
        MappingRule(source="ITTY", target="MTART", value_map=ITEM_TYPES, default="HAWA", description="Item type"),
        MappingRule(source="ITTY", target="BESKZ", value_map=PROCUREMENT_TYPES, default="F",
                    description="Procurement type"),
        MappingRule(source="UNMS", target="MEINS", convert="inforUomToISO", default="EA",
                    description="Basic unit of measure"),
        MappingRule(source="ITGR", target="MATKL", convert="toUpperCase", description="Item group"),
        MappingRule(source="PDLN", target="SPART", transform=zero_pad(2, "00"),
                    description="Product line as division"),
        MappingRule(source="GRWE", target="BRGEW", convert="toDecimal", description="Gross weight"),
        MappingRule(source="NEWE", target="NTGEW", convert="toDecimal", description="Net weight"),
        MappingRule(target="GEWEI", default="KG"),
        MappingRule(source="STDC", target="STPRS", convert="toDecimal", description="Standard cost"),
        MappingRule(source="WHLO", target="WERKS", transform=leading(4), description="Warehouse as plant"),
        MappingRule(source="WHSL", target="LGORT", transform=leading(4, "0001"), description="Stock location"),
        MappingRule(source="BUYE", target="EKGRP", transform=leading(3, "001"), description="Buyer"),
        MappingRule(source="PLCD", target="DISMM", value_map=MRP_TYPES, default="PD", description="Planning method"),
        MappingRule(source="SSQT", target="EISBE", convert="toDecimal", description="Safety stock"),
        MappingRule(source="REOP", target="MINBE", convert="toDecimal", description="Reorder point"),
        MappingRule(source="LEA1", target="PLIFZ", convert="toInteger", description="Lead time in days"),
        MappingRule(source="ORCO", target="HERKL", convert="toUpperCase", description="Country of origin"),
        MappingRule(source="ABCD", target="MAABC", convert="toUpperCase", default="C", description="ABC class"),
        MappingRule(target="SourceSystem", default="INFOR_M3"),
    ],
)
