"""Infor M3 customer orders (OOHEAD, OOLINE) to SAP SD fields."""

from core.mapping import MappingRule, RuleSet
from migration.rules.common import zero_pad

ORDER_TYPES = {"CO1": "OR", "CO2": "SO", "CO3": "CS", "RET": "RE", "FOC": "FD", "QUO": "QT"}

DISTRIBUTION_CHANNELS = {"F01": "10", "F02": "20", "F03": "30"}

PRICE_LISTS = {"STD": "PR00", "CUS": "PR01", "DIS": "K004"}

PAYMENT_TERMS = {"30": "0001", "60": "0002", "10": "0003", "00": "0004"}

INCOTERMS = {"EXW": "EXW", "FCA": "FCA", "FOB": "FOB", "CIF": "CIF", "DAP": "DAP", "DDP": "DDP"}

SHIPPING_CONDITIONS = {"TRK": "01", "AIR": "02", "PCK": "03"}

M3_SD_RULES = RuleSet(
    rule_set_id="M3_SD_RULES",
    name="Infor M3 Sales and Distribution Transformation Rules",
    source_system="INFOR_M3",
    description="M3 customer order headers and lines to SAP SD",
    rules=[
        MappingRule(source="ORTP", target="AUART", value_map=ORDER_TYPES, default="OR", description="Order type"),
        MappingRule(source="CUNO", target="KUNNR", transform=zero_pad(10), description="Customer number"),
        MappingRule(source="DIVI", target="VKORG", transform=zero_pad(4), description="Division as sales org"),
        MappingRule(source="FACI", target="VTWEG", value_map=DISTRIBUTION_CHANNELS, default="10",
                    description="Facility as distribution channel"),
        MappingRule(source="PLCD", target="KSCHL", value_map=PRICE_LISTS, default="PR00",
                    description="Price list as condition type"),
        MappingRule(source="TEPY", target="ZTERM", value_map=PAYMENT_TERMS, default="0001",
                    description="Payment terms"),
        MappingRule(source="TEDL", target="INCO1", value_map=INCOTERMS, default="EXW", description="Delivery terms"),
        MappingRule(source="ORDT", target="AUDAT", convert="toDate", description="Order date"),
        MappingRule(source="RLDT", target="VDATU", convert="toDate", description="Requested delivery date"),
        MappingRule(source="CUCD", target="WAERK", convert="toUpperCase", description="Currency"),
        MappingRule(source="ORNO", target="BSTNK", convert="trim", description="Order number"),
        MappingRule(source="CUOR", target="IHREZ", convert="trim", description="Customer order reference"),
        MappingRule(source="MODL", target="VSBED", value_map=SHIPPING_CONDITIONS, default="01",
                    description="Delivery method"),
        MappingRule(target="SourceSystem", default="INFOR_M3"),
    ],
)
