"""Infor LN sales data (tdsls400, tdsls401) to SAP SD fields."""

import re
from typing import Any

from core.mapping import MappingRule, RuleSet
from migration.rules.common import digits_only


def customer_number(value: Any) -> str:
    """LN business partner id without its ``BP`` prefix, padded to 10."""
    text = "" if value is None else str(value).strip()
    if not text:
        return ""
    text = re.sub(r"^BP", "", text, flags=re.IGNORECASE)
    return text.zfill(10) if text.isdigit() else text.upper()


ORDER_TYPES = {"NOR": "OR", "RSH": "SO", "CON": "CS", "RET": "RE", "FOC": "FD", "QUO": "QT"}

DISTRIBUTION_CHANNELS = {"1": "10", "2": "20", "3": "30"}  # direct, wholesale, retail

PRICING = {"1": "PR00", "2": "PR01", "3": "K004"}  # list price, customer price, material discount

PAYMENT_TERMS = {"N30": "0001", "N60": "0002", "N10": "0003", "COD": "0004", "2N10": "0005"}

DELIVERY_TYPES = {"1": "LF", "2": "LR", "3": "LO"}  # outbound, returns, without reference

SHIPPING_CONDITIONS = {"1": "01", "2": "02", "3": "03"}  # standard, express, pick-up

LN_SD_RULES = RuleSet(
    rule_set_id="LN_SD_RULES",
    name="Infor LN Sales and Distribution Transformation Rules",
    source_system="INFOR_LN",
    description="LN sales orders and customer terms to SAP SD",
    rules=[
        MappingRule(source="t$sotp", target="AUART", value_map=ORDER_TYPES, default="OR", description="Order type"),
        MappingRule(source="t$bpid", target="KUNNR", transform=customer_number, description="Sold-to party"),
        MappingRule(source="t$slof", target="VKORG", transform=digits_only(4), description="Sales office as sales org"),
        MappingRule(source="t$dsch", target="VTWEG", value_map=DISTRIBUTION_CHANNELS, default="10",
                    description="Distribution channel"),
        MappingRule(source="t$prlt", target="KSCHL", value_map=PRICING, default="PR00", description="Condition type"),
        MappingRule(source="t$ptcd", target="ZTERM", value_map=PAYMENT_TERMS, default="0001",
                    description="Payment terms"),
        MappingRule(source="t$dltp", target="LFART", value_map=DELIVERY_TYPES, default="LF",
                    description="Delivery type"),
        MappingRule(source="t$shmd", target="VSBED", value_map=SHIPPING_CONDITIONS, default="01",
                    description="Shipping condition"),
        MappingRule(source="t$odat", target="AUDAT", convert="toDate", description="Order date"),
        MappingRule(source="t$ddat", target="VDATU", convert="toDate", description="Requested delivery date"),
        MappingRule(source="t$ccur", target="WAERK", convert="toUpperCase", description="Document currency"),
        MappingRule(source="t$crli", target="KLIMK", convert="toDecimal", description="Credit limit"),
        MappingRule(source="t$corn", target="BSTNK", convert="trim", description="Customer order reference"),
        MappingRule(target="SourceSystem", default="INFOR_LN"),
    ],
)
