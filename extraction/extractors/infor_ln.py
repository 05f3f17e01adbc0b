"""Infor LN extractors.

LN column names carry the ``t$`` prefix; payload keys stay in LN terms so the
migration rules in ``migration.rules`` can map them without a rename step.
"""

from collections import Counter, defaultdict
from decimal import Decimal
from typing import Any, Dict, List

from core.mapping.converters import infor_ln_item_type
from extraction.base import BaseExtractor, ExpectedTable

COMPLETENESS_THRESHOLD = 90


def _filled(value: Any) -> bool:
    return value is not None and str(value).strip() != ""


def field_completeness(rows: List[Dict[str, Any]]) -> Dict[str, int]:
    """Integer percent of rows with a non-blank value, per column."""
    if not rows:
        return {}
    columns = sorted({column for row in rows for column in row})
    return {
        column: round(sum(1 for row in rows if _filled(row.get(column))) / len(rows) * 100)
        for column in columns
    }


class LNBusinessPartnerExtractor(BaseExtractor):
    extractor_id = "LN_BUSINESS_PARTNERS"
    name = "LN Business Partners"
    module = "SD"
    category = "masterdata"
    source_system = "INFOR_LN"
    expected_tables = (
        ExpectedTable("tccom100", "Business partners", critical=True),
        ExpectedTable("tccom110", "Sold-to business partners"),
        ExpectedTable("tccom120", "Buy-from business partners"),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        partners = tables.get("tccom100", [])
        payload["count"] = len(partners)
        payload["byCountry"] = dict(Counter(str(bp.get("t$lncc", "")) for bp in partners))
        payload["customers"] = len(tables.get("tccom110", []))
        payload["suppliers"] = len(tables.get("tccom120", []))
        nameless = [bp.get("t$bpid") for bp in partners if not _filled(bp.get("t$nama"))]
        if nameless:
            self._flag_for_validation(f"Business partner(s) without a name: {', '.join(map(str, nameless))}")
        return payload


class LNItemExtractor(BaseExtractor):
    extractor_id = "LN_ITEMS"
    name = "LN Items"
    module = "MM"
    category = "masterdata"
    source_system = "INFOR_LN"
    expected_tables = (
        ExpectedTable("tcibd001", "Items general", critical=True),
        ExpectedTable("tcibd003", "Item unit conversions"),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        items = tables.get("tcibd001", [])
        payload["count"] = len(items)
        payload["byMaterialType"] = dict(Counter(infor_ln_item_type(i.get("t$ctyp")) for i in items))
        undescribed = [i.get("t$item") for i in items if not _filled(i.get("t$dsca"))]
        if undescribed:
            self._flag_for_validation(f"{len(undescribed)} item(s) without a description")
        return payload


class LNFinanceExtractor(BaseExtractor):
    """Chart of accounts and posted GL transactions; every document must balance."""

    extractor_id = "LN_FINANCE"
    name = "LN Finance"
    module = "FI"
    category = "transactional"
    source_system = "INFOR_LN"
    expected_tables = (
        ExpectedTable("tfgld008", "Ledger accounts", critical=True),
        ExpectedTable("tfgld106", "Finalized GL transactions", critical=True, max_rows=10000),
        ExpectedTable("tfgld010", "Dimensions"),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        lines = tables.get("tfgld106", [])
        balances: Dict[Any, Decimal] = defaultdict(Decimal)
        for line in lines:
            amount = Decimal(str(line.get("t$amnt") or 0))
            sign = 1 if str(line.get("t$dbcr", "")).upper() == "D" else -1
            balances[(line.get("t$otyp"), line.get("t$odoc"))] += sign * amount
        unbalanced = [f"{otyp}/{odoc}" for (otyp, odoc), total in balances.items() if total != 0]
        payload["accountCount"] = len(tables.get("tfgld008", []))
        payload["documentCount"] = len(balances)
        payload["unbalancedDocuments"] = unbalanced
        if unbalanced:
            self._flag_for_validation(f"{len(unbalanced)} GL document(s) do not balance: {', '.join(unbalanced)}")
        return payload


class LNManufacturingExtractor(BaseExtractor):
    extractor_id = "LN_MANUFACTURING"
    name = "LN Manufacturing"
    module = "PP"
    category = "masterdata"
    source_system = "INFOR_LN"
    expected_tables = (
        ExpectedTable("tibom010", "Bills of material"),
        ExpectedTable("tirou102", "Routing operations"),
        ExpectedTable("tisfc001", "Production orders"),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        payload["bomItems"] = len({row.get("t$mitm") for row in tables.get("tibom010", [])})
        payload["productionOrders"] = len(tables.get("tisfc001", []))
        return payload


class LNDataQualityExtractor(BaseExtractor):
    extractor_id = "LN_DATA_QUALITY"
    name = "LN Data Quality"
    module = "BASIS"
    category = "quality"
    source_system = "INFOR_LN"
    expected_tables = (
        ExpectedTable("tccom100", "Business partners"),
        ExpectedTable("tcibd001", "Items general"),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        completeness = {table: field_completeness(rows) for table, rows in tables.items()}
        payload["completeness"] = completeness
        for table, fields in completeness.items():
            weak = sorted(name for name, pct in fields.items() if pct < COMPLETENESS_THRESHOLD)
            if weak:
                self._flag_for_validation(
                    f"{table}: field(s) below {COMPLETENESS_THRESHOLD}% complete: {', '.join(weak)}"
                )
        return payload


INFOR_LN_EXTRACTORS = [
    LNBusinessPartnerExtractor,
    LNItemExtractor,
    LNFinanceExtractor,
    LNManufacturingExtractor,
    LNDataQualityExtractor,
]
