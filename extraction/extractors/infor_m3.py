"""Infor M3 extractors."""

from collections import Counter

from extraction.base import BaseExtractor, ExpectedTable

M3_BLOCKED_STATUS = "90"


class M3CustomerExtractor(BaseExtractor):
    extractor_id = "M3_CUSTOMERS"
    name = "M3 Customers"
    module = "SD"
    category = "masterdata"
    source_system = "INFOR_M3"
    expected_tables = (
        ExpectedTable("OCUSMA", "Customer master", critical=True),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        customers = tables.get("OCUSMA", [])
        payload["count"] = len(customers)
        payload["currencies"] = sorted({str(c.get("OKCUCD")) for c in customers if c.get("OKCUCD")})
        blocked = [c.get("OKCUNO") for c in customers if str(c.get("OKSTAT")) == M3_BLOCKED_STATUS]
        if blocked:
            self._flag_for_validation(f"{len(blocked)} blocked customer(s) in OCUSMA; decide whether to migrate")
        return payload


class M3ItemExtractor(BaseExtractor):
    extractor_id = "M3_ITEMS"
    name = "M3 Items"
    module = "MM"
    category = "masterdata"
    source_system = "INFOR_M3"
    expected_tables = (
        ExpectedTable("MITMAS", "Item master", critical=True),
        ExpectedTable("MITBAL", "Item warehouse balances"),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        items = tables.get("MITMAS", [])
        payload["count"] = len(items)
        payload["byItemType"] = dict(Counter(str(i.get("MMITTY", "")) for i in items))
        return payload


class M3FinanceExtractor(BaseExtractor):
    extractor_id = "M3_FINANCE"
    name = "M3 General Ledger"
    module = "FI"
    category = "transactional"
    source_system = "INFOR_M3"
    expected_tables = (
        ExpectedTable("FSLEDG", "General ledger", critical=True, max_rows=10000),
        ExpectedTable("FCHACC", "Chart of accounts", critical=True),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        total = round(sum(float(row.get("ESCUAM") or 0) for row in tables.get("FSLEDG", [])), 2)
        payload["ledgerBalance"] = total
        if total != 0:
            self._flag_for_validation(f"FSLEDG does not net to zero (balance {total})")
        return payload


INFOR_M3_EXTRACTORS = [M3CustomerExtractor, M3ItemExtractor, M3FinanceExtractor]
