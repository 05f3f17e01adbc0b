"""SAP FI and CO extractors."""

from collections import Counter
from typing import Any, Dict, List

from extraction.base import BaseExtractor, ExpectedTable


def _distinct(rows: List[Dict[str, Any]], field: str) -> List[str]:
    return sorted({str(row[field]) for row in rows if row.get(field) not in (None, "")})


class CompanyCodeExtractor(BaseExtractor):
    extractor_id = "FI_COMPANY_CODES"
    name = "Company Codes"
    module = "FI"
    expected_tables = (
        ExpectedTable("T001", "Company codes", critical=True),
        ExpectedTable("T003", "Document types", critical=True, fields=("BLART", "NUMKR", "XNETB")),
        ExpectedTable("T004", "Charts of accounts", critical=True, fields=("KTOPL", "DSPRA", "XSPEA")),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        company_codes = tables.get("T001", [])
        currencies = _distinct(company_codes, "WAERS")
        payload["companyCodes"] = _distinct(company_codes, "BUKRS")
        payload["currencies"] = currencies
        payload["chartsOfAccounts"] = _distinct(company_codes, "KTOPL")
        if len(currencies) > 1:
            self._flag_for_validation(
                f"Company codes use {len(currencies)} local currencies ({', '.join(currencies)}); "
                "confirm the currency translation approach"
            )
        return payload


class GlAccountExtractor(BaseExtractor):
    extractor_id = "FI_GL_ACCOUNTS"
    name = "G/L Accounts"
    module = "FI"
    category = "masterdata"
    expected_tables = (
        ExpectedTable("SKA1", "G/L accounts (chart of accounts)", critical=True, fields=("KTOPL", "SAKNR", "KTOKS", "XBILK")),
        ExpectedTable("SKB1", "G/L accounts (company code)", critical=True, fields=("BUKRS", "SAKNR", "WAERS", "MITKZ")),
        ExpectedTable("SKAT", "G/L account texts", fields=("SPRAS", "KTOPL", "SAKNR", "TXT50")),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        accounts = tables.get("SKA1", [])
        payload["accountCount"] = len(accounts)
        payload["count"] = len(accounts)
        payload["byAccountGroup"] = dict(Counter(str(a.get("KTOKS", "")) for a in accounts))
        return payload


class FiTransactionExtractor(BaseExtractor):
    extractor_id = "FI_TRANSACTIONS"
    name = "FI Documents"
    module = "FI"
    category = "transactional"
    expected_tables = (
        ExpectedTable("BKPF", "Accounting document headers", critical=True,
                      fields=("BUKRS", "BELNR", "GJAHR", "BLART", "BUDAT", "WAERS"), max_rows=10000),
        ExpectedTable("BSEG", "Accounting document items", critical=True,
                      fields=("BUKRS", "BELNR", "GJAHR", "BUZEI", "HKONT", "SHKZG", "DMBTR"), max_rows=10000),
        ExpectedTable("FAGLFLEXT", "New G/L totals", fields=("RLDNR", "RBUKRS", "RYEAR", "RACCT", "HSLVT")),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        headers = tables.get("BKPF", [])
        payload["count"] = len(headers)
        payload["documentTypes"] = dict(Counter(str(h.get("BLART", "")) for h in headers))
        if len(headers) >= 10000:
            self._flag_for_validation("BKPF read hit the 10000 row cap; document volume is a lower bound")
        return payload


class CostCenterExtractor(BaseExtractor):
    extractor_id = "CO_COST_CENTERS"
    name = "Cost Centers"
    module = "CO"
    category = "masterdata"
    expected_tables = (
        ExpectedTable("CSKS", "Cost centers", critical=True, fields=("KOKRS", "KOSTL", "DATBI", "BUKRS", "PRCTR")),
        ExpectedTable("CSKT", "Cost center texts", fields=("SPRAS", "KOKRS", "KOSTL", "KTEXT")),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        payload["count"] = len(tables.get("CSKS", []))
        payload["controllingAreas"] = _distinct(tables.get("CSKS", []), "KOKRS")
        return payload


class ProfitCenterExtractor(BaseExtractor):
    extractor_id = "CO_PROFIT_CENTERS"
    name = "Profit Centers"
    module = "CO"
    category = "masterdata"
    expected_tables = (
        ExpectedTable("CEPC", "Profit centers", critical=True, fields=("PRCTR", "DATBI", "KOKRS", "SEGMENT")),
        ExpectedTable("CEPCT", "Profit center texts", fields=("SPRAS", "PRCTR", "KTEXT")),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        payload["count"] = len(tables.get("CEPC", []))
        return payload


class InternalOrderExtractor(BaseExtractor):
    extractor_id = "CO_INTERNAL_ORDERS"
    name = "Internal Orders"
    module = "CO"
    category = "transactional"
    expected_tables = (
        ExpectedTable("AUFK", "Order master", critical=True, fields=("AUFNR", "AUART", "AUTYP", "KOKRS", "OBJNR"), max_rows=10000),
        ExpectedTable("T003O", "Order types", fields=("AUART", "AUTYP")),
    )


SAP_FINANCE_EXTRACTORS = [
    CompanyCodeExtractor,
    GlAccountExtractor,
    FiTransactionExtractor,
    CostCenterExtractor,
    ProfitCenterExtractor,
    InternalOrderExtractor,
]
