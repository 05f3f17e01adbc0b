"""Infor LN finance (tfgld) fields to SAP FI document fields."""

from typing import Any

from core.mapping import MappingRule, RuleSet


def ledger_account(value: Any) -> str:
    """LN ledger account to a 10-digit SAP G/L account."""
    if value is None or value == "":
        return ""
    return (str(value).strip().lstrip("0") or "0").zfill(10)


def posting_period(value: Any) -> str:
    """LN fiscal period to SAP posting period; special periods 13-16 get three digits."""
    try:
        period = int(value)
    except (TypeError, ValueError):
        return "00"
    if period < 1:
        return "00"
    return str(period).zfill(3 if period > 12 else 2)


def company_code(value: Any) -> str:
    """LN financial company number to a 4-character company code."""
    if value is None or value == "":
        return ""
    return str(value).strip().zfill(4)


DOCUMENT_TYPES = {
    "NOR": "SA",  # normal journal
    "REV": "AB",  # reversal
    "PRV": "SA",  # provisional
    "RCR": "AB",  # recurring
    "STA": "SA",  # statistical
    "ADJ": "SA",
    "ALO": "ML",  # allocation
    "CLO": "SA",
    "OPN": "SA",
    "CUR": "SA",  # currency revaluation
}

DEBIT_CREDIT = {"D": "S", "C": "H", "1": "S", "2": "H"}

TAX_CODES = {
    "V0": "V0", "V1": "A1", "V2": "A2",
    "P0": "V0", "P1": "V1",
    "EU1": "A1", "EU2": "A2", "SG1": "A1",
}

# "" = posted, V = parked, S = marked for reversal
DOCUMENT_STATUS = {"FNL": "", "PRV": "V", "NEW": "V", "APP": "", "PAD": "", "OPN": "", "REJ": "S"}

JOURNAL_GROUPS = {
    "AP": "Accounts Payable",
    "AR": "Accounts Receivable",
    "GL": "General Ledger",
    "FA": "Fixed Assets",
    "BK": "Bank Accounting",
    "CM": "Cash Management",
}


LN_FI_RULES = RuleSet(
    rule_set_id="LN_FI_RULES",
    name="Infor LN Financial Transformation Rules",
    source_system="INFOR_LN",
    description="LN general ledger transactions to SAP FI documents",
    rules=[
        MappingRule(source="t$leac", target="SAKNR", transform=ledger_account,
                    description="Ledger account, re-padded to 10 digits"),
        MappingRule(source="t$desc", target="TXT50", convert="trim", description="Account description"),
        MappingRule(source="t$ccur", target="WAERS", convert="toUpperCase", description="Transaction currency"),
        MappingRule(source="t$rptc", target="KWAER", convert="toUpperCase", description="Reporting currency"),
        MappingRule(source="t$perd", target="MONAT", transform=posting_period, description="Posting period"),
        MappingRule(source="t$year", target="GJAHR", convert="toInteger", description="Fiscal year"),
        MappingRule(source="t$dctp", target="BLART", value_map=DOCUMENT_TYPES, default="SA",
                    description="Document type"),
        MappingRule(source="t$dbcr", target="SHKZG", value_map=DEBIT_CREDIT, default="S",
                    description="Debit/credit indicator"),
        MappingRule(source="t$txcd", target="MWSKZ", value_map=TAX_CODES, default="V0", description="Tax code"),
        MappingRule(source="t$stat", target="BSTAT", value_map=DOCUMENT_STATUS, default="",
                    description="Document status"),
        MappingRule(source="t$jgrp", target="BKTXT", value_map=JOURNAL_GROUPS, default="General Ledger",
                    description="Journal group as header text"),
        MappingRule(source="t$amnt", target="WRBTR", convert="toDecimal", description="Transaction amount"),
        MappingRule(source="t$amtl", target="DMBTR", convert="toDecimal", description="Local currency amount"),
        MappingRule(source="t$dcdt", target="BUDAT", convert="toDate", description="Posting date"),
        MappingRule(source="t$idat", target="BLDAT", convert="toDate", description="Document date"),
        MappingRule(source="t$cpnb", target="BUKRS", transform=company_code, description="Company code"),
        MappingRule(source="t$dim1", target="KOSTL", convert="trim", description="Dimension 1 as cost center"),
        MappingRule(source="t$dim2", target="PRCTR", convert="trim", description="Dimension 2 as profit center"),
        MappingRule(source="t$dcnm", target="XBLNR", convert="trim", description="Reference document number"),
        MappingRule(target="SourceSystem", default="INFOR_LN"),
    ],
)
