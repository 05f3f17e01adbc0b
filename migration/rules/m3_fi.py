"""Infor M3 finance (FCHACC, FGLEDG) fields to SAP FI fields."""

from core.mapping import MappingRule, RuleSet
from migration.rules.common import numeric_account, period_month, period_year, zero_pad

VOUCHER_SERIES = {
    "AA": "SA", "AB": "AB",
    "AP": "KR", "AR": "DR",
    "CA": "SA", "FA": "AA",
    "PR": "WE", "RV": "SA", "TX": "SA",
}

DEBIT_CREDIT = {"D": "S", "C": "H", "1": "S", "2": "H"}

M3_FI_RULES = RuleSet(
    rule_set_id="M3_FI_RULES",
    name="Infor M3 Financial Transformation Rules",
    source_system="INFOR_M3",
    description="M3 chart of accounts and general ledger vouchers to SAP FI",
    rules=[
        MappingRule(source="AITM", target="SAKNR", transform=numeric_account, description="Accounting dimension 1"),
        MappingRule(source="AIT1", target="TXT20", convert="trim", description="Short text"),
        MappingRule(source="AIT2", target="TXT50", convert="trim", description="Long text"),
        MappingRule(source="CUCD", target="WAERS", convert="toUpperCase", description="Transaction currency"),
        MappingRule(source="LOCD", target="HWAER", convert="toUpperCase", description="Local currency"),
        MappingRule(source="ACYP", target="MONAT", transform=period_month, description="Period of YYYYMM"),
        MappingRule(source="ACYP", target="GJAHR", transform=period_year, description="Year of YYYYMM"),
        MappingRule(source="VSER", target="BLART", value_map=VOUCHER_SERIES, default="SA",
                    description="Voucher series as document type"),
        MappingRule(source="DBCR", target="SHKZG", value_map=DEBIT_CREDIT, default="S",
                    description="Debit/credit indicator"),
        MappingRule(source="ACAM", target="WRBTR", convert="toDecimal", description="Transaction amount"),
        MappingRule(source="ACAL", target="DMBTR", convert="toDecimal", description="Local amount"),
        MappingRule(source="DIVI", target="BUKRS", transform=zero_pad(4), description="Division as company code"),
        MappingRule(source="AIT7", target="KOSTL", transform=zero_pad(10), description="Cost center dimension"),
        MappingRule(source="AIT6", target="PRCTR", convert="trim", description="Profit center dimension"),
        MappingRule(source="VONO", target="BELNR", transform=zero_pad(10), description="Voucher number"),
        MappingRule(source="ACDT", target="BUDAT", convert="toDate", description="Accounting date"),
        MappingRule(source="IVDT", target="BLDAT", convert="toDate", description="Invoice date"),
        MappingRule(source="VTCD", target="MWSKZ", convert="toUpperCase", description="VAT code"),
        MappingRule(source="VTXT", target="SGTXT", convert="trim", description="Voucher text"),
        MappingRule(target="SourceSystem", default="INFOR_M3"),
    ],
)
