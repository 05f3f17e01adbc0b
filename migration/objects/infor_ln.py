"""Infor LN sourced migration objects."""

from typing import Any, Dict, List, Optional, Sequence

from core.mapping import MappingRule
from core.models.refs import ReconciliationReport
from migration.objects.base import BaseMigrationObject, MigrationContext
from migration.rules import LN_FI_RULES, LN_MM_RULES

# (document, date, company, currency, type, text, [(ledger account, amount, D/C, cost center)])
LN_JOURNALS = (
    ("5000001", "20240115", "100", "USD", "NOR", "Material purchase", [
        ("140000", "5000.00", "D", ""), ("220000", "450.00", "D", ""), ("200000", "5450.00", "C", ""),
    ]),
    ("5000002", "20240120", "100", "USD", "NOR", "Customer invoice", [
        ("113100", "12000.00", "D", ""), ("400000", "10909.09", "C", "CC01"), ("220000", "1090.91", "C", ""),
    ]),
    ("5000003", "20240201", "100", "USD", "NOR", "Payroll posting", [
        ("600000", "45000.00", "D", "CC03"), ("210000", "15000.00", "C", ""), ("110000", "30000.00", "C", ""),
    ]),
    ("5000004", "20240215", "100", "USD", "ADJ", "Depreciation run Jan", [
        ("700000", "8500.00", "D", "CC05"), ("154000", "8500.00", "C", ""),
    ]),
    ("5000005", "20240601", "200", "USD", "REV", "Reversal of accrual", [
        ("210000", "2200.00", "D", ""), ("610000", "2200.00", "C", "CC02"),
    ]),
)


class InforLNGLJournalObject(BaseMigrationObject):
    """LN general ledger journals (tfgld101) to SAP accounting documents."""

    object_id = "INFOR_LN_GL_JOURNAL"
    name = "LN GL Journal to SAP Accounting Document"
    source_system = "INFOR_LN"
    source_table = "tfgld101"
    key_fields = ("BKPF-BELNR", "BKPF-GJAHR", "BKPF-BUKRS", "ACDOCA-BUZEI")
    aggregate_fields = ("ACDOCA-HSL",)

    def get_field_mappings(self) -> List[MappingRule]:
        return [
            MappingRule(source="docn", target="BKPF-BELNR", convert="padLeft10"),
            MappingRule(source="year", target="BKPF-GJAHR", convert="toInteger"),
            MappingRule(source="docd", target="BKPF-BLDAT", convert="toDate"),
            MappingRule(source="pstd", target="BKPF-BUDAT", convert="toDate"),
            MappingRule(source="fcmp", target="BKPF-BUKRS", transform=lambda v: str(v or "").zfill(4)),
            MappingRule(source="curr", target="BKPF-WAERS", convert="toUpperCase"),
            MappingRule(source="dcty", target="BKPF-BLART",
                        value_map={"NOR": "SA", "REV": "AB", "ADJ": "SB", "CLO": "CL", "MEM": "SA"}, default="SA"),
            MappingRule(source="desc", target="BKPF-BKTXT", convert="trim"),
            MappingRule(source="lnum", target="ACDOCA-BUZEI", transform=lambda v: str(v or "").zfill(3)),
            MappingRule(source="fled", target="ACDOCA-HKONT", convert="padLeft10"),
            MappingRule(source="amount", target="ACDOCA-HSL", convert="toDecimal"),
            MappingRule(source="dbcr", target="ACDOCA-SHKZG", value_map={"D": "S", "C": "H", "1": "S", "2": "H"},
                        default="S"),
            MappingRule(source="cctr", target="ACDOCA-KOSTL", convert="trim"),
        ] + self.metadata_rules()

    def get_quality_checks(self) -> Dict[str, Any]:
        checks = super().get_quality_checks()
        checks["required"] = list(self.key_fields) + ["ACDOCA-HKONT"]
        return checks

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        records = []
        for docn, date, company, currency, doc_type, text, lines in LN_JOURNALS:
            for lnum, (account, amount, dbcr, cost_center) in enumerate(lines, start=1):
                records.append({
                    "docn": docn, "year": date[:4], "docd": date, "pstd": date, "fcmp": company,
                    "curr": currency, "dcty": doc_type, "desc": text, "lnum": str(lnum),
                    "fled": account, "amount": amount, "dbcr": dbcr, "cctr": cost_center,
                })
        return records


class InforLNFIDocumentObject(BaseMigrationObject):
    """LN finance transactions (tfgld106) to SAP FI documents via the LN_FI_RULES set."""

    object_id = "INFOR_LN_FI_DOCUMENT"
    name = "LN Finance Transaction to SAP FI Document"
    source_system = "INFOR_LN"
    source_table = "tfgld106"
    key_fields = ("BUKRS", "GJAHR", "BELNR", "BUZEI")
    aggregate_fields = ("WRBTR",)

    def get_field_mappings(self) -> List[MappingRule]:
        return list(LN_FI_RULES.rules) + [
            MappingRule(source="t$odoc", target="BELNR", convert="padLeft10"),
            MappingRule(source="t$lino", target="BUZEI", transform=lambda v: str(v or "").zfill(3)),
            MappingRule(target="MigrationObjectId", default=self.object_id),
        ]

    def get_quality_checks(self) -> Dict[str, Any]:
        checks = super().get_quality_checks()
        checks["required"] = list(self.key_fields) + ["SAKNR", "WAERS"]
        checks["referential"] = [{"field": "SHKZG", "valid": {"S", "H"}}]
        return checks

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        records = []
        for docn, date, company, currency, doc_type, text, lines in LN_JOURNALS:
            for lino, (account, amount, dbcr, cost_center) in enumerate(lines, start=1):
                records.append({
                    "t$odoc": docn, "t$lino": lino, "t$leac": account.zfill(8), "t$desc": text,
                    "t$ccur": currency.lower(), "t$perd": int(date[4:6]), "t$year": int(date[:4]),
                    "t$dctp": doc_type, "t$dbcr": dbcr, "t$amnt": float(amount), "t$dcdt": date,
                    "t$cpnb": int(company), "t$dim1": cost_center, "t$stat": "FNL", "t$jgrp": "GL",
                })
        return records


# (partner, name, type, group, language, street, postcode, city, region, country, phone, email, currency)
LN_PARTNERS = (
    ("100001", "Acme Corporation", "C", "CUST", "en", "100 Industrial Pkwy", "60601", "Chicago", "IL", "us",
     "+1 312 555 0100", "ar@acme.example", "USD"),
    ("100002", "Northwind Traders", "C", "CUST", "en", "12 Harbor Rd", "98101", "Seattle", "WA", "us",
     "+1 206 555 0142", "orders@northwind.example", "USD"),
    ("100003", "Brightline Retail", "C", "CUST", "en", "455 Market St", "94105", "San Francisco", "CA", "us",
     "+1 415 555 0177", "", "USD"),
    ("100004", "Maple Leaf Foods", "C", "CUST", "en", "88 King St W", "M5H 1A1", "Toronto", "ON", "ca",
     "+1 416 555 0190", "", "CAD"),
    ("100005", "Rheinland Handel GmbH", "C", "CUST", "de", "Koenigsallee 20", "40212", "Duesseldorf", "", "de",
     "+49 211 555 010", "", "EUR"),
    ("100006", "Sunrise Hospitality", "C", "CUST", "en", "2 Ocean Dr", "33139", "Miami", "FL", "us",
     "+1 305 555 0111", "", "USD"),
    ("200001", "Steel Dynamics Supply", "V", "VEND", "en", "9 Foundry Ln", "46802", "Fort Wayne", "IN", "us",
     "+1 260 555 0133", "ap@steeldyn.example", "USD"),
    ("200002", "Global Distribution Inc", "V", "VEND", "en", "700 Harbor Blvd", "90021", "Los Angeles", "CA", "us",
     "+1 213 555 0155", "", "USD"),
    ("200003", "Precision Parts Ltd", "V", "VEND", "en", "14 Mill Rd", "B1 1AA", "Birmingham", "", "gb",
     "+44 121 555 0120", "", "GBP"),
    ("200004", "Pacific Packaging", "V", "VEND", "en", "31 Dock St", "97201", "Portland", "OR", "us",
     "+1 503 555 0188", "", "USD"),
    # same organisations as 100001 and 200002 in their other role
    ("300001", "ACME CORPORATION", "V", "VEND", "en", "", "", "Chicago", "IL", "us",
     "", "ap@acme.example", "USD"),
    ("300002", "Global Distribution Inc", "C", "CUST", "en", "", "", "LOS ANGELES", "CA", "us",
     "+1 213 555 0156", "sales@globaldist.example", "USD"),
)

PARTNER_ROLES = {"C": ["FLCU01"], "V": ["FLVN01"], "CV": ["FLCU01", "FLVN01"]}


def partner_roles(value: Any) -> List[str]:
    return list(PARTNER_ROLES.get(str(value or "").strip().upper(), []))


def merge_partners(records: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Merge partners sharing a name and city into one record per organisation.

    The first record wins; later ones only fill its empty fields and add
    their roles.
    """
    merged: Dict[str, Dict[str, Any]] = {}
    for record in records:
        key = "|".join(
            str(record.get(f) or "").strip().upper() for f in ("BUT000-NAME_ORG1", "ADRC-CITY1")
        )
        kept = merged.get(key)
        if kept is None:
            merged[key] = dict(record, **{"BP_ROLES": list(record.get("BP_ROLES") or [])})
            continue
        for name, value in record.items():
            if name == "BP_ROLES":
                kept[name].extend(r for r in value or [] if r not in kept[name])
            elif kept.get(name) in (None, "") and value not in (None, ""):
                kept[name] = value
        kept.setdefault("MergedPartners", []).append(record.get("BUT000-PARTNER"))
    return list(merged.values())


class InforLNBusinessPartnerObject(BaseMigrationObject):
    """LN business partners (tccom100) to SAP business partners.

    LN keeps a customer and a supplier of the same organisation as separate
    partners; these are merged into one partner carrying both roles.
    """

    object_id = "INFOR_LN_BUSINESS_PARTNER"
    name = "LN Business Partner to SAP Business Partner"
    source_system = "INFOR_LN"
    source_table = "tccom100"
    key_fields = ("BUT000-PARTNER",)

    def __init__(self):
        super().__init__()
        self.merged_count = 0

    def get_field_mappings(self) -> List[MappingRule]:
        return [
            MappingRule(source="bpid", target="BUT000-PARTNER", convert="padLeft10"),
            MappingRule(source="nama", target="BUT000-NAME_ORG1", convert="trim"),
            MappingRule(source="nama2", target="BUT000-NAME_ORG2", convert="trim"),
            MappingRule(source="bptype", target="BUT000-BU_TYPE", value_map={"C": "2", "V": "2", "CV": "2", "P": "1"},
                        default="2"),
            MappingRule(source="bprl", target="BUT000-BU_GROUP", convert="toUpperCase"),
            MappingRule(source="lnge", target="BUT000-BU_LANGU", convert="toUpperCase"),
            MappingRule(source="namc", target="ADRC-STREET", convert="trim"),
            MappingRule(source="pstc", target="ADRC-POST_CODE1", convert="trim"),
            MappingRule(source="ccit", target="ADRC-CITY1", convert="trim"),
            MappingRule(source="cste", target="ADRC-REGION", convert="toUpperCase"),
            MappingRule(source="ccty", target="ADRC-COUNTRY", convert="toUpperCase"),
            MappingRule(source="telp", target="ADRC-TEL_NUMBER", convert="trim"),
            MappingRule(source="telx", target="ADRC-FAX_NUMBER", convert="trim"),
            MappingRule(source="info", target="ADRC-SMTP_ADDR", convert="toLowerCase"),
            MappingRule(source="bank", target="BUT0BK-BANKL", convert="trim"),
            MappingRule(source="bano", target="BUT0BK-BANKN", convert="trim"),
            MappingRule(source="iban", target="BUT0BK-IBAN", convert="toUpperCase"),
            MappingRule(source="bic", target="BUT0BK-SWIFT", convert="toUpperCase"),
            MappingRule(source="cprj", target="KNVV-VKORG", convert="trim"),
            MappingRule(source="cdis", target="KNVV-VTWEG", convert="trim", default="10"),
            MappingRule(source="cpay", target="KNVV-ZTERM", convert="toUpperCase"),
            MappingRule(source="ccur", target="KNVV-WAERS", convert="toUpperCase"),
            MappingRule(source="bptype", target="BP_ROLES", transform=partner_roles),
        ] + self.metadata_rules()

    def get_quality_checks(self) -> Dict[str, Any]:
        checks = super().get_quality_checks()
        checks["required"] = ["BUT000-PARTNER", "BUT000-NAME_ORG1", "ADRC-COUNTRY"]
        return checks

    def transform(self, records: Sequence[Dict[str, Any]], ctx: Optional[MigrationContext] = None) -> List[Dict[str, Any]]:
        mapped = super().transform(records, ctx)
        merged = merge_partners(mapped)
        self.merged_count = len(mapped) - len(merged)
        if self.merged_count:
            self.logger.info(f"Merged {self.merged_count} partner(s) into existing organisations")
        return merged

    def reconcile(
        self,
        ctx: MigrationContext,
        extracted: int,
        source_records: List[Dict[str, Any]],
        target_records: List[Dict[str, Any]],
        rejected: int,
    ) -> ReconciliationReport:
        # merged partners are accounted for by the record they were folded into
        return super().reconcile(ctx, extracted - self.merged_count, source_records, target_records, rejected)

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        records = []
        for (partner, name, bp_type, group, language, street, postcode, city, region, country,
             phone, email, currency) in LN_PARTNERS:
            record = {
                "bpid": partner, "nama": name, "bptype": bp_type, "bprl": group, "lnge": language,
                "namc": street, "pstc": postcode, "ccit": city, "cste": region, "ccty": country,
                "telp": phone, "info": email, "ccur": currency,
            }
            if bp_type == "C":
                record.update({"cprj": "1000", "cdis": "", "cpay": "N30"})
            records.append(record)
        return records


# (item, description, type, unit, signal, group, gross kg, net kg, standard cost, warehouse, safety, reorder, lead days)
LN_ITEMS = (
    ("RM-10001", "Steel plate 5mm", "1", "kg", "STL", "RAW", "1.000", "1.000", "2.15", "wh01", "500", "800", "10"),
    ("RM-10002", "Aluminium rod 12mm", "1", "kg", "ALU", "RAW", "1.000", "1.000", "4.80", "wh01", "200", "350", "14"),
    ("RM-10003", "Copper wire 2.5mm", "1", "m", "CU", "RAW", "0.022", "0.022", "0.65", "wh01", "1000", "1500", "7"),
    ("RM-10004", "Hex bolt M8x40", "1", "pcs", "FST", "RAW", "0.021", "0.020", "0.09", "wh01", "5000", "8000", "5"),
    ("RM-10005", "Hydraulic oil ISO 46", "1", "l", "OIL", "RAW", "0.880", "0.870", "3.40", "wh01", "100", "200", "12"),
    ("SF-20001", "Machined pump housing", "2", "pcs", "HSG", "SEMI", "4.200", "4.100", "38.00", "wh02", "20", "40", "3"),
    ("SF-20002", "Wound motor stator", "2", "pcs", "MTR", "SEMI", "2.600", "2.500", "55.50", "wh02", "15", "30", "4"),
    ("SF-20003", "Welded base frame", "2", "pcs", "FRM", "SEMI", "12.500", "12.300", "71.25", "wh02", "10", "20", "5"),
    ("FG-30001", "Centrifugal pump CP-100", "3", "pcs", "PMP", "FIN", "18.400", "17.900", "412.00", "wh03",
     "5", "10", "8"),
    ("FG-30002", "Centrifugal pump CP-200", "3", "pcs", "PMP", "FIN", "24.100", "23.500", "575.00", "wh03",
     "5", "10", "8"),
    ("FG-30003", "Booster set BS-50", "3", "set", "BST", "FIN", "41.000", "39.800", "1290.00", "wh03", "2", "4", "12"),
    ("FG-30004", "Control panel CP-X", "3", "pcs", "CTL", "FIN", "6.300", "6.000", "348.40", "wh03", "3", "6", "10"),
    ("NS-60001", "Shop floor cleaning", "6", "hr", "SRV", "NONSTK", "0", "0", "45.00", "wh01", "0", "0", "0"),
    ("NS-60002", "Safety gloves", "6", "box", "PPE", "NONSTK", "0.400", "0.380", "12.90", "wh01", "0", "0", "2"),
    ("NS-60003", "Calibration service", "6", "hr", "SRV", "NONSTK", "0", "0", "95.00", "wh01", "0", "0", "0"),
)


class InforLNItemMasterObject(BaseMigrationObject):
    """LN items (tcibd001) to SAP material master via the LN_MM_RULES set."""

    object_id = "INFOR_LN_ITEM_MASTER"
    name = "LN Item to SAP Material Master"
    source_system = "INFOR_LN"
    source_table = "tcibd001"
    key_fields = ("MATNR", "WERKS")

    def get_field_mappings(self) -> List[MappingRule]:
        return list(LN_MM_RULES.rules) + [
            MappingRule(target="MBRSH", default="M"),
            MappingRule(source="dscb", target="NORMT", convert="trim"),
            MappingRule(target="MigrationObjectId", default=self.object_id),
        ]

    def get_quality_checks(self) -> Dict[str, Any]:
        checks = super().get_quality_checks()
        checks["required"] = ["MATNR", "MAKTX", "MEINS", "MTART"]
        checks["referential"] = [{"field": "MTART", "valid": {"ROH", "HALB", "FERT", "HAWA", "DIEN", "NLAG"}}]
        return checks

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        records = []
        for (item, text, kind, unit, signal, group, gross, net, cost, warehouse,
             safety, reorder, lead) in LN_ITEMS:
            records.append({
                "item": item, "dsca": text, "kitm": kind, "cuni": unit, "csig": signal, "citg": group,
                "wght": gross, "ntwt": net, "stwi": cost, "cwar": warehouse, "lwar": "",
                "t$pgrp": "p01", "cmnf": "m10", "t$plng": "1", "sfty": safety, "reop": reorder,
                "pldt": lead, "erpn": "",
            })
        return records


# (ledger account, description, BS/PL, account group, open item managed, reconciliation type)
LN_GL_ACCOUNTS = (
    ("110000", "Cash at bank", "BS", "BANK", "N", ""),
    ("113100", "Trade receivables", "BS", "RECV", "Y", "D"),
    ("140000", "Raw material inventory", "BS", "INVT", "N", ""),
    ("154000", "Accumulated depreciation", "BS", "ASST", "N", "A"),
    ("160000", "Machinery and equipment", "BS", "ASST", "N", "A"),
    ("200000", "Trade payables", "BS", "PAYB", "Y", "K"),
    ("210000", "Accrued liabilities", "BS", "PAYB", "Y", ""),
    ("220000", "Input VAT", "BS", "TAXS", "N", ""),
    ("230000", "Output VAT", "BS", "TAXS", "N", ""),
    ("300000", "Share capital", "BS", "EQTY", "N", ""),
    ("310000", "Retained earnings", "BS", "EQTY", "N", ""),
    ("400000", "Product revenue", "PL", "REVN", "N", ""),
    ("410000", "Service revenue", "PL", "REVN", "N", ""),
    ("500000", "Cost of goods sold", "PL", "COGS", "N", ""),
    ("600000", "Salaries and wages", "PL", "OPEX", "N", ""),
    ("610000", "Accrued expenses", "PL", "OPEX", "N", ""),
    ("620000", "Rent", "PL", "OPEX", "N", ""),
    ("650000", "Travel", "PL", "OPEX", "N", ""),
    ("700000", "Depreciation expense", "PL", "OPEX", "N", ""),
    ("800000", "Interest expense", "PL", "FINX", "N", ""),
)


class InforLNGLAccountObject(BaseMigrationObject):
    """LN ledger accounts (tfgld008/tfgld010) to SAP G/L accounts per company code."""

    object_id = "INFOR_LN_GL_ACCOUNT"
    name = "LN Ledger Account to SAP G/L Account"
    source_system = "INFOR_LN"
    source_table = "tfgld010"
    key_fields = ("SKA1-SAKNR", "SKB1-BUKRS")

    def get_field_mappings(self) -> List[MappingRule]:
        return [
            MappingRule(source="leac", target="SKA1-SAKNR", convert="padLeft10"),
            MappingRule(source="type", target="SKA1-XBILK", value_map={"BS": "X", "PL": ""}, default=""),
            MappingRule(source="type", target="SKA1-GVTYP", value_map={"PL": "P"}, default=""),
            MappingRule(source="acgr", target="SKA1-KTOKS", convert="toUpperCase"),
            MappingRule(source="coa", target="SKA1-KTOPL", convert="toUpperCase", default="INLN"),
            MappingRule(source="desc", target="SKAT-TXT50", convert="trim"),
            MappingRule(source="desc", target="SKAT-TXT20", transform=lambda v: str(v or "").strip()[:20]),
            MappingRule(target="SKAT-SPRAS", default="E"),
            MappingRule(source="cpnb", target="SKB1-BUKRS", transform=lambda v: str(v or "").strip().zfill(4)),
            MappingRule(source="ccur", target="SKB1-WAERS", convert="toUpperCase"),
            MappingRule(source="txcd", target="SKB1-MWSKZ", convert="toUpperCase"),
            MappingRule(source="opim", target="SKB1-XOPVW", value_map={"Y": "X", "N": ""}, default=""),
            MappingRule(target="SKB1-XKRES", default="X"),
            MappingRule(source="reco", target="SKB1-MITKZ", convert="toUpperCase"),
        ] + self.metadata_rules()

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        return [
            {
                "leac": account, "desc": text, "type": kind, "acgr": group, "coa": "",
                "cpnb": company, "ccur": "USD", "txcd": "", "opim": open_items, "reco": reco,
            }
            for company in ("100", "200")
            for account, text, kind, group, open_items, reco in LN_GL_ACCOUNTS
        ]


INFOR_LN_OBJECTS = [
    InforLNBusinessPartnerObject,
    InforLNItemMasterObject,
    InforLNGLAccountObject,
    InforLNGLJournalObject,
    InforLNFIDocumentObject,
]
