"""Infor M3 sourced migration objects.

M3 tables prefix every column with a two-letter table code (``OKCUNO`` in
OCUSMA, ``IISUNO`` in CIDMAS); the mock rows below use the same names the
MI programs and the M3 database return.
"""

from typing import Any, Dict, List

from core.mapping import MappingRule
from migration.objects.base import BaseMigrationObject, MigrationContext
from migration.rules.common import numeric_account, zero_pad

# (customer, name, type, street, postcode, city, country, phone, payment terms, credit limit, currency)
M3_CUSTOMERS = (
    ("M3C00001", "Hudson Office Supply", "0", "200 Park Ave", "10166", "New York", "US", "+1 212 555 0101",
     "2", "50000", "USD"),
    ("M3C00002", "Lakeshore Foods", "1", "75 Wacker Dr", "60601", "Chicago", "US", "+1 312 555 0102",
     "2", "75000", "USD"),
    ("M3C00003", "Northern Lights Retail", "2", "1 Yonge St", "M5E 1E5", "Toronto", "CA", "+1 416 555 0103",
     "3", "40000", "CAD"),
    ("M3C00004", "Thames Engineering", "1", "30 Fleet St", "EC4Y 1AA", "London", "GB", "+44 20 5550 0104",
     "2", "60000", "GBP"),
    ("M3C00005", "Bavaria Maschinenbau", "3", "Leopoldstr 8", "80802", "Munich", "DE", "+49 89 555 0105",
     "4", "120000", "EUR"),
    ("M3C00006", "Pacific Coast Outfitters", "0", "500 Grand Ave", "90071", "Los Angeles", "US",
     "+1 213 555 0106", "1", "25000", "USD"),
    ("M3C00007", "Maison Lumiere", "2", "12 Rue de Rivoli", "75001", "Paris", "FR", "+33 1 5550 0107",
     "2", "30000", "EUR"),
    ("M3C00008", "Gulf Energy Services", "4", "800 Louisiana St", "77002", "Houston", "US", "+1 713 555 0108",
     "3", "200000", "USD"),
    ("M3C00009", "Harbour Bridge Traders", "1", "10 George St", "2000", "Sydney", "AU", "+61 2 5550 0109",
     "2", "45000", "AUD"),
    ("M3C00010", "Sakura Electronics", "3", "1-1 Marunouchi", "100-0005", "Tokyo", "JP", "+81 3 5550 0110",
     "0", "90000", "JPY"),
)

# (supplier, name, type, city, country, currency, bank account, swift, iban, evaluated receipt)
M3_SUPPLIERS = (
    ("M3V00001", "Atlas Steel Works", "0", "Pittsburgh", "US", "USD", "4410021987", "PNCCUS33", "", "Y"),
    ("M3V00002", "Keystone Fasteners", "1", "Cleveland", "US", "USD", "2200458812", "KEYBUS33", "", "N"),
    ("M3V00003", "Nordic Polymer AB", "1", "Gothenburg", "SE", "SEK", "", "HANDSESS", "SE4550000000058398257466",
     "Y"),
    ("M3V00004", "Rhein Chemie GmbH", "0", "Cologne", "DE", "EUR", "", "COLSDE33", "DE89370400440532013000",
     "N"),
    ("M3V00005", "Midland Logistics", "2", "Leicester", "GB", "GBP", "", "BARCGB22", "GB29NWBK60161331926819",
     "N"),
    ("M3V00006", "Sierra Packaging", "1", "Reno", "US", "USD", "7788120034", "WFBIUS6S", "", "Y"),
    ("M3V00007", "Precision Tooling SA", "0", "Lyon", "FR", "EUR", "", "BNPAFRPP", "FR1420041010050500013M02606",
     "N"),
    ("M3V00008", "Quality Audit Partners", "2", "Boston", "US", "USD", "3300991276", "FRNAUS44", "", "N"),
)

# (item, name, type, unit, group, procurement, reorder point, lead days, supplier, purchase price)
M3_ITEMS = (
    ("M3ITM0001", "Cold rolled coil", "1", "KG", "RAW", "1", "2000", "21", "M3V00001", "0.95"),
    ("M3ITM0002", "Stainless bar 316", "1", "KG", "RAW", "1", "800", "28", "M3V00001", "4.10"),
    ("M3ITM0003", "Socket screw M6", "1", "PCS", "FAST", "1", "10000", "7", "M3V00002", "0.04"),
    ("M3ITM0004", "PE granulate", "1", "KG", "POLY", "1", "1500", "30", "M3V00003", "1.65"),
    ("M3ITM0005", "Solvent blend", "1", "L", "CHEM", "1", "400", "14", "M3V00004", "2.80"),
    ("M3ITM0006", "Shipping carton L", "4", "PCS", "PACK", "1", "3000", "5", "M3V00006", "0.55"),
    ("M3ITM0007", "Injection moulded cap", "2", "PCS", "SEMI", "2", "5000", "3", "", "0"),
    ("M3ITM0008", "Machined flange", "2", "PCS", "SEMI", "2", "300", "4", "", "0"),
    ("M3ITM0009", "Valve body casting", "2", "PCS", "SEMI", "2", "150", "6", "", "0"),
    ("M3ITM0010", "Ball valve DN50", "3", "PCS", "VALV", "2", "60", "10", "", "0"),
    ("M3ITM0011", "Ball valve DN80", "3", "PCS", "VALV", "2", "40", "10", "", "0"),
    ("M3ITM0012", "Actuated valve kit", "3", "SET", "VALV", "2", "20", "15", "", "0"),
    ("M3ITM0013", "Gasket set", "4", "SET", "SPAR", "1", "200", "9", "M3V00007", "6.20"),
    ("M3ITM0014", "Repair manual", "4", "PCS", "DOCS", "1", "50", "5", "M3V00008", "12.00"),
    ("M3ITM0015", "Pressure gauge", "4", "PCS", "INST", "1", "80", "12", "M3V00007", "18.75"),
)

FACILITIES = ("F01", "F02", "F03")
WAREHOUSES = ("WH01", "WH02")

# (account, description, 1 = balance sheet / 2 = profit and loss, account group)
M3_GL_ACCOUNTS = (
    ("1010", "Cash and cash equivalents", "1", "BANK"),
    ("1200", "Accounts receivable", "1", "RECV"),
    ("1400", "Inventory raw materials", "1", "INVT"),
    ("1450", "Inventory finished goods", "1", "INVT"),
    ("1600", "Property plant equipment", "1", "ASST"),
    ("2000", "Accounts payable", "1", "PAYB"),
    ("2100", "Accrued liabilities", "1", "PAYB"),
    ("2200", "VAT payable", "1", "TAXS"),
    ("3000", "Share capital", "1", "EQTY"),
    ("3100", "Retained earnings", "1", "EQTY"),
    ("4000", "Sales revenue", "2", "REVN"),
    ("4100", "Freight revenue", "2", "REVN"),
    ("5000", "Cost of sales", "2", "COGS"),
    ("5100", "Purchase price variance", "2", "COGS"),
    ("6000", "Salaries", "2", "OPEX"),
    ("6200", "Utilities", "2", "OPEX"),
    ("6800", "Depreciation", "2", "OPEX"),
    ("7000", "Bank charges", "2", "FINX"),
)

DIVISIONS = ("D1", "D2")

# (voucher, date, division, series, currency, text, [(account, amount, D/C, cost center, project)])
M3_VOUCHERS = (
    ("7000001", "20240105", "D1", "GEN", "USD", "Opening cash transfer", [
        ("1010", "25000.00", "D", "", ""), ("3100", "25000.00", "C", "", ""),
    ]),
    ("7000002", "20240112", "D1", "GEN", "USD", "Customer invoice 1001", [
        ("1200", "10800.00", "D", "", ""), ("4000", "10000.00", "C", "100", "P10"), ("2200", "800.00", "C", "", ""),
    ]),
    ("7000003", "20240118", "D1", "GEN", "USD", "Supplier invoice 5501", [
        ("1400", "6400.00", "D", "", ""), ("2000", "6400.00", "C", "", ""),
    ]),
    ("7000004", "20240131", "D1", "MAN", "USD", "January payroll", [
        ("6000", "42000.00", "D", "200", ""), ("2100", "12000.00", "C", "", ""), ("1010", "30000.00", "C", "", ""),
    ]),
    ("7000005", "20240131", "D1", "ADJ", "USD", "Depreciation January", [
        ("6800", "3500.00", "D", "300", ""), ("1600", "3500.00", "C", "", ""),
    ]),
    ("7000006", "20240205", "D1", "GEN", "USD", "Cost of sales", [
        ("5000", "7200.00", "D", "", "P10"), ("1450", "7200.00", "C", "", ""),
    ]),
    ("7000007", "20240210", "D2", "GEN", "EUR", "Customer invoice 2001", [
        ("1200", "5950.00", "D", "", ""), ("4000", "5000.00", "C", "100", ""), ("2200", "950.00", "C", "", ""),
    ]),
    ("7000008", "20240215", "D2", "GEN", "EUR", "Freight charged", [
        ("1200", "400.00", "D", "", ""), ("4100", "400.00", "C", "", ""),
    ]),
    ("7000009", "20240220", "D2", "MAN", "EUR", "Utilities February", [
        ("6200", "1850.00", "D", "400", ""), ("2000", "1850.00", "C", "", ""),
    ]),
    ("7000010", "20240229", "D2", "REV", "EUR", "Reverse utilities accrual", [
        ("2100", "600.00", "D", "", ""), ("6200", "600.00", "C", "400", ""),
    ]),
    ("7000011", "20240305", "D2", "ADJ", "EUR", "Price variance", [
        ("5100", "275.50", "D", "", ""), ("1400", "275.50", "C", "", ""),
    ]),
    ("7000012", "20240310", "D2", "GEN", "EUR", "Bank charges March", [
        ("7000", "48.20", "D", "", ""), ("1010", "48.20", "C", "", ""),
    ]),
)


class InforM3CustomerObject(BaseMigrationObject):
    """M3 customers (OCUSMA) to SAP business partners in the customer role."""

    object_id = "INFOR_M3_CUSTOMER"
    name = "M3 Customer to SAP Business Partner"
    source_system = "INFOR_M3"
    source_table = "OCUSMA"
    key_fields = ("BUT000-PARTNER",)

    def get_field_mappings(self) -> List[MappingRule]:
        return [
            MappingRule(source="OKCUNO", target="BUT000-PARTNER", convert="padLeft10"),
            MappingRule(source="OKCUNM", target="BUT000-NAME_ORG1", convert="trim"),
            MappingRule(source="OKCUTP", target="KNVV-KDGRP",
                        value_map={"0": "01", "1": "02", "2": "03", "3": "04", "4": "05"}, default="01"),
            MappingRule(source="OKSTAT", target="BUT000-XDELE", value_map={"20": "", "90": "X"}, default=""),
            MappingRule(source="OKCUA1", target="ADRC-STREET", convert="trim"),
            MappingRule(source="OKPONO", target="ADRC-POST_CODE1", convert="trim"),
            MappingRule(source="OKTOWN", target="ADRC-CITY1", convert="trim"),
            MappingRule(source="OKCSCD", target="ADRC-COUNTRY", convert="toUpperCase"),
            MappingRule(source="OKPHNO", target="ADRC-TEL_NUMBER", convert="trim"),
            MappingRule(source="OKTEPY", target="KNB1-ZTERM",
                        value_map={"0": "0001", "1": "0010", "2": "0030", "3": "0045", "4": "0060"}, default="0001"),
            MappingRule(source="OKCRL1", target="KNKK-KLIMK", convert="toDecimal"),
            MappingRule(source="OKBLCD", target="KNVV-AUFSD", value_map={"0": "", "1": "01"}, default=""),
            MappingRule(source="OKCUCD", target="KNVV-WAERS", convert="toUpperCase"),
            MappingRule(target="KNVV-VKORG", default="1000"),
            MappingRule(target="BP_ROLES", default=lambda record: ["FLCU01"]),
        ] + self.metadata_rules()

    def get_quality_checks(self) -> Dict[str, Any]:
        checks = super().get_quality_checks()
        checks["required"] = ["BUT000-PARTNER", "BUT000-NAME_ORG1", "ADRC-COUNTRY"]
        checks["range"] = [{"field": "KNKK-KLIMK", "min": 0}]
        return checks

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        return [
            {
                "OKCUNO": customer, "OKCUNM": name, "OKCUTP": kind, "OKSTAT": "20", "OKCUA1": street,
                "OKPONO": postcode, "OKTOWN": city, "OKCSCD": country, "OKPHNO": phone, "OKTEPY": terms,
                "OKCRL1": credit, "OKBLCD": "0", "OKCUCD": currency,
            }
            for (customer, name, kind, street, postcode, city, country, phone, terms, credit, currency)
            in M3_CUSTOMERS
        ]


class InforM3VendorObject(BaseMigrationObject):
    """M3 suppliers (CIDMAS, CIDVEN, CSUPAC) to SAP business partners in the supplier role."""

    object_id = "INFOR_M3_VENDOR"
    name = "M3 Supplier to SAP Business Partner"
    source_system = "INFOR_M3"
    source_table = "CIDMAS"
    key_fields = ("BUT000-PARTNER",)

    def get_field_mappings(self) -> List[MappingRule]:
        return [
            MappingRule(source="IISUNO", target="BUT000-PARTNER", convert="padLeft10"),
            MappingRule(source="IISUNM", target="BUT000-NAME_ORG1", convert="trim"),
            MappingRule(source="IISUTY", target="LFA1-KTOKK", value_map={"0": "KRED", "1": "LIEF", "2": "DLNR"},
                        default="KRED"),
            MappingRule(source="IITOWN", target="ADRC-CITY1", convert="trim"),
            MappingRule(source="IICSCD", target="ADRC-COUNTRY", convert="toUpperCase"),
            MappingRule(source="IICUCD", target="LFM1-WAERS", convert="toUpperCase"),
            MappingRule(source="IIBKAC", target="LFBK-BANKN", convert="trim"),
            MappingRule(source="IISWFT", target="LFBK-SWIFT", convert="toUpperCase"),
            MappingRule(source="IIIBAN", target="LFBK-IBAN", convert="toUpperCase"),
            MappingRule(source="IISUNM", target="LFBK-KOINH", transform=lambda v: str(v or "").strip()[:60]),
            MappingRule(source="IIABCD", target="LFM1-WEBRE", value_map={"Y": "X", "N": ""}, default=""),
            MappingRule(target="LFM1-EKORG", default="1000"),
            MappingRule(target="BP_ROLES", default=lambda record: ["FLVN01"]),
        ] + self.metadata_rules()

    def get_quality_checks(self) -> Dict[str, Any]:
        checks = super().get_quality_checks()
        checks["required"] = ["BUT000-PARTNER", "BUT000-NAME_ORG1", "ADRC-COUNTRY"]
        checks["format"] = [
            {"field": "LFBK-SWIFT", "pattern": r"^[A-Z]{6}[A-Z0-9]{2}([A-Z0-9]{3})?$", "description": "BIC"},
        ]
        return checks

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        return [
            {
                "IISUNO": supplier, "IISUNM": name, "IISUTY": kind, "IITOWN": city, "IICSCD": country,
                "IICUCD": currency, "IIBKAC": account, "IISWFT": swift, "IIIBAN": iban, "IIABCD": receipt,
            }
            for supplier, name, kind, city, country, currency, account, swift, iban, receipt in M3_SUPPLIERS
        ]


class InforM3ItemMasterObject(BaseMigrationObject):
    """M3 items (MITMAS) with facility (MITFAC), warehouse (MITBAL) and supplier (MITVEN) data."""

    object_id = "INFOR_M3_ITEM_MASTER"
    name = "M3 Item to SAP Material Master"
    source_system = "INFOR_M3"
    source_table = "MITMAS"
    key_fields = ("MARA-MATNR", "MARC-WERKS", "MARD-LGORT")

    def get_field_mappings(self) -> List[MappingRule]:
        return [
            MappingRule(source="MMITNO", target="MARA-MATNR", convert="padLeft40"),
            MappingRule(source="MMITDS", target="MAKT-MAKTX", convert="trim"),
            MappingRule(source="MMITTY", target="MARA-MTART", value_map={"1": "ROH", "2": "HALB", "3": "FERT",
                                                                         "4": "HAWA"}, default="HAWA"),
            MappingRule(source="MMUNMS", target="MARA-MEINS", convert="inforUomToISO", default="EA"),
            MappingRule(source="MMITGR", target="MARA-MATKL", convert="toUpperCase"),
            MappingRule(source="MMSTAT", target="MARA-LVORM", value_map={"20": "", "80": "", "90": "X"}, default=""),
            MappingRule(source="M9FACI", target="MARC-WERKS", convert="toUpperCase"),
            MappingRule(source="M9PUIT", target="MARC-BESKZ", value_map={"1": "F", "2": "E"}, default="F"),
            MappingRule(source="M9REOP", target="MARC-MINBE", convert="toDecimal"),
            MappingRule(source="M9LEA1", target="MARC-PLIFZ", convert="toInteger"),
            MappingRule(source="MBWHLO", target="MARD-LGORT", convert="toUpperCase", default="0001"),
            MappingRule(source="IFSUNO", target="EINA-LIFNR", convert="padLeft10"),
            MappingRule(source="IFPUPR", target="EINE-NETPR", convert="toDecimal"),
        ] + self.metadata_rules()

    def get_quality_checks(self) -> Dict[str, Any]:
        checks = super().get_quality_checks()
        checks["required"] = list(self.key_fields) + ["MAKT-MAKTX", "MARA-MEINS", "MARA-MTART"]
        return checks

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        records = []
        for index, (item, text, kind, unit, group, procurement, reorder, lead, supplier, price) in enumerate(M3_ITEMS):
            records.append({
                "MMITNO": item, "MMITDS": text, "MMITTY": kind, "MMUNMS": unit, "MMITGR": group, "MMSTAT": "20",
                "M9FACI": FACILITIES[index % len(FACILITIES)], "M9PUIT": procurement, "M9REOP": reorder,
                "M9LEA1": lead, "MBWHLO": WAREHOUSES[index % len(WAREHOUSES)],
                "IFSUNO": supplier, "IFPUPR": price,
            })
        return records


class InforM3GLAccountObject(BaseMigrationObject):
    """M3 accounting identities (FCHACC, dimension 1) to SAP G/L accounts per division."""

    object_id = "INFOR_M3_GL_ACCOUNT"
    name = "M3 Account to SAP G/L Account"
    source_system = "INFOR_M3"
    source_table = "FCHACC"
    key_fields = ("SKA1-SAKNR", "SKB1-BUKRS")

    def get_field_mappings(self) -> List[MappingRule]:
        return [
            MappingRule(source="AIAITM", target="SKA1-SAKNR", transform=numeric_account),
            MappingRule(source="AIAPTS", target="SKA1-XBILK", value_map={"1": "X", "2": ""}, default=""),
            MappingRule(source="AIAPTS", target="SKA1-GVTYP", value_map={"2": "P"}, default=""),
            MappingRule(source="AIACGR", target="SKA1-KTOKS", convert="toUpperCase"),
            MappingRule(source="AICOA", target="SKA1-KTOPL", convert="toUpperCase", default="INM3"),
            MappingRule(source="AITX40", target="SKAT-TXT50", convert="trim"),
            MappingRule(source="AITX15", target="SKAT-TXT20", convert="trim"),
            MappingRule(target="SKAT-SPRAS", default="E"),
            MappingRule(source="AIDIVI", target="SKB1-BUKRS", convert="toUpperCase"),
            MappingRule(source="AICUCD", target="SKB1-WAERS", convert="toUpperCase"),
        ] + self.metadata_rules()

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        currencies = {"D1": "USD", "D2": "EUR"}
        return [
            {
                "AIAITM": account, "AITX40": text, "AITX15": text[:15], "AIAPTS": kind, "AIACGR": group,
                "AICOA": "", "AIDIVI": division, "AICUCD": currencies[division],
            }
            for division in DIVISIONS
            for account, text, kind, group in M3_GL_ACCOUNTS
        ]


class InforM3GLJournalObject(BaseMigrationObject):
    """M3 general ledger transactions (FGLEDG) to SAP accounting document lines."""

    object_id = "INFOR_M3_GL_JOURNAL"
    name = "M3 GL Transaction to SAP Accounting Document"
    source_system = "INFOR_M3"
    source_table = "FGLEDG"
    key_fields = ("BKPF-BELNR", "BKPF-GJAHR", "BKPF-BUKRS", "ACDOCA-BUZEI")
    aggregate_fields = ("ACDOCA-HSL",)

    def get_field_mappings(self) -> List[MappingRule]:
        return [
            MappingRule(source="ESVONO", target="BKPF-BELNR", convert="padLeft10"),
            MappingRule(source="ESYEA4", target="BKPF-GJAHR", convert="toInteger"),
            MappingRule(source="ESDIVI", target="BKPF-BUKRS", convert="toUpperCase"),
            MappingRule(source="ESACDT", target="BKPF-BUDAT", convert="toDate"),
            MappingRule(source="ESVSER", target="BKPF-BLART", value_map={"GEN": "SA", "REV": "AB", "ADJ": "SB",
                                                                         "MAN": "SA"}, default="SA"),
            MappingRule(source="ESCUCD", target="BKPF-WAERS", convert="toUpperCase"),
            MappingRule(source="ESJBNO", target="ACDOCA-BUZEI", transform=zero_pad(3)),
            MappingRule(source="ESAIT1", target="ACDOCA-HKONT", transform=numeric_account),
            MappingRule(source="ESACAM", target="ACDOCA-HSL", convert="toDecimal"),
            MappingRule(source="ESCUAM", target="ACDOCA-TSL", convert="toDecimal"),
            MappingRule(source="ESDBCR", target="ACDOCA-SHKZG", value_map={"1": "S", "2": "H", "D": "S", "C": "H"},
                        default="S"),
            MappingRule(source="ESCOCE", target="ACDOCA-KOSTL", convert="padLeft10"),
            MappingRule(source="ESPROJ", target="ACDOCA-PRCTR", convert="padLeft10"),
            MappingRule(source="ESVTX2", target="ACDOCA-SGTXT", convert="trim"),
        ] + self.metadata_rules()

    def get_quality_checks(self) -> Dict[str, Any]:
        checks = super().get_quality_checks()
        checks["required"] = list(self.key_fields) + ["ACDOCA-HKONT"]
        checks["referential"] = [{"field": "ACDOCA-SHKZG", "valid": {"S", "H"}}]
        return checks

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        records = []
        for voucher, date, division, series, currency, text, lines in M3_VOUCHERS:
            for number, (account, amount, dbcr, cost_center, project) in enumerate(lines, start=1):
                records.append({
                    "ESVONO": voucher, "ESYEA4": date[:4], "ESDIVI": division, "ESACDT": date, "ESVSER": series,
                    "ESCUCD": currency, "ESJBNO": f"{number * 10:03d}", "ESAIT1": account, "ESACAM": amount,
                    "ESCUAM": amount, "ESDBCR": dbcr, "ESCOCE": cost_center, "ESPROJ": project, "ESVTX2": text,
                })
        return records


INFOR_M3_OBJECTS = [
    InforM3CustomerObject,
    InforM3VendorObject,
    InforM3ItemMasterObject,
    InforM3GLAccountObject,
    InforM3GLJournalObject,
]
