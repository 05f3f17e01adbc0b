"""Finance and controlling migration objects (FI / CO)."""

from typing import Any, Dict, List

from core.mapping import MappingRule
from migration.objects.base import BaseMigrationObject, MigrationContext

COMPANY_CODES = ("1000", "2000")

# (account, text, account group, balance sheet?)
GL_ACCOUNTS = (
    ("100000", "Petty Cash", "CASH", True),
    ("110000", "Bank Account - Main", "BANK", True),
    ("113100", "Accounts Receivable", "RECV", True),
    ("140000", "Raw Materials Inventory", "INVT", True),
    ("154000", "Accumulated Depreciation", "FAAA", True),
    ("200000", "Accounts Payable", "PAYB", True),
    ("220000", "Tax Payable", "TAXP", True),
    ("400000", "Sales Revenue - Domestic", "REVN", False),
    ("500000", "Cost of Goods Sold", "COGS", False),
    ("600000", "Salaries & Wages", "PERS", False),
    ("640000", "Depreciation Expense", "DEPR", False),
)

PROFIT_CENTERS = (
    ("PC1000", "Domestic Sales"),
    ("PC2000", "Export Sales"),
    ("PC3000", "Manufacturing"),
    ("PC9000", "Corporate"),
)

# (cost center, text, category, profit center)
COST_CENTERS = (
    ("CC1000", "Sales Domestic", "V", "PC1000"),
    ("CC2000", "Sales Export", "V", "PC2000"),
    ("CC3000", "Production Line 1", "F", "PC3000"),
    ("CC3100", "Production Line 2", "F", "PC3000"),
    ("CC9000", "Administration", "W", "PC9000"),
    ("CC9100", "IT Services", "W", "PC9000"),
)


class GLAccountMasterObject(BaseMigrationObject):
    object_id = "GL_ACCOUNT_MASTER"
    name = "GL Account Master"
    source_table = "SKB1"
    key_fields = ("ChartOfAccounts", "GLAccount", "CompanyCode")

    def get_field_mappings(self) -> List[MappingRule]:
        return [
            MappingRule(source="KTOPL", target="ChartOfAccounts"),
            MappingRule(source="SAKNR", target="GLAccount", convert="padLeft10"),
            MappingRule(source="BUKRS", target="CompanyCode"),
            MappingRule(source="KTOKS", target="GLAccountGroup"),
            MappingRule(source="XBILK", target="IsBalanceSheetAccount", convert="boolYN"),
            MappingRule(source="GVTYP", target="PLStatementAccountType"),
            MappingRule(source="TXT20", target="GLAccountShortText", convert="trim"),
            MappingRule(source="TXT50", target="GLAccountLongText", convert="trim"),
            MappingRule(source="WAERS", target="AccountCurrency", convert="toUpperCase"),
            MappingRule(source="XOPVW", target="IsOpenItemManaged", convert="boolYN"),
            MappingRule(source="MITKZ", target="ReconciliationAccountType"),
            MappingRule(source="XLOEV", target="IsMarkedForDeletion", convert="boolYN"),
        ] + self.metadata_rules()

    def get_quality_checks(self) -> Dict[str, Any]:
        checks = super().get_quality_checks()
        checks["required"] = list(self.key_fields) + ["GLAccountGroup"]
        checks["format"] = [{"field": "GLAccount", "pattern": r"^\d{10}$", "description": "10-digit account"}]
        return checks

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        recon = {"113100": "D", "200000": "K"}
        return [
            {
                "KTOPL": "CAUS",
                "SAKNR": account,
                "BUKRS": company,
                "KTOKS": group,
                "XBILK": "X" if balance_sheet else "",
                "GVTYP": "" if balance_sheet else "X",
                "TXT20": text[:20],
                "TXT50": text,
                "WAERS": "usd",
                "XOPVW": "X" if account in recon or group == "BANK" else "",
                "MITKZ": recon.get(account, ""),
                "XLOEV": "",
            }
            for company in COMPANY_CODES
            for account, text, group, balance_sheet in GL_ACCOUNTS
        ]


class GLBalanceObject(BaseMigrationObject):
    object_id = "GL_BALANCE"
    name = "GL Balances"
    source_table = "FAGLFLEXT"
    key_fields = ("CompanyCode", "GLAccount", "FiscalYear", "FiscalPeriod", "Currency")
    aggregate_fields = ("AmountInCompanyCodeCurrency",)

    def get_field_mappings(self) -> List[MappingRule]:
        return [
            MappingRule(source="RBUKRS", target="CompanyCode"),
            MappingRule(source="RACCT", target="GLAccount", convert="padLeft10"),
            MappingRule(source="RYEAR", target="FiscalYear", convert="toInteger"),
            MappingRule(source="RPMAX", target="FiscalPeriod", transform=lambda v: str(int(v or 0)).zfill(3)),
            MappingRule(source="RTCUR", target="Currency", convert="toUpperCase"),
            MappingRule(source="HSLVT", target="AmountInCompanyCodeCurrency", convert="toDecimal"),
            MappingRule(source="RPRCTR", target="ProfitCenter"),
        ] + self.metadata_rules()

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        balances = {
            "110000": "250000.00", "113100": "84500.00", "140000": "132000.00",
            "200000": "61250.00-", "400000": "405250.00-",
        }
        return [
            {
                "RBUKRS": company,
                "RACCT": account,
                "RYEAR": "2024",
                "RPMAX": "12",
                "RTCUR": "USD",
                "HSLVT": amount,
                "RPRCTR": "PC9000",
            }
            for company in COMPANY_CODES
            for account, amount in balances.items()
        ]


class ProfitCenterObject(BaseMigrationObject):
    object_id = "PROFIT_CENTER"
    name = "Profit Centers"
    source_table = "CEPC"
    key_fields = ("ControllingArea", "ProfitCenter")

    def get_field_mappings(self) -> List[MappingRule]:
        return [
            MappingRule(source="KOKRS", target="ControllingArea"),
            MappingRule(source="PRCTR", target="ProfitCenter", convert="padLeft10"),
            MappingRule(source="KTEXT", target="ProfitCenterName", convert="trim"),
            MappingRule(source="DATAB", target="ValidityStartDate", convert="toDate"),
            MappingRule(source="DATBI", target="ValidityEndDate", convert="toDate"),
            MappingRule(source="VERAK", target="PersonResponsible"),
            MappingRule(source="SEGMENT", target="Segment"),
        ] + self.metadata_rules()

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        return [
            {"KOKRS": "1000", "PRCTR": pc, "KTEXT": text, "DATAB": "20200101",
             "DATBI": "99991231", "VERAK": "CONTROLLER", "SEGMENT": "SEG1"}
            for pc, text in PROFIT_CENTERS
        ]


class CostCenterObject(BaseMigrationObject):
    object_id = "COST_CENTER"
    name = "Cost Centers"
    source_table = "CSKS"
    key_fields = ("ControllingArea", "CostCenter")
    canonical_entity = "CostCenter"

    def get_field_mappings(self) -> List[MappingRule]:
        # sources are canonical CostCenter fields
        return [
            MappingRule(source="controlling_area", target="ControllingArea"),
            MappingRule(source="cost_center", target="CostCenter", convert="padLeft10"),
            MappingRule(source="description", target="CostCenterName"),
            MappingRule(source="category", target="CostCenterCategory"),
            MappingRule(source="profit_center", target="ProfitCenter", convert="padLeft10"),
            MappingRule(source="company_code", target="CompanyCode"),
            MappingRule(source="responsible", target="PersonResponsible"),
            MappingRule(source="valid_from", target="ValidityStartDate", convert="toDate"),
            MappingRule(source="valid_to", target="ValidityEndDate", convert="toDate"),
        ] + self.metadata_rules()

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        return [
            {"KOKRS": "1000", "KOSTL": cc, "KTEXT": text, "KOSAR": category, "PRCTR": pc,
             "BUKRS": "1000", "DATAB": "20200101", "DATBI": "99991231"}
            for cc, text, category, pc in COST_CENTERS
        ]


class FixedAssetObject(BaseMigrationObject):
    object_id = "FIXED_ASSET"
    name = "Fixed Assets"
    source_table = "ANLA"
    key_fields = ("CompanyCode", "MasterFixedAsset", "FixedAsset")
    aggregate_fields = ("AcquisitionValue",)

    def get_field_mappings(self) -> List[MappingRule]:
        return [
            MappingRule(source="BUKRS", target="CompanyCode"),
            MappingRule(source="ANLN1", target="MasterFixedAsset", convert="padLeft10"),
            MappingRule(source="ANLN2", target="FixedAsset", transform=lambda v: str(v or "0").zfill(4)),
            MappingRule(source="ANLKL", target="AssetClass"),
            MappingRule(source="TXT50", target="AssetDescription", convert="trim"),
            MappingRule(source="AKTIV", target="CapitalizationDate", convert="toDate"),
            MappingRule(source="KOSTL", target="CostCenter", convert="padLeft10"),
            MappingRule(source="KANSW", target="AcquisitionValue", convert="toDecimal"),
        ] + self.metadata_rules()

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        assets = (
            ("10000001", "1100", "Office Building HQ", "20150301", "CC9000", "1250000.00"),
            ("10000002", "3000", "CNC Milling Machine", "20190615", "CC3000", "185000.00"),
            ("10000003", "3000", "Injection Molding Press", "20200110", "CC3100", "240000.00"),
            ("10000004", "3100", "Forklift Linde H30", "20210405", "CC3000", "42000.00"),
            ("10000005", "5000", "Server Rack DC1", "20220901", "CC9100", "68500.00"),
            ("10000006", "5100", "Company Vehicle", "20230120", "CC1000", "38900.00"),
        )
        return [
            {"BUKRS": "1000", "ANLN1": number, "ANLN2": "0", "ANLKL": asset_class, "TXT50": text,
             "AKTIV": capitalized, "KOSTL": cc, "KANSW": value}
            for number, asset_class, text, capitalized, cc, value in assets
        ]


class _OpenItemObject(BaseMigrationObject):
    """Shared layout of customer and vendor open items (BSID / BSIK)."""

    partner_field = ""
    partner_target = ""
    key_fields = ("CompanyCode", "FiscalYear", "DocumentNumber", "LineItem")
    aggregate_fields = ("AmountInCompanyCodeCurrency",)

    def get_field_mappings(self) -> List[MappingRule]:
        return [
            MappingRule(source="BUKRS", target="CompanyCode"),
            MappingRule(source=self.partner_field, target=self.partner_target, convert="padLeft10"),
            MappingRule(source="GJAHR", target="FiscalYear", convert="toInteger"),
            MappingRule(source="BELNR", target="DocumentNumber", convert="padLeft10"),
            MappingRule(source="BUZEI", target="LineItem", transform=lambda v: str(v or "1").zfill(3)),
            MappingRule(source="BUDAT", target="PostingDate", convert="toDate"),
            MappingRule(source="ZFBDT", target="BaselineDateForDueDate", convert="toDate"),
            MappingRule(source="WAERS", target="TransactionCurrency", convert="toUpperCase"),
            MappingRule(source="DMBTR", target="AmountInCompanyCodeCurrency", convert="toDecimal"),
            MappingRule(source="SHKZG", target="DebitCreditIndicator"),
            MappingRule(source="ZTERM", target="PaymentTerms"),
        ] + self.metadata_rules()

    def _mock_items(self, partners, amounts) -> List[Dict[str, Any]]:
        records = []
        for i, (partner, amount) in enumerate(zip(partners, amounts), start=1):
            records.append({
                "BUKRS": "1000",
                self.partner_field: partner,
                "GJAHR": "2024",
                "BELNR": str(1800000000 + i) if self.partner_field == "KUNNR" else str(5100000000 + i),
                "BUZEI": "1",
                "BUDAT": f"202411{i:02d}",
                "ZFBDT": f"202411{i:02d}",
                "WAERS": "USD",
                "DMBTR": amount,
                "SHKZG": "S" if self.partner_field == "KUNNR" else "H",
                "ZTERM": "NT30",
            })
        return records


class CustomerOpenItemObject(_OpenItemObject):
    object_id = "CUSTOMER_OPEN_ITEM"
    name = "Customer Open Items"
    source_table = "BSID"
    partner_field = "KUNNR"
    partner_target = "Customer"

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        return self._mock_items(
            ["100001", "100002", "100003", "100001", "100004"],
            ["12000.00", "4550.25", "875.00", "3300.00", "15999.99"],
        )


class VendorOpenItemObject(_OpenItemObject):
    object_id = "VENDOR_OPEN_ITEM"
    name = "Vendor Open Items"
    source_table = "BSIK"
    partner_field = "LIFNR"
    partner_target = "Supplier"

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        return self._mock_items(
            ["200001", "200002", "200003", "200002"],
            ["5450.00", "3488.00", "720.40", "11250.00"],
        )


FINANCE_OBJECTS = [
    GLAccountMasterObject,
    GLBalanceObject,
    ProfitCenterObject,
    CostCenterObject,
    FixedAssetObject,
    CustomerOpenItemObject,
    VendorOpenItemObject,
]
