"""Master data migration objects: business partners, banks, materials, employees, equipment."""

from typing import Any, Dict, List

from core.mapping import MappingRule
from migration.objects.base import BaseMigrationObject, MigrationContext

BANKS = (
    ("US", "021000021", "JPMorgan Chase Bank", "New York", "CHASUS33"),
    ("US", "026009593", "Bank of America", "Charlotte", "BOFAUS3N"),
    ("DE", "50070010", "Deutsche Bank", "Frankfurt", "DEUTDEFF"),
    ("GB", "200000", "Barclays Bank", "London", "BARCGB22"),
)

# (partner, name, category, customer, supplier, country)
BUSINESS_PARTNERS = (
    ("100001", "Acme Manufacturing Inc", "2", "100001", "", "US"),
    ("100002", "Globex Distribution LLC", "2", "100002", "", "US"),
    ("100003", "Initech GmbH", "2", "100003", "", "DE"),
    ("100004", "Umbrella Retail Ltd", "2", "100004", "", "GB"),
    ("200001", "Steel Supply Co", "2", "", "200001", "US"),
    ("200002", "Euro Components AG", "2", "", "200002", "DE"),
    ("200003", "Packaging Partners", "2", "", "200003", "US"),
    ("300001", "Jane Miller", "1", "", "", "US"),
)

MATERIALS = (
    ("RM-1000", "ROH", "Steel Sheet 2mm", "KG", "1.000"),
    ("RM-1010", "ROH", "Aluminium Bar 20mm", "KG", "1.000"),
    ("SF-2000", "HALB", "Machined Housing", "EA", "3.450"),
    ("FG-3000", "FERT", "Pump Assembly P100", "EA", "12.800"),
    ("FG-3010", "FERT", "Pump Assembly P200", "EA", "18.250"),
    ("TG-4000", "HAWA", "Seal Kit Standard", "EA", "0.250"),
)


class BankMasterObject(BaseMigrationObject):
    object_id = "BANK_MASTER"
    name = "Bank Master"
    source_table = "BNKA"
    key_fields = ("BankCountry", "BankNumber")

    def get_field_mappings(self) -> List[MappingRule]:
        return [
            MappingRule(source="BANKS", target="BankCountry", convert="toUpperCase"),
            MappingRule(source="BANKL", target="BankNumber", convert="trim"),
            MappingRule(source="BANKA", target="BankName", convert="trim"),
            MappingRule(source="ORT01", target="BankCity"),
            MappingRule(source="SWIFT", target="SWIFTCode", convert="toUpperCase"),
            MappingRule(source="LOEVM", target="IsMarkedForDeletion", convert="boolYN"),
        ] + self.metadata_rules()

    def get_quality_checks(self) -> Dict[str, Any]:
        checks = super().get_quality_checks()
        checks["format"] = [
            {"field": "SWIFTCode", "pattern": r"^[A-Z]{6}[A-Z0-9]{2}([A-Z0-9]{3})?$", "description": "BIC"},
        ]
        return checks

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        return [
            {"BANKS": country, "BANKL": key, "BANKA": name, "ORT01": city, "SWIFT": bic, "LOEVM": ""}
            for country, key, name, city, bic in BANKS
        ]


class BusinessPartnerObject(BaseMigrationObject):
    object_id = "BUSINESS_PARTNER"
    name = "Business Partners"
    source_table = "BUT000"
    key_fields = ("BusinessPartner",)

    def get_field_mappings(self) -> List[MappingRule]:
        return [
            MappingRule(source="PARTNER", target="BusinessPartner", convert="padLeft10"),
            MappingRule(source="TYPE", target="BusinessPartnerCategory",
                        value_map={"1": "1", "2": "2", "ORG": "2", "PERSON": "1"}, default="2"),
            MappingRule(source="NAME1", target="BusinessPartnerFullName", convert="trim"),
            MappingRule(source="SORTL", target="SearchTerm1", convert="toUpperCase"),
            MappingRule(source="LAND1", target="Country", convert="toUpperCase"),
            MappingRule(source="KUNNR", target="Customer", convert="padLeft10"),
            MappingRule(source="LIFNR", target="Supplier", convert="padLeft10"),
            MappingRule(source="SPRAS", target="Language", convert="toUpperCase"),
            MappingRule(source="LOEVM", target="IsMarkedForDeletion", convert="boolYN"),
        ] + self.metadata_rules()

    def get_quality_checks(self) -> Dict[str, Any]:
        checks = super().get_quality_checks()
        checks["required"] = ["BusinessPartner", "BusinessPartnerFullName"]
        checks["fuzzy_duplicate"] = {"keys": ["BusinessPartnerFullName"], "threshold": 0.85}
        return checks

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        return [
            {"PARTNER": partner, "TYPE": category, "NAME1": name, "SORTL": name.split()[0],
             "LAND1": country, "KUNNR": customer, "LIFNR": supplier, "SPRAS": "en", "LOEVM": ""}
            for partner, name, category, customer, supplier, country in BUSINESS_PARTNERS
        ]


class MaterialMasterObject(BaseMigrationObject):
    object_id = "MATERIAL_MASTER"
    name = "Material Master"
    source_table = "MARA"
    key_fields = ("Product",)

    def get_field_mappings(self) -> List[MappingRule]:
        return [
            MappingRule(source="MATNR", target="Product", convert="padLeft40"),
            MappingRule(source="MTART", target="ProductType"),
            MappingRule(source="MAKTX", target="ProductDescription", convert="trim"),
            MappingRule(source="MATKL", target="ProductGroup"),
            MappingRule(source="MEINS", target="BaseUnit", convert="toUpperCase"),
            MappingRule(source="BRGEW", target="GrossWeight", convert="toDecimal"),
            MappingRule(source="GEWEI", target="WeightUnit"),
            MappingRule(source="LVORM", target="IsMarkedForDeletion", convert="boolYN"),
        ] + self.metadata_rules()

    def get_quality_checks(self) -> Dict[str, Any]:
        checks = super().get_quality_checks()
        checks["required"] = ["Product", "ProductType", "BaseUnit"]
        checks["referential"] = [{"field": "ProductType", "valid": {"ROH", "HALB", "FERT", "HAWA", "DIEN", "NLAG"}}]
        return checks

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        return [
            {"MATNR": number, "MTART": kind, "MAKTX": text, "MATKL": number[:2], "MEINS": unit,
             "BRGEW": weight, "GEWEI": "KG", "LVORM": ""}
            for number, kind, text, unit, weight in MATERIALS
        ]


class EmployeeMasterObject(BaseMigrationObject):
    object_id = "EMPLOYEE_MASTER"
    name = "Employee Master"
    source_table = "PA0002"
    key_fields = ("PersonnelNumber",)

    def get_field_mappings(self) -> List[MappingRule]:
        return [
            MappingRule(source="PERNR", target="PersonnelNumber", transform=lambda v: str(v or "").zfill(8)),
            MappingRule(source="VORNA", target="FirstName", convert="trim"),
            MappingRule(source="NACHN", target="LastName", convert="trim"),
            MappingRule(sources=["VORNA", "NACHN"], target="FullName"),
            MappingRule(source="BUKRS", target="CompanyCode"),
            MappingRule(source="KOSTL", target="CostCenter", convert="padLeft10"),
            MappingRule(source="BEGDA", target="HireDate", convert="toDate"),
        ] + self.metadata_rules()

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        people = (
            ("1001", "Anna", "Schmidt", "CC9000", "20150401"),
            ("1002", "Carlos", "Diaz", "CC3000", "20180115"),
            ("1003", "Mei", "Chen", "CC9100", "20200901"),
            ("1004", "Oliver", "Brown", "CC1000", "20210301"),
        )
        return [
            {"PERNR": pernr, "VORNA": first, "NACHN": last, "BUKRS": "1000", "KOSTL": cc, "BEGDA": hired}
            for pernr, first, last, cc, hired in people
        ]


class EquipmentMasterObject(BaseMigrationObject):
    object_id = "EQUIPMENT_MASTER"
    name = "Equipment Master"
    source_table = "EQUI"
    key_fields = ("Equipment",)

    def get_field_mappings(self) -> List[MappingRule]:
        return [
            MappingRule(source="EQUNR", target="Equipment", transform=lambda v: str(v or "").zfill(18)),
            MappingRule(source="EQKTX", target="EquipmentName", convert="trim"),
            MappingRule(source="EQTYP", target="EquipmentCategory"),
            MappingRule(source="TPLNR", target="FunctionalLocation"),
            MappingRule(source="SERGE", target="SerialNumber"),
            MappingRule(source="INBDT", target="StartupDate", convert="toDate"),
        ] + self.metadata_rules()

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        equipment = (
            ("10000010", "CNC Milling Machine", "M", "PLANT1-PROD-L1", "SN-88231"),
            ("10000011", "Injection Molding Press", "M", "PLANT1-PROD-L2", "SN-55102"),
            ("10000012", "Air Compressor", "M", "PLANT1-UTIL", "SN-10293"),
            ("10000013", "Forklift Linde H30", "F", "PLANT1-WH", "SN-77120"),
        )
        return [
            {"EQUNR": number, "EQKTX": text, "EQTYP": kind, "TPLNR": location, "SERGE": serial, "INBDT": "20200101"}
            for number, text, kind, location, serial in equipment
        ]


MASTER_DATA_OBJECTS = [
    BankMasterObject,
    BusinessPartnerObject,
    MaterialMasterObject,
    EmployeeMasterObject,
    EquipmentMasterObject,
]
