"""Customizing migration objects.

Configuration objects carry many small customizing tables. Each source table
is flattened into ``CONFIG_TYPE / CONFIG_KEY / CONFIG_DESC`` rows so one rule
set covers all of them.
"""

from typing import Any, Dict, List, Tuple

from core.mapping import MappingRule
from migration.objects.base import BaseMigrationObject, MigrationContext


class ConfigurationObject(BaseMigrationObject):
    # category -> (table, key field, description field)
    config_tables: Dict[str, Tuple[str, str, str]] = {}
    # (category, key, description)
    config_entries: Tuple[Tuple[str, str, str], ...] = ()
    key_fields = ("ConfigCategory", "ConfigKey")

    def get_field_mappings(self) -> List[MappingRule]:
        return [
            MappingRule(source="CONFIG_TYPE", target="ConfigCategory"),
            MappingRule(source="CONFIG_KEY", target="ConfigKey", convert="trim"),
            MappingRule(source="CONFIG_DESC", target="ConfigDescription", convert="trim"),
            MappingRule(source="SOURCE_TABLE", target="SourceTable"),
        ] + self.metadata_rules()

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        return [
            {
                "CONFIG_TYPE": category,
                "CONFIG_KEY": key,
                "CONFIG_DESC": description,
                "SOURCE_TABLE": self.config_tables.get(category, ("",))[0],
            }
            for category, key, description in self.config_entries
        ]

    async def _extract_live(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        if ctx.adapter is None:
            return await super()._extract_live(ctx)
        records = []
        for category, (table, key_field, desc_field) in self.config_tables.items():
            ctx.token.raise_if_cancelled()
            data = await ctx.adapter.read_table(table, fields=[key_field, desc_field])
            records.extend(
                {
                    "CONFIG_TYPE": category,
                    "CONFIG_KEY": row.get(key_field),
                    "CONFIG_DESC": row.get(desc_field),
                    "SOURCE_TABLE": table,
                }
                for row in data.rows
            )
            self.logger.debug(f"{table}: {len(data.rows)} {category} entries")
        return records


class FIConfigObject(ConfigurationObject):
    object_id = "FI_CONFIG"
    name = "Finance Configuration"
    config_tables = {
        "COMPANY_CODE": ("T001", "BUKRS", "BUTXT"),
        "DOCUMENT_TYPE": ("T003", "BLART", "LTEXT"),
        "CHART_OF_ACCOUNTS": ("T004", "KTOPL", "KTPLT"),
        "PAYMENT_TERMS": ("T052", "ZTERM", "TEXT1"),
        "TAX_CODE": ("T007A", "MWSKZ", "TEXT1"),
    }
    config_entries = (
        ("COMPANY_CODE", "1000", "US Operations"),
        ("COMPANY_CODE", "2000", "German Operations"),
        ("CHART_OF_ACCOUNTS", "CAUS", "US Chart of Accounts"),
        ("DOCUMENT_TYPE", "SA", "G/L account document"),
        ("DOCUMENT_TYPE", "KR", "Vendor invoice"),
        ("DOCUMENT_TYPE", "DR", "Customer invoice"),
        ("DOCUMENT_TYPE", "AB", "Accounting document"),
        ("PAYMENT_TERMS", "NT30", "Net 30 days"),
        ("PAYMENT_TERMS", "2N30", "2% 10, net 30"),
        ("TAX_CODE", "V0", "Input tax exempt"),
        ("TAX_CODE", "A1", "Output tax standard"),
    )


class COConfigObject(ConfigurationObject):
    object_id = "CO_CONFIG"
    name = "Controlling Configuration"
    config_tables = {
        "CONTROLLING_AREA": ("TKA01", "KOKRS", "BEZEI"),
        "COST_CENTER_CATEGORY": ("TKA05", "KOSAR", "KTEXT"),
        "ORDER_TYPE": ("T003O", "AUART", "TXT"),
    }
    config_entries = (
        ("CONTROLLING_AREA", "1000", "Global Controlling Area"),
        ("COST_CENTER_CATEGORY", "F", "Production"),
        ("COST_CENTER_CATEGORY", "V", "Sales"),
        ("COST_CENTER_CATEGORY", "W", "Administration"),
        ("ORDER_TYPE", "0100", "Overhead order"),
        ("ORDER_TYPE", "0400", "Investment order"),
    )


class MMConfigObject(ConfigurationObject):
    object_id = "MM_CONFIG"
    name = "Materials Management Configuration"
    config_tables = {
        "PLANT": ("T001W", "WERKS", "NAME1"),
        "STORAGE_LOCATION": ("T001L", "LGORT", "LGOBE"),
        "PURCHASING_ORG": ("T024E", "EKORG", "EKOTX"),
        "MATERIAL_TYPE": ("T134T", "MTART", "MTBEZ"),
    }
    config_entries = (
        ("PLANT", "1000", "Main Plant Chicago"),
        ("PLANT", "2000", "Plant Stuttgart"),
        ("STORAGE_LOCATION", "0001", "Raw materials"),
        ("STORAGE_LOCATION", "0002", "Finished goods"),
        ("PURCHASING_ORG", "1000", "Central Purchasing"),
        ("MATERIAL_TYPE", "ROH", "Raw material"),
        ("MATERIAL_TYPE", "HALB", "Semi-finished product"),
        ("MATERIAL_TYPE", "FERT", "Finished product"),
        ("MATERIAL_TYPE", "HAWA", "Trading goods"),
    )


class SDConfigObject(ConfigurationObject):
    object_id = "SD_CONFIG"
    name = "Sales & Distribution Configuration"
    config_tables = {
        "SALES_ORG": ("TVKOT", "VKORG", "VTEXT"),
        "DISTRIBUTION_CHANNEL": ("TVTWT", "VTWEG", "VTEXT"),
        "SALES_DOCUMENT_TYPE": ("TVAKT", "AUART", "BEZEI"),
    }
    config_entries = (
        ("SALES_ORG", "1000", "Sales Org US"),
        ("SALES_ORG", "2000", "Sales Org DE"),
        ("DISTRIBUTION_CHANNEL", "10", "Direct sales"),
        ("DISTRIBUTION_CHANNEL", "20", "Wholesale"),
        ("SALES_DOCUMENT_TYPE", "OR", "Standard order"),
        ("SALES_DOCUMENT_TYPE", "RE", "Returns"),
    )


CONFIGURATION_OBJECTS = [FIConfigObject, COConfigObject, MMConfigObject, SDConfigObject]
