"""Purchasing and sales document migration objects (MM / SD)."""

from typing import Any, Dict, List

from core.mapping import MappingRule
from migration.objects.base import BaseMigrationObject, MigrationContext


class PurchaseOrderObject(BaseMigrationObject):
    """Open purchase order items (EKKO header joined with EKPO)."""

    object_id = "PURCHASE_ORDER"
    name = "Purchase Orders"
    source_table = "EKPO"
    key_fields = ("PurchaseOrder", "PurchaseOrderItem")
    aggregate_fields = ("NetAmount",)

    def get_field_mappings(self) -> List[MappingRule]:
        return [
            MappingRule(source="EBELN", target="PurchaseOrder", convert="padLeft10"),
            MappingRule(source="EBELP", target="PurchaseOrderItem", transform=lambda v: str(v or "").zfill(5)),
            MappingRule(source="BUKRS", target="CompanyCode"),
            MappingRule(source="BSART", target="PurchaseOrderType"),
            MappingRule(source="LIFNR", target="Supplier", convert="padLeft10"),
            MappingRule(source="EKORG", target="PurchasingOrganization"),
            MappingRule(source="MATNR", target="Material", convert="padLeft40"),
            MappingRule(source="WERKS", target="Plant"),
            MappingRule(source="MENGE", target="OrderQuantity", convert="toDecimal"),
            MappingRule(source="MEINS", target="PurchaseOrderQuantityUnit", convert="toUpperCase"),
            MappingRule(source="NETWR", target="NetAmount", convert="toDecimal"),
            MappingRule(source="WAERS", target="DocumentCurrency", convert="toUpperCase"),
            MappingRule(source="BEDAT", target="PurchaseOrderDate", convert="toDate"),
        ] + self.metadata_rules()

    def get_quality_checks(self) -> Dict[str, Any]:
        checks = super().get_quality_checks()
        checks["required"] = list(self.key_fields) + ["Supplier"]
        checks["range"] = [{"field": "OrderQuantity", "min": 0}]
        return checks

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        items = (
            ("4500000101", "10", "200001", "RM-1000", "2500", "KG", "6250.00"),
            ("4500000101", "20", "200001", "RM-1010", "800", "KG", "3120.00"),
            ("4500000102", "10", "200002", "SF-2000", "150", "EA", "8475.00"),
            ("4500000103", "10", "200003", "TG-4000", "1000", "EA", "1450.00"),
        )
        return [
            {"EBELN": po, "EBELP": item, "BUKRS": "1000", "BSART": "NB", "LIFNR": supplier,
             "EKORG": "1000", "MATNR": material, "WERKS": "1000", "MENGE": quantity,
             "MEINS": unit, "NETWR": amount, "WAERS": "USD", "BEDAT": "20241104"}
            for po, item, supplier, material, quantity, unit, amount in items
        ]


class SalesOrderObject(BaseMigrationObject):
    """Open sales order items (VBAK header joined with VBAP)."""

    object_id = "SALES_ORDER"
    name = "Sales Orders"
    source_table = "VBAP"
    key_fields = ("SalesOrder", "SalesOrderItem")
    aggregate_fields = ("NetAmount",)

    def get_field_mappings(self) -> List[MappingRule]:
        return [
            MappingRule(source="VBELN", target="SalesOrder", convert="padLeft10"),
            MappingRule(source="POSNR", target="SalesOrderItem", transform=lambda v: str(v or "").zfill(6)),
            MappingRule(source="AUART", target="SalesOrderType"),
            MappingRule(source="VKORG", target="SalesOrganization"),
            MappingRule(source="VTWEG", target="DistributionChannel"),
            MappingRule(source="KUNNR", target="SoldToParty", convert="padLeft10"),
            MappingRule(source="MATNR", target="Material", convert="padLeft40"),
            MappingRule(source="KWMENG", target="RequestedQuantity", convert="toDecimal"),
            MappingRule(source="NETWR", target="NetAmount", convert="toDecimal"),
            MappingRule(source="WAERK", target="TransactionCurrency", convert="toUpperCase"),
            MappingRule(source="AUDAT", target="SalesOrderDate", convert="toDate"),
        ] + self.metadata_rules()

    async def _extract_mock(self, ctx: MigrationContext) -> List[Dict[str, Any]]:
        items = (
            ("0000012001", "10", "100001", "FG-3000", "20", "5600.00"),
            ("0000012001", "20", "100001", "TG-4000", "40", "380.00"),
            ("0000012002", "10", "100002", "FG-3010", "12", "4920.00"),
            ("0000012003", "10", "100004", "FG-3000", "5", "1400.00"),
        )
        return [
            {"VBELN": order, "POSNR": item, "AUART": "OR", "VKORG": "1000", "VTWEG": "10",
             "KUNNR": customer, "MATNR": material, "KWMENG": quantity, "NETWR": amount,
             "WAERK": "USD", "AUDAT": "20241110"}
            for order, item, customer, material, quantity, amount in items
        ]


LOGISTICS_OBJECTS = [PurchaseOrderObject, SalesOrderObject]
