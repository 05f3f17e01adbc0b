"""SAP logistics extractors: MM, SD, PP, PM, EWM, TM and GTS."""

from collections import Counter

from extraction.base import BaseExtractor, ExpectedTable


class MaterialExtractor(BaseExtractor):
    extractor_id = "MM_MATERIALS"
    name = "Material Master"
    module = "MM"
    category = "masterdata"
    expected_tables = (
        ExpectedTable("MARA", "General material data", critical=True,
                      fields=("MATNR", "MTART", "MATKL", "MEINS", "LVORM"), max_rows=10000),
        ExpectedTable("MAKT", "Material descriptions", fields=("MATNR", "SPRAS", "MAKTX"), max_rows=10000),
        ExpectedTable("MARC", "Plant data", fields=("MATNR", "WERKS", "DISMM", "BESKZ"), max_rows=10000),
        ExpectedTable("MARD", "Storage location stock", fields=("MATNR", "WERKS", "LGORT", "LABST"), max_rows=10000),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        materials = tables.get("MARA", [])
        payload["count"] = len(materials)
        payload["byMaterialType"] = dict(Counter(str(m.get("MTART", "")) for m in materials))
        flagged = [m for m in materials if m.get("LVORM") == "X"]
        if flagged:
            self._flag_for_validation(f"{len(flagged)} material(s) flagged for deletion; exclude or archive before load")
        return payload


class PurchasingExtractor(BaseExtractor):
    extractor_id = "MM_PURCHASING"
    name = "Purchasing Documents"
    module = "MM"
    category = "transactional"
    expected_tables = (
        ExpectedTable("EKKO", "Purchasing document headers", critical=True,
                      fields=("EBELN", "BSART", "LIFNR", "BEDAT", "WAERS"), max_rows=10000),
        ExpectedTable("EKPO", "Purchasing document items", critical=True,
                      fields=("EBELN", "EBELP", "MATNR", "MENGE", "NETPR"), max_rows=10000),
        ExpectedTable("EINA", "Purchasing info records", fields=("INFNR", "MATNR", "LIFNR")),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        payload["count"] = len(tables.get("EKKO", []))
        payload["vendors"] = len({h.get("LIFNR") for h in tables.get("EKKO", []) if h.get("LIFNR")})
        return payload


class InventoryExtractor(BaseExtractor):
    extractor_id = "MM_INVENTORY"
    name = "Inventory and Valuation"
    module = "MM"
    category = "transactional"
    expected_tables = (
        ExpectedTable("MBEW", "Material valuation", critical=True, fields=("MATNR", "BWKEY", "VPRSV", "VERPR", "STPRS")),
        ExpectedTable("MKPF", "Material document headers", fields=("MBLNR", "MJAHR", "BUDAT"), max_rows=5000),
        ExpectedTable("MSEG", "Material document items", fields=("MBLNR", "MJAHR", "ZEILE", "BWART", "MATNR", "MENGE"), max_rows=5000),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        payload["movementTypes"] = dict(Counter(str(r.get("BWART", "")) for r in tables.get("MSEG", [])))
        return payload


class SalesExtractor(BaseExtractor):
    extractor_id = "SD_SALES"
    name = "Sales Documents"
    module = "SD"
    category = "transactional"
    expected_tables = (
        ExpectedTable("VBAK", "Sales document headers", critical=True,
                      fields=("VBELN", "AUART", "KUNNR", "ERDAT", "NETWR", "WAERK"), max_rows=10000),
        ExpectedTable("VBAP", "Sales document items", critical=True,
                      fields=("VBELN", "POSNR", "MATNR", "KWMENG", "NETWR"), max_rows=10000),
        ExpectedTable("VBFA", "Document flow", fields=("VBELV", "POSNV", "VBELN", "VBTYP_N"), max_rows=10000),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        headers = tables.get("VBAK", [])
        payload["count"] = len(headers)
        payload["orderTypes"] = dict(Counter(str(h.get("AUART", "")) for h in headers))
        return payload


class PricingExtractor(BaseExtractor):
    extractor_id = "SD_PRICING"
    name = "Pricing Conditions"
    module = "SD"
    expected_tables = (
        ExpectedTable("KONP", "Condition items", critical=True, fields=("KNUMH", "KOPOS", "KSCHL", "KBETR", "KONWA")),
        ExpectedTable("T685", "Condition types", fields=("KVEWE", "KAPPL", "KSCHL")),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        payload["conditionTypes"] = sorted({str(r.get("KSCHL")) for r in tables.get("KONP", []) if r.get("KSCHL")})
        return payload


class CustomerExtractor(BaseExtractor):
    extractor_id = "SD_CUSTOMERS"
    name = "Customer Master"
    module = "SD"
    category = "masterdata"
    expected_tables = (
        ExpectedTable("KNA1", "Customer general data", critical=True,
                      fields=("KUNNR", "NAME1", "LAND1", "ORT01", "STCD1", "LOEVM"), max_rows=10000),
        ExpectedTable("KNB1", "Customer company code data", fields=("KUNNR", "BUKRS", "AKONT", "ZTERM")),
        ExpectedTable("KNVV", "Customer sales data", fields=("KUNNR", "VKORG", "VTWEG", "SPART")),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        customers = tables.get("KNA1", [])
        payload["count"] = len(customers)
        payload["countries"] = dict(Counter(str(c.get("LAND1", "")) for c in customers))
        missing_tax = [c for c in customers if not c.get("STCD1")]
        if missing_tax:
            self._flag_for_validation(f"{len(missing_tax)} customer(s) without a tax number")
        return payload


class ProductionOrderExtractor(BaseExtractor):
    extractor_id = "PP_PRODUCTION"
    name = "Production Orders"
    module = "PP"
    category = "transactional"
    expected_tables = (
        ExpectedTable("AFKO", "Order headers", critical=True, fields=("AUFNR", "PLNBEZ", "GAMNG", "GSTRP"), max_rows=5000),
        ExpectedTable("AFPO", "Order items", fields=("AUFNR", "POSNR", "MATNR", "PSMNG"), max_rows=5000),
    )


class BomExtractor(BaseExtractor):
    extractor_id = "PP_BOM"
    name = "Bills of Material"
    module = "PP"
    category = "masterdata"
    expected_tables = (
        ExpectedTable("STKO", "BOM headers", critical=True, fields=("STLTY", "STLNR", "STLAL", "BMENG")),
        ExpectedTable("STPO", "BOM items", critical=True, fields=("STLTY", "STLNR", "POSNR", "IDNRK", "MENGE")),
        ExpectedTable("MAST", "Material to BOM link", fields=("MATNR", "WERKS", "STLAN", "STLNR")),
    )


class RoutingExtractor(BaseExtractor):
    extractor_id = "PP_ROUTING"
    name = "Routings"
    module = "PP"
    category = "masterdata"
    expected_tables = (
        ExpectedTable("PLKO", "Task list headers", critical=True, fields=("PLNTY", "PLNNR", "PLNAL", "VERWE")),
        ExpectedTable("PLPO", "Task list operations", fields=("PLNTY", "PLNNR", "VORNR", "ARBID", "LTXA1")),
    )


class EquipmentExtractor(BaseExtractor):
    extractor_id = "PM_EQUIPMENT"
    name = "Equipment and Functional Locations"
    module = "PM"
    category = "masterdata"
    expected_tables = (
        ExpectedTable("EQUI", "Equipment master", critical=True, fields=("EQUNR", "EQTYP", "HERST", "BAUJJ")),
        ExpectedTable("EQKT", "Equipment texts", fields=("EQUNR", "SPRAS", "EQKTX")),
        ExpectedTable("IFLOT", "Functional locations", critical=True, fields=("TPLNR", "FLTYP", "IWERK")),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        payload["count"] = len(tables.get("EQUI", []))
        return payload


class MaintenanceExtractor(BaseExtractor):
    extractor_id = "PM_MAINTENANCE"
    name = "Maintenance Notifications and Orders"
    module = "PM"
    category = "transactional"
    expected_tables = (
        ExpectedTable("QMEL", "Notifications", fields=("QMNUM", "QMART", "EQUNR", "QMDAT"), max_rows=5000),
        ExpectedTable("AFIH", "Maintenance order headers", critical=True, fields=("AUFNR", "IWERK", "EQUNR", "ILART"), max_rows=5000),
    )


class WorkCenterExtractor(BaseExtractor):
    extractor_id = "PM_WORK_CENTERS"
    name = "Work Centers"
    module = "PM"
    category = "masterdata"
    expected_tables = (
        ExpectedTable("CRHD", "Work center headers", critical=True, fields=("OBJID", "ARBPL", "WERKS", "VERWE")),
        ExpectedTable("CRTX", "Work center texts", fields=("OBJID", "SPRAS", "KTEXT")),
    )


class WarehouseExtractor(BaseExtractor):
    extractor_id = "EWM_WAREHOUSE"
    name = "Warehouse Structure"
    module = "EWM"
    expected_tables = (
        ExpectedTable("T300", "Warehouse numbers", critical=True, fields=("LGNUM",)),
        ExpectedTable("LAGP", "Storage bins", fields=("LGNUM", "LGTYP", "LGPLA"), max_rows=10000),
    )


class TransportationExtractor(BaseExtractor):
    extractor_id = "TM_TRANSPORT"
    name = "Shipments"
    module = "TM"
    category = "transactional"
    expected_tables = (
        ExpectedTable("VTTK", "Shipment headers", critical=True, fields=("TKNUM", "SHTYP", "TDLNR", "ROUTE"), max_rows=5000),
        ExpectedTable("VTTP", "Shipment items", fields=("TKNUM", "TPNUM", "VBELN"), max_rows=5000),
    )


class TradeComplianceExtractor(BaseExtractor):
    extractor_id = "GTS_COMPLIANCE"
    name = "Foreign Trade Data"
    module = "GTS"
    expected_tables = (
        ExpectedTable("T604", "Commodity codes", critical=True, fields=("LAND1", "STAWN")),
        ExpectedTable("EIPO", "Foreign trade items", fields=("EXNUM", "EXPOS", "STAWN", "HERKL"), max_rows=5000),
    )


SAP_LOGISTICS_EXTRACTORS = [
    MaterialExtractor,
    PurchasingExtractor,
    InventoryExtractor,
    SalesExtractor,
    PricingExtractor,
    CustomerExtractor,
    ProductionOrderExtractor,
    BomExtractor,
    RoutingExtractor,
    EquipmentExtractor,
    MaintenanceExtractor,
    WorkCenterExtractor,
    WarehouseExtractor,
    TransportationExtractor,
    TradeComplianceExtractor,
]
