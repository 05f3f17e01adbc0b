"""Infor CloudSuite Industrial (SyteLine) extractors over IDO collections."""

from extraction.base import BaseExtractor, ExpectedTable


class CSIItemExtractor(BaseExtractor):
    extractor_id = "CSI_ITEMS"
    name = "CSI Items"
    module = "MM"
    category = "masterdata"
    source_system = "INFOR_CSI"
    expected_tables = (
        ExpectedTable("SLItems", "Items", critical=True),
        ExpectedTable("SLItemwhses", "Item warehouses"),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        items = tables.get("SLItems", [])
        payload["count"] = len(items)
        payload["productCodes"] = sorted({str(i.get("ProductCode")) for i in items if i.get("ProductCode")})
        stocked = {row.get("Item") for row in tables.get("SLItemwhses", [])}
        payload["itemsWithoutStock"] = [i.get("Item") for i in items if i.get("Item") not in stocked]
        return payload


class CSICustomerExtractor(BaseExtractor):
    extractor_id = "CSI_CUSTOMERS"
    name = "CSI Customers"
    module = "SD"
    category = "masterdata"
    source_system = "INFOR_CSI"
    expected_tables = (
        ExpectedTable("SLCustomers", "Customers", critical=True),
        ExpectedTable("SLCustaddrs", "Customer addresses"),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        customers = tables.get("SLCustomers", [])
        payload["count"] = len(customers)
        addressed = {row.get("CustNum") for row in tables.get("SLCustaddrs", [])}
        missing = [c.get("CustNum") for c in customers if c.get("CustNum") not in addressed]
        if missing:
            self._flag_for_validation(f"Customer(s) without an address: {', '.join(map(str, missing))}")
        return payload


INFOR_CSI_EXTRACTORS = [CSIItemExtractor, CSICustomerExtractor]
