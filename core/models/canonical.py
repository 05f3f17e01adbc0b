"""Canonical data models - ERP-neutral intermediate entities.

Source records from SAP ECC and the Infor products are normalized into these
shapes before target-specific field mapping. Field names are stable across
source systems; per-source field maps live in
``core/models/source_mapping.py``.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


# =============================================================================
# Value Parsers (handle the formats ERP tables hand back)
# =============================================================================

def _parse_decimal(value):
    """Parse decimal from ERP formats (commas, SAP trailing minus, floats)."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        return Decimal(int(value))
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        s = value.strip().replace(",", "")
        if s == "":
            return None
        if s.endswith("-"):
            s = "-" + s[:-1]
        try:
            return Decimal(s)
        except InvalidOperation:
            raise ValueError(f"Cannot parse decimal: {value}")
    return value


def _parse_int(value):
    """Parse integer from various formats."""
    if value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        s = value.strip().replace(",", "")
        if s == "":
            return None
        return int(float(s))
    return value


def _parse_date(value):
    """Parse date from ERP formats (YYYYMMDD, ISO, US)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        s = value.strip()
        if s in ("", "00000000"):
            return None
        for fmt in ("%Y%m%d", "%Y-%m-%d", "%m/%d/%Y", "%d.%m.%Y"):
            try:
                return datetime.strptime(s[:10] if "-" in s else s, fmt).date()
            except ValueError:
                continue
        raise ValueError(f"Cannot parse date: {s}")
    return value


def _parse_str(value):
    """Strip strings; ERP fixed-width fields arrive space padded."""
    if value is None:
        return None
    if isinstance(value, str):
        s = value.strip()
        return s or None
    return str(value)


# Annotated types for automatic parsing
DecimalValue = Annotated[Decimal, BeforeValidator(_parse_decimal)]
IntValue = Annotated[int, BeforeValidator(_parse_int)]
DateValue = Annotated[date, BeforeValidator(_parse_date)]
Text = Annotated[str, BeforeValidator(_parse_str)]


# =============================================================================
# Base Model
# =============================================================================

class CanonicalBase(BaseModel):
    """Base model for all canonical entities."""
    model_config = ConfigDict(populate_by_name=True)

    source_system: Optional[str] = Field(None, description="SAP, INFOR_LN, INFOR_M3, INFOR_CSI, INFOR_LAWSON")

    def to_record(self) -> Dict[str, Any]:
        """Flat dict for the field-mapping engine (dates as ISO strings)."""
        return self.model_dump(mode="json")


# =============================================================================
# Master Data
# =============================================================================

class Item(CanonicalBase):
    """Material / item master."""
    item_id: Text
    description: Optional[Text] = None
    base_uom: Optional[Text] = None
    item_type: Optional[Text] = None
    item_group: Optional[Text] = None
    gross_weight: Optional[DecimalValue] = None
    net_weight: Optional[DecimalValue] = None
    weight_unit: Optional[Text] = None
    volume: Optional[DecimalValue] = None
    volume_unit: Optional[Text] = None


class Party(CanonicalBase):
    """Shared address and commercial fields of customers and vendors."""
    name: Optional[Text] = None
    name2: Optional[Text] = None
    search_term: Optional[Text] = None
    street: Optional[Text] = None
    city: Optional[Text] = None
    postal_code: Optional[Text] = None
    country: Optional[Text] = None
    region: Optional[Text] = None
    phone: Optional[Text] = None
    email: Optional[Text] = None
    tax_number: Optional[Text] = None
    payment_terms: Optional[Text] = None
    currency: Optional[Text] = None
    account_group: Optional[Text] = None


class Customer(Party):
    customer_id: Text
    sales_org: Optional[Text] = None
    distribution_channel: Optional[Text] = None


class Vendor(Party):
    vendor_id: Text
    purchase_org: Optional[Text] = None


class ChartOfAccounts(CanonicalBase):
    """One general-ledger account."""
    account_number: Text
    description: Optional[Text] = None
    account_type: Optional[Text] = Field(None, description="BS (balance sheet) or PL (profit and loss)")
    account_group: Optional[Text] = None
    currency: Optional[Text] = None
    tax_category: Optional[Text] = None


class CostCenter(CanonicalBase):
    cost_center: Text
    controlling_area: Optional[Text] = None
    description: Optional[Text] = None
    valid_from: Optional[DateValue] = None
    valid_to: Optional[DateValue] = None
    responsible: Optional[Text] = None
    profit_center: Optional[Text] = None
    category: Optional[Text] = None
    company_code: Optional[Text] = None


# =============================================================================
# Transactions
# =============================================================================

class GlEntry(CanonicalBase):
    """One line of a posted journal."""
    document_number: Text
    company_code: Optional[Text] = None
    fiscal_year: Optional[IntValue] = None
    period: Optional[IntValue] = None
    posting_date: Optional[DateValue] = None
    document_date: Optional[DateValue] = None
    account: Optional[Text] = None
    amount: Optional[DecimalValue] = None
    currency: Optional[Text] = None
    debit_credit: Optional[Text] = Field(None, description="S (debit) or H (credit)")


ENTITY_TYPES = {
    "Item": Item,
    "Customer": Customer,
    "Vendor": Vendor,
    "ChartOfAccounts": ChartOfAccounts,
    "CostCenter": CostCenter,
    "GlEntry": GlEntry,
}
