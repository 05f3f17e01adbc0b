"""Source-system to canonical field maps.

Each entry is ``(source_field, canonical_field, convert)`` where ``convert``
is an optional function of the source value. Field lookup is
case-insensitive because LN exports ``t$item`` and ``T$ITEM`` alike.

Usage:
    item = to_canonical("INFOR_M3", "Item", {"MMITNO": "A-100", "MMITDS": "Bolt"})
"""

from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from core.errors import CanonicalMappingError
from core.models.canonical import ENTITY_TYPES, CanonicalBase

FieldMap = Tuple[str, str, Optional[Callable[[Any], Any]]]


def _code_map(table: Dict[str, str]) -> Callable[[Any], Any]:
    def convert(value: Any) -> Any:
        if value is None:
            return None
        return table.get(str(value).strip(), value)
    return convert


def _f(source: str, target: str, convert: Optional[Callable[[Any], Any]] = None) -> FieldMap:
    return (source, target, convert)


_SAP_PARTY = [
    _f("NAME1", "name"), _f("NAME2", "name2"), _f("SORTL", "search_term"),
    _f("STRAS", "street"), _f("ORT01", "city"), _f("PSTLZ", "postal_code"),
    _f("LAND1", "country"), _f("REGIO", "region"), _f("TELF1", "phone"),
    _f("SMTP_ADDR", "email"), _f("STCEG", "tax_number"), _f("ZTERM", "payment_terms"),
    _f("WAERS", "currency"),
]

_LN_PARTY = [
    _f("t$nama", "name"), _f("t$namb", "name2"), _f("t$seak", "search_term"),
    _f("t$lnad", "street"), _f("t$lnci", "city"), _f("t$lnpc", "postal_code"),
    _f("t$lncc", "country"), _f("t$lnst", "region"), _f("t$telp", "phone"),
    _f("t$emal", "email"), _f("t$fovn", "tax_number"), _f("t$cpay", "payment_terms"),
    _f("t$ccur", "currency"),
]

_CSI_PARTY = [
    _f("Name", "name"), _f("Addr1", "street"), _f("City", "city"), _f("Zip", "postal_code"),
    _f("Country", "country"), _f("State", "region"), _f("Phone", "phone"), _f("Email", "email"),
    _f("TermsCode", "payment_terms"), _f("CurrCode", "currency"),
]

_LAWSON_PARTY = [
    _f("NAME", "name"), _f("ADDRESS-1", "street"), _f("CITY", "city"),
    _f("POSTAL-CODE", "postal_code"), _f("COUNTRY", "country"), _f("STATE", "region"),
    _f("PHONE-NUMBER", "phone"), _f("EMAIL-ADDRESS", "email"),
    _f("PAY-TERMS", "payment_terms"), _f("CURRENCY", "currency"),
]


SAP: Dict[str, List[FieldMap]] = {
    # MARA/MAKT
    "Item": [
        _f("MATNR", "item_id"), _f("MAKTX", "description"), _f("MEINS", "base_uom"),
        _f("MTART", "item_type"), _f("MATKL", "item_group"), _f("BRGEW", "gross_weight"),
        _f("NTGEW", "net_weight"), _f("GEWEI", "weight_unit"), _f("VOLUM", "volume"),
        _f("VOLEH", "volume_unit"),
    ],
    # KNA1/KNVV
    "Customer": [_f("KUNNR", "customer_id"), *_SAP_PARTY, _f("KTOKD", "account_group"),
                 _f("VKORG", "sales_org"), _f("VTWEG", "distribution_channel")],
    # LFA1/LFM1
    "Vendor": [_f("LIFNR", "vendor_id"), *_SAP_PARTY, _f("KTOKK", "account_group"),
               _f("EKORG", "purchase_org")],
    # SKA1/SKAT
    "ChartOfAccounts": [
        _f("SAKNR", "account_number"), _f("TXT50", "description"),
        _f("XBILK", "account_type", lambda v: "BS" if str(v or "").strip() == "X" else "PL"),
        _f("KTOKS", "account_group"), _f("WAERS", "currency"), _f("MWSKZ", "tax_category"),
    ],
    # CSKS/CSKT
    "CostCenter": [
        _f("KOSTL", "cost_center"), _f("KOKRS", "controlling_area"), _f("KTEXT", "description"),
        _f("DATAB", "valid_from"), _f("DATBI", "valid_to"), _f("VERAK", "responsible"),
        _f("PRCTR", "profit_center"),
        _f("KOSAR", "category"), _f("BUKRS", "company_code"),
    ],
    # BKPF/BSEG
    "GlEntry": [
        _f("BELNR", "document_number"), _f("BUKRS", "company_code"), _f("GJAHR", "fiscal_year"),
        _f("MONAT", "period"), _f("BUDAT", "posting_date"), _f("BLDAT", "document_date"),
        _f("HKONT", "account"), _f("DMBTR", "amount"), _f("WAERS", "currency"),
        _f("SHKZG", "debit_credit"),
    ],
}

INFOR_LN: Dict[str, List[FieldMap]] = {
    # tcibd001
    "Item": [
        _f("t$item", "item_id"), _f("t$dsca", "description"), _f("t$cuni", "base_uom"),
        _f("t$ctyp", "item_type", _code_map({"1": "FERT", "2": "HALB", "3": "ROH", "4": "HIBE"})),
        _f("t$citg", "item_group"), _f("t$grwe", "gross_weight"), _f("t$newe", "net_weight"),
        _f("t$wuni", "weight_unit"),
    ],
    # tccom100 / tccom110
    "Customer": [_f("t$bpid", "customer_id"), *_LN_PARTY],
    # tccom100 / tccom120
    "Vendor": [_f("t$bpid", "vendor_id"), *_LN_PARTY],
    # tfgld008
    "ChartOfAccounts": [
        _f("t$leac", "account_number"), _f("t$desc", "description"),
        _f("t$actp", "account_type", _code_map({"1": "BS", "2": "PL"})),
        _f("t$agrp", "account_group"), _f("t$ccur", "currency"), _f("t$taxc", "tax_category"),
    ],
    # tfgld102
    "GlEntry": [
        _f("t$docn", "document_number"), _f("t$cpnb", "company_code"), _f("t$year", "fiscal_year"),
        _f("t$perd", "period"), _f("t$dcdt", "posting_date"), _f("t$idat", "document_date"),
        _f("t$leac", "account"), _f("t$amnt", "amount"), _f("t$ccur", "currency"),
        _f("t$dbcr", "debit_credit", _code_map({"D": "S", "C": "H", "1": "S", "2": "H"})),
    ],
}

INFOR_M3: Dict[str, List[FieldMap]] = {
    # MITMAS
    "Item": [
        _f("MMITNO", "item_id"), _f("MMITDS", "description"), _f("MMUNMS", "base_uom"),
        _f("MMITTY", "item_type", _code_map({"10": "FERT", "20": "HALB", "30": "ROH", "50": "HIBE"})),
        _f("MMITGR", "item_group"), _f("MMGRWE", "gross_weight"), _f("MMNEWE", "net_weight"),
        _f("MMWUOM", "weight_unit"), _f("MMVOL3", "volume"), _f("MMVUOM", "volume_unit"),
    ],
    # OCUSMA
    "Customer": [
        _f("OKCUNO", "customer_id"), _f("OKCUNM", "name"), _f("OKCUN2", "name2"),
        _f("OKALCU", "search_term"), _f("OKCUA1", "street"), _f("OKTOWN", "city"),
        _f("OKPONO", "postal_code"), _f("OKCSCD", "country"), _f("OKECAR", "region"),
        _f("OKPHNO", "phone"), _f("OKMAIL", "email"), _f("OKTEPY", "payment_terms"),
        _f("OKCUCD", "currency"),
    ],
    # CIDMAS / CIDVEN
    "Vendor": [
        _f("IISUNO", "vendor_id"), _f("IISUNM", "name"), _f("IISUN2", "name2"),
        _f("IIALSU", "search_term"), _f("IISUA1", "street"), _f("IITOWN", "city"),
        _f("IIPONO", "postal_code"), _f("IICSCD", "country"), _f("IIECAR", "region"),
        _f("IIPHNO", "phone"), _f("IIMAIL", "email"), _f("IITEPY", "payment_terms"),
        _f("IICUCD", "currency"),
    ],
    # FCHACC
    "ChartOfAccounts": [
        _f("AIAITM", "account_number"), _f("AIAITX", "description"),
        _f("AIAITT", "account_type", _code_map({"1": "BS", "2": "PL"})),
        _f("AIAIGR", "account_group"), _f("AICUCD", "currency"),
    ],
}

INFOR_CSI: Dict[str, List[FieldMap]] = {
    # SLItems
    "Item": [
        _f("Item", "item_id"), _f("Description", "description"), _f("UM", "base_uom"),
        _f("ProductCode", "item_type"), _f("ItemGroup", "item_group"),
        _f("UnitWeight", "gross_weight"), _f("NetWeight", "net_weight"), _f("WeightUnits", "weight_unit"),
    ],
    # SLCustomers
    "Customer": [_f("CustNum", "customer_id"), *_CSI_PARTY],
    # SLVendors
    "Vendor": [_f("VendNum", "vendor_id"), *_CSI_PARTY],
    # SLChartOfAccounts
    "ChartOfAccounts": [
        _f("Acct", "account_number"), _f("Description", "description"),
        _f("Type", "account_type", _code_map({"B": "BS", "P": "PL"})),
        _f("AcctGroup", "account_group"), _f("CurrCode", "currency"),
    ],
}

INFOR_LAWSON: Dict[str, List[FieldMap]] = {
    # IC11
    "Item": [
        _f("ITEM-NUMBER", "item_id"), _f("DESCRIPTION", "description"), _f("UM", "base_uom"),
        _f("ITEM-TYPE", "item_type"), _f("ITEM-GROUP", "item_group"),
        _f("WEIGHT", "gross_weight"), _f("WEIGHT-UM", "weight_unit"),
    ],
    # AR01
    "Customer": [_f("CUSTOMER", "customer_id"), *_LAWSON_PARTY],
    # AP01
    "Vendor": [_f("VENDOR", "vendor_id"), *_LAWSON_PARTY],
    # GL01
    "ChartOfAccounts": [
        _f("ACCOUNT", "account_number"), _f("DESCRIPTION", "description"),
        _f("ACCOUNT-TYPE", "account_type", _code_map({"B": "BS", "P": "PL", "R": "PL"})),
        _f("ACCOUNT-GROUP", "account_group"), _f("CURRENCY", "currency"),
    ],
}

MAPPINGS: Dict[str, Dict[str, List[FieldMap]]] = {
    "SAP": SAP,
    "INFOR_LN": INFOR_LN,
    "INFOR_M3": INFOR_M3,
    "INFOR_CSI": INFOR_CSI,
    "INFOR_LAWSON": INFOR_LAWSON,
}


def get_source_systems() -> List[str]:
    return list(MAPPINGS)


def get_mappings(source_system: str, entity_type: str) -> List[FieldMap]:
    """Field map for one source system and canonical entity type.

    Raises:
        CanonicalMappingError: unknown source system or entity type
    """
    system = MAPPINGS.get(source_system)
    if system is None:
        raise CanonicalMappingError(
            f"Unsupported source system: {source_system}",
            details={"sourceSystem": source_system, "supported": get_source_systems()},
        )
    fields = system.get(entity_type)
    if fields is None:
        raise CanonicalMappingError(
            f"No {entity_type} mapping for {source_system}",
            details={"sourceSystem": source_system, "entityType": entity_type, "available": sorted(system)},
        )
    return fields


def _lookup(record: Dict[str, Any], field: str) -> Any:
    if field in record:
        return record[field]
    lowered = field.lower()
    for key, value in record.items():
        if key.lower() == lowered:
            return value
    return None


def to_canonical(source_system: str, entity_type: str, record: Dict[str, Any]) -> CanonicalBase:
    """Normalize one source record into its canonical entity.

    Raises:
        CanonicalMappingError: unknown pair, or the record fails validation
    """
    model = ENTITY_TYPES.get(entity_type)
    if model is None:
        raise CanonicalMappingError(
            f"Unknown canonical entity type: {entity_type}",
            details={"entityType": entity_type, "available": sorted(ENTITY_TYPES)},
        )

    data: Dict[str, Any] = {"source_system": source_system}
    for source, target, convert in get_mappings(source_system, entity_type):
        value = _lookup(record, source)
        if convert is not None:
            value = convert(value)
        data[target] = value

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise CanonicalMappingError(
            f"{source_system} record does not form a valid {entity_type}",
            details={"sourceSystem": source_system, "entityType": entity_type, "errors": e.errors(include_url=False)},
            cause=e,
        )
