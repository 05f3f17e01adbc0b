"""Named value converters used by ``convert`` mapping rules.

Rules reference converters by name so rule sets stay plain data. Every
converter is a pure function of one value.
"""

import math
import re
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Optional

_INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")
_ODATA_DATE = re.compile(r"^/Date\((-?\d+)(?:[+-]\d+)?\)/$")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")

TRUTHY_FLAGS = ("Y", "X", "y", "x", "1", "T", "true", "TRUE", "True")


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def to_upper_case(value: Any) -> str:
    return "" if value is None else str(value).strip().upper()


def to_lower_case(value: Any) -> str:
    return "" if value is None else str(value).strip().lower()


def trim(value: Any) -> str:
    return "" if value is None else str(value).strip()


def to_decimal(value: Any) -> float:
    """Parse a number; unparsable input gives 0. SAP trailing minus is honored."""
    if _is_empty(value) or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return 0 if isinstance(value, float) and math.isnan(value) else value
    text = str(value).strip().replace(",", "")
    if text.endswith("-") and len(text) > 1:
        text = "-" + text[:-1]
    try:
        number = float(text)
    except ValueError:
        return 0
    return 0 if math.isnan(number) else number


def to_integer(value: Any) -> int:
    """Parse the leading decimal integer; unparsable input gives 0."""
    if _is_empty(value) or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return 0 if math.isnan(value) else int(value)
    match = _INT_PREFIX.match(str(value))
    return int(match.group(1)) if match else 0


def to_date(value: Any) -> Optional[str]:
    """Normalize YYYYMMDD, ISO 8601 and OData ``/Date(ms)/`` to ``YYYY-MM-DD``."""
    if _is_empty(value):
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    if text.isdigit() and len(text) == 8:
        if text == "00000000":
            return None
        return f"{text[0:4]}-{text[4:6]}-{text[6:8]}"
    match = _ISO_DATE.match(text)
    if match:
        return f"{match.group(1)}-{match.group(2)}-{match.group(3)}"
    match = _ODATA_DATE.match(text)
    if match:
        stamp = datetime.fromtimestamp(int(match.group(1)) / 1000, tz=timezone.utc)
        return stamp.date().isoformat()
    return text


def _pad_left(width: int) -> Callable[[Any], str]:
    def pad(value: Any) -> str:
        if value is None:
            return ""
        text = str(value).strip()
        if isinstance(value, float) and value.is_integer():
            text = str(int(value))
        if not text.isdigit():
            return text
        return text.zfill(width)
    pad.__name__ = f"pad_left_{width}"
    return pad


pad_left_10 = _pad_left(10)
pad_left_40 = _pad_left(40)


def bool_yn(value: Any) -> bool:
    return value is True or value == 1 or (isinstance(value, str) and value.strip() in TRUTHY_FLAGS)


def bool_tf(value: Any) -> str:
    return "T" if bool_yn(value) else "F"


def strip_leading_zeros(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip().lstrip("0") or "0"


LN_ITEM_TYPES = {"1": "ROH", "2": "HALB", "3": "FERT", "4": "HAWA", "5": "DIEN", "6": "NLAG"}


def infor_ln_item_type(value: Any) -> str:
    """LN item type code to SAP material type; unknown codes become trading goods."""
    return LN_ITEM_TYPES.get(str(value).strip(), "HAWA")


UOM_TO_ISO = {
    "kg": "KG", "g": "G", "l": "L", "ml": "ML", "m": "M", "cm": "CM", "mm": "MM",
    "pcs": "EA", "ea": "EA", "pc": "EA", "hr": "HUR", "min": "MIN",
    "box": "BX", "pal": "PL", "set": "SET",
}


def infor_uom_to_iso(value: Any) -> str:
    if value is None:
        return ""
    text = str(value).strip()
    return UOM_TO_ISO.get(text.lower(), text.upper())


def infor_ln_company_suffix(value: Any) -> str:
    """Strip the 3-digit company number LN appends to table names."""
    if _is_empty(value):
        return ""
    return re.sub(r"\d{3}$", "", str(value).strip())


def lawson_account_string(value: Any) -> str:
    """Account segment of a Lawson COMPANY-ACCTUNIT-ACCOUNT-SUBACCOUNT string."""
    if _is_empty(value):
        return ""
    parts = str(value).split("-")
    return parts[2] if len(parts) >= 3 else str(value)


CONVERTERS: Dict[str, Callable[[Any], Any]] = {
    "toUpperCase": to_upper_case,
    "toLowerCase": to_lower_case,
    "trim": trim,
    "toDecimal": to_decimal,
    "toInteger": to_integer,
    "toDate": to_date,
    "padLeft10": pad_left_10,
    "padLeft40": pad_left_40,
    "boolYN": bool_yn,
    "boolTF": bool_tf,
    "stripLeadingZeros": strip_leading_zeros,
    "inforLNItemType": infor_ln_item_type,
    "inforUomToISO": infor_uom_to_iso,
    "inforLNCompanySuffix": infor_ln_company_suffix,
    "lawsonAccountString": lawson_account_string,
}


def get_converter(name: str) -> Optional[Callable[[Any], Any]]:
    return CONVERTERS.get(name)
