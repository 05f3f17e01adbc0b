"""Small value transforms shared by the Infor rule sets."""

import re
from typing import Any, Callable


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def zero_pad(width: int, default: str = "") -> Callable[[Any], str]:
    """Left-pad with zeros to ``width``; ``default`` when empty."""
    def pad(value: Any) -> str:
        text = _text(value)
        return text.zfill(width) if text else default
    pad.__name__ = f"zero_pad_{width}"
    return pad


def leading(length: int, default: str = "") -> Callable[[Any], str]:
    """First ``length`` characters, upper-cased; ``default`` when empty."""
    def cut(value: Any) -> str:
        return _text(value)[:length].upper() or default
    cut.__name__ = f"leading_{length}"
    return cut


def numeric_account(value: Any) -> str:
    """Strip leading zeros and re-pad to a 10-digit account number."""
    text = _text(value)
    if not text:
        return ""
    return (text.lstrip("0") or "0").zfill(10)


def digits_only(width: int) -> Callable[[Any], str]:
    """Keep the digits of a code and pad them to ``width``."""
    def keep(value: Any) -> str:
        digits = re.sub(r"\D", "", _text(value))
        return digits.zfill(width) if digits else ""
    keep.__name__ = f"digits_only_{width}"
    return keep


def period_month(value: Any) -> str:
    """YYYYMM accounting period to its 2-digit month."""
    text = _text(value)
    return text[4:6] if len(text) >= 6 else ""


def period_year(value: Any) -> int:
    """YYYYMM accounting period to its fiscal year."""
    text = _text(value)
    return int(text[:4]) if len(text) >= 4 and text[:4].isdigit() else 0


def hours(value: Any) -> float:
    """Operation time in hours; unparsable input gives 0."""
    try:
        return round(float(_text(value) or 0), 3)
    except ValueError:
        return 0.0
