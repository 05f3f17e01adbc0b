"""Timezone-aware UTC timestamps shared by events, errors and artifacts."""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """ISO 8601 with a ``Z`` suffix, e.g. ``2024-01-31T08:00:00.123456Z``."""
    return to_iso(utc_now())


def to_iso(value: datetime) -> str:
    return as_utc(value).isoformat().replace("+00:00", "Z")


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
