from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """UTC datetime as ISO-8601 string with Z (second precision)."""
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def utcnow_iso() -> str:
    """Current UTC time as ISO-8601 string with Z."""
    return to_iso(utcnow())


def iso_in(*, minutes: int) -> str:
    """ISO timestamp `minutes` from now. Fixed-width, so it sorts as a string."""
    return to_iso(utcnow() + timedelta(minutes=minutes))
