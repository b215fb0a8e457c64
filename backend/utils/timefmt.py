"""
Module: backend/utils/timefmt.py
UTC helpers. SQLite hands back naive datetimes even for timezone=True columns,
so every comparison goes through as_utc().
"""
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any

from utils.errors import InvalidArgument


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def iso(dt: datetime | None) -> str | None:
    dt = as_utc(dt)
    return dt.isoformat() if dt else None


def parse_iso(value: Any, field: str) -> datetime | None:
    """Parse an ISO-8601 string (trailing 'Z' accepted); None/'' pass through."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if not isinstance(value, str):
        raise InvalidArgument(f"{field} must be an ISO-8601 string", details={"field": field})
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        raise InvalidArgument(f"{field} is not a valid ISO-8601 datetime", details={"field": field, "value": value})
    return as_utc(parsed)
