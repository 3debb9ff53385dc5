"""Timestamp helpers shared by the lifecycle engine and the alert engine."""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC and normalize aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def hours_between(start: datetime, end: datetime) -> float:
    """Signed number of hours from ``start`` to ``end``."""
    return (ensure_utc(end) - ensure_utc(start)).total_seconds() / 3600.0
