"""Timezone helpers shared by the waitlist and refund code."""

from datetime import datetime, time, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round trip)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_hhmm(value: str) -> time:
    """Parse an ``HH:MM`` string from a tenant's schedule config."""
    hours, minutes = value.split(":", 1)
    return time(int(hours), int(minutes))
