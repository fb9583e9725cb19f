"""
Time helpers

- Naive UTC timestamps for storage
- Conversion into the platform timezone for schedule checks
- Start of the platform's current day (booking expiry boundary)
"""

from datetime import datetime, time, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from ..config import PLATFORM_TIMEZONE


def platform_tz() -> ZoneInfo:
    return ZoneInfo(PLATFORM_TIMEZONE)


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_platform_local(dt: datetime) -> datetime:
    """
    Convert a timestamp to platform-local wall-clock time.

    Aware datetimes are converted; naive ones are assumed to already be
    platform-local.
    """
    tz = platform_tz()
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def day_of_week(dt: datetime) -> int:
    """Day index with 0 = Sunday ... 6 = Saturday."""
    return (dt.weekday() + 1) % 7


def platform_day_start_utc(now: Optional[datetime] = None) -> datetime:
    """00:00 of today in the platform timezone, as naive UTC."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local_today = now.astimezone(platform_tz()).date()
    local_midnight = datetime.combine(local_today, time.min, tzinfo=platform_tz())
    return local_midnight.astimezone(timezone.utc).replace(tzinfo=None)


def parse_hhmm(value: Optional[str]) -> Optional[time]:
    """Parse "HH:MM" or "HH:MM:SS"; None for empty or malformed values."""
    if not value:
        return None
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(value.strip(), fmt).time()
        except ValueError:
            continue
    return None


def to_storage_utc(dt: datetime) -> datetime:
    """Naive UTC for storage; naive input is taken as platform-local."""
    return to_platform_local(dt).astimezone(timezone.utc).replace(tzinfo=None)
