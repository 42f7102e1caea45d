"""
Timezone utilities for attendance. Every attendance record is bucketed by the
civil date in a fixed zone (Asia/Kolkata by default), never by the server's
local timezone.
"""

from datetime import date, datetime
from datetime import time as datetime_time
from datetime import timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from core.config import ATTENDANCE_TIMEZONE


def from_utc_to_local(utc_dt: datetime, tz: str) -> datetime:
    """
    Convert UTC datetime to local datetime in the specified timezone.

    Args:
        utc_dt: UTC datetime (naive values are treated as UTC)
        tz: IANA timezone string (e.g., 'Asia/Kolkata')

    Returns:
        datetime: Local datetime in the specified timezone
    """
    if utc_dt.tzinfo is None:
        utc_dt = utc_dt.replace(tzinfo=timezone.utc)

    target_tz = ZoneInfo(tz)
    return utc_dt.astimezone(target_tz)


def civil_date(instant: datetime, tz: str = ATTENDANCE_TIMEZONE) -> date:
    """Calendar date of `instant` as seen on a wall clock in `tz`."""
    return from_utc_to_local(instant, tz).date()


def today_in_tz(tz: str = ATTENDANCE_TIMEZONE, now: Optional[datetime] = None) -> date:
    return civil_date(now or utc_now(), tz)


def local_start_of_day(date_or_dt, tz: str) -> datetime:
    """
    Get the start of day (00:00:00) in the specified timezone.

    Args:
        date_or_dt: date or datetime object
        tz: IANA timezone string

    Returns:
        datetime: Start of day in UTC
    """
    if isinstance(date_or_dt, datetime):
        local_date = civil_date(date_or_dt, tz)
    else:
        local_date = date_or_dt

    target_tz = ZoneInfo(tz)
    local_start = datetime.combine(local_date, datetime_time.min, tzinfo=target_tz)
    return local_start.astimezone(timezone.utc)


def next_local_midnight(now: datetime, tz: str = ATTENDANCE_TIMEZONE) -> datetime:
    """UTC instant of the next 00:00 in `tz` after `now`."""
    tomorrow = civil_date(now, tz) + timedelta(days=1)
    return local_start_of_day(tomorrow, tz)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def get_current_time_in_tz(tz: str = ATTENDANCE_TIMEZONE) -> datetime:
    """
    Get current time in the specified timezone.

    Args:
        tz: IANA timezone string

    Returns:
        datetime: Current time in the specified timezone
    """
    return from_utc_to_local(utc_now(), tz)


def validate_timezone(tz: str) -> bool:
    """
    Validate if the timezone string is a valid IANA timezone.
    """
    try:
        ZoneInfo(tz)
        return True
    except Exception:
        return False


def ensure_timezone_aware(dt: datetime, default_tz: Optional[str] = None) -> datetime:
    """
    Ensure a datetime is timezone-aware, defaulting to UTC if naive.

    Args:
        dt: datetime object
        default_tz: Optional default timezone if dt is naive

    Returns:
        datetime: timezone-aware datetime
    """
    if dt.tzinfo is None:
        if default_tz:
            return dt.replace(tzinfo=ZoneInfo(default_tz))
        else:
            return dt.replace(tzinfo=timezone.utc)
    return dt


def to_utc(dt: datetime) -> datetime:
    return ensure_timezone_aware(dt).astimezone(timezone.utc)


def format_utc_datetime(dt: Optional[datetime]) -> Optional[str]:
    """ISO 8601 in UTC with a 'Z' suffix. Naive values are taken as UTC."""
    if dt is None:
        return None
    iso_string = to_utc(dt).isoformat()
    return iso_string.replace("+00:00", "Z")


def parse_hh_mm(value: str) -> datetime_time:
    """Parse an "HH:MM" wall-clock string."""
    hours, minutes = (int(part) for part in value.split(":"))
    return datetime_time(hour=hours, minute=minutes)
