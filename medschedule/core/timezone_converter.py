"""
Conversion of recurring wall-clock times between an IANA zone and UTC.

Working hours repeat weekly, so conversions are anchored on one fixed
reference date instead of the date a slot eventually lands on. Daylight
saving changes between the reference date and the real date are not
reflected.

Example:
    A doctor in Karachi (UTC+5) submits 09:00-17:00 with timezone
    "Asia/Karachi". The rule is stored as 04:00-12:00. A patient viewing
    it with timezone "Europe/Istanbul" sees 07:00-15:00.
"""

from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from medschedule.core.time_utils import ClockTime

# Middle of the year, clear of the spring and autumn transitions
REFERENCE_DATE = date(2024, 7, 15)


def _zone(name: str) -> ZoneInfo:
    if not name:
        raise ValueError("Timezone is required")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        # Directory keys such as "America" surface as IsADirectoryError
        raise ValueError(f"Invalid timezone: {name}") from e


def is_valid_timezone(name: str) -> bool:
    if not name or not isinstance(name, str):
        return False
    try:
        _zone(name)
    except ValueError:
        return False
    return True


def _anchor(time_string: str, tz) -> datetime:
    clock = ClockTime.parse(time_string)
    return datetime(
        REFERENCE_DATE.year, REFERENCE_DATE.month, REFERENCE_DATE.day, clock.hour, clock.minute, tzinfo=tz
    )


def local_time_to_utc(time_string: str, source_timezone: str) -> str:
    """
    Convert "HH:MM" in ``source_timezone`` to "HH:MM" in UTC.

    >>> local_time_to_utc("09:00", "Asia/Karachi")
    '04:00'
    """
    local = _anchor(time_string, _zone(source_timezone))
    return local.astimezone(timezone.utc).strftime("%H:%M")


def utc_to_local_time(time_string: str, target_timezone: str) -> str:
    """
    Convert "HH:MM" in UTC to "HH:MM" in ``target_timezone``.

    >>> utc_to_local_time("04:00", "Europe/Istanbul")
    '07:00'
    """
    zone = _zone(target_timezone)
    return _anchor(time_string, timezone.utc).astimezone(zone).strftime("%H:%M")


def timezone_offset_minutes(name: str, at: Optional[datetime] = None) -> int:
    if at is None:
        at = datetime.now(timezone.utc)
    elif at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    offset = at.astimezone(_zone(name)).utcoffset()
    return int(offset.total_seconds() // 60)


def format_timezone_offset(name: str, at: Optional[datetime] = None) -> str:
    minutes = timezone_offset_minutes(name, at)
    sign = "+" if minutes >= 0 else "-"
    hours, remainder = divmod(abs(minutes), 60)
    return f"{sign}{hours:02d}:{remainder:02d}"


def reference_offset(name: str) -> str:
    """Offset used by the HH:MM conversions above, as "+05:30"."""
    at = datetime(REFERENCE_DATE.year, REFERENCE_DATE.month, REFERENCE_DATE.day, 12, 0, tzinfo=timezone.utc)
    return format_timezone_offset(name, at)
