"""
Clock-time and UTC date helpers.

Times of day travel as "HH:MM" strings and are always UTC once stored.
Calendar dates are UTC dates; day of week follows the 0 = Sunday convention.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Optional, Union

TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")
DATE_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True, order=True)
class ClockTime:
    hour: int
    minute: int

    def __post_init__(self):
        if not (0 <= self.hour <= 23 and 0 <= self.minute <= 59):
            raise ValueError(f"Invalid time values: {self.hour}:{self.minute}")

    @classmethod
    def parse(cls, value: str) -> "ClockTime":
        match = TIME_PATTERN.fullmatch(value) if isinstance(value, str) else None
        if not match:
            raise ValueError(f"Invalid time format '{value}'. Expected HH:MM")
        return cls(int(match.group(1)), int(match.group(2)))

    @classmethod
    def from_minutes(cls, minutes: int) -> "ClockTime":
        minutes %= MINUTES_PER_DAY
        return cls(minutes // 60, minutes % 60)

    @property
    def minutes(self) -> int:
        return self.hour * 60 + self.minute

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


MIDNIGHT = ClockTime(0, 0)
END_OF_DAY = ClockTime(23, 59)


def is_valid_time_format(value: str) -> bool:
    return isinstance(value, str) and TIME_PATTERN.fullmatch(value) is not None


def is_valid_time_range(start_time: str, end_time: str, allow_midnight_crossover: bool = False) -> bool:
    """
    Check that two clock times form a usable range.

    With crossover allowed any two well-formed times pass: an end at or
    before the start means the range runs past midnight.
    """
    if not is_valid_time_format(start_time) or not is_valid_time_format(end_time):
        return False
    if allow_midnight_crossover:
        return True
    return ClockTime.parse(start_time) < ClockTime.parse(end_time)


def normalize_time(value: str) -> str:
    return str(ClockTime.parse(value))


def utc_midnight(value: Optional[datetime] = None) -> datetime:
    """Truncate to 00:00 UTC. Naive datetimes are taken to be UTC already."""
    if value is None:
        value = datetime.now(timezone.utc)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def _as_utc_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return utc_midnight(value).date()
    return value


def utc_day_of_week(value: Union[date, datetime]) -> int:
    # isoweekday: Monday=1 .. Sunday=7
    return _as_utc_date(value).isoweekday() % 7


def add_days_utc(value: Union[date, datetime], days: int) -> Union[date, datetime]:
    return value + timedelta(days=days)


def date_string_to_utc(value: str) -> datetime:
    match = DATE_PATTERN.fullmatch(value) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"Invalid date format '{value}'. Expected YYYY-MM-DD")
    year, month, day = (int(part) for part in match.groups())
    return datetime(year, month, day, tzinfo=timezone.utc)


def to_iso_date_string(value: Union[date, datetime]) -> str:
    return _as_utc_date(value).isoformat()


def today_utc() -> date:
    return utc_midnight().date()


def iter_utc_dates(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        if current == end:
            break
        current = add_days_utc(current, 1)


def is_date_in_past(date_string: str, today: Optional[date] = None) -> bool:
    try:
        value = date_string_to_utc(date_string).date()
    except ValueError:
        return False
    return value < (today or today_utc())
