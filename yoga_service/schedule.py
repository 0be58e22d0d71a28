# yoga_service/schedule.py
"""
Weekday rules shared by every class-instance write path.

A class instance must fall on its course's configured weekday. The weekday
of a date is always taken in the studio timezone, so that the outcome does
not depend on the timezone of whoever submits the write.
"""

from datetime import date as date_type
from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from . import config

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

_DAY_LOOKUP = {}
for _name in DAY_NAMES:
    _DAY_LOOKUP[_name.lower()] = _name
    _DAY_LOOKUP[_name[:3].lower()] = _name


def studio_timezone() -> tzinfo:
    if config.STUDIO_TIMEZONE.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(config.STUDIO_TIMEZONE)


def to_studio_time(value: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Aware datetimes are converted; naive ones are already studio-local."""
    if value.tzinfo is None:
        return value
    return value.astimezone(tz or studio_timezone())


def normalize_day(value: str) -> str:
    """Return the canonical weekday name for `value` ("mon", "MONDAY" -> "Monday")."""
    key = (value or "").strip().lower()
    if key not in _DAY_LOOKUP:
        raise ValueError(f"Unknown day of week: {value!r}")
    return _DAY_LOOKUP[key]


def weekday_name(value, tz: Optional[tzinfo] = None) -> str:
    if isinstance(value, datetime):
        value = to_studio_time(value, tz)
    elif not isinstance(value, date_type):
        raise TypeError(f"Expected date or datetime, got {type(value).__name__}")
    return DAY_NAMES[value.weekday()]


def matches_course_day(value, day_of_week: Optional[str], tz: Optional[tzinfo] = None) -> bool:
    if not day_of_week:
        return False
    return weekday_name(value, tz).lower() == day_of_week.strip().lower()


def day_bounds(value, tz: Optional[tzinfo] = None) -> Tuple[datetime, datetime]:
    """Start and end of the studio-local calendar day containing `value`."""
    tz = tz or studio_timezone()
    day = to_studio_time(value, tz).date() if isinstance(value, datetime) else value
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = start + timedelta(days=1) - timedelta(microseconds=1)
    return start, end


def as_studio_datetime(value: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Attach the studio timezone to naive datetimes."""
    if value.tzinfo is None:
        return value.replace(tzinfo=tz or studio_timezone())
    return value
