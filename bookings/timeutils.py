from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date as date_type
from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo

from django.conf import settings
from django.utils import timezone


SLOT_MINUTES = 15
DEFAULT_FACILITY_TIME_ZONE = "America/New_York"

_TWELVE_HOUR_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])\s*$")
_STORAGE_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$")


@dataclass(frozen=True)
class FacilityNow:
    hour: int
    minute: int
    date: date_type
    moment: datetime


def facility_zone() -> ZoneInfo:
    """
    The single zone used to answer "now" and "today" for every facility.
    """
    name = getattr(settings, "COURTTIME_FACILITY_TIME_ZONE", "") or DEFAULT_FACILITY_TIME_ZONE
    return ZoneInfo(name)


def now_in_facility_zone() -> FacilityNow:
    moment = timezone.localtime(timezone.now(), facility_zone())
    return FacilityNow(hour=moment.hour, minute=moment.minute, date=moment.date(), moment=moment)


def today_in_facility_zone() -> date_type:
    return now_in_facility_zone().date


def facility_datetime(date_value: date_type, time_value: time) -> datetime:
    """
    Aware datetime for a wall-clock time on a calendar date in the facility zone.
    """
    return datetime.combine(date_value, time_value, tzinfo=facility_zone())


def parse_storage_time(value: str | time) -> time:
    """
    Accepts "HH:MM" or "HH:MM:SS" (24-hour) and returns a time.
    """
    if isinstance(value, time):
        return value.replace(microsecond=0, tzinfo=None)
    match = _STORAGE_RE.match(str(value))
    if not match:
        raise ValueError(f"Invalid 24-hour time: {value!r}")
    hours, minutes, seconds = int(match.group(1)), int(match.group(2)), int(match.group(3) or 0)
    if hours > 23 or minutes > 59 or seconds > 59:
        raise ValueError(f"Invalid 24-hour time: {value!r}")
    return time(hour=hours, minute=minutes, second=seconds)


def format_storage_time(value: time) -> str:
    return value.strftime("%H:%M:%S")


def to_12_hour(value: str | time) -> str:
    """
    "14:05:00" -> "2:05 PM", "00:30:00" -> "12:30 AM".
    """
    parsed = parse_storage_time(value)
    period = "PM" if parsed.hour >= 12 else "AM"
    hours12 = parsed.hour % 12 or 12
    return f"{hours12}:{parsed.minute:02d} {period}"


def from_12_hour(label: str) -> str:
    """
    "2:05 PM" -> "14:05:00". Inverse of to_12_hour.
    """
    return format_storage_time(label_to_time(label))


def label_to_time(label: str) -> time:
    match = _TWELVE_HOUR_RE.match(label or "")
    if not match:
        raise ValueError(f"Invalid 12-hour time label: {label!r}")
    hours, minutes, period = int(match.group(1)), int(match.group(2)), match.group(3).upper()
    if not 1 <= hours <= 12 or minutes > 59:
        raise ValueError(f"Invalid 12-hour time label: {label!r}")
    if period == "PM" and hours != 12:
        hours += 12
    if period == "AM" and hours == 12:
        hours = 0
    return time(hour=hours, minute=minutes)


def add_minutes(value: time, minutes: int) -> time:
    """
    Wall-clock arithmetic within a single day. Raises ValueError past midnight.
    """
    total = value.hour * 60 + value.minute + minutes
    if total < 0 or total >= 24 * 60:
        raise ValueError("Time range must stay within a single day.")
    return time(hour=total // 60, minute=total % 60, second=value.second)


def minutes_between(start: time, end: time) -> int:
    return (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)


def is_same_calendar_day(a: date_type | datetime, b: date_type | datetime) -> bool:
    """
    Compare calendar dates as seen in the facility zone. Naive datetimes are
    taken to already be facility wall-clock values.
    """
    return _facility_date(a) == _facility_date(b)


def _facility_date(value: date_type | datetime) -> date_type:
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            return value.astimezone(facility_zone()).date()
        return value.date()
    return value


def slot_steps(start: time, count: int, *, minutes: int = SLOT_MINUTES):
    """
    Yield `count` consecutive slot start times beginning at `start`.
    Stops early at midnight.
    """
    current = datetime.combine(date_type.min, start)
    for _ in range(count):
        if current.date() != date_type.min:
            return
        yield current.time()
        current += timedelta(minutes=minutes)
