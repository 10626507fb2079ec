from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date as date_type
from datetime import datetime, time, timedelta
from typing import Iterator

from django.conf import settings

from .timeutils import (
    SLOT_MINUTES,
    FacilityNow,
    facility_datetime,
    now_in_facility_zone,
    parse_storage_time,
    to_12_hour,
)


logger = logging.getLogger(__name__)

# Slots are labelled by start time and must end before midnight.
LATEST_CLOSE_HOUR = 22

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


@dataclass(frozen=True)
class OperatingWindow:
    """
    Hours a court can be booked on one weekday.

    `close_hour` is the last bookable hour: its quarter-hour slots are part of
    the grid, so a 6-21 window runs from 6:00 AM through the 9:45 PM slot.
    """

    open_hour: int
    close_hour: int
    closed: bool = False

    @property
    def opens_at(self) -> time:
        return time(hour=self.open_hour)

    @property
    def closes_at(self) -> time:
        return time(hour=self.close_hour + 1)

    def contains(self, start: time, end: time) -> bool:
        if self.closed:
            return False
        return self.opens_at <= start and end <= self.closes_at


def default_window() -> OperatingWindow:
    return OperatingWindow(
        open_hour=int(getattr(settings, "COURTTIME_DEFAULT_OPEN_HOUR", 6)),
        close_hour=int(getattr(settings, "COURTTIME_DEFAULT_CLOSE_HOUR", 21)),
    )


def operating_window(operating_hours: dict | None, target_date: date_type) -> OperatingWindow:
    """
    Read the weekday entry of a facility's operating-hours JSON:
    {"monday": {"open": "06:00", "close": "21:00", "closed": false}, ...}
    """
    fallback = default_window()
    entry = (operating_hours or {}).get(WEEKDAYS[target_date.weekday()])
    if not isinstance(entry, dict):
        return fallback
    if entry.get("closed"):
        return OperatingWindow(open_hour=fallback.open_hour, close_hour=fallback.close_hour, closed=True)
    try:
        open_hour = parse_storage_time(entry.get("open") or "").hour
        close_hour = parse_storage_time(entry.get("close") or "").hour
    except ValueError:
        logger.warning("Ignoring malformed operating hours entry %r", entry)
        return fallback
    close_hour = min(close_hour, LATEST_CLOSE_HOUR)
    if close_hour < open_hour:
        logger.warning("Ignoring operating hours that close before they open: %r", entry)
        return fallback
    return OperatingWindow(open_hour=open_hour, close_hour=close_hour)


def iter_slot_times(start_hour: int, end_hour: int) -> Iterator[time]:
    """
    Quarter-hour slot starts from start_hour:00 through end_hour:45.
    """
    current = datetime.combine(date_type.min, time(hour=start_hour))
    last = datetime.combine(date_type.min, time(hour=end_hour)) + timedelta(minutes=60 - SLOT_MINUTES)
    while current <= last:
        yield current.time()
        current += timedelta(minutes=SLOT_MINUTES)


def generate_slot_grid(
    start_hour: int,
    end_hour: int,
    target_date: date_type,
    *,
    now: FacilityNow | None = None,
) -> tuple[str, ...]:
    """
    Slot labels ("2:00 PM") covering the operating window on target_date.

    When target_date is today in the facility zone, slots that already started
    are dropped. If that leaves nothing (today, after closing) the full grid is
    returned instead of an empty one.
    """
    if not 0 <= start_hour <= end_hour <= LATEST_CLOSE_HOUR:
        raise ValueError(f"Invalid operating hours: {start_hour}-{end_hour}")

    times = list(iter_slot_times(start_hour, end_hour))
    full = tuple(to_12_hour(value) for value in times)

    now = now or now_in_facility_zone()
    if target_date != now.date:
        return full

    remaining = tuple(to_12_hour(value) for value in times if not is_past_slot(value, target_date, now=now))
    if not remaining:
        logger.debug("No remaining slots for %s; falling back to the full grid", target_date)
        return full
    return remaining


def grid_for_window(window: OperatingWindow, target_date: date_type, *, now: FacilityNow | None = None) -> tuple[str, ...]:
    if window.closed:
        return ()
    return generate_slot_grid(window.open_hour, window.close_hour, target_date, now=now)


def slot_labels_for_court(court, target_date: date_type, *, now: FacilityNow | None = None) -> tuple[str, ...]:
    return grid_for_window(court.facility.window_for(target_date), target_date, now=now)


def is_past_slot(label_time: time, target_date: date_type, *, now: FacilityNow | None = None) -> bool:
    now = now or now_in_facility_zone()
    return facility_datetime(target_date, label_time) < now.moment
