from __future__ import annotations

from dataclasses import dataclass
from datetime import date as date_type
from datetime import time
from typing import Iterable

from .models import Booking


@dataclass(frozen=True)
class Candidate:
    court_id: int
    booking_date: date_type
    start_time: time
    end_time: time


def overlaps(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    """
    Half-open interval overlap: [a) and [b) sharing only a boundary do not overlap.
    """
    return start_a < end_b and end_a > start_b


def first_overlap(candidate: Candidate, bookings: Iterable, *, exclude_booking_id=None):
    """
    In-memory form of the check, for booking lists already fetched for the
    candidate's court and date.
    """
    for existing in bookings:
        if exclude_booking_id is not None and existing.id == exclude_booking_id:
            continue
        if existing.status not in Booking.ACTIVE_STATUSES:
            continue
        if overlaps(candidate.start_time, candidate.end_time, existing.start_time, existing.end_time):
            return existing
    return None


def find_conflict(candidate: Candidate, *, exclude_booking_id=None) -> Booking | None:
    """
    First active booking on the candidate's court and date that overlaps it.

    Callers that write must run this inside the same transaction as the write,
    after locking the court row.
    """
    qs = Booking.objects.filter(
        court_id=candidate.court_id,
        booking_date=candidate.booking_date,
        status__in=Booking.ACTIVE_STATUSES,
        start_time__lt=candidate.end_time,
        end_time__gt=candidate.start_time,
    ).order_by("start_time")
    if exclude_booking_id is not None:
        qs = qs.exclude(id=exclude_booking_id)
    return qs.first()


def has_conflict(candidate: Candidate, *, exclude_booking_id=None) -> bool:
    return find_conflict(candidate, exclude_booking_id=exclude_booking_id) is not None
