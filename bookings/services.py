from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date as date_type
from datetime import datetime, time
from typing import Callable

from django.core.exceptions import PermissionDenied
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from .conflicts import Candidate, find_conflict
from .emails import BookingEmailPayload, send_booking_email
from .models import Booking, Court
from .timeutils import (
    SLOT_MINUTES,
    add_minutes,
    facility_datetime,
    facility_zone,
    minutes_between,
    now_in_facility_zone,
    to_12_hour,
)


logger = logging.getLogger(__name__)


class BookingError(Exception):
    """Base error type for booking domain errors."""

    code = "error"

    def __init__(self, message: str = "", details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class BookingValidationError(BookingError):
    """Missing fields, bad granularity, range outside operating hours."""

    code = "validation"


class PastBookingError(BookingError):
    """Raised when the booking start has already elapsed in the facility zone."""

    code = "past_time"


class BookingConflictError(BookingError):
    """Raised when the range overlaps an active booking on the same court."""

    code = "conflict"

    def __init__(self, message: str, conflicting: Booking | None = None):
        details = {}
        if conflicting is not None:
            details = {
                "conflicting_booking_id": conflicting.id,
                "conflicting_start_time": conflicting.start_time.strftime("%H:%M:%S"),
                "conflicting_end_time": conflicting.end_time.strftime("%H:%M:%S"),
            }
        super().__init__(message, details)
        self.conflicting = conflicting


class BookingPermissionError(BookingError, PermissionDenied):
    """Cancel/modify attempted by someone who neither owns the booking nor is staff."""

    code = "forbidden"


class BookingNotFoundError(BookingError):
    code = "not_found"


@dataclass(frozen=True)
class BookingInput:
    court_id: int | None
    facility_id: str | None
    booking_date: date_type | None
    start_time: time | None
    duration_minutes: int | None = None
    end_time: time | None = None
    booking_type: str = ""
    notes: str = ""


@dataclass(frozen=True)
class BookingChanges:
    court_id: int | None = None
    booking_date: date_type | None = None
    start_time: time | None = None
    duration_minutes: int | None = None
    end_time: time | None = None
    booking_type: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class BookingResult:
    """
    Outcome of a lifecycle operation: the booking on success, otherwise the
    error code and message the caller should surface.
    """

    success: bool
    booking: Booking | None = None
    error_code: str = ""
    message: str = ""
    details: dict = field(default_factory=dict)

    @classmethod
    def failure(cls, exc: BookingError) -> "BookingResult":
        return cls(success=False, error_code=exc.code, message=exc.message, details=exc.details)


def run_booking_operation(operation: Callable[..., Booking], **kwargs) -> BookingResult:
    """
    Recover domain errors into a BookingResult. Database failures propagate.
    """
    try:
        booking = operation(**kwargs)
    except BookingError as exc:
        return BookingResult.failure(exc)
    return BookingResult(success=True, booking=booking)


def _resolve_range(start_time: time, duration_minutes: int | None, end_time: time | None) -> tuple[time, int]:
    """
    Returns (end_time, duration_minutes) after checking they agree.
    """
    if duration_minutes is None and end_time is None:
        raise BookingValidationError("Missing required fields.", {"duration_minutes": "Duration or end time is required."})

    if duration_minutes is None:
        duration_minutes = minutes_between(start_time, end_time)
    if duration_minutes <= 0:
        raise BookingValidationError("End time must be after start time.", {"end_time": "End time must be after start time."})
    if duration_minutes % SLOT_MINUTES:
        raise BookingValidationError(
            f"Duration must be a multiple of {SLOT_MINUTES} minutes.",
            {"duration_minutes": f"Duration must be a multiple of {SLOT_MINUTES} minutes."},
        )
    if start_time.minute % SLOT_MINUTES or start_time.second:
        raise BookingValidationError(
            "Start time must fall on a slot boundary.",
            {"start_time": f"Start time must be on a {SLOT_MINUTES}-minute boundary."},
        )

    try:
        computed_end = add_minutes(start_time, duration_minutes)
    except ValueError as exc:
        raise BookingValidationError(str(exc), {"end_time": str(exc)}) from exc

    if end_time is not None and end_time != computed_end:
        raise BookingValidationError(
            "End time does not match start time plus duration.",
            {"end_time": "End time must equal start time plus duration."},
        )
    return computed_end, duration_minutes


def _validate_required(data: BookingInput) -> None:
    missing = {
        name: "This field is required."
        for name in ("court_id", "facility_id", "booking_date", "start_time")
        if getattr(data, name) in (None, "")
    }
    if missing:
        raise BookingValidationError("Missing required fields.", missing)


def _validate_not_past(date_value: date_type, start_time: time) -> None:
    if facility_datetime(date_value, start_time) < now_in_facility_zone().moment:
        raise PastBookingError("You cannot book a time that has already started.")


def _validate_court_window(court: Court, date_value: date_type, start_time: time, end_time: time) -> None:
    if not court.is_bookable:
        raise BookingValidationError(
            f"{court.name} is not available for booking ({court.get_status_display().lower()}).",
            {"court_id": "Court is not available for booking."},
        )
    window = court.facility.window_for(date_value)
    if not window.contains(start_time, end_time):
        if window.closed:
            message = f"{court.facility.name} is closed on that day."
        else:
            message = (
                f"Bookings must fall between {to_12_hour(window.opens_at)} and {to_12_hour(window.closes_at)}."
            )
        raise BookingValidationError(message, {"start_time": message})


def _lock_court(court_id: int) -> Court:
    try:
        return Court.objects.select_for_update(of=("self",)).select_related("facility").get(id=court_id)
    except Court.DoesNotExist as exc:
        raise BookingNotFoundError("Court not found.") from exc


def _conflict_message(conflicting: Booking) -> str:
    return f"{conflicting.court.name} is already booked {conflicting.time_range_label}. Please pick another time."


def _notify(event: str, booking: Booking) -> None:
    payload = BookingEmailPayload.from_booking(event, booking)
    if not payload.to_email:
        return
    transaction.on_commit(lambda: send_booking_email(payload))


def lock_and_check_range(
    *,
    court_id: int,
    booking_date: date_type,
    start_time: time,
    duration_minutes: int | None = None,
    end_time: time | None = None,
    facility_id: str | None = None,
    exclude_booking_id=None,
) -> tuple[Court, time, int]:
    """
    Every check a booking write needs, with the court row locked.

    Must run inside the transaction that performs the write: the lock and the
    overlap result only hold until that transaction ends.
    Returns (court, end_time, duration_minutes).
    """
    end_time, duration = _resolve_range(start_time, duration_minutes, end_time)
    _validate_not_past(booking_date, start_time)

    court = _lock_court(court_id)
    if facility_id is not None and court.facility_id != facility_id:
        raise BookingValidationError(
            "Court does not belong to that facility.",
            {"court_id": "Court does not belong to that facility."},
        )
    _validate_court_window(court, booking_date, start_time, end_time)

    conflicting = find_conflict(
        Candidate(court_id=court.id, booking_date=booking_date, start_time=start_time, end_time=end_time),
        exclude_booking_id=exclude_booking_id,
    )
    if conflicting is not None:
        logger.info(
            "Rejected booking on court %s %s %s-%s: overlaps booking %s",
            court.id,
            booking_date,
            start_time,
            end_time,
            conflicting.id,
        )
        raise BookingConflictError(_conflict_message(conflicting), conflicting)
    return court, end_time, duration


def create_booking(*, user, data: BookingInput) -> Booking:
    """
    Create a confirmed booking safely:
    - Validates shape and rejects starts that already elapsed.
    - Locks the target Court row so writers on one court are serialized.
    - Re-checks overlap in-transaction, right before the insert.
    - Relies on a partial unique constraint as the final guard.
    """
    _validate_required(data)

    try:
        with transaction.atomic():
            court, end_time, duration = lock_and_check_range(
                court_id=data.court_id,
                facility_id=data.facility_id,
                booking_date=data.booking_date,
                start_time=data.start_time,
                duration_minutes=data.duration_minutes,
                end_time=data.end_time,
            )
            booking = Booking.objects.create(
                court=court,
                user=user,
                facility=court.facility,
                booking_date=data.booking_date,
                start_time=data.start_time,
                end_time=end_time,
                duration_minutes=duration,
                status=Booking.Status.CONFIRMED,
                booking_type=Booking.normalize_booking_type(data.booking_type),
                notes=data.notes or "",
            )
            _notify("created", booking)
    except IntegrityError as exc:
        raise BookingConflictError("That time was just booked by someone else. Please pick another.") from exc

    logger.info("Created booking %s on court %s %s %s-%s", booking.id, court.id, booking.booking_date, booking.start_time, end_time)
    return booking


def cancel_booking(*, user, booking_id: int) -> Booking:
    """
    Soft-cancel a booking (owner or staff, future-only). Cancelling an already
    cancelled booking is a no-op.
    """
    with transaction.atomic():
        try:
            booking = (
                Booking.objects.select_for_update(of=("self",))
                .select_related("court", "facility", "user")
                .get(id=booking_id)
            )
        except Booking.DoesNotExist as exc:
            raise BookingNotFoundError("Booking not found.") from exc

        if booking.user_id != user.id and not user.is_staff:
            raise BookingPermissionError("You do not have permission to cancel this booking.")

        if booking.status == Booking.Status.CANCELLED:
            return booking

        if booking.status == Booking.Status.COMPLETED or not booking.is_future():
            raise PastBookingError("Past bookings cannot be cancelled.")

        booking.status = Booking.Status.CANCELLED
        booking.save(update_fields=["status", "updated_at"])
        _notify("cancelled", booking)

    logger.info("Cancelled booking %s (requested by user %s)", booking.id, user.id)
    return booking


def modify_booking(*, user, booking_id: int, changes: BookingChanges) -> Booking:
    """
    Update a booking in place (owner or staff, future-only), keeping its id.

    The overlap check excludes the booking itself and runs in the same
    transaction as the update, with the old and new court rows locked.
    """
    try:
        with transaction.atomic():
            try:
                booking = (
                    Booking.objects.select_for_update(of=("self",))
                    .select_related("court", "facility", "user")
                    .get(id=booking_id)
                )
            except Booking.DoesNotExist as exc:
                raise BookingNotFoundError("Booking not found.") from exc

            if booking.user_id != user.id and not user.is_staff:
                raise BookingPermissionError("You do not have permission to edit this booking.")

            if not booking.is_active:
                raise BookingValidationError(
                    f"{booking.get_status_display()} bookings cannot be modified.",
                    {"status": "Only active bookings can be modified."},
                )
            if not booking.is_future():
                raise PastBookingError("Past bookings cannot be modified.")

            court_id = changes.court_id if changes.court_id is not None else booking.court_id
            booking_date = changes.booking_date if changes.booking_date is not None else booking.booking_date
            start_time = changes.start_time if changes.start_time is not None else booking.start_time
            duration = changes.duration_minutes
            end_time = changes.end_time
            if duration is None and end_time is None:
                duration = booking.duration_minutes
            end_time, duration = _resolve_range(start_time, duration, end_time)
            _validate_not_past(booking_date, start_time)

            locked = {}
            for locked_id in sorted({booking.court_id, court_id}):
                locked[locked_id] = _lock_court(locked_id)
            court = locked[court_id]

            if court.facility_id != booking.facility_id:
                raise BookingValidationError(
                    "Bookings cannot be moved to another facility.",
                    {"court_id": "Court does not belong to the booking's facility."},
                )
            _validate_court_window(court, booking_date, start_time, end_time)

            conflicting = find_conflict(
                Candidate(court_id=court.id, booking_date=booking_date, start_time=start_time, end_time=end_time),
                exclude_booking_id=booking.id,
            )
            if conflicting is not None:
                logger.info("Rejected change to booking %s: overlaps booking %s", booking.id, conflicting.id)
                raise BookingConflictError(_conflict_message(conflicting), conflicting)

            booking.court = court
            booking.booking_date = booking_date
            booking.start_time = start_time
            booking.end_time = end_time
            booking.duration_minutes = duration
            if changes.booking_type is not None:
                booking.booking_type = Booking.normalize_booking_type(changes.booking_type)
            if changes.notes is not None:
                booking.notes = changes.notes
            booking.save(
                update_fields=[
                    "court",
                    "booking_date",
                    "start_time",
                    "end_time",
                    "duration_minutes",
                    "booking_type",
                    "notes",
                    "updated_at",
                ]
            )
            _notify("updated", booking)
    except IntegrityError as exc:
        raise BookingConflictError("That time was just booked by someone else. Please pick another.") from exc

    logger.info("Modified booking %s -> court %s %s %s-%s", booking.id, court.id, booking_date, start_time, end_time)
    return booking


def complete_elapsed_bookings(*, now: datetime | None = None) -> int:
    """
    Flip confirmed bookings whose end has passed to completed. Returns the count.
    """
    moment = timezone.localtime(now or timezone.now(), facility_zone())
    elapsed = Booking.objects.filter(status=Booking.Status.CONFIRMED).filter(
        Q(booking_date__lt=moment.date()) | Q(booking_date=moment.date(), end_time__lte=moment.time())
    )
    count = elapsed.update(status=Booking.Status.COMPLETED, updated_at=timezone.now())
    if count:
        logger.info("Marked %s elapsed bookings as completed", count)
    return count


def bookings_for_facility_day(facility_id: str, booking_date: date_type):
    return (
        Booking.objects.select_related("court", "user")
        .filter(facility_id=facility_id, booking_date=booking_date)
        .exclude(status=Booking.Status.CANCELLED)
        .order_by("start_time", "court__court_number", "court__name")
    )


def bookings_for_court_day(court_id: int, booking_date: date_type, *, exclude_booking_id=None):
    qs = (
        Booking.objects.select_related("court", "user")
        .filter(court_id=court_id, booking_date=booking_date)
        .exclude(status=Booking.Status.CANCELLED)
        .order_by("start_time")
    )
    if exclude_booking_id is not None:
        qs = qs.exclude(id=exclude_booking_id)
    return qs


def bookings_for_user(user, *, upcoming: bool = True):
    today = now_in_facility_zone().date
    qs = (
        Booking.objects.select_related("court", "facility")
        .filter(user=user)
        .exclude(status=Booking.Status.CANCELLED)
    )
    if upcoming:
        return qs.filter(booking_date__gte=today).order_by("booking_date", "start_time")
    return qs.filter(booking_date__lt=today).order_by("-booking_date", "-start_time")
