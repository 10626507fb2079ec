from __future__ import annotations

import json
from datetime import date as date_type

from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET
from django.views.decorators.http import require_POST

from .availability import AvailabilityIndex, SlotIntegrityError
from .models import Booking, Court, Facility
from .selection import GestureEvent, GestureKind, SelectionGrid, resolve
from .services import (
    BookingChanges,
    BookingInput,
    BookingResult,
    bookings_for_court_day,
    bookings_for_facility_day,
    bookings_for_user,
    cancel_booking,
    create_booking,
    modify_booking,
    run_booking_operation,
)
from .slots import grid_for_window, is_past_slot
from .timeutils import format_storage_time, label_to_time, now_in_facility_zone, parse_storage_time


_STATUS_BY_CODE = {
    "validation": 400,
    "past_time": 400,
    "conflict": 409,
    "forbidden": 403,
    "not_found": 404,
}


class PayloadError(ValueError):
    pass


def _parse_date(value: str) -> date_type:
    return date_type.fromisoformat(value)


def _field(payload: dict, name: str, alias: str | None = None):
    if name in payload:
        return payload[name]
    if alias and alias in payload:
        return payload[alias]
    return None


def _optional_int(payload: dict, name: str, alias: str) -> int | None:
    value = _field(payload, name, alias)
    if value in (None, ""):
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise PayloadError(f"{name} must be an integer.")
    return value


def _optional_date(payload: dict, name: str, alias: str) -> date_type | None:
    value = str(_field(payload, name, alias) or "").strip()
    if not value:
        return None
    try:
        return _parse_date(value)
    except ValueError as exc:
        raise PayloadError("Invalid date. Expected YYYY-MM-DD.") from exc


def _optional_time(payload: dict, name: str, alias: str):
    value = str(_field(payload, name, alias) or "").strip()
    if not value:
        return None
    try:
        return parse_storage_time(value)
    except ValueError as exc:
        raise PayloadError(f"Invalid {name}. Expected HH:MM or HH:MM:SS.") from exc


def _optional_str(payload: dict, name: str, alias: str | None = None) -> str | None:
    value = _field(payload, name, alias)
    if value is None:
        return None
    if not isinstance(value, str):
        raise PayloadError(f"{name} must be a string.")
    return value


def _load_json(request) -> dict:
    try:
        payload = json.loads(request.body.decode("utf-8") or "{}")
    except json.JSONDecodeError as exc:
        raise PayloadError("Invalid JSON payload.") from exc
    if not isinstance(payload, dict):
        raise PayloadError("Invalid JSON payload.")
    return payload


def _date_param(request) -> date_type:
    date_str = request.GET.get("date", "").strip()
    if not date_str:
        raise PayloadError("Missing required query param: date")
    try:
        return _parse_date(date_str)
    except ValueError as exc:
        raise PayloadError("Invalid date. Expected YYYY-MM-DD.") from exc


def _auth_required():
    return JsonResponse({"error": "Authentication required."}, status=401)


def _integrity_error():
    return JsonResponse(
        {"success": False, "code": "integrity", "error": "Overlapping bookings found for this day."},
        status=500,
    )


def serialize_booking(booking: Booking, *, viewer=None) -> dict:
    """
    Notes are private to the booking owner and staff when a viewer is given.
    """
    show_notes = viewer is None or viewer.is_staff or booking.user_id == viewer.id
    return {
        "id": booking.id,
        "court_id": booking.court_id,
        "court_name": booking.court.name,
        "user_id": booking.user_id,
        "facility_id": booking.facility_id,
        "booking_date": booking.booking_date.isoformat(),
        "start_time": format_storage_time(booking.start_time),
        "end_time": format_storage_time(booking.end_time),
        "duration_minutes": booking.duration_minutes,
        "status": booking.status,
        "booking_type": booking.booking_type,
        "notes": booking.notes if show_notes else "",
        "created_at": booking.created_at.isoformat() if booking.created_at else None,
        "updated_at": booking.updated_at.isoformat() if booking.updated_at else None,
    }


def _result_response(result: BookingResult, *, success_status: int = 200, message: str = "") -> JsonResponse:
    if not result.success:
        body = {"success": False, "code": result.error_code, "error": result.message}
        if result.details:
            body["details"] = result.details
        return JsonResponse(body, status=_STATUS_BY_CODE.get(result.error_code, 400))
    return JsonResponse(
        {"success": True, "message": message, "booking": serialize_booking(result.booking)},
        status=success_status,
    )


@require_GET
def facility_bookings_api(request, facility_id: str):
    """
    GET /api/bookings/facility/<facility_id>/?date=YYYY-MM-DD
    """
    if not request.user.is_authenticated:
        return _auth_required()
    try:
        target_date = _date_param(request)
    except PayloadError as exc:
        return JsonResponse({"error": str(exc)}, status=400)

    bookings = bookings_for_facility_day(facility_id, target_date)
    return JsonResponse({"success": True, "bookings": [serialize_booking(b, viewer=request.user) for b in bookings]})


@require_GET
def court_bookings_api(request, court_id: int):
    """
    GET /api/bookings/court/<court_id>/?date=YYYY-MM-DD[&exclude_booking_id=123]
    """
    if not request.user.is_authenticated:
        return _auth_required()
    try:
        target_date = _date_param(request)
    except PayloadError as exc:
        return JsonResponse({"error": str(exc)}, status=400)

    exclude_str = request.GET.get("exclude_booking_id", "").strip()
    exclude_id = None
    if exclude_str:
        if not exclude_str.isdigit():
            return JsonResponse({"error": "Invalid exclude_booking_id. Expected an integer."}, status=400)
        exclude_id = int(exclude_str)

    bookings = bookings_for_court_day(court_id, target_date, exclude_booking_id=exclude_id)
    return JsonResponse({"success": True, "bookings": [serialize_booking(b, viewer=request.user) for b in bookings]})


@require_GET
def my_bookings_api(request):
    """
    GET /api/bookings/mine/?upcoming=true|false
    """
    if not request.user.is_authenticated:
        return _auth_required()
    upcoming = request.GET.get("upcoming", "true").strip().lower() != "false"
    bookings = bookings_for_user(request.user, upcoming=upcoming)
    return JsonResponse({"success": True, "bookings": [serialize_booking(b) for b in bookings]})


@require_GET
def booking_detail_api(request, booking_id: int):
    if not request.user.is_authenticated:
        return _auth_required()
    booking = Booking.objects.select_related("court").filter(id=booking_id).first()
    if booking is None:
        return JsonResponse({"success": False, "code": "not_found", "error": "Booking not found."}, status=404)
    if booking.user_id != request.user.id and not request.user.is_staff:
        return JsonResponse(
            {"success": False, "code": "forbidden", "error": "You do not have permission to view this booking."},
            status=403,
        )
    return JsonResponse({"success": True, "booking": serialize_booking(booking)})


def _facility_day(facility: Facility, target_date: date_type, court_type: str = ""):
    courts = list(facility.courts.all())
    if court_type:
        courts = [court for court in courts if court.court_type == court_type]
    index = AvailabilityIndex.build(
        bookings_for_facility_day(facility.id, target_date),
        court_names=[court.name for court in courts],
    )
    return courts, index


@require_GET
def calendar_api(request, facility_id: str):
    """
    GET /api/calendar/<facility_id>/?date=YYYY-MM-DD[&court_type=tennis]

    Slot grid for the day plus each court's occupancy keyed by slot label.
    """
    if not request.user.is_authenticated:
        return _auth_required()
    try:
        target_date = _date_param(request)
    except PayloadError as exc:
        return JsonResponse({"error": str(exc)}, status=400)

    facility = get_object_or_404(Facility, id=facility_id)
    court_type = request.GET.get("court_type", "").strip().lower()
    if court_type in ("", "all"):
        court_type = ""
    elif court_type not in Court.CourtType.values:
        return JsonResponse({"error": "Invalid court_type."}, status=400)

    now = now_in_facility_zone()
    window = facility.window_for(target_date)
    labels = grid_for_window(window, target_date, now=now)
    try:
        courts, index = _facility_day(facility, target_date, court_type)
    except SlotIntegrityError:
        return _integrity_error()

    return JsonResponse(
        {
            "facility": {"id": facility.id, "name": facility.name},
            "date": target_date.isoformat(),
            "now": {"hour": now.hour, "minute": now.minute, "date": now.date.isoformat()},
            "is_today": target_date == now.date,
            "closed": window.closed,
            "time_slots": list(labels),
            "past_slots": [
                label for label in labels if is_past_slot(label_to_time(label), target_date, now=now)
            ],
            "courts": [
                {
                    "id": court.id,
                    "name": court.name,
                    "court_type": court.court_type,
                    "status": court.status,
                    "slots": {
                        label: occupancy.as_dict() for label, occupancy in index.for_court(court.name).items()
                    },
                }
                for court in courts
            ],
        }
    )


@require_POST
def create_booking_api(request):
    """
    POST /api/bookings/
    Payload (JSON, snake_case or camelCase):
      - court_id: int
      - facility_id: str
      - booking_date: YYYY-MM-DD
      - start_time: HH:MM[:SS]
      - duration_minutes: int and/or end_time: HH:MM[:SS]
      - booking_type, notes: optional
    """
    if not request.user.is_authenticated:
        return _auth_required()

    try:
        payload = _load_json(request)
        data = BookingInput(
            court_id=_optional_int(payload, "court_id", "courtId"),
            facility_id=_optional_str(payload, "facility_id", "facilityId"),
            booking_date=_optional_date(payload, "booking_date", "bookingDate"),
            start_time=_optional_time(payload, "start_time", "startTime"),
            end_time=_optional_time(payload, "end_time", "endTime"),
            duration_minutes=_optional_int(payload, "duration_minutes", "durationMinutes"),
            booking_type=_optional_str(payload, "booking_type", "bookingType") or "",
            notes=_optional_str(payload, "notes") or "",
        )
    except PayloadError as exc:
        return JsonResponse({"success": False, "code": "validation", "error": str(exc)}, status=400)

    result = run_booking_operation(create_booking, user=request.user, data=data)
    return _result_response(result, success_status=201, message="Booking created successfully.")


@require_POST
def update_booking_api(request, booking_id: int):
    """
    POST /api/bookings/<id>/update/
    Payload: any of court_id, booking_date, start_time, duration_minutes,
    end_time, booking_type, notes.
    """
    if not request.user.is_authenticated:
        return _auth_required()

    try:
        payload = _load_json(request)
        changes = BookingChanges(
            court_id=_optional_int(payload, "court_id", "courtId"),
            booking_date=_optional_date(payload, "booking_date", "bookingDate"),
            start_time=_optional_time(payload, "start_time", "startTime"),
            end_time=_optional_time(payload, "end_time", "endTime"),
            duration_minutes=_optional_int(payload, "duration_minutes", "durationMinutes"),
            booking_type=_optional_str(payload, "booking_type", "bookingType"),
            notes=_optional_str(payload, "notes"),
        )
    except PayloadError as exc:
        return JsonResponse({"success": False, "code": "validation", "error": str(exc)}, status=400)

    result = run_booking_operation(modify_booking, user=request.user, booking_id=booking_id, changes=changes)
    return _result_response(result, message="Booking updated successfully.")


@require_POST
def cancel_booking_api(request, booking_id: int):
    """
    POST /api/bookings/<id>/cancel/
    """
    if not request.user.is_authenticated:
        return _auth_required()

    result = run_booking_operation(cancel_booking, user=request.user, booking_id=booking_id)
    return _result_response(result, message="Booking cancelled.")


@require_POST
def resolve_selection_api(request):
    """
    POST /api/selection/resolve/
    Payload (JSON):
      - facility_id: str
      - date: YYYY-MM-DD
      - events: [{"type": "press"|"enter"|"release", "court": "Court 1", "slot": "2:00 PM"}, ...]

    Replays a drag gesture against the current grid and returns the booking
    range it collapses into, or null when nothing selectable was covered.
    """
    if not request.user.is_authenticated:
        return _auth_required()

    try:
        payload = _load_json(request)
        facility_id = _optional_str(payload, "facility_id", "facilityId")
        target_date = _optional_date(payload, "date", "bookingDate")
        raw_events = payload.get("events")
        if not facility_id or target_date is None:
            raise PayloadError("facility_id and date are required.")
        if not isinstance(raw_events, list):
            raise PayloadError("events must be a list.")
        events = [
            GestureEvent(
                kind=GestureKind(str(raw.get("type", ""))),
                court=str(raw.get("court", "")),
                label=str(raw.get("slot", "")),
            )
            for raw in raw_events
        ]
    except (PayloadError, ValueError, AttributeError) as exc:
        return JsonResponse({"success": False, "code": "validation", "error": str(exc)}, status=400)

    facility = get_object_or_404(Facility, id=facility_id)
    now = now_in_facility_zone()
    labels = grid_for_window(facility.window_for(target_date), target_date, now=now)
    try:
        courts, index = _facility_day(facility, target_date)
    except SlotIntegrityError:
        return _integrity_error()
    grid = SelectionGrid.from_index(
        labels,
        index,
        courts=[court.name for court in courts],
        past_labels=[label for label in labels if is_past_slot(label_to_time(label), target_date, now=now)],
        blocked_courts=[court.name for court in courts if not court.is_bookable],
    )

    state = resolve(grid, events)
    candidate = state.committed
    if candidate is None:
        return JsonResponse({"success": True, "candidate": None})

    court = next(court for court in courts if court.name == candidate.court)
    return JsonResponse(
        {
            "success": True,
            "candidate": {
                "court_id": court.id,
                "court_name": court.name,
                "facility_id": facility.id,
                "booking_date": target_date.isoformat(),
                "start_time": format_storage_time(candidate.start_time),
                "end_time": format_storage_time(candidate.end_time),
                "duration_minutes": candidate.duration_minutes,
                "slot_count": candidate.slot_count,
            },
        }
    )
