import datetime as dt
from zoneinfo import ZoneInfo

import pytest
from django.utils import timezone

from bookings.models import Booking, Court, Facility
from bookings.slots import WEEKDAYS
from bookings.timeutils import FacilityNow


NEW_YORK = ZoneInfo("America/New_York")

# Monday morning in the facility zone; bookings in tests land on TOMORROW.
MORNING = dt.datetime(2026, 6, 15, 10, 0, tzinfo=NEW_YORK)
TODAY = MORNING.date()
TOMORROW = TODAY + dt.timedelta(days=1)


def facility_now(moment: dt.datetime) -> FacilityNow:
    local = moment.astimezone(NEW_YORK)
    return FacilityNow(hour=local.hour, minute=local.minute, date=local.date(), moment=local)


def daily_hours(open_at="06:00", close_at="21:00"):
    return {day: {"open": open_at, "close": close_at, "closed": False} for day in WEEKDAYS}


@pytest.fixture
def freeze_now(monkeypatch):
    def _freeze(moment: dt.datetime) -> dt.datetime:
        monkeypatch.setattr(timezone, "now", lambda: moment)
        return moment

    return _freeze


@pytest.fixture
def morning(freeze_now):
    return freeze_now(MORNING)


@pytest.fixture
def facility(db):
    return Facility.objects.create(
        id="downtown",
        name="Downtown Tennis Center",
        facility_type="Tennis Club",
        operating_hours=daily_hours(),
    )


@pytest.fixture
def court(facility):
    return Court.objects.create(facility=facility, name="Court 1", court_number=1)


@pytest.fixture
def court2(facility):
    return Court.objects.create(facility=facility, name="Court 2", court_number=2)


@pytest.fixture
def alice(django_user_model):
    return django_user_model.objects.create_user(username="alice", email="alice@example.com", password="pw")


@pytest.fixture
def bob(django_user_model):
    return django_user_model.objects.create_user(username="bob", email="bob@example.com", password="pw")


@pytest.fixture
def staff(django_user_model):
    return django_user_model.objects.create_user(
        username="desk", email="desk@example.com", password="pw", is_staff=True
    )


@pytest.fixture
def make_booking(court, alice):
    """Insert a booking row directly, bypassing the lifecycle services."""

    def _make(start="14:00", minutes=45, *, on=None, user=None, target=None, status=Booking.Status.CONFIRMED):
        target = target or court
        start_time = dt.time.fromisoformat(start)
        end = dt.datetime.combine(dt.date.min, start_time) + dt.timedelta(minutes=minutes)
        return Booking.objects.create(
            court=target,
            facility=target.facility,
            user=user or alice,
            booking_date=on or TOMORROW,
            start_time=start_time,
            end_time=end.time(),
            duration_minutes=minutes,
            status=status,
            booking_type=Booking.BookingType.MATCH,
        )

    return _make
