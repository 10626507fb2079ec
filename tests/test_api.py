import datetime as dt
import json

import pytest
from django.urls import reverse

from bookings.models import Booking
from conftest import TODAY, TOMORROW


pytestmark = pytest.mark.usefixtures("morning")


def _post(client, url, payload):
    return client.post(url, data=json.dumps(payload), content_type="application/json")


@pytest.fixture
def player(client, alice):
    client.force_login(alice)
    return client


@pytest.mark.parametrize(
    ("name", "kwargs", "method"),
    [
        ("calendar_api", {"facility_id": "downtown"}, "get"),
        ("my_bookings_api", {}, "get"),
        ("create_booking_api", {}, "post"),
        ("cancel_booking_api", {"booking_id": 1}, "post"),
        ("resolve_selection_api", {}, "post"),
    ],
)
def test_endpoints_require_login(client, db, name, kwargs, method):
    response = getattr(client, method)(reverse(f"bookings:{name}", kwargs=kwargs))
    assert response.status_code == 401


def test_create_endpoint_rejects_get(player):
    assert player.get(reverse("bookings:create_booking_api")).status_code == 405


class TestCalendar:
    def test_grid_and_occupancy(self, player, court, court2, make_booking):
        booking = make_booking("14:00", 45)

        response = player.get(reverse("bookings:calendar_api", args=["downtown"]), {"date": TOMORROW.isoformat()})

        assert response.status_code == 200
        body = response.json()
        assert body["is_today"] is False
        assert body["closed"] is False
        assert len(body["time_slots"]) == 64
        assert body["past_slots"] == []
        court1, court_two = body["courts"]
        assert set(court1["slots"]) == {"2:00 PM", "2:15 PM", "2:30 PM"}
        assert court1["slots"]["2:00 PM"]["is_first_slot"] is True
        assert court1["slots"]["2:00 PM"]["booking_id"] == booking.id
        assert court_two["slots"] == {}

    def test_today_starts_at_the_next_slot(self, player, court):
        response = player.get(reverse("bookings:calendar_api", args=["downtown"]), {"date": TODAY.isoformat()})

        body = response.json()
        assert body["is_today"] is True
        assert body["time_slots"][0] == "10:00 AM"
        assert body["now"] == {"hour": 10, "minute": 0, "date": TODAY.isoformat()}

    def test_court_type_filter(self, player, court):
        url = reverse("bookings:calendar_api", args=["downtown"])

        assert len(player.get(url, {"date": TOMORROW.isoformat(), "court_type": "tennis"}).json()["courts"]) == 1
        assert player.get(url, {"date": TOMORROW.isoformat(), "court_type": "pickleball"}).json()["courts"] == []
        assert player.get(url, {"date": TOMORROW.isoformat(), "court_type": "squash"}).status_code == 400

    def test_missing_or_bad_date(self, player, court):
        url = reverse("bookings:calendar_api", args=["downtown"])

        assert player.get(url).status_code == 400
        assert player.get(url, {"date": "16/06/2026"}).status_code == 400

    def test_unknown_facility(self, player, db):
        response = player.get(reverse("bookings:calendar_api", args=["nowhere"]), {"date": TOMORROW.isoformat()})
        assert response.status_code == 404

    def test_overlapping_rows_surface_as_integrity_error(self, player, court, make_booking):
        make_booking("14:00", 45)
        make_booking("14:30", 30)

        response = player.get(reverse("bookings:calendar_api", args=["downtown"]), {"date": TOMORROW.isoformat()})

        assert response.status_code == 500
        assert response.json()["code"] == "integrity"


class TestCreate:
    def test_creates_booking(self, player, court, alice):
        response = _post(
            player,
            reverse("bookings:create_booking_api"),
            {
                "courtId": court.id,
                "facilityId": "downtown",
                "bookingDate": TOMORROW.isoformat(),
                "startTime": "14:00",
                "durationMinutes": 45,
                "bookingType": "Lesson",
            },
        )

        assert response.status_code == 201
        booking = response.json()["booking"]
        assert booking["start_time"] == "14:00:00"
        assert booking["end_time"] == "14:45:00"
        assert booking["user_id"] == alice.id
        assert booking["booking_type"] == "lesson"
        assert booking["status"] == "confirmed"

    def test_conflict_returns_409_with_details(self, player, court, make_booking, bob):
        existing = make_booking("14:00", 45, user=bob)

        response = _post(
            player,
            reverse("bookings:create_booking_api"),
            {
                "court_id": court.id,
                "facility_id": "downtown",
                "booking_date": TOMORROW.isoformat(),
                "start_time": "14:30",
                "end_time": "15:00",
            },
        )

        assert response.status_code == 409
        body = response.json()
        assert body["code"] == "conflict"
        assert body["details"]["conflicting_booking_id"] == existing.id

    def test_past_time_returns_400(self, player, court):
        response = _post(
            player,
            reverse("bookings:create_booking_api"),
            {
                "court_id": court.id,
                "facility_id": "downtown",
                "booking_date": TODAY.isoformat(),
                "start_time": "08:00",
                "duration_minutes": 60,
            },
        )

        assert response.status_code == 400
        assert response.json()["code"] == "past_time"

    @pytest.mark.parametrize(
        "body",
        [
            "not json",
            "[1, 2]",
            json.dumps({"court_id": "one"}),
            json.dumps({"booking_date": "tomorrow"}),
            json.dumps({"start_time": "2pm"}),
        ],
    )
    def test_malformed_payloads(self, player, court, body):
        response = player.post(reverse("bookings:create_booking_api"), data=body, content_type="application/json")

        assert response.status_code == 400
        assert response.json()["code"] == "validation"

    def test_missing_fields(self, player, court):
        response = _post(player, reverse("bookings:create_booking_api"), {"duration_minutes": 30})

        assert response.status_code == 400
        assert set(response.json()["details"]) == {"court_id", "facility_id", "booking_date", "start_time"}


class TestUpdateAndCancel:
    def test_update_keeps_id(self, player, make_booking):
        booking = make_booking("14:00", 45)

        response = _post(
            player,
            reverse("bookings:update_booking_api", args=[booking.id]),
            {"start_time": "16:00", "duration_minutes": 60, "notes": "moved"},
        )

        assert response.status_code == 200
        body = response.json()["booking"]
        assert body["id"] == booking.id
        assert (body["start_time"], body["end_time"], body["notes"]) == ("16:00:00", "17:00:00", "moved")

    def test_update_by_other_player_is_forbidden(self, client, bob, make_booking):
        booking = make_booking()
        client.force_login(bob)

        response = _post(client, reverse("bookings:update_booking_api", args=[booking.id]), {"notes": "x"})

        assert response.status_code == 403

    def test_cancel_twice(self, player, make_booking):
        booking = make_booking()
        url = reverse("bookings:cancel_booking_api", args=[booking.id])

        assert player.post(url).status_code == 200
        second = player.post(url)

        assert second.status_code == 200
        assert second.json()["booking"]["status"] == "cancelled"

    def test_cancel_missing_booking(self, player, db):
        assert player.post(reverse("bookings:cancel_booking_api", args=[999])).status_code == 404


class TestListings:
    def test_facility_day(self, player, make_booking):
        kept = make_booking("14:00", 45)
        make_booking("16:00", 45, status=Booking.Status.CANCELLED)

        response = player.get(
            reverse("bookings:facility_bookings_api", args=["downtown"]), {"date": TOMORROW.isoformat()}
        )

        assert [row["id"] for row in response.json()["bookings"]] == [kept.id]

    def test_court_day_can_exclude_a_booking(self, player, court, make_booking):
        first = make_booking("09:00", 60)
        second = make_booking("14:00", 45)
        url = reverse("bookings:court_bookings_api", args=[court.id])

        everything = player.get(url, {"date": TOMORROW.isoformat()}).json()["bookings"]
        without_first = player.get(url, {"date": TOMORROW.isoformat(), "exclude_booking_id": first.id}).json()

        assert [row["id"] for row in everything] == [first.id, second.id]
        assert [row["id"] for row in without_first["bookings"]] == [second.id]
        assert player.get(url, {"date": TOMORROW.isoformat(), "exclude_booking_id": "x"}).status_code == 400

    def test_mine(self, player, bob, make_booking):
        mine = make_booking()
        make_booking("16:00", 60, user=bob)
        old = make_booking("14:00", 60, on=TODAY - dt.timedelta(days=2))
        url = reverse("bookings:my_bookings_api")

        assert [row["id"] for row in player.get(url).json()["bookings"]] == [mine.id]
        assert [row["id"] for row in player.get(url, {"upcoming": "false"}).json()["bookings"]] == [old.id]

    def test_detail(self, player, make_booking):
        booking = make_booking()

        response = player.get(reverse("bookings:booking_detail_api", args=[booking.id]))

        assert response.json()["booking"]["court_name"] == "Court 1"
        assert player.get(reverse("bookings:booking_detail_api", args=[999])).status_code == 404


class TestResolveSelection:
    def _resolve(self, client, events, on=TOMORROW):
        return _post(
            client,
            reverse("bookings:resolve_selection_api"),
            {"facility_id": "downtown", "date": on.isoformat(), "events": events},
        )

    def test_drag_becomes_a_candidate(self, player, court):
        response = self._resolve(
            player,
            [
                {"type": "press", "court": "Court 1", "slot": "2:00 PM"},
                {"type": "enter", "court": "Court 1", "slot": "2:15 PM"},
                {"type": "enter", "court": "Court 1", "slot": "2:45 PM"},
                {"type": "release"},
            ],
        )

        assert response.status_code == 200
        candidate = response.json()["candidate"]
        assert candidate["court_id"] == court.id
        assert (candidate["start_time"], candidate["end_time"]) == ("14:00:00", "15:00:00")
        assert candidate["duration_minutes"] == 60
        assert candidate["slot_count"] == 4

    def test_booked_slots_are_skipped(self, player, court, make_booking):
        make_booking("14:15", 15)

        candidate = self._resolve(
            player,
            [
                {"type": "press", "court": "Court 1", "slot": "2:00 PM"},
                {"type": "enter", "court": "Court 1", "slot": "2:30 PM"},
                {"type": "release"},
            ],
        ).json()["candidate"]

        assert candidate["slot_count"] == 2

    def test_past_slots_are_not_selectable(self, player, court):
        response = self._resolve(
            player,
            [{"type": "press", "court": "Court 1", "slot": "9:00 AM"}, {"type": "release"}],
            on=TODAY,
        )

        assert response.json()["candidate"] is None

    def test_unknown_event_type(self, player, court):
        response = self._resolve(player, [{"type": "hover", "court": "Court 1", "slot": "2:00 PM"}])
        assert response.status_code == 400

    def test_events_must_be_a_list(self, player, court):
        response = self._resolve(player, {"type": "press"})
        assert response.status_code == 400


class TestPrivacy:
    def test_detail_is_owner_or_staff_only(self, client, bob, staff, make_booking):
        booking = make_booking()
        url = reverse("bookings:booking_detail_api", args=[booking.id])

        client.force_login(bob)
        forbidden = client.get(url)
        client.force_login(staff)
        allowed = client.get(url)

        assert forbidden.status_code == 403
        assert forbidden.json()["code"] == "forbidden"
        assert allowed.status_code == 200

    def test_listings_hide_other_players_notes(self, client, alice, bob, make_booking):
        booking = make_booking()
        Booking.objects.filter(id=booking.id).update(notes="gate code 1234")
        url = reverse("bookings:facility_bookings_api", args=["downtown"])

        client.force_login(bob)
        as_bob = client.get(url, {"date": TOMORROW.isoformat()}).json()["bookings"]
        client.force_login(alice)
        as_alice = client.get(url, {"date": TOMORROW.isoformat()}).json()["bookings"]

        assert as_bob[0]["notes"] == ""
        assert as_alice[0]["notes"] == "gate code 1234"
