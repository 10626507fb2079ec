import datetime as dt

import pytest
from django.core.mail import EmailMultiAlternatives

from bookings.emails import BookingEmailPayload, build_booking_email, send_booking_email
from bookings.services import (
    BookingChanges,
    BookingConflictError,
    BookingInput,
    cancel_booking,
    create_booking,
    modify_booking,
)
from conftest import TOMORROW


def _payload(**overrides):
    values = dict(
        to_email="alice@example.com",
        event="created",
        facility_name="Downtown Tennis Center",
        court_name="Court 1",
        date=TOMORROW,
        start_time=dt.time(14, 0),
        end_time=dt.time(14, 45),
    )
    values.update(overrides)
    return BookingEmailPayload(**values)


def test_send_renders_text_and_html(mailoutbox):
    assert send_booking_email(_payload())

    (message,) = mailoutbox
    assert message.subject == "Court booked: Court 1 on Tue, Jun 16"
    assert message.to == ["alice@example.com"]
    assert "2:00 PM - 2:45 PM" in message.body
    assert message.alternatives[0][1] == "text/html"


def test_send_skips_missing_address(mailoutbox):
    assert not send_booking_email(_payload(to_email=""))
    assert mailoutbox == []


def test_send_failure_is_logged_not_raised(monkeypatch, caplog):
    def boom(self, fail_silently=False):
        raise ConnectionRefusedError("smtp down")

    monkeypatch.setattr(EmailMultiAlternatives, "send", boom)

    assert send_booking_email(_payload())
    assert "Failed to send booking email" in caplog.text


def test_unknown_event_is_rejected():
    with pytest.raises(ValueError, match="Unknown booking email event"):
        _payload(event="rescheduled")


def test_body_states_duration_and_facility():
    message = build_booking_email(_payload())

    assert "Your booking at Downtown Tennis Center is confirmed." in message.body
    assert "(45 minutes)" in message.body
    html, mimetype = message.alternatives[0]
    assert mimetype == "text/html"
    assert "Downtown Tennis Center" in html


def test_only_cancellation_mentions_rebooking():
    cancelled = build_booking_email(_payload(event="cancelled"))
    created = build_booking_email(_payload(event="created"))

    assert cancelled.subject == "Booking cancelled: Court 1 on Tue, Jun 16"
    assert "open for others to book again" in cancelled.body
    assert "open for others to book again" not in created.body


@pytest.mark.usefixtures("morning")
def test_payload_from_booking(make_booking):
    booking = make_booking("09:30", 90)

    payload = BookingEmailPayload.from_booking("updated", booking)

    assert payload.to_email == "alice@example.com"
    assert payload.court_name == "Court 1"
    assert payload.date == TOMORROW
    assert payload.time_label == "9:30 AM - 11:00 AM"
    assert payload.context()["duration_minutes"] == 90


@pytest.mark.usefixtures("morning")
def test_lifecycle_emails_are_sent_after_commit(court, alice, mailoutbox, django_capture_on_commit_callbacks):
    data = BookingInput(
        court_id=court.id,
        facility_id=court.facility_id,
        booking_date=TOMORROW,
        start_time=dt.time(14, 0),
        duration_minutes=45,
    )

    with django_capture_on_commit_callbacks(execute=True):
        booking = create_booking(user=alice, data=data)
    with django_capture_on_commit_callbacks(execute=True):
        modify_booking(user=alice, booking_id=booking.id, changes=BookingChanges(start_time=dt.time(15, 0)))
    with django_capture_on_commit_callbacks(execute=True):
        cancel_booking(user=alice, booking_id=booking.id)

    assert [message.subject.split(":")[0] for message in mailoutbox] == [
        "Court booked",
        "Booking updated",
        "Booking cancelled",
    ]
    assert "3:00 PM - 3:45 PM" in mailoutbox[1].body


@pytest.mark.usefixtures("morning")
def test_rejected_booking_sends_nothing(court, alice, bob, mailoutbox, django_capture_on_commit_callbacks, make_booking):
    make_booking()
    data = BookingInput(
        court_id=court.id,
        facility_id=court.facility_id,
        booking_date=TOMORROW,
        start_time=dt.time(14, 0),
        duration_minutes=30,
    )

    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        with pytest.raises(BookingConflictError):
            create_booking(user=bob, data=data)

    assert callbacks == []
    assert mailoutbox == []
