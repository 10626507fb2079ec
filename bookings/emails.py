from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date as date_type
from datetime import time

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

from .timeutils import minutes_between, to_12_hour


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingEvent:
    subject_prefix: str
    headline: str


BOOKING_EVENTS = {
    "created": BookingEvent(subject_prefix="Court booked", headline="is confirmed"),
    "updated": BookingEvent(subject_prefix="Booking updated", headline="has been updated"),
    "cancelled": BookingEvent(subject_prefix="Booking cancelled", headline="has been cancelled"),
}


@dataclass(frozen=True)
class BookingEmailPayload:
    to_email: str
    event: str
    facility_name: str
    court_name: str
    date: date_type
    start_time: time
    end_time: time

    def __post_init__(self):
        if self.event not in BOOKING_EVENTS:
            raise ValueError(f"Unknown booking email event: {self.event!r}")

    @classmethod
    def from_booking(cls, event: str, booking) -> "BookingEmailPayload":
        return cls(
            to_email=getattr(booking.user, "email", "") or "",
            event=event,
            facility_name=booking.facility.name,
            court_name=booking.court.name,
            date=booking.booking_date,
            start_time=booking.start_time,
            end_time=booking.end_time,
        )

    @property
    def time_label(self) -> str:
        return f"{to_12_hour(self.start_time)} - {to_12_hour(self.end_time)}"

    def context(self) -> dict:
        event = BOOKING_EVENTS[self.event]
        return {
            "subject_prefix": event.subject_prefix,
            "headline": event.headline,
            "facility_name": self.facility_name,
            "court_name": self.court_name,
            "date": self.date,
            "time_label": self.time_label,
            "duration_minutes": minutes_between(self.start_time, self.end_time),
            "show_rebook_hint": self.event == "cancelled",
        }


def build_booking_email(payload: BookingEmailPayload) -> EmailMultiAlternatives:
    context = payload.context()
    message = EmailMultiAlternatives(
        subject=render_to_string("emails/booking_notice_subject.txt", context).strip(),
        body=render_to_string("emails/booking_notice.txt", context),
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[payload.to_email],
    )
    message.attach_alternative(render_to_string("emails/booking_notice.html", context), "text/html")
    return message


def send_booking_email(payload: BookingEmailPayload) -> bool:
    """
    Send a booking notice. Returns False when there is no address to send to.
    Delivery failures are logged, never raised: the booking has already committed.
    """
    if not payload.to_email:
        return False

    try:
        build_booking_email(payload).send(fail_silently=False)
    except Exception:
        logger.exception("Failed to send booking email (%s) to %s", payload.event, payload.to_email)
    else:
        logger.info("Sent booking email (%s) to %s", payload.event, payload.to_email)
    return True
