from datetime import datetime

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from .slots import OperatingWindow, operating_window
from .timeutils import SLOT_MINUTES, facility_datetime, to_12_hour


class Facility(models.Model):
    id = models.SlugField(max_length=50, primary_key=True)
    name = models.CharField(max_length=255)
    facility_type = models.CharField(max_length=100, blank=True)
    address = models.TextField(blank=True)
    operating_hours = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "facilities"

    def __str__(self) -> str:  # pragma: no cover
        return self.name

    def window_for(self, day) -> OperatingWindow:
        return operating_window(self.operating_hours, day)


class Court(models.Model):
    class CourtType(models.TextChoices):
        TENNIS = "tennis", "Tennis"
        PICKLEBALL = "pickleball", "Pickleball"
        DUAL = "dual", "Dual"

    class Status(models.TextChoices):
        AVAILABLE = "available", "Available"
        MAINTENANCE = "maintenance", "Maintenance"
        CLOSED = "closed", "Closed"

    facility = models.ForeignKey(Facility, on_delete=models.CASCADE, related_name="courts")
    name = models.CharField(max_length=100)
    court_number = models.PositiveSmallIntegerField(null=True, blank=True)
    surface_type = models.CharField(max_length=50, blank=True)
    court_type = models.CharField(max_length=20, choices=CourtType.choices, default=CourtType.TENNIS)
    is_indoor = models.BooleanField(default=False)
    has_lights = models.BooleanField(default=False)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.AVAILABLE)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["facility", "name"], name="unique_court_name_per_facility"),
        ]
        ordering = ["facility", "court_number", "name"]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.facility_id} · {self.name}"

    @property
    def is_bookable(self) -> bool:
        return self.status == self.Status.AVAILABLE


class Booking(models.Model):
    class Status(models.TextChoices):
        CONFIRMED = "confirmed", "Confirmed"
        PENDING = "pending", "Pending"
        CANCELLED = "cancelled", "Cancelled"
        COMPLETED = "completed", "Completed"

    class BookingType(models.TextChoices):
        MATCH = "match", "Match"
        LEAGUE_MATCH = "league_match", "League Match"
        T2_MATCH = "t2_match", "T2 Match"
        LESSON = "lesson", "Lesson"
        BALL_MACHINE = "ball_machine", "Ball Machine"
        INDIVIDUAL_PRACTICE = "individual_practice", "Individual Practice"
        OTHER = "other", "Other"

    ACTIVE_STATUSES = (Status.CONFIRMED, Status.PENDING)

    court = models.ForeignKey(Court, on_delete=models.PROTECT, related_name="bookings")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="court_bookings",
    )
    facility = models.ForeignKey(Facility, on_delete=models.PROTECT, related_name="bookings")
    booking_date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    duration_minutes = models.PositiveIntegerField()
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.CONFIRMED)
    booking_type = models.CharField(max_length=30, choices=BookingType.choices, default=BookingType.OTHER)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            # Final guard for two active bookings starting together; overlaps
            # with different starts are caught by the locked in-transaction check.
            models.UniqueConstraint(
                fields=["court", "booking_date", "start_time"],
                condition=Q(status__in=["confirmed", "pending"]),
                name="unique_active_booking_court_date_start",
            ),
            models.CheckConstraint(condition=Q(duration_minutes__gt=0), name="booking_duration_positive"),
            models.CheckConstraint(condition=Q(end_time__gt=F("start_time")), name="booking_end_after_start"),
        ]
        indexes = [
            models.Index(fields=["facility", "booking_date"], name="idx_booking_facility_date"),
            models.Index(fields=["court", "booking_date"], name="idx_booking_court_date"),
            models.Index(fields=["user", "booking_date"], name="idx_booking_user_date"),
        ]
        ordering = ["booking_date", "start_time", "court"]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.court} · {self.booking_date} · {self.time_range_label} · {self.user}"

    @classmethod
    def normalize_booking_type(cls, value: str | None) -> str:
        normalized = "_".join((value or "").strip().lower().split())
        if normalized in cls.BookingType.values:
            return normalized
        return cls.BookingType.OTHER

    @property
    def court_name(self) -> str:
        return self.court.name

    @property
    def is_active(self) -> bool:
        return self.status in self.ACTIVE_STATUSES

    @property
    def time_range_label(self) -> str:
        return f"{to_12_hour(self.start_time)} - {to_12_hour(self.end_time)}"

    def start_datetime(self) -> datetime:
        """
        Aware start datetime in the facility zone.
        """
        return facility_datetime(self.booking_date, self.start_time)

    def end_datetime(self) -> datetime:
        return facility_datetime(self.booking_date, self.end_time)

    def is_future(self) -> bool:
        """
        True while the booking has not started yet.
        """
        return self.start_datetime() > timezone.now()

    def is_past(self) -> bool:
        return not self.is_future()

    def clean(self) -> None:
        """
        Run the slot-granularity and overlap checks at the model validation
        layer so every save path gets the same protection as the booking services.
        """
        super().clean()
        errors = {}
        if self.start_time and (self.start_time.minute % SLOT_MINUTES or self.start_time.second):
            errors["start_time"] = f"Start time must be on a {SLOT_MINUTES}-minute boundary."
        if self.duration_minutes and self.duration_minutes % SLOT_MINUTES:
            errors["duration_minutes"] = f"Duration must be a multiple of {SLOT_MINUTES} minutes."
        if errors:
            raise ValidationError(errors)
        if not self.is_active or not (self.court_id and self.booking_date and self.start_time and self.end_time):
            return

        from .conflicts import Candidate, find_conflict

        conflict = find_conflict(
            Candidate(
                court_id=self.court_id,
                booking_date=self.booking_date,
                start_time=self.start_time,
                end_time=self.end_time,
            ),
            exclude_booking_id=self.pk,
        )
        if conflict is not None:
            raise ValidationError(
                {"start_time": f"This court is already booked {conflict.time_range_label} on that date."}
            )
