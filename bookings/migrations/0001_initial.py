# Generated manually (initial migration).
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Facility",
            fields=[
                ("id", models.SlugField(primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("facility_type", models.CharField(blank=True, max_length=100)),
                ("address", models.TextField(blank=True)),
                ("operating_hours", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
                "verbose_name_plural": "facilities",
            },
        ),
        migrations.CreateModel(
            name="Court",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("name", models.CharField(max_length=100)),
                ("court_number", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("surface_type", models.CharField(blank=True, max_length=50)),
                (
                    "court_type",
                    models.CharField(
                        choices=[("tennis", "Tennis"), ("pickleball", "Pickleball"), ("dual", "Dual")],
                        default="tennis",
                        max_length=20,
                    ),
                ),
                ("is_indoor", models.BooleanField(default=False)),
                ("has_lights", models.BooleanField(default=False)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("available", "Available"),
                            ("maintenance", "Maintenance"),
                            ("closed", "Closed"),
                        ],
                        default="available",
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "facility",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="courts",
                        to="bookings.facility",
                    ),
                ),
            ],
            options={
                "ordering": ["facility", "court_number", "name"],
            },
        ),
        migrations.CreateModel(
            name="Booking",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("booking_date", models.DateField()),
                ("start_time", models.TimeField()),
                ("end_time", models.TimeField()),
                ("duration_minutes", models.PositiveIntegerField()),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("confirmed", "Confirmed"),
                            ("pending", "Pending"),
                            ("cancelled", "Cancelled"),
                            ("completed", "Completed"),
                        ],
                        default="confirmed",
                        max_length=20,
                    ),
                ),
                (
                    "booking_type",
                    models.CharField(
                        choices=[
                            ("match", "Match"),
                            ("league_match", "League Match"),
                            ("t2_match", "T2 Match"),
                            ("lesson", "Lesson"),
                            ("ball_machine", "Ball Machine"),
                            ("individual_practice", "Individual Practice"),
                            ("other", "Other"),
                        ],
                        default="other",
                        max_length=30,
                    ),
                ),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "court",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="bookings.court",
                    ),
                ),
                (
                    "facility",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="bookings.facility",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="court_bookings",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["booking_date", "start_time", "court"],
            },
        ),
        migrations.AddConstraint(
            model_name="court",
            constraint=models.UniqueConstraint(fields=("facility", "name"), name="unique_court_name_per_facility"),
        ),
        migrations.AddIndex(
            model_name="booking",
            index=models.Index(fields=["facility", "booking_date"], name="idx_booking_facility_date"),
        ),
        migrations.AddIndex(
            model_name="booking",
            index=models.Index(fields=["court", "booking_date"], name="idx_booking_court_date"),
        ),
        migrations.AddIndex(
            model_name="booking",
            index=models.Index(fields=["user", "booking_date"], name="idx_booking_user_date"),
        ),
        migrations.AddConstraint(
            model_name="booking",
            constraint=models.UniqueConstraint(
                condition=models.Q(("status__in", ["confirmed", "pending"])),
                fields=("court", "booking_date", "start_time"),
                name="unique_active_booking_court_date_start",
            ),
        ),
        migrations.AddConstraint(
            model_name="booking",
            constraint=models.CheckConstraint(
                condition=models.Q(("duration_minutes__gt", 0)), name="booking_duration_positive"
            ),
        ),
        migrations.AddConstraint(
            model_name="booking",
            constraint=models.CheckConstraint(
                condition=models.Q(("end_time__gt", models.F("start_time"))), name="booking_end_after_start"
            ),
        ),
    ]
