from django import forms
from django.contrib import admin, messages
from django.db.models import Q
from django.utils.html import format_html

from .models import Booking, Court, Facility
from .services import BookingError, cancel_booking, lock_and_check_range
from .timeutils import now_in_facility_zone


admin.site.site_header = "CourtTime Admin"
admin.site.site_title = "CourtTime Admin"
admin.site.index_title = "Facility Controls"


class BookingAdminForm(forms.ModelForm):
    """
    Status is not editable here. Bookings are cancelled through the admin
    action and completed by the `complete_bookings` command.
    """

    class Meta:
        model = Booking
        fields = ("user", "court", "booking_date", "start_time", "duration_minutes", "booking_type", "notes")

    def clean(self):
        cleaned = super().clean()
        instance = self.instance
        if instance.pk and not (instance.is_active and instance.is_future()):
            # Scheduling fields are read-only once a booking is over or inactive.
            return cleaned

        court = cleaned.get("court")
        booking_date = cleaned.get("booking_date")
        start_time = cleaned.get("start_time")
        duration = cleaned.get("duration_minutes")
        if not (court and booking_date and start_time and duration):
            return cleaned

        # The admin validates and saves inside one transaction, so the court
        # lock taken here is held until the booking row is written.
        try:
            court, end_time, duration = lock_and_check_range(
                court_id=court.id,
                booking_date=booking_date,
                start_time=start_time,
                duration_minutes=duration,
                exclude_booking_id=instance.pk,
            )
        except BookingError as exc:
            raise forms.ValidationError(exc.message) from exc

        instance.end_time = end_time
        instance.facility_id = court.facility_id
        return cleaned


class BookingTimeFilter(admin.SimpleListFilter):
    title = "when"
    parameter_name = "when"

    def lookups(self, request, model_admin):
        return (("upcoming", "Upcoming"), ("past", "Past"))

    def queryset(self, request, queryset):
        value = self.value()
        if not value:
            return queryset

        now = now_in_facility_zone().moment
        today, current_time = now.date(), now.time()

        if value == "upcoming":
            return queryset.filter(Q(booking_date__gt=today) | Q(booking_date=today, start_time__gt=current_time))
        if value == "past":
            return queryset.filter(Q(booking_date__lt=today) | Q(booking_date=today, start_time__lte=current_time))
        return queryset


class CourtInline(admin.TabularInline):
    model = Court
    extra = 0
    fields = ("name", "court_number", "court_type", "surface_type", "is_indoor", "has_lights", "status")


@admin.register(Facility)
class FacilityAdmin(admin.ModelAdmin):
    list_display = ("name", "id", "facility_type", "court_count", "created_at")
    search_fields = ("name", "id")
    inlines = [CourtInline]

    @admin.display(description="Courts")
    def court_count(self, obj: Facility) -> int:
        return obj.courts.count()


@admin.register(Court)
class CourtAdmin(admin.ModelAdmin):
    list_display = ("name", "facility", "court_type", "status", "is_indoor", "has_lights")
    list_filter = ("facility", "court_type", "status")
    search_fields = ("name", "facility__name")
    list_select_related = ("facility",)


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    form = BookingAdminForm
    list_display = ("id", "user_email", "court", "booking_date", "time_range", "booking_type", "status_badge")
    list_filter = ("facility", "status", "booking_type", "booking_date", BookingTimeFilter)
    search_fields = ("user__email", "user__username", "court__name")
    ordering = ("-booking_date", "start_time")
    readonly_fields = ("status", "facility", "end_time", "created_at", "updated_at")
    autocomplete_fields = ("user",)
    list_select_related = ("user", "court", "court__facility")
    actions = ["cancel_selected"]

    @admin.display(description="User", ordering="user__email")
    def user_email(self, obj: Booking) -> str:
        return obj.user.email or obj.user.username

    @admin.display(description="Time", ordering="start_time")
    def time_range(self, obj: Booking) -> str:
        return obj.time_range_label

    @admin.display(description="Status", ordering="status")
    def status_badge(self, obj: Booking) -> str:
        colors = {
            Booking.Status.CONFIRMED: "#2e7d32",
            Booking.Status.PENDING: "#b7950b",
            Booking.Status.CANCELLED: "#c62828",
            Booking.Status.COMPLETED: "#616161",
        }
        return format_html(
            '<span style="padding:3px 8px;border-radius:999px;border:1px solid {};color: {};'
            'font-weight: 600; font-size: 11px;">{}</span>',
            colors.get(obj.status, "#616161"),
            colors.get(obj.status, "#616161"),
            obj.get_status_display(),
        )

    @admin.action(description="Cancel selected bookings")
    def cancel_selected(self, request, queryset):
        cancelled = 0
        for booking in queryset:
            try:
                cancel_booking(user=request.user, booking_id=booking.id)
            except BookingError as exc:
                self.message_user(request, f"Booking {booking.id}: {exc.message}", level=messages.WARNING)
            else:
                cancelled += 1
        if cancelled:
            self.message_user(request, f"Cancelled {cancelled} booking(s).", level=messages.SUCCESS)

    def get_readonly_fields(self, request, obj=None):
        readonly = list(super().get_readonly_fields(request, obj))
        if obj is not None:
            readonly.append("user")
            if obj.is_past() or not obj.is_active:
                readonly.extend(["court", "booking_date", "start_time", "duration_minutes"])
        return readonly

    def has_delete_permission(self, request, obj=None):
        # Bookings are cancelled, never deleted.
        return False

    def get_actions(self, request):
        actions = super().get_actions(request)
        actions.pop("delete_selected", None)
        return actions

    def save_model(self, request, obj, form, change):
        obj.facility_id = obj.court.facility_id
        obj.full_clean()
        return super().save_model(request, obj, form, change)
