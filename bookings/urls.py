from django.urls import path

from .api import (
    booking_detail_api,
    calendar_api,
    cancel_booking_api,
    court_bookings_api,
    create_booking_api,
    facility_bookings_api,
    my_bookings_api,
    resolve_selection_api,
    update_booking_api,
)


app_name = "bookings"

urlpatterns = [
    path("api/calendar/<slug:facility_id>/", calendar_api, name="calendar_api"),
    path("api/selection/resolve/", resolve_selection_api, name="resolve_selection_api"),
    path("api/bookings/", create_booking_api, name="create_booking_api"),
    path("api/bookings/mine/", my_bookings_api, name="my_bookings_api"),
    path(
        "api/bookings/facility/<slug:facility_id>/",
        facility_bookings_api,
        name="facility_bookings_api",
    ),
    path("api/bookings/court/<int:court_id>/", court_bookings_api, name="court_bookings_api"),
    path("api/bookings/<int:booking_id>/", booking_detail_api, name="booking_detail_api"),
    path(
        "api/bookings/<int:booking_id>/update/",
        update_booking_api,
        name="update_booking_api",
    ),
    path(
        "api/bookings/<int:booking_id>/cancel/",
        cancel_booking_api,
        name="cancel_booking_api",
    ),
]
