from django.urls import path

from bookings.handlers import (
    AvailabilityView,
    BookingByReferenceView,
    BookingDetailView,
    BookingListView,
    CancelBookingView,
    CashPaymentView,
    InitiatePaymentView,
    MpesaCallbackView,
    PaymentCallbackView,
)

urlpatterns = [
    path("bookings", BookingListView.as_view(), name="booking-list"),
    path(
        "bookings/reference/<str:reference>",
        BookingByReferenceView.as_view(),
        name="booking-by-reference",
    ),
    path("bookings/<str:booking_id>", BookingDetailView.as_view(), name="booking-detail"),
    path(
        "bookings/<str:booking_id>/cancel",
        CancelBookingView.as_view(),
        name="booking-cancel",
    ),
    path(
        "bookings/<str:booking_id>/payment",
        InitiatePaymentView.as_view(),
        name="booking-payment",
    ),
    path(
        "bookings/<str:booking_id>/cash-payment",
        CashPaymentView.as_view(),
        name="booking-cash-payment",
    ),
    path(
        "schedules/<str:schedule_id>/availability",
        AvailabilityView.as_view(),
        name="schedule-availability",
    ),
    path("payments/callback", PaymentCallbackView.as_view(), name="payment-callback"),
    path("payments/mpesa/callback", MpesaCallbackView.as_view(), name="mpesa-callback"),
]
