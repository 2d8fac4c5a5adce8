from bookings.handlers.views import (
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

__all__ = [
    "AvailabilityView",
    "BookingByReferenceView",
    "BookingDetailView",
    "BookingListView",
    "CancelBookingView",
    "CashPaymentView",
    "InitiatePaymentView",
    "MpesaCallbackView",
    "PaymentCallbackView",
]
