"""Notification sinks for booking outcomes.

Delivery is best-effort: BookingLifecycle calls ``notify`` after the new
state is stored and logs any exception instead of propagating it.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable

from loguru import logger

from bookings.domain import Booking, BookingId, NotificationEvent


class NotificationDispatcher(ABC):
    """Interface for ticket/SMS delivery."""

    @abstractmethod
    def notify(self, booking_id: BookingId, event: NotificationEvent) -> None:
        ...


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Writes notifications to the log only."""

    def notify(self, booking_id: BookingId, event: NotificationEvent) -> None:
        logger.info("Notification {} for booking {}", event, booking_id)


def format_message(booking: Booking, event: NotificationEvent) -> str:
    seats = ", ".join(str(seat) for seat in booking.seat_numbers)
    if event == NotificationEvent.CONFIRMED:
        return (
            f"EasyRide: Payment of KES {booking.total_amount} received for booking "
            f"{booking.reference}. Seat(s) {seats} confirmed."
        )
    if event == NotificationEvent.REFUNDED:
        return (
            f"EasyRide: Booking {booking.reference} was cancelled. "
            f"KES {booking.total_amount} will be refunded to your M-Pesa."
        )
    return f"EasyRide: Booking {booking.reference} for seat(s) {seats} was cancelled."


class SmsLogNotificationDispatcher(NotificationDispatcher):
    """Queues SMS text in the notification log for the external sender."""

    def __init__(self, load_booking: Callable[[BookingId], Booking | None]) -> None:
        self._load_booking = load_booking

    def notify(self, booking_id: BookingId, event: NotificationEvent) -> None:
        from bookings.models import NotificationLog

        booking = self._load_booking(booking_id)
        if booking is None:
            logger.warning("Skipping {} notification, booking {} not found", event, booking_id)
            return
        NotificationLog.objects.create(
            booking_id=booking_id.value,
            event=event.value,
            recipient=booking.payer_contact or "",
            message=format_message(booking, event),
        )
        logger.info("Queued {} SMS for booking {}", event, booking.reference)
