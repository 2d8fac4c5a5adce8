from bookings.domain.models import (
    Booking,
    PaymentAttempt,
    PaymentTransaction,
    ReconciliationCase,
    Schedule,
    SeatHold,
)
from bookings.domain.states import (
    ActorRole,
    AttemptKind,
    BookingStatus,
    NotificationEvent,
    PaymentMethod,
    PaymentStatus,
    ReconciliationReason,
    TransactionStatus,
)
from bookings.domain.value_objects import (
    Actor,
    BookingId,
    BookingReference,
    Capacity,
    HoldToken,
    Money,
    ScheduleId,
    TransactionId,
)

__all__ = [
    "Booking",
    "PaymentAttempt",
    "PaymentTransaction",
    "ReconciliationCase",
    "Schedule",
    "SeatHold",
    "ActorRole",
    "AttemptKind",
    "BookingStatus",
    "NotificationEvent",
    "PaymentMethod",
    "PaymentStatus",
    "ReconciliationReason",
    "TransactionStatus",
    "Actor",
    "BookingId",
    "BookingReference",
    "Capacity",
    "HoldToken",
    "Money",
    "ScheduleId",
    "TransactionId",
]
