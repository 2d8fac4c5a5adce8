"""Closed vocabularies for booking and payment state.

The string values are the wire format; no other values are valid.
"""

from enum import StrEnum


class BookingStatus(StrEnum):
    PENDING_PAYMENT = "PendingPayment"
    CONFIRMED = "Confirmed"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


class PaymentStatus(StrEnum):
    PENDING = "Pending"
    PAID = "Paid"
    FAILED = "Failed"
    REFUNDED = "Refunded"


class PaymentMethod(StrEnum):
    MPESA = "mpesa"
    CASH = "cash"
    CARD = "card"


class TransactionStatus(StrEnum):
    SUCCESS = "success"
    FAILED = "failed"


class AttemptKind(StrEnum):
    CHARGE = "charge"
    REFUND = "refund"


class NotificationEvent(StrEnum):
    CONFIRMED = "Confirmed"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


class ReconciliationReason(StrEnum):
    PAYMENT_MISMATCH = "PaymentMismatch"
    PAID_AFTER_HOLD_EXPIRY = "PaidAfterHoldExpiry"
    PAID_FOR_INACTIVE_BOOKING = "PaidForInactiveBooking"
    UNMATCHED_CALLBACK = "UnmatchedCallback"
    REFUND_FAILED = "RefundFailed"


class ActorRole(StrEnum):
    CUSTOMER = "customer"
    OPERATOR = "operator"
    ADMIN = "admin"


TERMINAL_STATES = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.REFUNDED}
)

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING_PAYMENT: frozenset(
        {BookingStatus.CONFIRMED, BookingStatus.CANCELLED}
    ),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.REFUNDED}
    ),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.REFUNDED: frozenset(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]
