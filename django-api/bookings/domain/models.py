"""Domain models representing persisted state.

These are pure domain objects with no API input rules.
Django ORM models are in bookings/models.py (persistence layer).
"""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID, uuid4

from bookings.domain.layouts import sellable_seats
from bookings.domain.states import (
    AttemptKind,
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
    ReconciliationReason,
    TransactionStatus,
)
from bookings.domain.value_objects import (
    BookingId,
    BookingReference,
    Capacity,
    HoldToken,
    Money,
    ScheduleId,
    TransactionId,
)


@dataclass(frozen=True)
class Schedule:
    """One bookable departure, read-only for this module."""

    id: ScheduleId
    capacity: Capacity
    price_per_seat: Money
    departure_time: datetime

    def __post_init__(self) -> None:
        # Raises ValueError for capacities without a seat layout.
        sellable_seats(self.capacity.value)

    @property
    def sellable_seats(self) -> frozenset[int]:
        return sellable_seats(self.capacity.value)

    def has_departed(self, now: datetime) -> bool:
        return now >= self.departure_time


@dataclass(frozen=True)
class SeatHold:
    """Time-boxed exclusive reservation of seats pending payment."""

    token: HoldToken
    schedule_id: ScheduleId
    seat_numbers: frozenset[int]
    holder_id: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class Booking:
    """Domain representation of a Booking."""

    id: BookingId
    reference: BookingReference
    schedule_id: ScheduleId
    seat_numbers: tuple[int, ...]
    customer_id: str
    status: BookingStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    total_amount: Money
    created_at: datetime
    updated_at: datetime
    notes: str = ""
    payer_contact: str | None = None
    hold_token: HoldToken | None = None
    hold_expires_at: datetime | None = None
    cancellation_reason: str | None = None
    cancelled_by: str | None = None
    cancelled_at: datetime | None = None


@dataclass(frozen=True)
class PaymentTransaction:
    """A gateway outcome applied to a booking. Immutable once stored."""

    id: TransactionId
    booking_id: BookingId
    external_ref: str
    amount: Money
    status: TransactionStatus
    received_at: datetime


@dataclass(frozen=True)
class PaymentAttempt:
    """A charge or refund request sent to the gateway."""

    gateway_ref: str
    booking_id: BookingId
    amount: Money
    kind: AttemptKind
    created_at: datetime
    payer_contact: str | None = None


@dataclass(frozen=True)
class ReconciliationCase:
    """A payment outcome left for an operator to resolve by hand."""

    reason: ReconciliationReason
    external_ref: str
    created_at: datetime
    booking_id: BookingId | None = None
    amount: Money | None = None
    details: str = ""
    id: UUID = field(default_factory=uuid4)
