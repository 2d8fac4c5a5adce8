"""In-process implementation of the stores.

Used for unit tests and single-process deployments. Locks are plain
``threading`` primitives keyed by schedule or booking ID.
"""

import threading
from collections.abc import Hashable, Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime

from bookings.domain import (
    Booking,
    BookingId,
    BookingReference,
    BookingStatus,
    HoldToken,
    PaymentAttempt,
    PaymentTransaction,
    ReconciliationCase,
    ReconciliationReason,
    Schedule,
    ScheduleId,
    SeatHold,
)
from bookings.domain.errors import DuplicateCallbackError
from bookings.stores.interfaces import BookingStore, PaymentStore, ScheduleCatalog, SeatStore


class KeyedLocks:
    """Lazily created lock per key."""

    def __init__(self, factory=threading.Lock) -> None:
        self._factory = factory
        self._locks: dict[Hashable, threading.Lock] = {}
        self._guard = threading.Lock()

    def get(self, key: Hashable):
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = self._factory()
            return lock


class InMemoryScheduleCatalog(ScheduleCatalog):
    """Schedule catalog backed by a dict."""

    def __init__(self, schedules: Iterable[Schedule] = ()) -> None:
        self._schedules = {schedule.id: schedule for schedule in schedules}

    def add(self, schedule: Schedule) -> None:
        self._schedules[schedule.id] = schedule

    def get_schedule(self, schedule_id: ScheduleId) -> Schedule | None:
        return self._schedules.get(schedule_id)


class InMemorySeatStore(SeatStore):
    """Seat state kept in dicts, one lock per schedule."""

    def __init__(self) -> None:
        self._locks = KeyedLocks()
        self._guard = threading.Lock()
        self._holds: dict[HoldToken, SeatHold] = {}
        self._allocations: dict[ScheduleId, dict[BookingId, frozenset[int]]] = {}

    @contextmanager
    def lock(self, schedule_id: ScheduleId) -> Iterator[None]:
        with self._locks.get(schedule_id):
            yield

    def get_holds(self, schedule_id: ScheduleId) -> list[SeatHold]:
        with self._guard:
            return [h for h in self._holds.values() if h.schedule_id == schedule_id]

    def get_hold(self, token: HoldToken) -> SeatHold | None:
        with self._guard:
            return self._holds.get(token)

    def add_hold(self, hold: SeatHold) -> None:
        with self._guard:
            self._holds[hold.token] = hold

    def remove_hold(self, token: HoldToken) -> None:
        with self._guard:
            self._holds.pop(token, None)

    def expired_holds(self, now: datetime) -> list[SeatHold]:
        with self._guard:
            return [h for h in self._holds.values() if h.is_expired(now)]

    def allocated_seats(self, schedule_id: ScheduleId) -> frozenset[int]:
        with self._guard:
            per_booking = self._allocations.get(schedule_id, {})
            return frozenset().union(*per_booking.values())

    def add_allocation(
        self, schedule_id: ScheduleId, seat_numbers: Iterable[int], booking_id: BookingId
    ) -> None:
        with self._guard:
            self._allocations.setdefault(schedule_id, {})[booking_id] = frozenset(seat_numbers)

    def remove_allocation(self, schedule_id: ScheduleId, booking_id: BookingId) -> None:
        with self._guard:
            self._allocations.get(schedule_id, {}).pop(booking_id, None)


class InMemoryBookingStore(BookingStore):
    """Bookings kept in a dict, one reentrant lock per booking."""

    def __init__(self) -> None:
        self._locks = KeyedLocks(threading.RLock)
        self._guard = threading.Lock()
        self._bookings: dict[BookingId, Booking] = {}

    @contextmanager
    def locked(self, booking_id: BookingId) -> Iterator[None]:
        with self._locks.get(booking_id):
            yield

    def add(self, booking: Booking) -> None:
        with self._guard:
            if booking.id in self._bookings:
                raise ValueError(f"Booking {booking.id} already exists")
            self._bookings[booking.id] = booking

    def save(self, booking: Booking) -> None:
        with self._guard:
            if booking.id not in self._bookings:
                raise KeyError(str(booking.id))
            self._bookings[booking.id] = booking

    def get(self, booking_id: BookingId) -> Booking | None:
        with self._guard:
            return self._bookings.get(booking_id)

    def get_by_reference(self, reference: BookingReference) -> Booking | None:
        with self._guard:
            return next(
                (b for b in self._bookings.values() if b.reference == reference), None
            )

    def list_by_status(self, status: BookingStatus) -> list[Booking]:
        with self._guard:
            return [b for b in self._bookings.values() if b.status == status]

    def list_stale_pending(self, cutoff: datetime) -> list[Booking]:
        with self._guard:
            return [
                b
                for b in self._bookings.values()
                if b.status == BookingStatus.PENDING_PAYMENT
                and b.hold_expires_at is not None
                and b.hold_expires_at <= cutoff
            ]


class InMemoryPaymentStore(PaymentStore):
    """Payment records kept in dicts."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._transactions: dict[str, PaymentTransaction] = {}
        self._attempts: dict[str, PaymentAttempt] = {}
        self._cases: list[ReconciliationCase] = []

    def get_transaction(self, external_ref: str) -> PaymentTransaction | None:
        with self._guard:
            return self._transactions.get(external_ref)

    def add_transaction(self, transaction: PaymentTransaction) -> None:
        with self._guard:
            if transaction.external_ref in self._transactions:
                raise DuplicateCallbackError(transaction.external_ref)
            self._transactions[transaction.external_ref] = transaction

    def list_transactions(self, booking_id: BookingId) -> list[PaymentTransaction]:
        with self._guard:
            return [t for t in self._transactions.values() if t.booking_id == booking_id]

    def add_attempt(self, attempt: PaymentAttempt) -> None:
        with self._guard:
            self._attempts[attempt.gateway_ref] = attempt

    def get_attempt(self, gateway_ref: str) -> PaymentAttempt | None:
        with self._guard:
            return self._attempts.get(gateway_ref)

    def list_attempts(self, booking_id: BookingId) -> list[PaymentAttempt]:
        with self._guard:
            attempts = [a for a in self._attempts.values() if a.booking_id == booking_id]
        return sorted(attempts, key=lambda a: a.created_at)

    def add_case(self, case: ReconciliationCase) -> None:
        with self._guard:
            self._cases.append(case)

    def has_case(self, external_ref: str, reason: ReconciliationReason) -> bool:
        with self._guard:
            return any(
                c.external_ref == external_ref and c.reason == reason for c in self._cases
            )

    def list_cases(self, booking_id: BookingId | None = None) -> list[ReconciliationCase]:
        with self._guard:
            cases = [c for c in self._cases if booking_id is None or c.booking_id == booking_id]
        return sorted(cases, key=lambda c: c.created_at, reverse=True)
