"""Store interfaces (repository pattern).

Stores must be swappable and return domain models. They hold no business
rules; the services decide what to write and when.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from contextlib import AbstractContextManager
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


class ScheduleCatalog(ABC):
    """Read-only access to schedules owned by the surrounding system."""

    @abstractmethod
    def get_schedule(self, schedule_id: ScheduleId) -> Schedule | None:
        """Return a schedule by ID, or None if not found."""
        ...


class SeatStore(ABC):
    """Holds and allocations per schedule.

    Every read-then-write sequence must run inside ``lock(schedule_id)``,
    which grants exclusive access to that schedule's seat set.
    """

    @abstractmethod
    def lock(self, schedule_id: ScheduleId) -> AbstractContextManager[None]:
        """Acquire the single authoritative lock for a schedule."""
        ...

    @abstractmethod
    def get_holds(self, schedule_id: ScheduleId) -> list[SeatHold]:
        """Return every stored hold for a schedule, expired or not."""
        ...

    @abstractmethod
    def get_hold(self, token: HoldToken) -> SeatHold | None:
        ...

    @abstractmethod
    def add_hold(self, hold: SeatHold) -> None:
        ...

    @abstractmethod
    def remove_hold(self, token: HoldToken) -> None:
        """Remove a hold. Missing tokens are ignored."""
        ...

    @abstractmethod
    def expired_holds(self, now: datetime) -> list[SeatHold]:
        """Return holds across all schedules with expires_at <= now."""
        ...

    @abstractmethod
    def allocated_seats(self, schedule_id: ScheduleId) -> frozenset[int]:
        ...

    @abstractmethod
    def add_allocation(
        self, schedule_id: ScheduleId, seat_numbers: Iterable[int], booking_id: BookingId
    ) -> None:
        ...

    @abstractmethod
    def remove_allocation(self, schedule_id: ScheduleId, booking_id: BookingId) -> None:
        """Free a booking's allocated seats. Missing allocations are ignored."""
        ...


class BookingStore(ABC):
    """Interface for booking persistence operations."""

    @abstractmethod
    def locked(self, booking_id: BookingId) -> AbstractContextManager[None]:
        """Serialize all mutations of one booking."""
        ...

    @abstractmethod
    def add(self, booking: Booking) -> None:
        ...

    @abstractmethod
    def save(self, booking: Booking) -> None:
        """Persist a new version of an existing booking."""
        ...

    @abstractmethod
    def get(self, booking_id: BookingId) -> Booking | None:
        ...

    @abstractmethod
    def get_by_reference(self, reference: BookingReference) -> Booking | None:
        ...

    @abstractmethod
    def list_by_status(self, status: BookingStatus) -> list[Booking]:
        ...

    @abstractmethod
    def list_stale_pending(self, cutoff: datetime) -> list[Booking]:
        """Return PendingPayment bookings whose hold expired at or before cutoff."""
        ...


class PaymentStore(ABC):
    """Interface for payment transactions, attempts and reconciliation cases."""

    @abstractmethod
    def get_transaction(self, external_ref: str) -> PaymentTransaction | None:
        ...

    @abstractmethod
    def add_transaction(self, transaction: PaymentTransaction) -> None:
        """Persist a transaction.

        Raises:
            DuplicateCallbackError: If a transaction with the same external_ref exists.
        """
        ...

    @abstractmethod
    def list_transactions(self, booking_id: BookingId) -> list[PaymentTransaction]:
        ...

    @abstractmethod
    def add_attempt(self, attempt: PaymentAttempt) -> None:
        ...

    @abstractmethod
    def get_attempt(self, gateway_ref: str) -> PaymentAttempt | None:
        ...

    @abstractmethod
    def list_attempts(self, booking_id: BookingId) -> list[PaymentAttempt]:
        """Return a booking's gateway requests, oldest first."""
        ...

    @abstractmethod
    def add_case(self, case: ReconciliationCase) -> None:
        ...

    @abstractmethod
    def has_case(self, external_ref: str, reason: ReconciliationReason) -> bool:
        ...

    @abstractmethod
    def list_cases(self, booking_id: BookingId | None = None) -> list[ReconciliationCase]:
        """Return cases, newest first, optionally for one booking."""
        ...
