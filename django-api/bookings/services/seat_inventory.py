"""Seat inventory - per-schedule holds and allocations.

Every check-and-write runs under the schedule's lock from the SeatStore, so
overlapping requests for the same schedule are all-or-nothing and at most one
of them wins. Expired holds stop counting against capacity the instant they
expire; the sweep only deletes the rows.
"""

from collections.abc import Callable, Iterable
from datetime import datetime, timedelta

from loguru import logger

from bookings.domain import BookingId, HoldToken, Schedule, ScheduleId, SeatHold
from bookings.domain.errors import (
    HoldExpiredError,
    InvalidSeatError,
    ScheduleNotFoundError,
    SeatUnavailableError,
)
from bookings.services.clock import utc_now
from bookings.stores.interfaces import ScheduleCatalog, SeatStore


class SeatInventory:
    """Service for seat availability and holds."""

    def __init__(
        self,
        catalog: ScheduleCatalog,
        store: SeatStore,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._catalog = catalog
        self._store = store
        self._clock = clock

    def hold_seats(
        self,
        schedule_id: ScheduleId,
        seat_numbers: Iterable[int],
        holder_id: str,
        ttl: timedelta,
    ) -> SeatHold:
        """Reserve every requested seat or none of them.

        Raises:
            ScheduleNotFoundError: If the schedule does not exist.
            InvalidSeatError: If the request is empty, repeats a seat, or names
                a seat outside the vehicle layout.
            SeatUnavailableError: If any requested seat is held or sold.
        """
        schedule = self._schedule(schedule_id)
        seats = self._validate_seats(schedule, seat_numbers)
        if ttl <= timedelta(0):
            raise ValueError("Hold TTL must be positive")

        with self._store.lock(schedule_id):
            now = self._clock()
            self._purge_expired(schedule_id, now)
            clash = seats & self._occupied(schedule_id, now)
            if clash:
                raise SeatUnavailableError(clash)
            hold = SeatHold(
                token=HoldToken.new(),
                schedule_id=schedule_id,
                seat_numbers=seats,
                holder_id=holder_id,
                expires_at=now + ttl,
            )
            self._store.add_hold(hold)

        logger.info(
            "Held seats {} on schedule {} until {}",
            sorted(seats),
            schedule_id,
            hold.expires_at.isoformat(),
        )
        return hold

    def release(self, token: HoldToken) -> None:
        """Drop a hold. Unknown, expired and already released tokens are ignored."""
        hold = self._store.get_hold(token)
        if hold is None:
            return
        with self._store.lock(hold.schedule_id):
            self._store.remove_hold(token)
        logger.info("Released hold {} on schedule {}", token, hold.schedule_id)

    def finalize(self, token: HoldToken, booking_id: BookingId) -> frozenset[int]:
        """Turn a live hold into a permanent allocation for a booking.

        Raises:
            HoldExpiredError: If the hold expired, was swept or was released.
        """
        hold = self._store.get_hold(token)
        if hold is None:
            raise HoldExpiredError()

        expired = False
        with self._store.lock(hold.schedule_id):
            current = self._store.get_hold(token)
            if current is None:
                expired = True
            else:
                self._store.remove_hold(token)
                if current.is_expired(self._clock()):
                    expired = True
                else:
                    self._store.add_allocation(
                        current.schedule_id, current.seat_numbers, booking_id
                    )
        # Raised outside the lock so the expired hold's removal is kept.
        if expired or current is None:
            raise HoldExpiredError()

        logger.info(
            "Finalized seats {} on schedule {} for booking {}",
            sorted(current.seat_numbers),
            current.schedule_id,
            booking_id,
        )
        return current.seat_numbers

    def release_allocation(self, schedule_id: ScheduleId, booking_id: BookingId) -> None:
        """Return a booking's sold seats to the pool. Idempotent."""
        with self._store.lock(schedule_id):
            self._store.remove_allocation(schedule_id, booking_id)
        logger.info("Released allocation of booking {} on schedule {}", booking_id, schedule_id)

    def availability(self, schedule_id: ScheduleId) -> frozenset[int]:
        """Return seats that are neither held nor sold.

        Raises:
            ScheduleNotFoundError: If the schedule does not exist.
        """
        schedule = self._schedule(schedule_id)
        with self._store.lock(schedule_id):
            occupied = self._occupied(schedule_id, self._clock())
        return schedule.sellable_seats - occupied

    def capacity(self, schedule_id: ScheduleId) -> int:
        return self._schedule(schedule_id).capacity.value

    def sweep_expired(self) -> int:
        """Delete holds past their expiry. Returns how many were removed."""
        now = self._clock()
        removed = 0
        for hold in self._store.expired_holds(now):
            with self._store.lock(hold.schedule_id):
                current = self._store.get_hold(hold.token)
                if current is None or not current.is_expired(now):
                    continue
                self._store.remove_hold(hold.token)
            removed += 1
            logger.info(
                "Expired hold {} released seats {} on schedule {}",
                hold.token,
                sorted(hold.seat_numbers),
                hold.schedule_id,
            )
        return removed

    def _schedule(self, schedule_id: ScheduleId) -> Schedule:
        schedule = self._catalog.get_schedule(schedule_id)
        if schedule is None:
            raise ScheduleNotFoundError(str(schedule_id))
        return schedule

    def _validate_seats(self, schedule: Schedule, seat_numbers: Iterable[int]) -> frozenset[int]:
        requested = list(seat_numbers)
        if not requested:
            raise InvalidSeatError("Select at least one seat")
        seats = frozenset(requested)
        if len(seats) != len(requested):
            raise InvalidSeatError("Each seat can only be selected once")
        unknown = seats - schedule.sellable_seats
        if unknown:
            listed = ", ".join(str(seat) for seat in sorted(unknown))
            raise InvalidSeatError(f"Seat {listed} does not exist on this vehicle")
        return seats

    def _occupied(self, schedule_id: ScheduleId, now: datetime) -> frozenset[int]:
        held = frozenset().union(
            *(h.seat_numbers for h in self._store.get_holds(schedule_id) if not h.is_expired(now))
        )
        return held | self._store.allocated_seats(schedule_id)

    def _purge_expired(self, schedule_id: ScheduleId, now: datetime) -> None:
        for hold in self._store.get_holds(schedule_id):
            if hold.is_expired(now):
                self._store.remove_hold(hold.token)
