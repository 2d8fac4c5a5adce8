"""Unit tests for SeatInventory against the in-memory store."""

import threading
from datetime import timedelta
from uuid import uuid4

import pytest

from bookings.domain import BookingId, HoldToken, ScheduleId
from bookings.domain.errors import (
    HoldExpiredError,
    InvalidSeatError,
    ScheduleNotFoundError,
    SeatUnavailableError,
)

TTL = timedelta(seconds=300)


class TestHoldSeats:
    """Tests for SeatInventory.hold_seats."""

    def test_hold_removes_seats_from_availability(self, engine):
        """Held seats are not available."""
        schedule = engine.add_schedule()
        hold = engine.inventory.hold_seats(schedule.id, [1, 2], "c1", TTL)

        assert hold.seat_numbers == frozenset({1, 2})
        assert hold.expires_at == engine.clock() + TTL
        assert engine.inventory.availability(schedule.id) == frozenset(range(3, 15))

    def test_overlapping_hold_is_rejected_whole(self, engine):
        """A request overlapping a held seat reserves nothing."""
        schedule = engine.add_schedule()
        engine.inventory.hold_seats(schedule.id, [1, 2], "c1", TTL)

        with pytest.raises(SeatUnavailableError) as exc_info:
            engine.inventory.hold_seats(schedule.id, [2, 3], "c2", TTL)

        assert exc_info.value.seats == frozenset({2})
        assert 3 in engine.inventory.availability(schedule.id)

    @pytest.mark.parametrize(
        "seats",
        [[], [1, 1], [0], [15]],
        ids=["empty", "duplicate", "zero", "beyond-capacity"],
    )
    def test_invalid_selection_raises(self, engine, seats):
        """Empty, repeated and out-of-layout seats are rejected."""
        schedule = engine.add_schedule(capacity=14)
        with pytest.raises(InvalidSeatError):
            engine.inventory.hold_seats(schedule.id, seats, "c1", TTL)

    def test_unknown_schedule_raises(self, engine):
        with pytest.raises(ScheduleNotFoundError):
            engine.inventory.hold_seats(ScheduleId(uuid4()), [1], "c1", TTL)

    def test_expired_hold_frees_seats_without_sweep(self, engine):
        """Seats are available again the instant a hold expires."""
        schedule = engine.add_schedule()
        engine.inventory.hold_seats(schedule.id, [1], "c1", TTL)

        engine.clock.advance(seconds=299)
        assert 1 not in engine.inventory.availability(schedule.id)

        engine.clock.advance(seconds=1)
        assert 1 in engine.inventory.availability(schedule.id)
        engine.inventory.hold_seats(schedule.id, [1], "c2", TTL)

    def test_concurrent_overlapping_holds_at_most_one_wins(self, engine):
        """Racing holds on the same seats never both succeed."""
        schedule = engine.add_schedule(capacity=14)
        contenders = 8
        barrier = threading.Barrier(contenders)
        wins: list[str] = []
        losses: list[str] = []

        def attempt(holder: str) -> None:
            barrier.wait()
            try:
                engine.inventory.hold_seats(schedule.id, [5, 6], holder, TTL)
            except SeatUnavailableError:
                losses.append(holder)
            else:
                wins.append(holder)

        threads = [
            threading.Thread(target=attempt, args=(f"c{i}",)) for i in range(contenders)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(wins) == 1
        assert len(losses) == contenders - 1

    def test_held_plus_sold_never_exceeds_capacity(self, engine):
        """Filling the vehicle leaves nothing to hold."""
        schedule = engine.add_schedule(capacity=14)
        first = engine.inventory.hold_seats(schedule.id, range(1, 8), "c1", TTL)
        engine.inventory.finalize(first.token, BookingId.new())
        engine.inventory.hold_seats(schedule.id, range(8, 15), "c2", TTL)

        assert engine.inventory.availability(schedule.id) == frozenset()
        with pytest.raises(SeatUnavailableError):
            engine.inventory.hold_seats(schedule.id, [1], "c3", TTL)


class TestFinalizeAndRelease:
    """Tests for finalize, release and release_allocation."""

    def test_finalize_makes_allocation_permanent(self, engine):
        """Finalized seats stay taken after the hold TTL."""
        schedule = engine.add_schedule()
        hold = engine.inventory.hold_seats(schedule.id, [1, 2], "c1", TTL)

        seats = engine.inventory.finalize(hold.token, BookingId.new())

        assert seats == frozenset({1, 2})
        engine.clock.advance(seconds=3600)
        assert engine.inventory.availability(schedule.id).isdisjoint({1, 2})

    def test_finalize_at_expiry_raises(self, engine):
        """Finalizing at or after expiry fails and frees the seats."""
        schedule = engine.add_schedule()
        hold = engine.inventory.hold_seats(schedule.id, [1], "c1", TTL)
        engine.clock.advance(seconds=300)

        with pytest.raises(HoldExpiredError):
            engine.inventory.finalize(hold.token, BookingId.new())
        assert engine.seats.get_hold(hold.token) is None
        assert 1 in engine.inventory.availability(schedule.id)

    def test_finalize_unknown_token_raises(self, engine):
        with pytest.raises(HoldExpiredError):
            engine.inventory.finalize(HoldToken.new(), BookingId.new())

    def test_release_is_idempotent(self, engine):
        """Releasing twice, or an unknown token, is a no-op."""
        schedule = engine.add_schedule()
        hold = engine.inventory.hold_seats(schedule.id, [3], "c1", TTL)

        engine.inventory.release(hold.token)
        engine.inventory.release(hold.token)
        engine.inventory.release(HoldToken.new())

        assert 3 in engine.inventory.availability(schedule.id)

    def test_release_allocation_returns_sold_seats(self, engine):
        schedule = engine.add_schedule()
        booking_id = BookingId.new()
        hold = engine.inventory.hold_seats(schedule.id, [4], "c1", TTL)
        engine.inventory.finalize(hold.token, booking_id)

        engine.inventory.release_allocation(schedule.id, booking_id)

        assert 4 in engine.inventory.availability(schedule.id)


class TestSweepExpired:
    def test_sweep_removes_only_expired_holds(self, engine):
        """Live holds survive the sweep."""
        schedule = engine.add_schedule()
        old = engine.inventory.hold_seats(schedule.id, [1], "c1", TTL)
        engine.clock.advance(seconds=200)
        fresh = engine.inventory.hold_seats(schedule.id, [2], "c2", TTL)
        engine.clock.advance(seconds=100)

        assert engine.inventory.sweep_expired() == 1
        assert engine.seats.get_hold(old.token) is None
        assert engine.seats.get_hold(fresh.token) is not None
