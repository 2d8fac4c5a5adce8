"""Unit tests for domain primitives.

These test invariants that must hold at construction time.
Run with: pytest tests/test_domain.py -v
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from bookings.domain import (
    Actor,
    ActorRole,
    BookingId,
    BookingReference,
    BookingStatus,
    Capacity,
    HoldToken,
    Money,
    Schedule,
    ScheduleId,
    SeatHold,
)
from bookings.domain.errors import (
    CancellationWindowClosedError,
    ErrorCode,
    SeatUnavailableError,
)
from bookings.domain.layouts import DRIVER, layout_for, sellable_seats
from bookings.domain.states import TERMINAL_STATES, can_transition

NOW = datetime(2025, 3, 1, 6, 0, tzinfo=timezone.utc)


class TestMoney:
    """Tests for Money value object."""

    def test_money_accepts_positive_amount(self):
        """Money can be created with positive amount."""
        assert Money(Decimal("500")).amount == Decimal("500")

    def test_money_accepts_zero(self):
        """Money can be created with zero."""
        assert Money(Decimal("0")).amount == 0

    def test_money_rejects_negative_amount(self):
        """Money raises ValueError for negative amount."""
        with pytest.raises(ValueError):
            Money(Decimal("-1"))

    def test_money_str_format(self):
        """Money string representation is formatted to 2 decimal places."""
        assert str(Money.of(1000)) == "1000.00"

    def test_times_multiplies_per_seat_price(self):
        """times() scales the amount by a seat count."""
        assert Money.of("500").times(2) == Money.of("1000.00")


class TestCapacity:
    """Tests for Capacity value object."""

    def test_capacity_accepts_zero(self):
        """Capacity can be created with zero."""
        assert Capacity(0).value == 0

    def test_capacity_rejects_negative_value(self):
        """Capacity raises ValueError for negative value."""
        with pytest.raises(ValueError):
            Capacity(-1)


class TestIdentifiers:
    """Tests for ID value objects."""

    def test_from_string_valid_uuid(self):
        """from_string parses a valid UUID string."""
        raw = str(uuid4())
        assert str(BookingId.from_string(raw)) == raw

    def test_from_string_invalid_uuid_raises(self):
        """from_string raises ValueError for malformed input."""
        with pytest.raises(ValueError):
            ScheduleId.from_string("not-a-uuid")

    def test_new_ids_are_unique(self):
        """new() never repeats."""
        assert HoldToken.new() != HoldToken.new()


class TestBookingReference:
    """Tests for BookingReference."""

    def test_generate_format(self):
        """Generated references are ER + 8 timestamp digits + 3 characters."""
        reference = BookingReference.generate(NOW).value
        assert reference.startswith("ER")
        assert len(reference) == 13
        assert reference[2:10].isdigit()
        assert reference[10:].isalnum() and reference[10:].upper() == reference[10:]

    def test_rejects_empty(self):
        """An empty reference is invalid."""
        with pytest.raises(ValueError):
            BookingReference("")


class TestLayouts:
    """Tests for the fixed vehicle layouts."""

    @pytest.mark.parametrize("capacity", [14, 25, 33])
    def test_sellable_seats_are_one_to_capacity(self, capacity):
        """Each layout sells exactly seats 1..capacity."""
        assert sellable_seats(capacity) == frozenset(range(1, capacity + 1))

    def test_front_row_has_driver(self):
        """The first row holds the driver seat."""
        assert layout_for(14)[0][0] == DRIVER

    def test_unsupported_capacity_raises(self):
        """Capacities without a layout are rejected."""
        with pytest.raises(ValueError):
            layout_for(18)

    def test_schedule_rejects_unsupported_capacity(self):
        """A Schedule cannot be built for a vehicle with no layout."""
        with pytest.raises(ValueError):
            Schedule(
                id=ScheduleId(uuid4()),
                capacity=Capacity(20),
                price_per_seat=Money.of(500),
                departure_time=NOW,
            )


class TestStates:
    """Tests for the booking transition table."""

    def test_pending_can_confirm_or_cancel(self):
        assert can_transition(BookingStatus.PENDING_PAYMENT, BookingStatus.CONFIRMED)
        assert can_transition(BookingStatus.PENDING_PAYMENT, BookingStatus.CANCELLED)
        assert not can_transition(BookingStatus.PENDING_PAYMENT, BookingStatus.COMPLETED)

    @pytest.mark.parametrize("status", sorted(TERMINAL_STATES))
    def test_terminal_states_have_no_exits(self, status):
        """Completed, Cancelled and Refunded are final."""
        assert not any(can_transition(status, target) for target in BookingStatus)

    def test_wire_values(self):
        """Status values are the exact wire strings."""
        assert BookingStatus.PENDING_PAYMENT == "PendingPayment"


class TestSeatHold:
    def test_expired_at_exact_expiry(self):
        """A hold is expired at its expiry instant, not after."""
        hold = SeatHold(
            token=HoldToken.new(),
            schedule_id=ScheduleId(uuid4()),
            seat_numbers=frozenset({1}),
            holder_id="c1",
            expires_at=NOW + timedelta(seconds=300),
        )
        assert not hold.is_expired(NOW + timedelta(seconds=299))
        assert hold.is_expired(NOW + timedelta(seconds=300))


class TestActor:
    def test_staff_roles(self):
        assert Actor("op", ActorRole.OPERATOR).is_staff
        assert Actor("admin", ActorRole.ADMIN).is_staff
        assert not Actor("c1").is_staff

    def test_rejects_empty_id(self):
        with pytest.raises(ValueError):
            Actor("")


class TestErrors:
    def test_seat_unavailable_lists_seats(self):
        """The message names the taken seats without internal identifiers."""
        error = SeatUnavailableError({2, 1})
        assert error.code == ErrorCode.SEAT_UNAVAILABLE
        assert error.seats == frozenset({1, 2})
        assert error.message == "Seats 1, 2 already taken, choose another seat"

    def test_cancellation_window_message_in_hours(self):
        assert "2 hours" in CancellationWindowClosedError(120).message
