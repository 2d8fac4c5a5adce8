"""Pytest configuration and shared fixtures."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from rest_framework.test import APIClient

from bookings.domain import Capacity, Money, Schedule, ScheduleId
from bookings.gateways.base import ChargeRequest, ChargeStatus, PaymentGateway, RefundRequest
from bookings.gateways.simulated import SimulatedGateway
from bookings.notifications import NotificationDispatcher
from bookings.services.booking_lifecycle import BookingLifecycle
from bookings.services.payment_service import PaymentService
from bookings.services.refunds import RefundService
from bookings.services.seat_inventory import SeatInventory
from bookings.services.sweeper import ExpirySweeper
from bookings.stores.memory_store import (
    InMemoryBookingStore,
    InMemoryPaymentStore,
    InMemoryScheduleCatalog,
    InMemorySeatStore,
)

START = datetime(2025, 3, 1, 6, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable clock for services."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingNotifier(NotificationDispatcher):
    def __init__(self) -> None:
        self.sent: list[tuple] = []

    def notify(self, booking_id, event) -> None:
        self.sent.append((booking_id, event))


class FlakyGateway(PaymentGateway):
    """Raises the queued errors first, then delegates to a simulated gateway."""

    def __init__(self, *errors: Exception) -> None:
        self.errors = list(errors)
        self.calls = 0
        self.inner = SimulatedGateway()

    def request_charge(self, request: ChargeRequest) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.inner.request_charge(request)

    def request_refund(self, request: RefundRequest) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.inner.request_refund(request)

    def query_charge(self, gateway_ref: str) -> ChargeStatus:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.inner.query_charge(gateway_ref)


@dataclass
class Engine:
    """Services wired against the in-memory stores."""

    clock: FakeClock
    catalog: InMemoryScheduleCatalog
    seats: InMemorySeatStore
    bookings: InMemoryBookingStore
    payments: InMemoryPaymentStore
    notifier: RecordingNotifier
    gateway: PaymentGateway
    inventory: SeatInventory
    lifecycle: BookingLifecycle
    payment_service: PaymentService
    sweeper: ExpirySweeper
    sleeps: list[float] = field(default_factory=list)

    def add_schedule(
        self,
        capacity: int = 14,
        price: str = "500",
        departs_in: timedelta = timedelta(days=1),
    ) -> Schedule:
        schedule = Schedule(
            id=ScheduleId(uuid4()),
            capacity=Capacity(capacity),
            price_per_seat=Money.of(price),
            departure_time=self.clock() + departs_in,
        )
        self.catalog.add(schedule)
        return schedule


def build_engine(gateway: PaymentGateway | None = None) -> Engine:
    clock = FakeClock()
    catalog = InMemoryScheduleCatalog()
    seats = InMemorySeatStore()
    bookings = InMemoryBookingStore()
    payments = InMemoryPaymentStore()
    notifier = RecordingNotifier()
    gateway = gateway or SimulatedGateway()
    sleeps: list[float] = []

    inventory = SeatInventory(catalog, seats, clock=clock)
    refunds = RefundService(
        gateway, payments, retry_attempts=3, retry_backoff=0.5, sleep=sleeps.append, clock=clock
    )
    lifecycle = BookingLifecycle(
        catalog,
        inventory,
        bookings,
        payments,
        notifier,
        refunds,
        hold_ttl=timedelta(seconds=300),
        pending_grace=timedelta(seconds=120),
        cancel_cutoff=timedelta(hours=2),
        clock=clock,
    )
    payment_service = PaymentService(
        gateway,
        lifecycle,
        payments,
        retry_attempts=3,
        retry_backoff=0.5,
        sleep=sleeps.append,
        clock=clock,
    )
    sweeper = ExpirySweeper(inventory, lifecycle, interval=0.01, payments=payment_service)
    return Engine(
        clock=clock,
        catalog=catalog,
        seats=seats,
        bookings=bookings,
        payments=payments,
        notifier=notifier,
        gateway=gateway,
        inventory=inventory,
        lifecycle=lifecycle,
        payment_service=payment_service,
        sweeper=sweeper,
        sleeps=sleeps,
    )


@pytest.fixture
def engine() -> Engine:
    return build_engine()


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()
