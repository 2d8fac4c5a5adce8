"""Django ORM implementation of the stores.

Locks are row locks: ``select_for_update()`` inside ``transaction.atomic()``.
SQLite has no row locks; there the connection opens every transaction with
``BEGIN IMMEDIATE`` (see ``DATABASES`` in settings), so writers queue on the
database write lock for up to the busy timeout.
"""

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime

from django.db import IntegrityError, transaction

from bookings import models
from bookings.domain import (
    AttemptKind,
    Booking,
    BookingId,
    BookingReference,
    BookingStatus,
    Capacity,
    HoldToken,
    Money,
    PaymentAttempt,
    PaymentMethod,
    PaymentStatus,
    PaymentTransaction,
    ReconciliationCase,
    ReconciliationReason,
    Schedule,
    ScheduleId,
    SeatHold,
    TransactionId,
    TransactionStatus,
)
from bookings.domain.errors import DuplicateCallbackError, ScheduleNotFoundError
from bookings.stores.interfaces import BookingStore, PaymentStore, ScheduleCatalog, SeatStore


def _schedule_to_domain(row: models.Schedule) -> Schedule:
    return Schedule(
        id=ScheduleId(row.id),
        capacity=Capacity(row.capacity),
        price_per_seat=Money(row.price_per_seat),
        departure_time=row.departure_time,
    )


def _hold_to_domain(row: models.SeatHold) -> SeatHold:
    return SeatHold(
        token=HoldToken(row.token),
        schedule_id=ScheduleId(row.schedule_id),
        seat_numbers=frozenset(row.seat_numbers),
        holder_id=row.holder_id,
        expires_at=row.expires_at,
    )


def _booking_to_domain(row: models.Booking) -> Booking:
    return Booking(
        id=BookingId(row.id),
        reference=BookingReference(row.reference),
        schedule_id=ScheduleId(row.schedule_id),
        seat_numbers=tuple(row.seat_numbers),
        customer_id=row.customer_id,
        status=BookingStatus(row.status),
        payment_status=PaymentStatus(row.payment_status),
        payment_method=PaymentMethod(row.payment_method),
        total_amount=Money(row.total_amount),
        created_at=row.created_at,
        updated_at=row.updated_at,
        notes=row.notes,
        payer_contact=row.payer_contact,
        hold_token=HoldToken(row.hold_token) if row.hold_token else None,
        hold_expires_at=row.hold_expires_at,
        cancellation_reason=row.cancellation_reason,
        cancelled_by=row.cancelled_by,
        cancelled_at=row.cancelled_at,
    )


def _booking_fields(booking: Booking) -> dict:
    return {
        "reference": booking.reference.value,
        "schedule_id": booking.schedule_id.value,
        "seat_numbers": list(booking.seat_numbers),
        "customer_id": booking.customer_id,
        "status": booking.status.value,
        "payment_status": booking.payment_status.value,
        "payment_method": booking.payment_method.value,
        "total_amount": booking.total_amount.amount,
        "notes": booking.notes,
        "payer_contact": booking.payer_contact,
        "hold_token": booking.hold_token.value if booking.hold_token else None,
        "hold_expires_at": booking.hold_expires_at,
        "cancellation_reason": booking.cancellation_reason,
        "cancelled_by": booking.cancelled_by,
        "cancelled_at": booking.cancelled_at,
        "created_at": booking.created_at,
        "updated_at": booking.updated_at,
    }


def _transaction_to_domain(row: models.PaymentTransaction) -> PaymentTransaction:
    return PaymentTransaction(
        id=TransactionId(row.id),
        booking_id=BookingId(row.booking_id),
        external_ref=row.external_ref,
        amount=Money(row.amount),
        status=TransactionStatus(row.status),
        received_at=row.received_at,
    )


def _attempt_to_domain(row: models.PaymentAttempt) -> PaymentAttempt:
    return PaymentAttempt(
        gateway_ref=row.gateway_ref,
        booking_id=BookingId(row.booking_id),
        amount=Money(row.amount),
        kind=AttemptKind(row.kind),
        created_at=row.created_at,
        payer_contact=row.payer_contact,
    )


def _case_to_domain(row: models.ReconciliationCase) -> ReconciliationCase:
    return ReconciliationCase(
        id=row.id,
        reason=ReconciliationReason(row.reason),
        external_ref=row.external_ref,
        created_at=row.created_at,
        booking_id=BookingId(row.booking_id) if row.booking_id else None,
        amount=Money(row.amount) if row.amount is not None else None,
        details=row.details,
    )


class DjangoScheduleCatalog(ScheduleCatalog):
    """Schedule catalog backed by the schedules table."""

    def get_schedule(self, schedule_id: ScheduleId) -> Schedule | None:
        row = models.Schedule.objects.filter(pk=schedule_id.value).first()
        return _schedule_to_domain(row) if row else None


class DjangoSeatStore(SeatStore):
    """Seat state in the holds and allocations tables."""

    @contextmanager
    def lock(self, schedule_id: ScheduleId) -> Iterator[None]:
        with transaction.atomic():
            locked = list(
                models.Schedule.objects.select_for_update()
                .filter(pk=schedule_id.value)
                .values_list("pk", flat=True)
            )
            if not locked:
                raise ScheduleNotFoundError(str(schedule_id))
            yield

    def get_holds(self, schedule_id: ScheduleId) -> list[SeatHold]:
        rows = models.SeatHold.objects.filter(schedule_id=schedule_id.value)
        return [_hold_to_domain(row) for row in rows]

    def get_hold(self, token: HoldToken) -> SeatHold | None:
        row = models.SeatHold.objects.filter(pk=token.value).first()
        return _hold_to_domain(row) if row else None

    def add_hold(self, hold: SeatHold) -> None:
        models.SeatHold.objects.create(
            token=hold.token.value,
            schedule_id=hold.schedule_id.value,
            seat_numbers=sorted(hold.seat_numbers),
            holder_id=hold.holder_id,
            expires_at=hold.expires_at,
        )

    def remove_hold(self, token: HoldToken) -> None:
        models.SeatHold.objects.filter(pk=token.value).delete()

    def expired_holds(self, now: datetime) -> list[SeatHold]:
        rows = models.SeatHold.objects.filter(expires_at__lte=now)
        return [_hold_to_domain(row) for row in rows]

    def allocated_seats(self, schedule_id: ScheduleId) -> frozenset[int]:
        return frozenset(
            models.SeatAllocation.objects.filter(schedule_id=schedule_id.value).values_list(
                "seat_number", flat=True
            )
        )

    def add_allocation(
        self, schedule_id: ScheduleId, seat_numbers: Iterable[int], booking_id: BookingId
    ) -> None:
        models.SeatAllocation.objects.bulk_create(
            [
                models.SeatAllocation(
                    schedule_id=schedule_id.value,
                    seat_number=seat,
                    booking_id=booking_id.value,
                )
                for seat in sorted(seat_numbers)
            ]
        )

    def remove_allocation(self, schedule_id: ScheduleId, booking_id: BookingId) -> None:
        models.SeatAllocation.objects.filter(
            schedule_id=schedule_id.value, booking_id=booking_id.value
        ).delete()


class DjangoBookingStore(BookingStore):
    """Booking store backed by the Django ORM."""

    @contextmanager
    def locked(self, booking_id: BookingId) -> Iterator[None]:
        with transaction.atomic():
            list(
                models.Booking.objects.select_for_update()
                .filter(pk=booking_id.value)
                .values_list("pk", flat=True)
            )
            yield

    def add(self, booking: Booking) -> None:
        models.Booking.objects.create(id=booking.id.value, **_booking_fields(booking))

    def save(self, booking: Booking) -> None:
        updated = models.Booking.objects.filter(pk=booking.id.value).update(
            **_booking_fields(booking)
        )
        if not updated:
            raise KeyError(str(booking.id))

    def get(self, booking_id: BookingId) -> Booking | None:
        row = models.Booking.objects.filter(pk=booking_id.value).first()
        return _booking_to_domain(row) if row else None

    def get_by_reference(self, reference: BookingReference) -> Booking | None:
        row = models.Booking.objects.filter(reference=reference.value).first()
        return _booking_to_domain(row) if row else None

    def list_by_status(self, status: BookingStatus) -> list[Booking]:
        rows = models.Booking.objects.filter(status=status.value)
        return [_booking_to_domain(row) for row in rows]

    def list_stale_pending(self, cutoff: datetime) -> list[Booking]:
        rows = models.Booking.objects.filter(
            status=BookingStatus.PENDING_PAYMENT.value,
            hold_expires_at__lte=cutoff,
        )
        return [_booking_to_domain(row) for row in rows]


class DjangoPaymentStore(PaymentStore):
    """Payment records in the transactions, attempts and cases tables."""

    def get_transaction(self, external_ref: str) -> PaymentTransaction | None:
        row = models.PaymentTransaction.objects.filter(external_ref=external_ref).first()
        return _transaction_to_domain(row) if row else None

    def add_transaction(self, transaction_: PaymentTransaction) -> None:
        try:
            with transaction.atomic():
                models.PaymentTransaction.objects.create(
                    id=transaction_.id.value,
                    booking_id=transaction_.booking_id.value,
                    external_ref=transaction_.external_ref,
                    amount=transaction_.amount.amount,
                    status=transaction_.status.value,
                    received_at=transaction_.received_at,
                )
        except IntegrityError as exc:
            raise DuplicateCallbackError(transaction_.external_ref) from exc

    def list_transactions(self, booking_id: BookingId) -> list[PaymentTransaction]:
        rows = models.PaymentTransaction.objects.filter(booking_id=booking_id.value).order_by(
            "received_at"
        )
        return [_transaction_to_domain(row) for row in rows]

    def add_attempt(self, attempt: PaymentAttempt) -> None:
        models.PaymentAttempt.objects.update_or_create(
            gateway_ref=attempt.gateway_ref,
            defaults={
                "booking_id": attempt.booking_id.value,
                "amount": attempt.amount.amount,
                "kind": attempt.kind.value,
                "payer_contact": attempt.payer_contact,
                "created_at": attempt.created_at,
            },
        )

    def get_attempt(self, gateway_ref: str) -> PaymentAttempt | None:
        row = models.PaymentAttempt.objects.filter(pk=gateway_ref).first()
        return _attempt_to_domain(row) if row else None

    def list_attempts(self, booking_id: BookingId) -> list[PaymentAttempt]:
        rows = models.PaymentAttempt.objects.filter(booking_id=booking_id.value).order_by(
            "created_at"
        )
        return [_attempt_to_domain(row) for row in rows]

    def add_case(self, case: ReconciliationCase) -> None:
        models.ReconciliationCase.objects.create(
            id=case.id,
            booking_id=case.booking_id.value if case.booking_id else None,
            external_ref=case.external_ref,
            amount=case.amount.amount if case.amount is not None else None,
            reason=case.reason.value,
            details=case.details,
            created_at=case.created_at,
        )

    def has_case(self, external_ref: str, reason: ReconciliationReason) -> bool:
        return models.ReconciliationCase.objects.filter(
            external_ref=external_ref, reason=reason.value
        ).exists()

    def list_cases(self, booking_id: BookingId | None = None) -> list[ReconciliationCase]:
        rows = models.ReconciliationCase.objects.order_by("-created_at")
        if booking_id is not None:
            rows = rows.filter(booking_id=booking_id.value)
        return [_case_to_domain(row) for row in rows]
