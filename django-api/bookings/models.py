"""Django ORM models (persistence layer).

These models handle database concerns. Domain logic lives in domain/models.py.
"""

import uuid

from django.db import models

from bookings.domain.layouts import SUPPORTED_CAPACITIES
from bookings.domain.states import (
    AttemptKind,
    BookingStatus,
    NotificationEvent,
    PaymentMethod,
    PaymentStatus,
    ReconciliationReason,
    TransactionStatus,
)


def _choices(enum) -> list[tuple[str, str]]:
    return [(member.value, member.value) for member in enum]


class Schedule(models.Model):
    """Persistence model for schedules. Rows are owned by the fleet catalog."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    capacity = models.PositiveSmallIntegerField(
        choices=[(c, f"{c} seater") for c in sorted(SUPPORTED_CAPACITIES)]
    )
    price_per_seat = models.DecimalField(max_digits=10, decimal_places=2)
    departure_time = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["departure_time"]
        indexes = [
            models.Index(fields=["departure_time"], name="schedule_departure_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.capacity} seater - {self.departure_time}"


class Booking(models.Model):
    """Persistence model for bookings. Rows are never deleted."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    reference = models.CharField(max_length=20, unique=True)
    schedule = models.ForeignKey(Schedule, on_delete=models.PROTECT, related_name="bookings")
    seat_numbers = models.JSONField()
    customer_id = models.CharField(max_length=64)
    status = models.CharField(max_length=20, choices=_choices(BookingStatus))
    payment_status = models.CharField(max_length=20, choices=_choices(PaymentStatus))
    payment_method = models.CharField(max_length=10, choices=_choices(PaymentMethod))
    total_amount = models.DecimalField(max_digits=10, decimal_places=2)
    notes = models.TextField(blank=True, default="")
    payer_contact = models.CharField(max_length=20, blank=True, null=True)
    hold_token = models.UUIDField(blank=True, null=True)
    hold_expires_at = models.DateTimeField(blank=True, null=True)
    cancellation_reason = models.CharField(max_length=255, blank=True, null=True)
    cancelled_by = models.CharField(max_length=64, blank=True, null=True)
    cancelled_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "hold_expires_at"], name="booking_status_hold_idx"),
            models.Index(fields=["customer_id"], name="booking_customer_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.reference} - {self.status}"


class SeatHold(models.Model):
    """Persistence model for ephemeral seat holds."""

    token = models.UUIDField(primary_key=True)
    schedule = models.ForeignKey(Schedule, on_delete=models.CASCADE, related_name="holds")
    seat_numbers = models.JSONField()
    holder_id = models.CharField(max_length=64)
    expires_at = models.DateTimeField()

    class Meta:
        indexes = [
            models.Index(fields=["expires_at"], name="hold_expires_idx"),
            models.Index(fields=["schedule", "expires_at"], name="hold_schedule_expires_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.token} until {self.expires_at}"


class SeatAllocation(models.Model):
    """A sold seat. The unique constraint is the last line against double sales."""

    schedule = models.ForeignKey(Schedule, on_delete=models.PROTECT, related_name="allocations")
    seat_number = models.PositiveSmallIntegerField()
    booking = models.ForeignKey(Booking, on_delete=models.PROTECT, related_name="allocations")

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["schedule", "seat_number"], name="unique_seat_per_schedule"
            ),
        ]

    def __str__(self) -> str:
        return f"Seat {self.seat_number}"


class PaymentTransaction(models.Model):
    """Persistence model for applied gateway outcomes. Immutable."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    booking = models.ForeignKey(Booking, on_delete=models.PROTECT, related_name="transactions")
    external_ref = models.CharField(max_length=64, unique=True)
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    status = models.CharField(max_length=10, choices=_choices(TransactionStatus))
    received_at = models.DateTimeField()

    class Meta:
        ordering = ["received_at"]

    def __str__(self) -> str:
        return f"{self.external_ref} - {self.status}"


class PaymentAttempt(models.Model):
    """Persistence model for charge and refund requests sent to the gateway."""

    gateway_ref = models.CharField(max_length=64, primary_key=True)
    booking = models.ForeignKey(Booking, on_delete=models.PROTECT, related_name="attempts")
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    kind = models.CharField(max_length=10, choices=_choices(AttemptKind))
    payer_contact = models.CharField(max_length=20, blank=True, null=True)
    created_at = models.DateTimeField()

    def __str__(self) -> str:
        return f"{self.kind} {self.gateway_ref}"


class ReconciliationCase(models.Model):
    """Payment outcomes an operator must resolve by hand."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    booking = models.ForeignKey(
        Booking,
        on_delete=models.PROTECT,
        related_name="reconciliation_cases",
        blank=True,
        null=True,
    )
    external_ref = models.CharField(max_length=64)
    amount = models.DecimalField(max_digits=10, decimal_places=2, blank=True, null=True)
    reason = models.CharField(max_length=30, choices=_choices(ReconciliationReason))
    details = models.TextField(blank=True, default="")
    created_at = models.DateTimeField()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["external_ref", "reason"], name="case_ref_reason_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.reason} - {self.external_ref}"


class NotificationLog(models.Model):
    """Outgoing SMS queue picked up by the external sender."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name="notifications")
    event = models.CharField(max_length=20, choices=_choices(NotificationEvent))
    recipient = models.CharField(max_length=20, blank=True, default="")
    message = models.TextField()
    status = models.CharField(max_length=10, default="pending")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.event} -> {self.recipient or 'unknown'}"
