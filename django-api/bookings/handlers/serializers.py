"""Serializers for request bodies and for rendering domain models.

Output serializers read attributes off the frozen domain dataclasses; value
objects render through their ``__str__``.
"""

from rest_framework import serializers

from bookings.domain import PaymentMethod, TransactionStatus


class BookingSerializer(serializers.Serializer):
    """Serializer for Booking domain model."""

    bookingId = serializers.CharField(source="id")
    reference = serializers.CharField()
    scheduleId = serializers.CharField(source="schedule_id")
    seatNumbers = serializers.ListField(source="seat_numbers", child=serializers.IntegerField())
    customerId = serializers.CharField(source="customer_id")
    status = serializers.CharField()
    paymentStatus = serializers.CharField(source="payment_status")
    paymentMethod = serializers.CharField(source="payment_method")
    totalAmount = serializers.DecimalField(
        source="total_amount.amount", max_digits=10, decimal_places=2
    )
    notes = serializers.CharField()
    payerContact = serializers.CharField(source="payer_contact")
    holdExpiresAt = serializers.DateTimeField(source="hold_expires_at")
    cancellationReason = serializers.CharField(source="cancellation_reason")
    cancelledAt = serializers.DateTimeField(source="cancelled_at")
    createdAt = serializers.DateTimeField(source="created_at")
    updatedAt = serializers.DateTimeField(source="updated_at")


class CreateBookingSerializer(serializers.Serializer):
    scheduleId = serializers.UUIDField()
    seatNumbers = serializers.ListField(child=serializers.IntegerField(), allow_empty=True)
    paymentMethod = serializers.ChoiceField(
        choices=[method.value for method in PaymentMethod],
        default=PaymentMethod.MPESA.value,
    )
    payerContact = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, max_length=20
    )
    notes = serializers.CharField(required=False, allow_blank=True, default="", max_length=500)
    # Operators booking at the counter name the passenger; customers book for themselves.
    customerId = serializers.CharField(required=False, max_length=64)


class CancelBookingSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)


class InitiatePaymentSerializer(serializers.Serializer):
    payerContact = serializers.CharField(required=False, allow_blank=True, max_length=20)
    amount = serializers.DecimalField(
        required=False, max_digits=10, decimal_places=2, min_value=0
    )


class PaymentCallbackSerializer(serializers.Serializer):
    externalRef = serializers.CharField(max_length=64)
    status = serializers.ChoiceField(choices=[s.value for s in TransactionStatus])
    amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    gatewayRef = serializers.CharField(required=False, allow_blank=True, max_length=64)
    bookingReference = serializers.CharField(required=False, allow_blank=True, max_length=20)


class AvailabilitySerializer(serializers.Serializer):
    scheduleId = serializers.CharField(source="schedule_id")
    capacity = serializers.IntegerField()
    availableSeats = serializers.ListField(
        source="available_seats", child=serializers.IntegerField()
    )
