from django.contrib import admin

from bookings.models import (
    Booking,
    NotificationLog,
    PaymentAttempt,
    PaymentTransaction,
    ReconciliationCase,
    Schedule,
    SeatAllocation,
)


class SeatAllocationInline(admin.TabularInline):
    model = SeatAllocation
    extra = 0
    readonly_fields = ["schedule", "seat_number"]


class PaymentTransactionInline(admin.TabularInline):
    model = PaymentTransaction
    extra = 0
    readonly_fields = ["external_ref", "amount", "status", "received_at"]


@admin.register(Schedule)
class ScheduleAdmin(admin.ModelAdmin):
    list_display = ["id", "departure_time", "capacity", "price_per_seat"]
    list_filter = ["capacity"]


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ["reference", "schedule", "customer_id", "status", "payment_status", "total_amount"]
    list_filter = ["status", "payment_status", "payment_method"]
    search_fields = ["reference", "customer_id", "payer_contact"]
    inlines = [SeatAllocationInline, PaymentTransactionInline]


@admin.register(PaymentAttempt)
class PaymentAttemptAdmin(admin.ModelAdmin):
    list_display = ["gateway_ref", "booking", "kind", "amount", "created_at"]
    list_filter = ["kind"]


@admin.register(ReconciliationCase)
class ReconciliationCaseAdmin(admin.ModelAdmin):
    list_display = ["reason", "external_ref", "booking", "amount", "created_at"]
    list_filter = ["reason"]
    search_fields = ["external_ref"]


@admin.register(NotificationLog)
class NotificationLogAdmin(admin.ModelAdmin):
    list_display = ["event", "recipient", "status", "created_at"]
    list_filter = ["event", "status"]
