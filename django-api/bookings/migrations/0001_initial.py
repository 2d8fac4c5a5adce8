import uuid

import django.db.models.deletion
from django.db import migrations, models


BOOKING_STATUS_CHOICES = [
    ("PendingPayment", "PendingPayment"),
    ("Confirmed", "Confirmed"),
    ("Completed", "Completed"),
    ("Cancelled", "Cancelled"),
    ("Refunded", "Refunded"),
]
PAYMENT_STATUS_CHOICES = [
    ("Pending", "Pending"),
    ("Paid", "Paid"),
    ("Failed", "Failed"),
    ("Refunded", "Refunded"),
]
PAYMENT_METHOD_CHOICES = [("mpesa", "mpesa"), ("cash", "cash"), ("card", "card")]
TRANSACTION_STATUS_CHOICES = [("success", "success"), ("failed", "failed")]
ATTEMPT_KIND_CHOICES = [("charge", "charge"), ("refund", "refund")]
NOTIFICATION_EVENT_CHOICES = [
    ("Confirmed", "Confirmed"),
    ("Cancelled", "Cancelled"),
    ("Refunded", "Refunded"),
]
RECONCILIATION_REASON_CHOICES = [
    ("PaymentMismatch", "PaymentMismatch"),
    ("PaidAfterHoldExpiry", "PaidAfterHoldExpiry"),
    ("PaidForInactiveBooking", "PaidForInactiveBooking"),
    ("UnmatchedCallback", "UnmatchedCallback"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Schedule",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("capacity", models.PositiveSmallIntegerField(choices=[(14, "14 seater"), (25, "25 seater"), (33, "33 seater")])),
                ("price_per_seat", models.DecimalField(decimal_places=2, max_digits=10)),
                ("departure_time", models.DateTimeField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["departure_time"],
                "indexes": [models.Index(fields=["departure_time"], name="schedule_departure_idx")],
            },
        ),
        migrations.CreateModel(
            name="Booking",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("reference", models.CharField(max_length=20, unique=True)),
                ("seat_numbers", models.JSONField()),
                ("customer_id", models.CharField(max_length=64)),
                ("status", models.CharField(choices=BOOKING_STATUS_CHOICES, max_length=20)),
                ("payment_status", models.CharField(choices=PAYMENT_STATUS_CHOICES, max_length=20)),
                ("payment_method", models.CharField(choices=PAYMENT_METHOD_CHOICES, max_length=10)),
                ("total_amount", models.DecimalField(decimal_places=2, max_digits=10)),
                ("notes", models.TextField(blank=True, default="")),
                ("payer_contact", models.CharField(blank=True, max_length=20, null=True)),
                ("hold_token", models.UUIDField(blank=True, null=True)),
                ("hold_expires_at", models.DateTimeField(blank=True, null=True)),
                ("cancellation_reason", models.CharField(blank=True, max_length=255, null=True)),
                ("cancelled_by", models.CharField(blank=True, max_length=64, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField()),
                ("updated_at", models.DateTimeField()),
                (
                    "schedule",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="bookings.schedule",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "hold_expires_at"], name="booking_status_hold_idx"),
                    models.Index(fields=["customer_id"], name="booking_customer_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SeatHold",
            fields=[
                ("token", models.UUIDField(primary_key=True, serialize=False)),
                ("seat_numbers", models.JSONField()),
                ("holder_id", models.CharField(max_length=64)),
                ("expires_at", models.DateTimeField()),
                (
                    "schedule",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="holds",
                        to="bookings.schedule",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["expires_at"], name="hold_expires_idx"),
                    models.Index(fields=["schedule", "expires_at"], name="hold_schedule_expires_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SeatAllocation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("seat_number", models.PositiveSmallIntegerField()),
                (
                    "booking",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="allocations",
                        to="bookings.booking",
                    ),
                ),
                (
                    "schedule",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="allocations",
                        to="bookings.schedule",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("schedule", "seat_number"), name="unique_seat_per_schedule"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentTransaction",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("external_ref", models.CharField(max_length=64, unique=True)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=10)),
                ("status", models.CharField(choices=TRANSACTION_STATUS_CHOICES, max_length=10)),
                ("received_at", models.DateTimeField()),
                (
                    "booking",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="bookings.booking",
                    ),
                ),
            ],
            options={
                "ordering": ["received_at"],
            },
        ),
        migrations.CreateModel(
            name="PaymentAttempt",
            fields=[
                ("gateway_ref", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=10)),
                ("kind", models.CharField(choices=ATTEMPT_KIND_CHOICES, max_length=10)),
                ("payer_contact", models.CharField(blank=True, max_length=20, null=True)),
                ("created_at", models.DateTimeField()),
                (
                    "booking",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="attempts",
                        to="bookings.booking",
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="ReconciliationCase",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("external_ref", models.CharField(max_length=64)),
                ("amount", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("reason", models.CharField(choices=RECONCILIATION_REASON_CHOICES, max_length=30)),
                ("details", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField()),
                (
                    "booking",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reconciliation_cases",
                        to="bookings.booking",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["external_ref", "reason"], name="case_ref_reason_idx")],
            },
        ),
        migrations.CreateModel(
            name="NotificationLog",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("event", models.CharField(choices=NOTIFICATION_EVENT_CHOICES, max_length=20)),
                ("recipient", models.CharField(blank=True, default="", max_length=20)),
                ("message", models.TextField()),
                ("status", models.CharField(default="pending", max_length=10)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "booking",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notifications",
                        to="bookings.booking",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
    ]
