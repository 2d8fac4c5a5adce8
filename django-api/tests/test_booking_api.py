"""Integration tests for the booking HTTP API.

These run the handlers against the Django ORM stores.
Run with: pytest tests/test_booking_api.py -v
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from django.core.management import call_command
from django.utils import timezone

from bookings import models

pytestmark = pytest.mark.django_db

CUSTOMER = {"HTTP_X_ACTOR_ID": "c1"}
OTHER_CUSTOMER = {"HTTP_X_ACTOR_ID": "c2"}
OPERATOR = {"HTTP_X_ACTOR_ID": "op1", "HTTP_X_ACTOR_ROLE": "operator"}


@pytest.fixture
def schedule() -> models.Schedule:
    return models.Schedule.objects.create(
        capacity=14,
        price_per_seat=Decimal("500.00"),
        departure_time=timezone.now() + timedelta(days=1),
    )


def create_booking(api_client, schedule, seats=(1, 2), headers=CUSTOMER, **extra):
    payload = {
        "scheduleId": str(schedule.id),
        "seatNumbers": list(seats),
        "paymentMethod": "mpesa",
        "payerContact": "0712345678",
        **extra,
    }
    return api_client.post("/api/bookings", payload, format="json", **headers)


def callback(api_client, booking, external_ref="XYZ123", status="success", amount="1000"):
    return api_client.post(
        "/api/payments/callback",
        {
            "externalRef": external_ref,
            "status": status,
            "amount": amount,
            "bookingReference": booking["reference"],
        },
        format="json",
    )


class TestCreateBooking:
    """Tests for POST /api/bookings"""

    def test_create_returns_pending_booking(self, api_client, schedule):
        response = create_booking(api_client, schedule)

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "PendingPayment"
        assert body["paymentStatus"] == "Pending"
        assert body["paymentMethod"] == "mpesa"
        assert body["totalAmount"] == "1000.00"
        assert body["seatNumbers"] == [1, 2]
        assert body["customerId"] == "c1"
        assert body["reference"].startswith("ER")

    def test_taken_seat_is_conflict(self, api_client, schedule):
        create_booking(api_client, schedule, seats=(1, 2))

        response = create_booking(api_client, schedule, seats=(2, 3), headers=OTHER_CUSTOMER)

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "SEAT_UNAVAILABLE"
        assert error["message"] == "Seat 2 already taken, choose another seat"

    def test_seat_outside_layout_is_bad_request(self, api_client, schedule):
        response = create_booking(api_client, schedule, seats=(15,))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_SEAT"

    def test_unknown_schedule_is_not_found(self, api_client, schedule):
        response = api_client.post(
            "/api/bookings",
            {"scheduleId": str(uuid4()), "seatNumbers": [1]},
            format="json",
            **CUSTOMER,
        )

        assert response.status_code == 404

    def test_malformed_body_is_validation_error(self, api_client, schedule):
        response = api_client.post(
            "/api/bookings", {"seatNumbers": [1]}, format="json", **CUSTOMER
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_missing_identity_is_forbidden(self, api_client, schedule):
        response = create_booking(api_client, schedule, headers={})

        assert response.status_code == 403

    def test_customer_cannot_book_for_someone_else(self, api_client, schedule):
        response = create_booking(api_client, schedule, customerId="c9")

        assert response.status_code == 403

    def test_operator_books_for_customer(self, api_client, schedule):
        response = create_booking(api_client, schedule, headers=OPERATOR, customerId="c9")

        assert response.status_code == 201
        assert response.json()["customerId"] == "c9"


class TestGetBooking:
    def test_owner_reads_booking(self, api_client, schedule):
        booking = create_booking(api_client, schedule).json()

        response = api_client.get(f"/api/bookings/{booking['bookingId']}", **CUSTOMER)

        assert response.status_code == 200
        assert response.json()["reference"] == booking["reference"]

    def test_other_customer_gets_not_found(self, api_client, schedule):
        booking = create_booking(api_client, schedule).json()

        response = api_client.get(f"/api/bookings/{booking['bookingId']}", **OTHER_CUSTOMER)

        assert response.status_code == 404

    def test_invalid_id_is_bad_request(self, api_client):
        response = api_client.get("/api/bookings/not-a-uuid", **CUSTOMER)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_ID"

    def test_lookup_by_reference(self, api_client, schedule):
        booking = create_booking(api_client, schedule).json()

        response = api_client.get(
            f"/api/bookings/reference/{booking['reference'].lower()}", **OPERATOR
        )

        assert response.status_code == 200
        assert response.json()["bookingId"] == booking["bookingId"]


class TestAvailability:
    def test_lists_free_seats(self, api_client, schedule):
        create_booking(api_client, schedule, seats=(1, 2))

        response = api_client.get(f"/api/schedules/{schedule.id}/availability")

        assert response.status_code == 200
        body = response.json()
        assert body["scheduleId"] == str(schedule.id)
        assert body["capacity"] == 14
        assert body["availableSeats"] == list(range(3, 15))


class TestPaymentFlow:
    """End-to-end payment scenarios through the API."""

    def test_success_callback_confirms_and_sells_seats(self, api_client, schedule):
        booking = create_booking(api_client, schedule).json()

        response = callback(api_client, booking)

        assert response.status_code == 200
        assert response.json() == {"accepted": True, "duplicate": False}
        stored = api_client.get(f"/api/bookings/{booking['bookingId']}", **CUSTOMER).json()
        assert (stored["status"], stored["paymentStatus"]) == ("Confirmed", "Paid")
        availability = api_client.get(f"/api/schedules/{schedule.id}/availability").json()
        assert 1 not in availability["availableSeats"]
        assert models.SeatAllocation.objects.filter(schedule=schedule).count() == 2
        assert not models.SeatHold.objects.exists()

    def test_redelivered_callback_applies_once(self, api_client, schedule):
        booking = create_booking(api_client, schedule).json()

        callback(api_client, booking, external_ref="XYZ123")
        response = callback(api_client, booking, external_ref="XYZ123")

        assert response.json() == {"accepted": True, "duplicate": True}
        assert models.PaymentTransaction.objects.filter(external_ref="XYZ123").count() == 1

    def test_short_payment_is_not_confirmed(self, api_client, schedule):
        booking = create_booking(api_client, schedule).json()

        callback(api_client, booking, amount="900")

        row = models.Booking.objects.get(pk=booking["bookingId"])
        assert row.status == "PendingPayment"
        assert models.ReconciliationCase.objects.get().reason == "PaymentMismatch"

    def test_initiate_payment_accepted(self, api_client, schedule):
        booking = create_booking(api_client, schedule).json()

        response = api_client.post(
            f"/api/bookings/{booking['bookingId']}/payment", {}, format="json", **CUSTOMER
        )

        assert response.status_code == 202
        assert response.json()["status"] == "initiated"
        assert models.PaymentAttempt.objects.filter(booking_id=booking["bookingId"]).count() == 1

    def test_mpesa_callback_is_always_acknowledged(self, api_client, schedule):
        booking = create_booking(api_client, schedule).json()
        api_client.post(f"/api/bookings/{booking['bookingId']}/payment", {}, format="json", **CUSTOMER)
        checkout_id = models.PaymentAttempt.objects.get().gateway_ref
        envelope = {
            "Body": {
                "stkCallback": {
                    "CheckoutRequestID": checkout_id,
                    "ResultCode": 0,
                    "ResultDesc": "ok",
                    "CallbackMetadata": {
                        "Item": [
                            {"Name": "Amount", "Value": 1000},
                            {"Name": "MpesaReceiptNumber", "Value": "QKJ4XYZ123"},
                        ]
                    },
                }
            }
        }

        response = api_client.post("/api/payments/mpesa/callback", envelope, format="json")

        assert response.json() == {"ResultCode": 0, "ResultDesc": "Success"}
        assert models.Booking.objects.get(pk=booking["bookingId"]).status == "Confirmed"

    def test_cash_payment_by_operator(self, api_client, schedule):
        booking = create_booking(api_client, schedule, paymentMethod="cash").json()

        denied = api_client.post(f"/api/bookings/{booking['bookingId']}/cash-payment", **CUSTOMER)
        response = api_client.post(f"/api/bookings/{booking['bookingId']}/cash-payment", **OPERATOR)

        assert denied.status_code == 403
        assert response.status_code == 200
        assert response.json()["status"] == "Confirmed"


class TestCancel:
    def test_cancel_paid_booking_refunds(self, api_client, schedule):
        booking = create_booking(api_client, schedule).json()
        callback(api_client, booking)

        response = api_client.post(
            f"/api/bookings/{booking['bookingId']}/cancel",
            {"reason": "change of plans"},
            format="json",
            **CUSTOMER,
        )

        assert response.status_code == 200
        body = response.json()
        assert (body["status"], body["paymentStatus"]) == ("Refunded", "Refunded")
        assert body["cancellationReason"] == "change of plans"
        assert not models.SeatAllocation.objects.exists()

    def test_cancel_twice_is_conflict(self, api_client, schedule):
        booking = create_booking(api_client, schedule).json()
        url = f"/api/bookings/{booking['bookingId']}/cancel"
        api_client.post(url, {}, format="json", **CUSTOMER)

        response = api_client.post(url, {}, format="json", **CUSTOMER)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_TRANSITION"


class TestSweeperCommand:
    def test_single_pass_times_out_stale_booking(self, api_client, schedule):
        booking = create_booking(api_client, schedule).json()
        models.Booking.objects.filter(pk=booking["bookingId"]).update(
            hold_expires_at=timezone.now() - timedelta(minutes=10)
        )
        models.SeatHold.objects.update(expires_at=timezone.now() - timedelta(minutes=10))

        call_command("run_booking_sweeper", "--once")

        row = models.Booking.objects.get(pk=booking["bookingId"])
        assert (row.status, row.payment_status) == ("Cancelled", "Failed")
        assert not models.SeatHold.objects.exists()
