"""HTTP handlers (views) - handle HTTP concerns only.

Handlers:
- Parse requests and validate input format
- Call services for business logic
- Map domain errors to HTTP responses
- Never contain business logic
- Never expose internal error details
"""

from typing import Any

from rest_framework import status
from rest_framework.exceptions import ParseError, ValidationError
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from bookings.container import Services, get_services
from bookings.domain import (
    Actor,
    ActorRole,
    BookingId,
    Money,
    PaymentMethod,
    ScheduleId,
    TransactionStatus,
)
from bookings.domain.errors import (
    DomainError,
    InvalidIdentifierError,
    PermissionDeniedError,
)
from bookings.handlers.errors import domain_error_response, validation_error_response
from bookings.handlers.serializers import (
    AvailabilitySerializer,
    BookingSerializer,
    CancelBookingSerializer,
    CreateBookingSerializer,
    InitiatePaymentSerializer,
    PaymentCallbackSerializer,
)

ACTOR_ID_HEADER = "X-Actor-Id"
ACTOR_ROLE_HEADER = "X-Actor-Role"


def actor_from_request(request: Request) -> Actor:
    """Build the caller identity from the headers set by the upstream gateway.

    Raises:
        PermissionDeniedError: If the id header is missing or the role is unknown.
    """
    actor_id = request.headers.get(ACTOR_ID_HEADER, "").strip()
    if not actor_id:
        raise PermissionDeniedError("Sign in to continue")
    role = request.headers.get(ACTOR_ROLE_HEADER, ActorRole.CUSTOMER.value).strip().lower()
    try:
        return Actor(actor_id=actor_id, role=ActorRole(role))
    except ValueError as exc:
        raise PermissionDeniedError("Unknown role") from exc


def parse_booking_id(value: str) -> BookingId:
    try:
        return BookingId.from_string(value)
    except ValueError as exc:
        raise InvalidIdentifierError() from exc


def parse_schedule_id(value: str) -> ScheduleId:
    try:
        return ScheduleId.from_string(value)
    except ValueError as exc:
        raise InvalidIdentifierError() from exc


class BookingAPIView(APIView):
    """Base view that renders domain and validation errors as error bodies."""

    def handle_exception(self, exc: Exception) -> Response:
        if isinstance(exc, DomainError):
            return domain_error_response(exc)
        if isinstance(exc, (ValidationError, ParseError)):
            return validation_error_response(exc.detail)
        return super().handle_exception(exc)

    @property
    def services(self) -> Services:
        return get_services()

    @staticmethod
    def validated(serializer_class: type, data: Any) -> dict[str, Any]:
        serializer = serializer_class(data=data)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data


class BookingListView(BookingAPIView):
    """Handler for POST /api/bookings"""

    def post(self, request: Request) -> Response:
        actor = actor_from_request(request)
        data = self.validated(CreateBookingSerializer, request.data)

        customer_id = actor.actor_id
        if data.get("customerId") and data["customerId"] != actor.actor_id:
            if not actor.is_staff:
                raise PermissionDeniedError("Customers can only book for themselves")
            customer_id = data["customerId"]

        booking = self.services.lifecycle.create(
            ScheduleId(data["scheduleId"]),
            data["seatNumbers"],
            customer_id,
            PaymentMethod(data["paymentMethod"]),
            payer_contact=data.get("payerContact") or None,
            notes=data["notes"],
        )
        return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)


class BookingDetailView(BookingAPIView):
    """Handler for GET /api/bookings/{booking_id}"""

    def get(self, request: Request, booking_id: str) -> Response:
        actor = actor_from_request(request)
        booking = self.services.lifecycle.get(parse_booking_id(booking_id), actor)
        return Response(BookingSerializer(booking).data)


class BookingByReferenceView(BookingAPIView):
    """Handler for GET /api/bookings/reference/{reference}"""

    def get(self, request: Request, reference: str) -> Response:
        actor = actor_from_request(request)
        booking = self.services.lifecycle.get_by_reference(reference.strip().upper())
        # Same visibility rule as lookups by id.
        booking = self.services.lifecycle.get(booking.id, actor)
        return Response(BookingSerializer(booking).data)


class CancelBookingView(BookingAPIView):
    """Handler for POST /api/bookings/{booking_id}/cancel"""

    def post(self, request: Request, booking_id: str) -> Response:
        actor = actor_from_request(request)
        data = self.validated(CancelBookingSerializer, request.data)
        booking = self.services.lifecycle.cancel(
            parse_booking_id(booking_id), data["reason"], actor
        )
        return Response(BookingSerializer(booking).data)


class InitiatePaymentView(BookingAPIView):
    """Handler for POST /api/bookings/{booking_id}/payment"""

    def post(self, request: Request, booking_id: str) -> Response:
        actor = actor_from_request(request)
        data = self.validated(InitiatePaymentSerializer, request.data)
        booking = self.services.lifecycle.get(parse_booking_id(booking_id), actor)

        payer_contact = data.get("payerContact") or booking.payer_contact or ""
        amount = Money(data["amount"]) if "amount" in data else booking.total_amount
        gateway_ref = self.services.payments.initiate(booking.id, amount, payer_contact)

        if gateway_ref is None:
            body = {
                "status": "pending",
                "bookingId": str(booking.id),
                "message": "Payment could not be started right now, please try again shortly",
            }
        else:
            body = {
                "status": "initiated",
                "bookingId": str(booking.id),
                "message": "Check your phone to complete the payment",
            }
        return Response(body, status=status.HTTP_202_ACCEPTED)


class CashPaymentView(BookingAPIView):
    """Handler for POST /api/bookings/{booking_id}/cash-payment"""

    def post(self, request: Request, booking_id: str) -> Response:
        actor = actor_from_request(request)
        booking = self.services.lifecycle.record_cash_payment(
            parse_booking_id(booking_id), actor
        )
        return Response(BookingSerializer(booking).data)


class AvailabilityView(BookingAPIView):
    """Handler for GET /api/schedules/{schedule_id}/availability"""

    def get(self, request: Request, schedule_id: str) -> Response:
        schedule_key = parse_schedule_id(schedule_id)
        available = self.services.inventory.availability(schedule_key)
        body = {
            "schedule_id": str(schedule_key),
            "capacity": self.services.inventory.capacity(schedule_key),
            "available_seats": sorted(available),
        }
        return Response(AvailabilitySerializer(body).data)


class PaymentCallbackView(BookingAPIView):
    """Handler for POST /api/payments/callback"""

    def post(self, request: Request) -> Response:
        data = self.validated(PaymentCallbackSerializer, request.data)
        outcome = self.services.payments.handle_callback(
            data["externalRef"],
            TransactionStatus(data["status"]),
            Money(data["amount"]),
            gateway_ref=data.get("gatewayRef") or None,
            booking_reference=data.get("bookingReference") or None,
        )
        return Response({"accepted": outcome.accepted, "duplicate": outcome.duplicate})


class MpesaCallbackView(BookingAPIView):
    """Handler for POST /api/payments/mpesa/callback"""

    def post(self, request: Request) -> Response:
        body = request.data if isinstance(request.data, dict) else {}
        return Response(self.services.payments.handle_mpesa_callback(body))
