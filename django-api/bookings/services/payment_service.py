"""Payment adapter - starts charges and applies gateway callbacks to bookings.

Callbacks may arrive any number of times and in any order. A callback whose
external reference already has a PaymentTransaction is acknowledged without
touching the booking; the store's uniqueness constraint settles concurrent
redeliveries.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from loguru import logger

from bookings.domain import (
    AttemptKind,
    Booking,
    BookingId,
    BookingStatus,
    Money,
    PaymentAttempt,
    PaymentMethod,
    PaymentTransaction,
    ReconciliationCase,
    ReconciliationReason,
    TransactionId,
    TransactionStatus,
)
from bookings.domain.errors import (
    BookingNotFoundError,
    DuplicateCallbackError,
    GatewayUnavailableError,
    HoldExpiredError,
    InvalidPaymentRequestError,
    InvalidTransitionError,
    PaymentMismatchError,
)
from bookings.gateways.base import ChargeRequest, PaymentGateway
from bookings.gateways.mpesa import parse_stk_callback
from bookings.services.booking_lifecycle import BookingLifecycle
from bookings.services.clock import utc_now
from bookings.services.retry import call_with_retry
from bookings.stores.interfaces import PaymentStore

MIN_CHARGE = Decimal("10")
MAX_CHARGE = Decimal("150000")

MPESA_ACK = {"ResultCode": 0, "ResultDesc": "Success"}


@dataclass(frozen=True)
class CallbackOutcome:
    """What a callback did. ``action`` is one of: confirmed, cancelled,
    mismatch, expired, inactive, ignored, unmatched, duplicate."""

    accepted: bool
    duplicate: bool
    action: str
    booking_id: BookingId | None = None


class PaymentService:
    """Charges bookings through the gateway and correlates its callbacks."""

    def __init__(
        self,
        gateway: PaymentGateway,
        lifecycle: BookingLifecycle,
        payments: PaymentStore,
        *,
        retry_attempts: int = 3,
        retry_backoff: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._gateway = gateway
        self._lifecycle = lifecycle
        self._payments = payments
        self._retry_attempts = retry_attempts
        self._retry_backoff = retry_backoff
        self._sleep = sleep
        self._clock = clock

    def initiate(self, booking_id: BookingId, amount: Money, payer_contact: str) -> str | None:
        """Send a push-payment prompt for a pending M-Pesa booking.

        Returns the gateway reference, or None when the gateway stayed
        unavailable through every retry. The booking is then left
        PendingPayment for the timeout sweep.

        Raises:
            BookingNotFoundError: If the booking does not exist.
            InvalidTransitionError: If the booking is not PendingPayment.
            InvalidPaymentRequestError: If the booking is not an M-Pesa booking,
                the amount is wrong or out of range, or the gateway rejected it.
        """
        booking = self._lifecycle.get(booking_id)
        if booking.status != BookingStatus.PENDING_PAYMENT:
            raise InvalidTransitionError(
                booking.status.value,
                BookingStatus.CONFIRMED.value,
                detail="Only bookings awaiting payment can be paid",
            )
        if booking.payment_method != PaymentMethod.MPESA:
            raise InvalidPaymentRequestError("This booking is not paid by M-Pesa")
        if not payer_contact:
            raise InvalidPaymentRequestError("Phone number is required")
        if amount != booking.total_amount:
            raise InvalidPaymentRequestError("Amount must equal the booking total")
        if not MIN_CHARGE <= amount.amount <= MAX_CHARGE:
            raise InvalidPaymentRequestError(
                f"Amount must be between KES {MIN_CHARGE} and KES {MAX_CHARGE}"
            )

        request = ChargeRequest(
            account_reference=booking.reference.value,
            amount=amount,
            payer_contact=payer_contact,
        )
        try:
            gateway_ref = call_with_retry(
                lambda: self._gateway.request_charge(request),
                attempts=self._retry_attempts,
                backoff=self._retry_backoff,
                description=f"Charge for booking {booking.reference}",
                sleep=self._sleep,
            )
        except GatewayUnavailableError:
            logger.warning(
                "Charge for booking {} not started, left pending for the timeout sweep",
                booking.reference,
            )
            return None

        self._payments.add_attempt(
            PaymentAttempt(
                gateway_ref=gateway_ref,
                booking_id=booking.id,
                amount=amount,
                kind=AttemptKind.CHARGE,
                created_at=self._clock(),
                payer_contact=payer_contact,
            )
        )
        logger.info("Charge {} started for booking {}", gateway_ref, booking.reference)
        return gateway_ref

    def handle_callback(
        self,
        external_ref: str,
        status: TransactionStatus,
        amount: Money,
        *,
        gateway_ref: str | None = None,
        booking_reference: str | None = None,
    ) -> CallbackOutcome:
        """Apply one gateway outcome. Always acknowledges the gateway.

        Raises:
            ValueError: If external_ref is empty.
        """
        if not external_ref:
            raise ValueError("external_ref is required")

        if self._already_recorded(external_ref, gateway_ref):
            logger.info("Duplicate callback {} ignored", external_ref)
            return CallbackOutcome(accepted=True, duplicate=True, action="duplicate")

        booking = self._correlate(external_ref, gateway_ref, booking_reference)
        if booking is None:
            self._flag_unmatched(external_ref, amount, gateway_ref, booking_reference)
            return CallbackOutcome(accepted=True, duplicate=False, action="unmatched")

        transaction = PaymentTransaction(
            id=TransactionId.new(),
            booking_id=booking.id,
            external_ref=external_ref,
            amount=amount,
            status=status,
            received_at=self._clock(),
        )
        try:
            self._lifecycle.record_transaction(transaction)
        except DuplicateCallbackError:
            logger.info("Concurrent duplicate callback {} ignored", external_ref)
            return CallbackOutcome(
                accepted=True, duplicate=True, action="duplicate", booking_id=booking.id
            )

        if status == TransactionStatus.SUCCESS:
            action = self._apply_success(booking, transaction)
        else:
            action = self._apply_failure(booking)
        return CallbackOutcome(accepted=True, duplicate=False, action=action, booking_id=booking.id)

    def handle_mpesa_callback(self, body: dict[str, Any]) -> dict[str, Any]:
        """Apply a Daraja STK callback and return the acknowledgement body."""
        try:
            callback = parse_stk_callback(body)
        except ValueError:
            logger.warning("Discarding malformed M-Pesa callback")
            return dict(MPESA_ACK)

        amount = Money.of(callback.amount) if callback.amount is not None else Money.of(0)
        if callback.succeeded:
            external_ref = callback.receipt_number or callback.checkout_request_id
            status = TransactionStatus.SUCCESS
        else:
            external_ref = callback.checkout_request_id
            status = TransactionStatus.FAILED
            logger.info(
                "M-Pesa request {} failed: {} {}",
                callback.checkout_request_id,
                callback.result_code,
                callback.result_desc,
            )

        self.handle_callback(
            external_ref,
            status,
            amount,
            gateway_ref=callback.checkout_request_id,
        )
        return dict(MPESA_ACK)

    def settle_stale_pending(self) -> list[BookingId]:
        """Query the gateway for stale M-Pesa bookings whose callback never came.

        A charge the gateway reports as paid is applied exactly like its
        callback, under the request id, so a late callback for the same request
        is a duplicate. Anything else is left to the timeout sweep.
        """
        settled: list[BookingId] = []
        for booking in self._lifecycle.list_stale_pending():
            if booking.payment_method != PaymentMethod.MPESA:
                continue
            charges = [
                a for a in self._payments.list_attempts(booking.id) if a.kind == AttemptKind.CHARGE
            ]
            if not charges:
                continue
            attempt = charges[-1]
            try:
                status = self._gateway.query_charge(attempt.gateway_ref)
            except (GatewayUnavailableError, InvalidPaymentRequestError):
                logger.warning(
                    "Status of charge {} for booking {} unknown, leaving it to time out",
                    attempt.gateway_ref,
                    booking.reference,
                )
                continue
            if status.outcome != TransactionStatus.SUCCESS:
                continue

            logger.info(
                "Charge {} for booking {} settled without a callback",
                attempt.gateway_ref,
                booking.reference,
            )
            self.handle_callback(
                attempt.gateway_ref,
                TransactionStatus.SUCCESS,
                attempt.amount,
                gateway_ref=attempt.gateway_ref,
            )
            settled.append(booking.id)
        return settled

    def _already_recorded(self, external_ref: str, gateway_ref: str | None) -> bool:
        if self._payments.get_transaction(external_ref) is not None:
            return True
        # A charge settled by status query is recorded under its request id.
        return bool(gateway_ref) and self._payments.get_transaction(gateway_ref) is not None

    def _correlate(
        self,
        external_ref: str,
        gateway_ref: str | None,
        booking_reference: str | None,
    ) -> Booking | None:
        # gatewayRef first, then the booking reference, then the receipt
        # itself in case the gateway echoed its own request id.
        if gateway_ref:
            booking = self._by_attempt(gateway_ref)
            if booking is not None:
                return booking
        if booking_reference:
            try:
                return self._lifecycle.get_by_reference(booking_reference)
            except BookingNotFoundError:
                pass
        return self._by_attempt(external_ref)

    def _by_attempt(self, gateway_ref: str) -> Booking | None:
        attempt = self._payments.get_attempt(gateway_ref)
        if attempt is None or attempt.kind != AttemptKind.CHARGE:
            return None
        try:
            return self._lifecycle.get(attempt.booking_id)
        except BookingNotFoundError:
            return None

    def _apply_success(self, booking: Booking, transaction: PaymentTransaction) -> str:
        try:
            self._check_amount(booking, transaction)
        except PaymentMismatchError:
            self._open_case(
                ReconciliationReason.PAYMENT_MISMATCH,
                transaction,
                f"Paid {transaction.amount}, booking total {booking.total_amount}",
            )
            logger.error(
                "Payment {} for booking {} does not match total, flagged for reconciliation",
                transaction.external_ref,
                booking.reference,
            )
            return "mismatch"

        try:
            self._lifecycle.on_payment_success(booking.id, transaction)
        except HoldExpiredError:
            return "expired"
        except InvalidTransitionError as exc:
            self._open_case(
                ReconciliationReason.PAID_FOR_INACTIVE_BOOKING,
                transaction,
                f"Booking was {exc.current} when the payment arrived",
            )
            logger.error(
                "Payment {} arrived for {} booking {}, flagged for reconciliation",
                transaction.external_ref,
                exc.current,
                booking.reference,
            )
            return "inactive"
        return "confirmed"

    def _apply_failure(self, booking: Booking) -> str:
        try:
            self._lifecycle.on_payment_failure_or_timeout(booking.id)
        except InvalidTransitionError:
            logger.info("Failed payment for booking {} ignored, no longer pending", booking.reference)
            return "ignored"
        return "cancelled"

    @staticmethod
    def _check_amount(booking: Booking, transaction: PaymentTransaction) -> None:
        if transaction.amount != booking.total_amount:
            raise PaymentMismatchError()

    def _open_case(
        self,
        reason: ReconciliationReason,
        transaction: PaymentTransaction,
        details: str,
    ) -> None:
        self._payments.add_case(
            ReconciliationCase(
                reason=reason,
                external_ref=transaction.external_ref,
                created_at=self._clock(),
                booking_id=transaction.booking_id,
                amount=transaction.amount,
                details=details,
            )
        )

    def _flag_unmatched(
        self,
        external_ref: str,
        amount: Money,
        gateway_ref: str | None,
        booking_reference: str | None,
    ) -> None:
        if self._payments.has_case(external_ref, ReconciliationReason.UNMATCHED_CALLBACK):
            logger.info("Unmatched callback {} already flagged", external_ref)
            return
        self._payments.add_case(
            ReconciliationCase(
                reason=ReconciliationReason.UNMATCHED_CALLBACK,
                external_ref=external_ref,
                created_at=self._clock(),
                amount=amount,
                details=f"gatewayRef={gateway_ref or '-'} bookingReference={booking_reference or '-'}",
            )
        )
        logger.warning("Callback {} matches no booking, flagged for reconciliation", external_ref)
