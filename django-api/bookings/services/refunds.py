"""Refund initiation for cancelled paid bookings."""

import time
from collections.abc import Callable
from datetime import datetime

from loguru import logger

from bookings.domain import (
    AttemptKind,
    Booking,
    PaymentAttempt,
    PaymentMethod,
    PaymentTransaction,
    ReconciliationCase,
    ReconciliationReason,
    TransactionStatus,
)
from bookings.domain.errors import InvalidPaymentRequestError
from bookings.gateways.base import PaymentGateway, RefundRequest
from bookings.services.clock import utc_now
from bookings.services.retry import call_with_retry
from bookings.stores.interfaces import PaymentStore


class RefundService:
    """Sends refunds to the gateway with bounded retries."""

    def __init__(
        self,
        gateway: PaymentGateway,
        payments: PaymentStore,
        *,
        retry_attempts: int = 3,
        retry_backoff: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._gateway = gateway
        self._payments = payments
        self._retry_attempts = retry_attempts
        self._retry_backoff = retry_backoff
        self._sleep = sleep
        self._clock = clock

    def refund(self, booking: Booking) -> str | None:
        """Start a refund for a paid booking.

        Cash and card payments are refunded at the counter, so only M-Pesa
        bookings reach the gateway. Returns the gateway reference, or None
        when no gateway call was needed.

        Raises:
            GatewayUnavailableError: If the gateway stayed unreachable.
            InvalidPaymentRequestError: If there is no settled payment to reverse.
        """
        if booking.payment_method != PaymentMethod.MPESA:
            logger.info(
                "Booking {} paid by {}, refund handled at the counter",
                booking.reference,
                booking.payment_method,
            )
            return None

        transaction = self._settled(booking)
        if transaction is None:
            raise InvalidPaymentRequestError("No settled payment found to refund")

        request = RefundRequest(
            external_ref=transaction.external_ref,
            amount=booking.total_amount,
            remarks=f"Refund {booking.reference}",
        )
        gateway_ref = call_with_retry(
            lambda: self._gateway.request_refund(request),
            attempts=self._retry_attempts,
            backoff=self._retry_backoff,
            description=f"Refund for booking {booking.reference}",
            sleep=self._sleep,
        )
        self._payments.add_attempt(
            PaymentAttempt(
                gateway_ref=gateway_ref,
                booking_id=booking.id,
                amount=booking.total_amount,
                kind=AttemptKind.REFUND,
                created_at=self._clock(),
                payer_contact=booking.payer_contact,
            )
        )
        logger.info("Refund {} started for booking {}", gateway_ref, booking.reference)
        return gateway_ref

    def flag_failure(self, booking: Booking) -> None:
        """Open a RefundFailed case for a refund the gateway never accepted."""
        transaction = self._settled(booking)
        external_ref = transaction.external_ref if transaction else f"REFUND-{booking.reference}"
        if self._payments.has_case(external_ref, ReconciliationReason.REFUND_FAILED):
            return
        self._payments.add_case(
            ReconciliationCase(
                reason=ReconciliationReason.REFUND_FAILED,
                external_ref=external_ref,
                created_at=self._clock(),
                booking_id=booking.id,
                amount=booking.total_amount,
                details="Refund could not be started; booking left confirmed",
            )
        )
        logger.error("Refund for booking {} failed, flagged for reconciliation", booking.reference)

    def _settled(self, booking: Booking) -> PaymentTransaction | None:
        settled = [
            t
            for t in self._payments.list_transactions(booking.id)
            if t.status == TransactionStatus.SUCCESS
        ]
        return settled[-1] if settled else None
