"""Booking lifecycle service - all booking state transitions live here.

Services:
- Depend only on interfaces (stores, gateway, notifier)
- Validate domain invariants
- Perform orchestration and error mapping
- Return domain models or raise domain errors

Every transition reads and writes the booking inside ``BookingStore.locked``,
so competing transitions on one booking are linearized and the loser is
checked against the state the winner left behind. Notifications go out after
the lock is released.
"""

from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime, timedelta

from loguru import logger

from bookings.domain import (
    Actor,
    Booking,
    BookingId,
    BookingReference,
    BookingStatus,
    NotificationEvent,
    PaymentMethod,
    PaymentStatus,
    PaymentTransaction,
    ReconciliationCase,
    ReconciliationReason,
    Schedule,
    ScheduleId,
    TransactionId,
    TransactionStatus,
)
from bookings.domain.errors import (
    BookingNotFoundError,
    CancellationWindowClosedError,
    DuplicateCallbackError,
    GatewayUnavailableError,
    HoldExpiredError,
    InvalidPaymentRequestError,
    InvalidTransitionError,
    PermissionDeniedError,
    ScheduleNotFoundError,
)
from bookings.domain.states import can_transition
from bookings.notifications import NotificationDispatcher
from bookings.services.clock import utc_now
from bookings.services.refunds import RefundService
from bookings.services.seat_inventory import SeatInventory
from bookings.stores.interfaces import BookingStore, PaymentStore, ScheduleCatalog


class BookingLifecycle:
    """State machine for bookings."""

    def __init__(
        self,
        catalog: ScheduleCatalog,
        inventory: SeatInventory,
        bookings: BookingStore,
        payments: PaymentStore,
        notifier: NotificationDispatcher,
        refunds: RefundService,
        *,
        hold_ttl: timedelta = timedelta(minutes=5),
        pending_grace: timedelta = timedelta(minutes=2),
        cancel_cutoff: timedelta = timedelta(hours=2),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._catalog = catalog
        self._inventory = inventory
        self._bookings = bookings
        self._payments = payments
        self._notifier = notifier
        self._refunds = refunds
        self._hold_ttl = hold_ttl
        self._pending_grace = pending_grace
        self._cancel_cutoff = cancel_cutoff
        self._clock = clock

    def create(
        self,
        schedule_id: ScheduleId,
        seat_numbers: Iterable[int],
        customer_id: str,
        payment_method: PaymentMethod,
        *,
        payer_contact: str | None = None,
        notes: str = "",
    ) -> Booking:
        """Hold the seats and open a booking awaiting payment.

        Raises:
            ScheduleNotFoundError: If the schedule does not exist.
            InvalidSeatError: If the seat selection is not valid for the vehicle.
            SeatUnavailableError: If any seat is already held or sold.
        """
        schedule = self._schedule(schedule_id)
        hold = self._inventory.hold_seats(schedule_id, seat_numbers, customer_id, self._hold_ttl)

        now = self._clock()
        booking = Booking(
            id=BookingId.new(),
            reference=BookingReference.generate(now),
            schedule_id=schedule_id,
            seat_numbers=tuple(sorted(hold.seat_numbers)),
            customer_id=customer_id,
            status=BookingStatus.PENDING_PAYMENT,
            payment_status=PaymentStatus.PENDING,
            payment_method=payment_method,
            total_amount=schedule.price_per_seat.times(len(hold.seat_numbers)),
            created_at=now,
            updated_at=now,
            notes=notes,
            payer_contact=payer_contact,
            hold_token=hold.token,
            hold_expires_at=hold.expires_at,
        )
        try:
            self._bookings.add(booking)
        except Exception:
            self._inventory.release(hold.token)
            raise

        logger.info(
            "Booking {} created for customer {}: seats {} total {}",
            booking.reference,
            customer_id,
            list(booking.seat_numbers),
            booking.total_amount,
        )
        return booking

    def get(self, booking_id: BookingId, actor: Actor | None = None) -> Booking:
        """Return a booking, hiding other customers' bookings from customers.

        Raises:
            BookingNotFoundError: If the booking does not exist or is not visible.
        """
        booking = self._require(booking_id)
        if actor is not None and not actor.is_staff and booking.customer_id != actor.actor_id:
            raise BookingNotFoundError(str(booking_id))
        return booking

    def get_by_reference(self, reference: str) -> Booking:
        """Return a booking by its public reference.

        Raises:
            BookingNotFoundError: If no booking has this reference.
        """
        try:
            booking = self._bookings.get_by_reference(BookingReference(reference))
        except ValueError:
            booking = None
        if booking is None:
            raise BookingNotFoundError(reference)
        return booking

    def record_transaction(self, transaction: PaymentTransaction) -> None:
        """Persist a gateway outcome exactly once.

        Raises:
            DuplicateCallbackError: If this external_ref was already recorded.
        """
        self._payments.add_transaction(transaction)
        logger.info(
            "Recorded {} transaction {} for booking {}",
            transaction.status,
            transaction.external_ref,
            transaction.booking_id,
        )

    def on_payment_success(self, booking_id: BookingId, transaction: PaymentTransaction) -> Booking:
        """Confirm a pending booking after the gateway settled the charge.

        If the seat hold already expired, the booking is cancelled, the payment
        is kept as Paid and flagged for manual reconciliation, and
        HoldExpiredError is raised after the new state is stored.

        Raises:
            BookingNotFoundError: If the booking does not exist.
            InvalidTransitionError: If the booking is not PendingPayment.
            HoldExpiredError: If the hold expired before the payment arrived.
        """
        hold_expired = False
        with self._bookings.locked(booking_id):
            booking = self._require(booking_id)
            self._ensure(booking, BookingStatus.CONFIRMED, {BookingStatus.PENDING_PAYMENT})
            now = self._clock()
            try:
                if booking.hold_token is None:
                    raise HoldExpiredError()
                self._inventory.finalize(booking.hold_token, booking.id)
            except HoldExpiredError:
                hold_expired = True
                updated = replace(
                    booking,
                    status=BookingStatus.CANCELLED,
                    payment_status=PaymentStatus.PAID,
                    hold_token=None,
                    cancellation_reason="Payment received after seat hold expired",
                    cancelled_by="system",
                    cancelled_at=now,
                    updated_at=now,
                )
                self._bookings.save(updated)
                self._payments.add_case(
                    ReconciliationCase(
                        reason=ReconciliationReason.PAID_AFTER_HOLD_EXPIRY,
                        external_ref=transaction.external_ref,
                        created_at=now,
                        booking_id=booking.id,
                        amount=transaction.amount,
                        details="Seats were released before payment was confirmed; refund or rebook manually",
                    )
                )
            else:
                updated = replace(
                    booking,
                    status=BookingStatus.CONFIRMED,
                    payment_status=PaymentStatus.PAID,
                    hold_token=None,
                    updated_at=now,
                )
                self._bookings.save(updated)

        if hold_expired:
            logger.error(
                "Booking {} paid after its hold expired, flagged for reconciliation",
                booking.reference,
            )
            self._notify(booking_id, NotificationEvent.CANCELLED)
            raise HoldExpiredError()

        logger.info("Booking {} confirmed", updated.reference)
        self._notify(booking_id, NotificationEvent.CONFIRMED)
        return updated

    def on_payment_failure_or_timeout(self, booking_id: BookingId) -> Booking:
        """Cancel a pending booking whose payment failed or never arrived.

        Raises:
            BookingNotFoundError: If the booking does not exist.
            InvalidTransitionError: If the booking is not PendingPayment.
        """
        with self._bookings.locked(booking_id):
            booking = self._require(booking_id)
            self._ensure(booking, BookingStatus.CANCELLED, {BookingStatus.PENDING_PAYMENT})
            if booking.hold_token is not None:
                self._inventory.release(booking.hold_token)
            now = self._clock()
            updated = replace(
                booking,
                status=BookingStatus.CANCELLED,
                payment_status=PaymentStatus.FAILED,
                hold_token=None,
                cancellation_reason="Payment failed or timed out",
                cancelled_by="system",
                cancelled_at=now,
                updated_at=now,
            )
            self._bookings.save(updated)

        logger.info("Booking {} cancelled, payment failed or timed out", updated.reference)
        self._notify(booking_id, NotificationEvent.CANCELLED)
        return updated

    def cancel(self, booking_id: BookingId, reason: str, actor: Actor) -> Booking:
        """Cancel a booking, refunding it first when it was paid.

        Raises:
            BookingNotFoundError: If the booking does not exist or belongs to
                another customer.
            InvalidTransitionError: If the booking is Completed, Cancelled or Refunded.
            CancellationWindowClosedError: If a customer cancels too close to departure.
            GatewayUnavailableError: If the refund could not be started.
        """
        try:
            updated, event = self._cancel_locked(booking_id, reason, actor)
        except GatewayUnavailableError:
            # Recorded after the lock so the case survives the rolled-back cancel.
            self._refunds.flag_failure(self._require(booking_id))
            raise

        logger.info(
            "Booking {} {} by {} {}: {}",
            updated.reference,
            updated.status,
            actor.role,
            actor.actor_id,
            updated.cancellation_reason,
        )
        self._notify(booking_id, event)
        return updated

    def _cancel_locked(
        self, booking_id: BookingId, reason: str, actor: Actor
    ) -> tuple[Booking, NotificationEvent]:
        with self._bookings.locked(booking_id):
            booking = self.get(booking_id, actor)
            if booking.status not in {BookingStatus.PENDING_PAYMENT, BookingStatus.CONFIRMED}:
                raise InvalidTransitionError(booking.status.value, BookingStatus.CANCELLED.value)
            if booking.payment_status == PaymentStatus.PAID:
                target = BookingStatus.REFUNDED
            else:
                target = BookingStatus.CANCELLED
            self._ensure(booking, target, {BookingStatus.PENDING_PAYMENT, BookingStatus.CONFIRMED})
            self._check_cancellation_window(booking, actor)

            now = self._clock()
            if target == BookingStatus.REFUNDED:
                self._refunds.refund(booking)
                self._inventory.release_allocation(booking.schedule_id, booking.id)
                updated = replace(booking, payment_status=PaymentStatus.REFUNDED)
                event = NotificationEvent.REFUNDED
            else:
                if booking.hold_token is not None:
                    self._inventory.release(booking.hold_token)
                if booking.status == BookingStatus.CONFIRMED:
                    self._inventory.release_allocation(booking.schedule_id, booking.id)
                payment_status = booking.payment_status
                if payment_status == PaymentStatus.PENDING:
                    payment_status = PaymentStatus.FAILED
                updated = replace(booking, payment_status=payment_status)
                event = NotificationEvent.CANCELLED

            updated = replace(
                updated,
                status=target,
                hold_token=None,
                cancellation_reason=reason or "Cancelled",
                cancelled_by=actor.actor_id,
                cancelled_at=now,
                updated_at=now,
            )
            self._bookings.save(updated)
        return updated, event

    def complete(self, booking_id: BookingId) -> Booking:
        """Mark a confirmed booking as travelled.

        Raises:
            BookingNotFoundError: If the booking does not exist.
            InvalidTransitionError: If the booking is not Confirmed or the trip
                has not departed.
        """
        with self._bookings.locked(booking_id):
            booking = self._require(booking_id)
            self._ensure(booking, BookingStatus.COMPLETED, {BookingStatus.CONFIRMED})
            now = self._clock()
            schedule = self._schedule(booking.schedule_id)
            if not schedule.has_departed(now):
                raise InvalidTransitionError(
                    booking.status.value,
                    BookingStatus.COMPLETED.value,
                    detail="Trip has not departed yet",
                )
            updated = replace(booking, status=BookingStatus.COMPLETED, updated_at=now)
            self._bookings.save(updated)

        logger.info("Booking {} completed", updated.reference)
        return updated

    def record_cash_payment(self, booking_id: BookingId, actor: Actor) -> Booking:
        """Settle a cash booking at the counter.

        Raises:
            PermissionDeniedError: If the actor is not an operator or admin.
            InvalidPaymentRequestError: If the booking is not a cash booking.
            InvalidTransitionError: If the booking is not PendingPayment.
            HoldExpiredError: If the seat hold expired before the cash was taken.
        """
        if not actor.is_staff:
            raise PermissionDeniedError("Only operators can record cash payments")
        booking = self._require(booking_id)
        if booking.payment_method != PaymentMethod.CASH:
            raise InvalidPaymentRequestError("This booking is not paid in cash")

        transaction = PaymentTransaction(
            id=TransactionId.new(),
            booking_id=booking.id,
            external_ref=f"CASH-{booking.reference}",
            amount=booking.total_amount,
            status=TransactionStatus.SUCCESS,
            received_at=self._clock(),
        )
        if self._payments.get_transaction(transaction.external_ref) is not None:
            return self._require(booking_id)
        if booking.status != BookingStatus.PENDING_PAYMENT:
            raise InvalidTransitionError(booking.status.value, BookingStatus.CONFIRMED.value)
        try:
            self.record_transaction(transaction)
        except DuplicateCallbackError:
            return self._require(booking_id)

        logger.info("Cash payment for {} recorded by {}", booking.reference, actor.actor_id)
        try:
            return self.on_payment_success(booking_id, transaction)
        except InvalidTransitionError as exc:
            # The cash is on record but the booking moved on since the check.
            self._payments.add_case(
                ReconciliationCase(
                    reason=ReconciliationReason.PAID_FOR_INACTIVE_BOOKING,
                    external_ref=transaction.external_ref,
                    created_at=self._clock(),
                    booking_id=booking.id,
                    amount=transaction.amount,
                    details=f"Booking was {exc.current} when the cash was recorded",
                )
            )
            logger.error(
                "Cash payment for {} booking {} flagged for reconciliation",
                exc.current,
                booking.reference,
            )
            raise

    def list_stale_pending(self) -> list[Booking]:
        """Bookings still awaiting payment a grace period past their hold."""
        return self._bookings.list_stale_pending(self._clock() - self._pending_grace)

    def expire_stale_pending(self) -> list[BookingId]:
        """Time out stale pending bookings."""
        expired: list[BookingId] = []
        for booking in self.list_stale_pending():
            try:
                self.on_payment_failure_or_timeout(booking.id)
            except InvalidTransitionError:
                # A callback settled it between the listing and the lock.
                continue
            expired.append(booking.id)
        return expired

    def complete_departed(self) -> list[BookingId]:
        """Complete confirmed bookings whose schedule has departed."""
        now = self._clock()
        completed: list[BookingId] = []
        departed: dict[ScheduleId, bool] = {}
        for booking in self._bookings.list_by_status(BookingStatus.CONFIRMED):
            if booking.schedule_id not in departed:
                schedule = self._catalog.get_schedule(booking.schedule_id)
                departed[booking.schedule_id] = bool(schedule and schedule.has_departed(now))
            if not departed[booking.schedule_id]:
                continue
            try:
                self.complete(booking.id)
            except InvalidTransitionError:
                continue
            completed.append(booking.id)
        return completed

    def _require(self, booking_id: BookingId) -> Booking:
        booking = self._bookings.get(booking_id)
        if booking is None:
            raise BookingNotFoundError(str(booking_id))
        return booking

    def _schedule(self, schedule_id: ScheduleId) -> Schedule:
        schedule = self._catalog.get_schedule(schedule_id)
        if schedule is None:
            raise ScheduleNotFoundError(str(schedule_id))
        return schedule

    def _ensure(
        self, booking: Booking, target: BookingStatus, allowed_from: set[BookingStatus]
    ) -> None:
        if booking.status not in allowed_from or not can_transition(booking.status, target):
            raise InvalidTransitionError(booking.status.value, target.value)

    def _check_cancellation_window(self, booking: Booking, actor: Actor) -> None:
        if actor.is_staff:
            return
        schedule = self._schedule(booking.schedule_id)
        if self._clock() > schedule.departure_time - self._cancel_cutoff:
            raise CancellationWindowClosedError(int(self._cancel_cutoff.total_seconds() // 60))

    def _notify(self, booking_id: BookingId, event: NotificationEvent) -> None:
        try:
            self._notifier.notify(booking_id, event)
        except Exception:
            logger.exception("Notification {} for booking {} failed", event, booking_id)
