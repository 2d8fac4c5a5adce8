"""Service wiring shared by the HTTP handlers and management commands."""

from dataclasses import dataclass
from functools import lru_cache

from bookings.gateways.base import PaymentGateway
from bookings.gateways.mpesa import MpesaGateway
from bookings.gateways.simulated import SimulatedGateway
from bookings.notifications import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    SmsLogNotificationDispatcher,
)
from bookings.services.booking_lifecycle import BookingLifecycle
from bookings.services.payment_service import PaymentService
from bookings.services.refunds import RefundService
from bookings.services.seat_inventory import SeatInventory
from bookings.services.sweeper import ExpirySweeper
from bookings.stores.django_store import (
    DjangoBookingStore,
    DjangoPaymentStore,
    DjangoScheduleCatalog,
    DjangoSeatStore,
)
from shuttle.config import BookingSettings, get_settings


@dataclass(frozen=True)
class Services:
    inventory: SeatInventory
    lifecycle: BookingLifecycle
    payments: PaymentService
    sweeper: ExpirySweeper


def build_gateway(settings: BookingSettings) -> PaymentGateway:
    if settings.PAYMENT_GATEWAY == "mpesa":
        return MpesaGateway(
            consumer_key=settings.MPESA_CONSUMER_KEY,
            consumer_secret=settings.MPESA_CONSUMER_SECRET.get_secret_value(),
            passkey=settings.MPESA_PASSKEY.get_secret_value(),
            short_code=settings.MPESA_SHORTCODE,
            callback_url=settings.MPESA_CALLBACK_URL,
            initiator_name=settings.MPESA_INITIATOR_NAME,
            security_credential=settings.MPESA_SECURITY_CREDENTIAL.get_secret_value(),
            result_url=settings.MPESA_RESULT_URL,
            environment=settings.MPESA_ENVIRONMENT,
            timeout=settings.MPESA_TIMEOUT_SECONDS,
        )
    return SimulatedGateway()


def build_services(settings: BookingSettings | None = None) -> Services:
    settings = settings or get_settings()

    catalog = DjangoScheduleCatalog()
    bookings = DjangoBookingStore()
    payment_store = DjangoPaymentStore()
    gateway = build_gateway(settings)

    notifier: NotificationDispatcher
    if settings.NOTIFICATION_BACKEND == "sms_log":
        notifier = SmsLogNotificationDispatcher(bookings.get)
    else:
        notifier = LoggingNotificationDispatcher()

    inventory = SeatInventory(catalog, DjangoSeatStore())
    refunds = RefundService(
        gateway,
        payment_store,
        retry_attempts=settings.PAYMENT_RETRY_ATTEMPTS,
        retry_backoff=settings.PAYMENT_RETRY_BACKOFF_SECONDS,
    )
    lifecycle = BookingLifecycle(
        catalog,
        inventory,
        bookings,
        payment_store,
        notifier,
        refunds,
        hold_ttl=settings.hold_ttl,
        pending_grace=settings.pending_grace,
        cancel_cutoff=settings.cancel_cutoff,
    )
    payments = PaymentService(
        gateway,
        lifecycle,
        payment_store,
        retry_attempts=settings.PAYMENT_RETRY_ATTEMPTS,
        retry_backoff=settings.PAYMENT_RETRY_BACKOFF_SECONDS,
    )
    sweeper = ExpirySweeper(
        inventory, lifecycle, interval=settings.SWEEP_INTERVAL_SECONDS, payments=payments
    )
    return Services(inventory=inventory, lifecycle=lifecycle, payments=payments, sweeper=sweeper)


@lru_cache
def get_services() -> Services:
    return build_services()
