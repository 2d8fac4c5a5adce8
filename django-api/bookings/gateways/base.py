"""Payment gateway interface.

Gateways translate transport failures into domain errors:
``GatewayUnavailableError`` for anything worth retrying and
``InvalidPaymentRequestError`` for requests the gateway rejected outright.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from bookings.domain import Money, TransactionStatus


@dataclass(frozen=True)
class ChargeRequest:
    """Push-payment prompt sent to the payer's phone."""

    account_reference: str
    amount: Money
    payer_contact: str
    description: str = "Shuttle booking payment"


@dataclass(frozen=True)
class RefundRequest:
    """Reversal of a settled charge."""

    external_ref: str
    amount: Money
    remarks: str = "Refund"


@dataclass(frozen=True)
class ChargeStatus:
    """What the gateway knows about a charge. ``outcome`` is None while the
    payer has not answered the prompt."""

    gateway_ref: str
    outcome: TransactionStatus | None
    description: str = ""


class PaymentGateway(ABC):
    """Interface to the external mobile-money provider."""

    @abstractmethod
    def request_charge(self, request: ChargeRequest) -> str:
        """Start a charge and return the gateway's reference for it."""
        ...

    @abstractmethod
    def request_refund(self, request: RefundRequest) -> str:
        """Start a refund and return the gateway's reference for it."""
        ...

    @abstractmethod
    def query_charge(self, gateway_ref: str) -> ChargeStatus:
        """Ask the gateway how a charge ended, for callbacks that never arrived."""
        ...
