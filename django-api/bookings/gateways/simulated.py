"""Gateway for development and tests. Nothing leaves the process."""

import secrets
import threading
from collections import deque

from loguru import logger

from bookings.domain import TransactionStatus
from bookings.gateways.base import ChargeRequest, ChargeStatus, PaymentGateway, RefundRequest

# Recent requests kept for inspection; older ones fall off.
HISTORY_LIMIT = 500


class SimulatedGateway(PaymentGateway):
    """Accepts every request and hands back SIM-prefixed references.

    Charges stay unanswered until ``settle`` records how they ended.
    """

    def __init__(self, history_limit: int = HISTORY_LIMIT) -> None:
        self._lock = threading.Lock()
        self._history_limit = history_limit
        self.charges: deque[tuple[str, ChargeRequest]] = deque(maxlen=history_limit)
        self.refunds: deque[tuple[str, RefundRequest]] = deque(maxlen=history_limit)
        self._outcomes: dict[str, TransactionStatus] = {}

    def request_charge(self, request: ChargeRequest) -> str:
        ref = f"SIM{secrets.token_hex(5).upper()}"
        with self._lock:
            self.charges.append((ref, request))
        logger.debug("Simulated charge {} for {}", ref, request.account_reference)
        return ref

    def request_refund(self, request: RefundRequest) -> str:
        ref = f"SIMR{secrets.token_hex(5).upper()}"
        with self._lock:
            self.refunds.append((ref, request))
        logger.debug("Simulated refund {}", ref)
        return ref

    def settle(self, gateway_ref: str, outcome: TransactionStatus) -> None:
        with self._lock:
            self._outcomes[gateway_ref] = outcome
            while len(self._outcomes) > self._history_limit:
                del self._outcomes[next(iter(self._outcomes))]

    def query_charge(self, gateway_ref: str) -> ChargeStatus:
        with self._lock:
            outcome = self._outcomes.get(gateway_ref)
        return ChargeStatus(gateway_ref=gateway_ref, outcome=outcome)
