"""Safaricom Daraja (M-Pesa) gateway over httpx.

Charges use Lipa Na M-Pesa Online (STK push) and its status query; refunds
use the transaction reversal API. Callback parsing lives next to the client so
the wire format is in one place.
"""

import base64
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import httpx
from loguru import logger

from bookings.domain import TransactionStatus
from bookings.domain.errors import GatewayUnavailableError, InvalidPaymentRequestError
from bookings.gateways.base import ChargeRequest, ChargeStatus, PaymentGateway, RefundRequest
from bookings.services.clock import utc_now

SANDBOX_URL = "https://sandbox.safaricom.co.ke"
PRODUCTION_URL = "https://api.safaricom.co.ke"

AUTH_PATH = "/oauth/v1/generate"
STK_PUSH_PATH = "/mpesa/stkpush/v1/processrequest"
STK_QUERY_PATH = "/mpesa/stkpushquery/v1/query"
REVERSAL_PATH = "/mpesa/reversal/v1/request"

# Daraja timestamps are East Africa Time.
EAT = timezone(timedelta(hours=3))


def normalize_msisdn(phone_number: str) -> str:
    """Return a Kenyan number in 2547XXXXXXXX form."""
    digits = re.sub(r"\D", "", phone_number)
    if not digits:
        raise InvalidPaymentRequestError("A phone number is required for M-Pesa payments")
    if digits.startswith("254"):
        return digits
    if digits.startswith("0"):
        return "254" + digits[1:]
    return "254" + digits


def mpesa_timestamp(now: datetime) -> str:
    return now.astimezone(EAT).strftime("%Y%m%d%H%M%S")


def stk_password(short_code: str, passkey: str, timestamp: str) -> str:
    return base64.b64encode(f"{short_code}{passkey}{timestamp}".encode()).decode()


def whole_shillings(amount: Decimal) -> int:
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class StkCallback:
    """Parsed STK push callback."""

    checkout_request_id: str
    result_code: int
    result_desc: str
    amount: Decimal | None = None
    receipt_number: str | None = None
    phone_number: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.result_code == 0


def parse_stk_callback(body: dict[str, Any]) -> StkCallback:
    """Parse the ``Body.stkCallback`` envelope Safaricom posts to the callback URL.

    Raises:
        ValueError: If the envelope is missing required fields.
    """
    try:
        callback = body["Body"]["stkCallback"]
        checkout_request_id = str(callback["CheckoutRequestID"])
        result_code = int(callback["ResultCode"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError("Invalid callback data") from exc

    items = (callback.get("CallbackMetadata") or {}).get("Item") or []
    metadata = {item.get("Name"): item.get("Value") for item in items if isinstance(item, dict)}
    amount = metadata.get("Amount")
    receipt = metadata.get("MpesaReceiptNumber")
    phone = metadata.get("PhoneNumber")
    return StkCallback(
        checkout_request_id=checkout_request_id,
        result_code=result_code,
        result_desc=str(callback.get("ResultDesc", "")),
        amount=Decimal(str(amount)) if amount is not None else None,
        receipt_number=str(receipt) if receipt else None,
        phone_number=str(phone) if phone else None,
    )


class MpesaGateway(PaymentGateway):
    """Daraja API client."""

    def __init__(
        self,
        *,
        consumer_key: str,
        consumer_secret: str,
        passkey: str,
        short_code: str,
        callback_url: str,
        initiator_name: str = "",
        security_credential: str = "",
        result_url: str = "",
        environment: str = "sandbox",
        timeout: float = 10.0,
        client: httpx.Client | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        base_url = PRODUCTION_URL if environment == "production" else SANDBOX_URL
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)
        self._consumer_key = consumer_key
        self._consumer_secret = consumer_secret
        self._passkey = passkey
        self._short_code = short_code
        self._callback_url = callback_url
        self._initiator_name = initiator_name
        self._security_credential = security_credential
        self._result_url = result_url
        self._clock = clock
        self._token: str | None = None
        self._token_expires_at: datetime | None = None

    def request_charge(self, request: ChargeRequest) -> str:
        phone = normalize_msisdn(request.payer_contact)
        timestamp = mpesa_timestamp(self._clock())
        payload = {
            "BusinessShortCode": self._short_code,
            "Password": stk_password(self._short_code, self._passkey, timestamp),
            "Timestamp": timestamp,
            "TransactionType": "CustomerPayBillOnline",
            "Amount": whole_shillings(request.amount.amount),
            "PartyA": phone,
            "PartyB": self._short_code,
            "PhoneNumber": phone,
            "CallBackURL": self._callback_url,
            "AccountReference": request.account_reference,
            "TransactionDesc": request.description,
        }
        body = self._post(STK_PUSH_PATH, payload)
        if str(body.get("ResponseCode")) != "0" or not body.get("CheckoutRequestID"):
            logger.warning("STK push rejected: {}", body.get("ResponseDescription"))
            raise InvalidPaymentRequestError("Payment request was rejected, please try again")
        logger.info("STK push accepted for {}", request.account_reference)
        return str(body["CheckoutRequestID"])

    def request_refund(self, request: RefundRequest) -> str:
        payload = {
            "Initiator": self._initiator_name,
            "SecurityCredential": self._security_credential,
            "CommandID": "TransactionReversal",
            "TransactionID": request.external_ref,
            "Amount": whole_shillings(request.amount.amount),
            "ReceiverParty": self._short_code,
            "RecieverIdentifierType": "11",
            "ResultURL": f"{self._result_url}/reversal-result",
            "QueueTimeOutURL": f"{self._result_url}/reversal-timeout",
            "Remarks": request.remarks,
            "Occasion": "",
        }
        body = self._post(REVERSAL_PATH, payload)
        conversation_id = body.get("ConversationID") or body.get("OriginatorConversationID")
        if not conversation_id:
            raise InvalidPaymentRequestError("Refund request was rejected")
        return str(conversation_id)

    def query_charge(self, gateway_ref: str) -> ChargeStatus:
        """Look up an STK push by its CheckoutRequestID.

        Daraja answers a still-open prompt with a server error, which surfaces
        as GatewayUnavailableError like any other transient failure.
        """
        timestamp = mpesa_timestamp(self._clock())
        payload = {
            "BusinessShortCode": self._short_code,
            "Password": stk_password(self._short_code, self._passkey, timestamp),
            "Timestamp": timestamp,
            "CheckoutRequestID": gateway_ref,
        }
        body = self._post(STK_QUERY_PATH, payload)
        result_code = body.get("ResultCode")
        description = str(body.get("ResultDesc") or body.get("ResponseDescription") or "")
        if result_code is None:
            return ChargeStatus(gateway_ref=gateway_ref, outcome=None, description=description)
        outcome = TransactionStatus.SUCCESS if str(result_code) == "0" else TransactionStatus.FAILED
        logger.info("STK query for {}: {} {}", gateway_ref, result_code, description)
        return ChargeStatus(gateway_ref=gateway_ref, outcome=outcome, description=description)

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self._access_token()}"}
        response = self._send("POST", path, json=payload, headers=headers)
        return response.json()

    def _access_token(self) -> str:
        now = self._clock()
        if self._token and self._token_expires_at and now < self._token_expires_at:
            return self._token

        response = self._send(
            "GET",
            AUTH_PATH,
            params={"grant_type": "client_credentials"},
            auth=(self._consumer_key, self._consumer_secret),
        )
        data = response.json()
        self._token = str(data["access_token"])
        # Refresh a minute before Daraja expires the token.
        expires_in = int(data.get("expires_in", 3599))
        self._token_expires_at = now + timedelta(seconds=max(expires_in - 60, 0))
        return self._token

    def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            logger.warning("M-Pesa {} {} failed: {}", method, path, exc)
            raise GatewayUnavailableError() from exc

        if response.status_code >= 500 or response.status_code == 429:
            logger.warning("M-Pesa {} {} returned {}", method, path, response.status_code)
            raise GatewayUnavailableError()
        if response.status_code >= 400:
            logger.warning(
                "M-Pesa {} {} rejected with {}: {}",
                method,
                path,
                response.status_code,
                response.text[:200],
            )
            raise InvalidPaymentRequestError("Payment request was rejected, please try again")
        return response
