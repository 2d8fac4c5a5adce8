"""Tests for the Daraja gateway client, with HTTP served by httpx.MockTransport."""

import json
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest

from bookings.domain import Money, TransactionStatus
from bookings.domain.errors import GatewayUnavailableError, InvalidPaymentRequestError
from bookings.gateways.base import ChargeRequest, RefundRequest
from bookings.gateways.mpesa import (
    MpesaGateway,
    mpesa_timestamp,
    normalize_msisdn,
    parse_stk_callback,
    whole_shillings,
)

NOW = datetime(2025, 3, 1, 6, 0, tzinfo=timezone.utc)


def make_gateway(handler) -> MpesaGateway:
    client = httpx.Client(
        base_url="https://sandbox.safaricom.co.ke", transport=httpx.MockTransport(handler)
    )
    return MpesaGateway(
        consumer_key="key",
        consumer_secret="secret",
        passkey="passkey",
        short_code="174379",
        callback_url="https://example.test/api/payments/mpesa/callback",
        initiator_name="testapi",
        security_credential="cred",
        result_url="https://example.test/api/payments/mpesa",
        client=client,
        clock=lambda: NOW,
    )


def token_response() -> httpx.Response:
    return httpx.Response(200, json={"access_token": "tok", "expires_in": "3599"})


CHARGE = ChargeRequest(account_reference="ER12345678ABC", amount=Money.of(1000), payer_contact="0712 345 678")


class TestHelpers:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("0712345678", "254712345678"),
            ("+254712345678", "254712345678"),
            ("712345678", "254712345678"),
        ],
    )
    def test_normalize_msisdn(self, raw, expected):
        assert normalize_msisdn(raw) == expected

    def test_normalize_rejects_empty(self):
        with pytest.raises(InvalidPaymentRequestError):
            normalize_msisdn("")

    def test_timestamp_is_east_africa_time(self):
        assert mpesa_timestamp(NOW) == "20250301090000"

    def test_whole_shillings_rounds_half_up(self):
        assert whole_shillings(Decimal("999.50")) == 1000


class TestRequestCharge:
    def test_stk_push_payload(self):
        """The STK push carries the normalized phone and a whole-shilling amount."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/oauth/v1/generate":
                return token_response()
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"ResponseCode": "0", "CheckoutRequestID": "ws_CO_0103202509"},
            )

        gateway_ref = make_gateway(handler).request_charge(CHARGE)

        assert gateway_ref == "ws_CO_0103202509"
        assert seen["auth"] == "Bearer tok"
        body = seen["body"]
        assert body["PhoneNumber"] == "254712345678"
        assert body["Amount"] == 1000
        assert body["Timestamp"] == "20250301090000"
        assert body["AccountReference"] == "ER12345678ABC"

    def test_token_is_reused(self):
        token_calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/oauth/v1/generate":
                token_calls.append(1)
                return token_response()
            return httpx.Response(200, json={"ResponseCode": "0", "CheckoutRequestID": "ws_1"})

        gateway = make_gateway(handler)
        gateway.request_charge(CHARGE)
        gateway.request_charge(CHARGE)

        assert len(token_calls) == 1

    @pytest.mark.parametrize("status_code", [500, 503, 429])
    def test_server_errors_are_transient(self, status_code):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/oauth/v1/generate":
                return token_response()
            return httpx.Response(status_code)

        with pytest.raises(GatewayUnavailableError):
            make_gateway(handler).request_charge(CHARGE)

    def test_network_error_is_transient(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GatewayUnavailableError):
            make_gateway(handler).request_charge(CHARGE)

    def test_client_error_is_rejection(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/oauth/v1/generate":
                return token_response()
            return httpx.Response(400, json={"errorMessage": "Invalid PhoneNumber"})

        with pytest.raises(InvalidPaymentRequestError):
            make_gateway(handler).request_charge(CHARGE)

    def test_non_zero_response_code_is_rejection(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/oauth/v1/generate":
                return token_response()
            return httpx.Response(200, json={"ResponseCode": "1", "ResponseDescription": "Rejected"})

        with pytest.raises(InvalidPaymentRequestError):
            make_gateway(handler).request_charge(CHARGE)


class TestRequestRefund:
    def test_reversal_returns_conversation_id(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/oauth/v1/generate":
                return token_response()
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ConversationID": "AG_2025_01", "ResponseCode": "0"})

        ref = make_gateway(handler).request_refund(
            RefundRequest(external_ref="QKJ4XYZ123", amount=Money.of(1000))
        )

        assert ref == "AG_2025_01"
        assert seen["body"]["CommandID"] == "TransactionReversal"
        assert seen["body"]["TransactionID"] == "QKJ4XYZ123"


class TestQueryCharge:
    def query_with(self, body, status_code=200):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/oauth/v1/generate":
                return token_response()
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(status_code, json=body)

        return make_gateway(handler).query_charge("ws_CO_0103202509"), seen

    def test_paid_charge(self):
        status, seen = self.query_with(
            {
                "ResponseCode": "0",
                "ResultCode": "0",
                "ResultDesc": "The service request is processed successfully.",
            }
        )

        assert status.outcome == TransactionStatus.SUCCESS
        assert seen["path"] == "/mpesa/stkpushquery/v1/query"
        assert seen["body"]["CheckoutRequestID"] == "ws_CO_0103202509"
        assert seen["body"]["Timestamp"] == "20250301090000"

    def test_cancelled_charge_is_failed(self):
        status, _ = self.query_with(
            {"ResponseCode": "0", "ResultCode": "1032", "ResultDesc": "Request cancelled by user"}
        )

        assert status.outcome == TransactionStatus.FAILED
        assert status.description == "Request cancelled by user"

    def test_open_prompt_is_transient(self):
        with pytest.raises(GatewayUnavailableError):
            self.query_with(
                {"errorCode": "500.001.1001", "errorMessage": "The transaction is being processed"},
                status_code=500,
            )


class TestParseStkCallback:
    def test_parses_metadata(self):
        callback = parse_stk_callback(
            {
                "Body": {
                    "stkCallback": {
                        "CheckoutRequestID": "ws_CO_1",
                        "ResultCode": 0,
                        "ResultDesc": "ok",
                        "CallbackMetadata": {
                            "Item": [
                                {"Name": "Amount", "Value": 1000.0},
                                {"Name": "MpesaReceiptNumber", "Value": "QKJ4XYZ123"},
                                {"Name": "PhoneNumber", "Value": 254712345678},
                            ]
                        },
                    }
                }
            }
        )

        assert callback.succeeded
        assert callback.amount == Decimal("1000.0")
        assert callback.receipt_number == "QKJ4XYZ123"
        assert callback.phone_number == "254712345678"

    def test_failed_callback_has_no_metadata(self):
        callback = parse_stk_callback(
            {"Body": {"stkCallback": {"CheckoutRequestID": "ws_CO_2", "ResultCode": 1032}}}
        )

        assert not callback.succeeded
        assert callback.receipt_number is None

    def test_missing_envelope_raises(self):
        with pytest.raises(ValueError):
            parse_stk_callback({"Body": {}})
