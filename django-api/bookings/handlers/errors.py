"""Domain error to HTTP response mapping."""

from typing import Any

from rest_framework import status
from rest_framework.response import Response

from bookings.domain.errors import DomainError, ErrorCode

VALIDATION_ERROR = "VALIDATION_ERROR"

STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.SEAT_UNAVAILABLE: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorCode.HOLD_EXPIRED: status.HTTP_409_CONFLICT,
    ErrorCode.DUPLICATE_CALLBACK: status.HTTP_409_CONFLICT,
    ErrorCode.BOOKING_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.SCHEDULE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.INVALID_SEAT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_ID: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_PAYMENT_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorCode.CANCELLATION_WINDOW_CLOSED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.PAYMENT_MISMATCH: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorCode.GATEWAY_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def error_body(code: str, message: str) -> dict[str, Any]:
    return {"error": {"code": code, "message": message}}


def domain_error_response(exc: DomainError) -> Response:
    http_status = STATUS_BY_CODE.get(exc.code, status.HTTP_400_BAD_REQUEST)
    return Response(error_body(exc.code.value, exc.message), status=http_status)


def validation_error_response(detail: Any) -> Response:
    return Response(
        error_body(VALIDATION_ERROR, _first_message(detail)),
        status=status.HTTP_400_BAD_REQUEST,
    )


def _first_message(detail: Any, field: str | None = None) -> str:
    # DRF nests errors as {field: [messages]}; surface the first one.
    if isinstance(detail, dict):
        for key, value in detail.items():
            label = None if key == "non_field_errors" else str(key)
            return _first_message(value, field or label)
    if isinstance(detail, list) and detail:
        return _first_message(detail[0], field)
    message = str(detail) or "Invalid request"
    return f"{field}: {message}" if field else message
