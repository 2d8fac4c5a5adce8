"""Domain error codes for the bookings module."""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    SEAT_UNAVAILABLE = "SEAT_UNAVAILABLE"
    INVALID_SEAT = "INVALID_SEAT"
    HOLD_EXPIRED = "HOLD_EXPIRED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    PAYMENT_MISMATCH = "PAYMENT_MISMATCH"
    GATEWAY_UNAVAILABLE = "GATEWAY_UNAVAILABLE"
    DUPLICATE_CALLBACK = "DUPLICATE_CALLBACK"
    BOOKING_NOT_FOUND = "BOOKING_NOT_FOUND"
    SCHEDULE_NOT_FOUND = "SCHEDULE_NOT_FOUND"
    INVALID_ID = "INVALID_ID"
    CANCELLATION_WINDOW_CLOSED = "CANCELLATION_WINDOW_CLOSED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    INVALID_PAYMENT_REQUEST = "INVALID_PAYMENT_REQUEST"


@dataclass(frozen=True)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


def _seat_list(seats: Iterable[int]) -> str:
    return ", ".join(str(seat) for seat in sorted(seats))


class SeatUnavailableError(DomainError):
    """Raised when any requested seat is already held or sold."""

    def __init__(self, seats: Iterable[int]) -> None:
        taken = frozenset(seats)
        noun = "Seat" if len(taken) == 1 else "Seats"
        super().__init__(
            code=ErrorCode.SEAT_UNAVAILABLE,
            message=f"{noun} {_seat_list(taken)} already taken, choose another seat",
        )
        self.seats = taken


class InvalidSeatError(DomainError):
    """Raised when a seat request does not fit the vehicle layout."""

    def __init__(self, detail: str) -> None:
        super().__init__(code=ErrorCode.INVALID_SEAT, message=detail)


class HoldExpiredError(DomainError):
    """Raised when a hold is finalized at or after its expiry."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.HOLD_EXPIRED,
            message="Seat reservation expired, please book again",
        )


class InvalidTransitionError(DomainError):
    """Raised when a booking cannot move to the requested state."""

    def __init__(self, current: str, target: str, detail: str | None = None) -> None:
        super().__init__(
            code=ErrorCode.INVALID_TRANSITION,
            message=detail or f"Booking is {current} and cannot become {target}",
        )
        self.current = current
        self.target = target


class PaymentMismatchError(DomainError):
    """Raised when a paid amount differs from the booking total."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.PAYMENT_MISMATCH,
            message="Payment amount does not match the booking total",
        )


class GatewayUnavailableError(DomainError):
    """Raised when the payment gateway cannot be reached."""

    def __init__(self, detail: str = "Payment service is temporarily unavailable") -> None:
        super().__init__(code=ErrorCode.GATEWAY_UNAVAILABLE, message=detail)


class DuplicateCallbackError(DomainError):
    """Raised by stores when a transaction with the same external ref exists."""

    def __init__(self, external_ref: str) -> None:
        super().__init__(
            code=ErrorCode.DUPLICATE_CALLBACK,
            message="Payment already recorded",
        )
        self.external_ref = external_ref


class BookingNotFoundError(DomainError):
    """Raised when a booking is not found."""

    def __init__(self, booking_id: str) -> None:
        super().__init__(code=ErrorCode.BOOKING_NOT_FOUND, message="Booking not found")
        self.booking_id = booking_id


class ScheduleNotFoundError(DomainError):
    """Raised when a schedule is not found."""

    def __init__(self, schedule_id: str) -> None:
        super().__init__(code=ErrorCode.SCHEDULE_NOT_FOUND, message="Schedule not found")
        self.schedule_id = schedule_id


class InvalidIdentifierError(DomainError):
    """Raised when an ID is not a valid UUID."""

    def __init__(self) -> None:
        super().__init__(code=ErrorCode.INVALID_ID, message="Invalid ID format")


class CancellationWindowClosedError(DomainError):
    """Raised when a customer cancels too close to departure."""

    def __init__(self, cutoff_minutes: int) -> None:
        hours = cutoff_minutes / 60
        window = f"{hours:g} hours" if cutoff_minutes % 60 == 0 else f"{cutoff_minutes} minutes"
        super().__init__(
            code=ErrorCode.CANCELLATION_WINDOW_CLOSED,
            message=f"Bookings can only be cancelled at least {window} before departure",
        )


class PermissionDeniedError(DomainError):
    """Raised when the actor's role does not allow the operation."""

    def __init__(self, detail: str = "You are not allowed to do this") -> None:
        super().__init__(code=ErrorCode.PERMISSION_DENIED, message=detail)


class InvalidPaymentRequestError(DomainError):
    """Raised when a payment cannot be started for a booking."""

    def __init__(self, detail: str) -> None:
        super().__init__(code=ErrorCode.INVALID_PAYMENT_REQUEST, message=detail)
