"""Domain primitives that enforce validity at creation time."""

import secrets
import string
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Self
from uuid import UUID, uuid4

from bookings.domain.states import ActorRole

_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


@dataclass(frozen=True)
class ScheduleId:
    """Unique identifier for a Schedule."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class BookingId:
    """Unique identifier for a Booking."""

    value: UUID

    @classmethod
    def new(cls) -> Self:
        return cls(value=uuid4())

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class HoldToken:
    """Opaque handle for a seat hold."""

    value: UUID

    @classmethod
    def new(cls) -> Self:
        return cls(value=uuid4())

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class TransactionId:
    """Unique identifier for a PaymentTransaction."""

    value: UUID

    @classmethod
    def new(cls) -> Self:
        return cls(value=uuid4())


@dataclass(frozen=True)
class BookingReference:
    """Externally shown booking code, e.g. ER12345678K3Z."""

    value: str

    def __post_init__(self) -> None:
        if not self.value:
            raise ValueError("Booking reference cannot be empty")

    @classmethod
    def generate(cls, now: datetime) -> Self:
        millis = str(int(now.timestamp() * 1000))[-8:]
        suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(3))
        return cls(value=f"ER{millis}{suffix}")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Money:
    """Price representation with validation."""

    amount: Decimal

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError("Money amount cannot be negative")

    @classmethod
    def of(cls, value: Decimal | int | float | str) -> Self:
        return cls(amount=Decimal(str(value)))

    def times(self, count: int) -> "Money":
        return Money(amount=self.amount * count)

    def __str__(self) -> str:
        return f"{self.amount:.2f}"


@dataclass(frozen=True)
class Capacity:
    """Non-negative integer representing capacity."""

    value: int

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError("Capacity cannot be negative")


@dataclass(frozen=True)
class Actor:
    """Caller identity supplied by the surrounding system."""

    actor_id: str
    role: ActorRole = ActorRole.CUSTOMER

    def __post_init__(self) -> None:
        if not self.actor_id:
            raise ValueError("Actor id cannot be empty")

    @property
    def is_staff(self) -> bool:
        return self.role in (ActorRole.OPERATOR, ActorRole.ADMIN)
