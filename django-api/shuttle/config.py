"""Runtime settings read from the environment or a .env file."""

from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent


class BookingSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(BASE_DIR / ".env"),
        env_ignore_empty=True,
        extra="ignore",
    )

    # Django
    SECRET_KEY: SecretStr = SecretStr("django-insecure-change-me")
    DEBUG: bool = False
    ALLOWED_HOSTS: list[str] = ["*"]
    DATABASE_PATH: Path = BASE_DIR / "db.sqlite3"
    DATABASE_TIMEOUT_SECONDS: float = Field(default=20, gt=0)
    LOG_LEVEL: str = "INFO"

    # Seat holds and the expiry sweep
    HOLD_TTL_SECONDS: int = Field(default=300, gt=0)
    PENDING_GRACE_SECONDS: int = Field(default=120, ge=0)
    SWEEP_INTERVAL_SECONDS: float = Field(default=15, gt=0)
    CUSTOMER_CANCEL_CUTOFF_MINUTES: int = Field(default=120, ge=0)

    # Payments
    PAYMENT_GATEWAY: Literal["simulated", "mpesa"] = "simulated"
    PAYMENT_RETRY_ATTEMPTS: int = Field(default=3, ge=1)
    PAYMENT_RETRY_BACKOFF_SECONDS: float = Field(default=0.5, ge=0)

    MPESA_ENVIRONMENT: Literal["sandbox", "production"] = "sandbox"
    MPESA_CONSUMER_KEY: str = ""
    MPESA_CONSUMER_SECRET: SecretStr = SecretStr("")
    MPESA_PASSKEY: SecretStr = SecretStr("")
    MPESA_SHORTCODE: str = "174379"
    MPESA_CALLBACK_URL: str = "http://localhost:8000/api/payments/mpesa/callback"
    MPESA_INITIATOR_NAME: str = ""
    MPESA_SECURITY_CREDENTIAL: SecretStr = SecretStr("")
    MPESA_RESULT_URL: str = "http://localhost:8000/api/payments/mpesa"
    MPESA_TIMEOUT_SECONDS: float = 10.0

    # Notifications
    NOTIFICATION_BACKEND: Literal["log", "sms_log"] = "log"

    @property
    def hold_ttl(self) -> timedelta:
        return timedelta(seconds=self.HOLD_TTL_SECONDS)

    @property
    def pending_grace(self) -> timedelta:
        return timedelta(seconds=self.PENDING_GRACE_SECONDS)

    @property
    def cancel_cutoff(self) -> timedelta:
        return timedelta(minutes=self.CUSTOMER_CANCEL_CUTOFF_MINUTES)


@lru_cache
def get_settings() -> BookingSettings:
    return BookingSettings()
