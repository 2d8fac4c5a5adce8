"""Bounded retry for gateway calls."""

import time
from collections.abc import Callable
from typing import TypeVar

from loguru import logger

from bookings.domain.errors import GatewayUnavailableError

T = TypeVar("T")


def call_with_retry(
    operation: Callable[[], T],
    *,
    attempts: int,
    backoff: float,
    description: str,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation``, retrying GatewayUnavailableError with exponential backoff.

    Any other exception propagates immediately. After the last attempt the
    GatewayUnavailableError itself is raised.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    delay = backoff
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except GatewayUnavailableError:
            if attempt == attempts:
                logger.error("{} failed after {} attempts", description, attempts)
                raise
            logger.warning(
                "{} attempt {}/{} failed, retrying in {}s", description, attempt, attempts, delay
            )
            sleep(delay)
            delay *= 2
    raise AssertionError("unreachable")
