"""Background expiry sweep.

Each pass asks the gateway about stale M-Pesa bookings, times out the ones
still awaiting payment past the grace period, releases expired holds and
completes bookings whose trip has departed. The sweep runs on its own
thread, never on a client request.
"""

import threading
from dataclasses import dataclass

from loguru import logger

from bookings.services.booking_lifecycle import BookingLifecycle
from bookings.services.payment_service import PaymentService
from bookings.services.seat_inventory import SeatInventory


@dataclass(frozen=True)
class SweepReport:
    released_holds: int
    timed_out: int
    completed: int
    settled: int = 0


class ExpirySweeper:
    """Runs ``sweep_once`` every ``interval`` seconds until stopped."""

    def __init__(
        self,
        inventory: SeatInventory,
        lifecycle: BookingLifecycle,
        interval: float = 15.0,
        payments: PaymentService | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("Sweep interval must be positive")
        self._inventory = inventory
        self._lifecycle = lifecycle
        self._payments = payments
        self._interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def sweep_once(self) -> SweepReport:
        # Stale bookings first so their holds are released with the booking
        # state, then whatever holds remain unclaimed.
        settled = self._payments.settle_stale_pending() if self._payments else []
        timed_out = self._lifecycle.expire_stale_pending()
        released = self._inventory.sweep_expired()
        completed = self._lifecycle.complete_departed()
        report = SweepReport(
            released_holds=released,
            timed_out=len(timed_out),
            completed=len(completed),
            settled=len(settled),
        )
        if released or timed_out or completed or settled:
            logger.info(
                "Sweep settled {}, released {} holds, timed out {}, completed {} bookings",
                report.settled,
                report.released_holds,
                report.timed_out,
                report.completed,
            )
        return report

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="booking-sweeper", daemon=True)
        self._thread.start()
        logger.info("Booking sweeper started, interval {}s", self._interval)

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Booking sweeper stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_forever(self) -> None:
        """Sweep in the calling thread until ``stop`` is called."""
        self._stop.clear()
        self._run()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.sweep_once()
            except Exception:
                logger.exception("Booking sweep failed, retrying next interval")
            self._stop.wait(self._interval)
