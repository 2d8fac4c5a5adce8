"""Concurrency tests for the ORM-backed stores.

Threads open their own database connections, so these run with
``transaction=True`` against the file-backed test database.
"""

import threading
from datetime import timedelta
from decimal import Decimal

import pytest
from django.db import connection
from django.utils import timezone

from bookings import models
from bookings.container import build_services
from bookings.domain import ScheduleId
from bookings.domain.errors import SeatUnavailableError

pytestmark = pytest.mark.django_db(transaction=True)

THREADS = 8


@pytest.fixture
def schedule() -> models.Schedule:
    return models.Schedule.objects.create(
        capacity=14,
        price_per_seat=Decimal("500.00"),
        departure_time=timezone.now() + timedelta(days=1),
    )


class TestConcurrentHolds:
    def test_one_writer_wins_the_others_see_seats_taken(self, schedule):
        """Competing holds queue on the write lock; none of them fail with a database error."""
        inventory = build_services().inventory
        schedule_id = ScheduleId(schedule.id)
        barrier = threading.Barrier(THREADS)
        results: list[str] = []
        errors: list[str] = []
        guard = threading.Lock()

        def attempt(holder: str) -> None:
            try:
                barrier.wait()
                inventory.hold_seats(schedule_id, [5, 6], holder, timedelta(minutes=5))
                outcome = "won"
            except SeatUnavailableError:
                outcome = "lost"
            except Exception as exc:
                with guard:
                    errors.append(f"{type(exc).__name__}: {exc}")
                return
            finally:
                connection.close()
            with guard:
                results.append(outcome)

        threads = [threading.Thread(target=attempt, args=(f"c{i}",)) for i in range(THREADS)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert errors == []
        assert results.count("won") == 1
        assert results.count("lost") == THREADS - 1
        assert models.SeatHold.objects.filter(schedule=schedule).count() == 1
