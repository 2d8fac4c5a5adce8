from django.core.management.base import BaseCommand
from loguru import logger

from bookings.container import get_services


class Command(BaseCommand):
    help = "Release expired seat holds, time out unpaid bookings and complete departed trips."

    def add_arguments(self, parser) -> None:
        parser.add_argument(
            "--once",
            action="store_true",
            help="Run a single sweep and exit.",
        )

    def handle(self, *args, **options) -> None:
        sweeper = get_services().sweeper
        if options["once"]:
            report = sweeper.sweep_once()
            self.stdout.write(
                f"Released {report.released_holds} holds, timed out {report.timed_out} "
                f"bookings, completed {report.completed} bookings"
            )
            return

        logger.info("Running booking sweeper in the foreground, Ctrl+C to stop")
        try:
            sweeper.run_forever()
        except KeyboardInterrupt:
            sweeper.stop()
