from datetime import date

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from participant.client import ParticipantClient


class Command(BaseCommand):
    help = "Send a read-only query to a running participant"

    def add_arguments(self, parser):
        parser.add_argument("query", choices=["bookings", "availability"])
        parser.add_argument("--host", default="localhost")
        parser.add_argument("--port", type=int, default=settings.PARTICIPANT["PORT"])
        parser.add_argument("--timeout", type=float, default=3)
        parser.add_argument("--start", type=date.fromisoformat)
        parser.add_argument("--end", type=date.fromisoformat)
        parser.add_argument("--persons", type=int, default=1)

    def handle(self, *args, **options):
        client = ParticipantClient(options["host"], options["port"], timeout=options["timeout"])
        if options["query"] == "bookings":
            data = client.get_bookings()
        else:
            if options["start"] is None or options["end"] is None:
                raise CommandError("availability needs --start and --end")
            data = client.get_availability(options["start"], options["end"], options["persons"])
        if data is None:
            raise CommandError(f"No reply from {options['host']}:{options['port']}")
        self.stdout.write(data)
