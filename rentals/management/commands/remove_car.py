import uuid

from django.core.management.base import BaseCommand, CommandError

from participant.exceptions import StoreError
from rentals.datastore import ReservationStore


class Command(BaseCommand):
    help = "Remove a car without rentals from the catalogue"

    def add_arguments(self, parser):
        parser.add_argument("car_id", type=uuid.UUID)

    def handle(self, *args, **options):
        try:
            deleted = ReservationStore().delete_car(options["car_id"])
        except StoreError as e:
            raise CommandError(str(e))
        if not deleted:
            raise CommandError(f"No car {options['car_id']}")
        self.stdout.write(f"Removed {options['car_id']}")
