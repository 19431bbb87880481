from django.core.management.base import BaseCommand, CommandError

from participant.exceptions import StoreError
from rentals.datastore import ReservationStore


class Command(BaseCommand):
    help = "Add a car to the rental catalogue"

    def add_arguments(self, parser):
        parser.add_argument("model")
        parser.add_argument("manufacturer")
        parser.add_argument("capacity", type=int)
        parser.add_argument("price_per_day", type=float)

    def handle(self, *args, **options):
        if options["capacity"] < 1:
            raise CommandError("Capacity must be at least 1")
        if options["price_per_day"] < 0:
            raise CommandError("Price per day cannot be negative")
        try:
            car = ReservationStore().insert_car(
                options["model"], options["manufacturer"], options["capacity"], options["price_per_day"])
        except StoreError as e:
            raise CommandError(str(e))
        self.stdout.write(str(car.car_id))
