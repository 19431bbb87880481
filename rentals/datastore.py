"""
Relational reservation store backing the participant.

Every public call runs in its own database transaction. Database failures
surface as ``StoreError`` from ``tentative_reserve`` and the read queries, and
as a ``False`` result from the decision operations (confirm/release).
"""

import functools
import json
import logging
import uuid

from django.core.serializers.json import DjangoJSONEncoder
from django.db import DatabaseError, close_old_connections, transaction

from participant.exceptions import StoreError
from participant.message import ReservationRequest

from .models import Car, Rental

logger = logging.getLogger(__name__)


def rental_days(start_date, end_date):
    """Number of billed days, both ends inclusive"""
    return (end_date - start_date).days + 1


def per_call_connection(method):
    """Drop broken or expired connections before and after the call, as the request cycle does"""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        if not self.recycle_connections:
            return method(self, *args, **kwargs)
        close_old_connections()
        try:
            return method(self, *args, **kwargs)
        finally:
            close_old_connections()
    return wrapper


class ReservationStore:
    """
    Car rental store used by the 2PC participant.

    A long-running server passes ``recycle_connections=True`` so a database
    restart only fails the calls made while it is down.
    """

    def __init__(self, recycle_connections=False):
        self.recycle_connections = recycle_connections

    def _dumps(self, rows):
        return json.dumps([row.to_dict() for row in rows], cls=DjangoJSONEncoder)

    # --- two-phase commit operations ---

    @per_call_connection
    def tentative_reserve(self, request: ReservationRequest, transaction_id=None):
        """Hold the car for the requested window; returns the booking id or None"""
        if request.end_date < request.start_date:
            logger.info("Rejecting reservation of %s: window ends before it starts", request.resource_id)
            return None

        try:
            with transaction.atomic():
                try:
                    car = Car.objects.select_for_update().get(pk=request.resource_id)
                except Car.DoesNotExist:
                    logger.info("Car %s does not exist", request.resource_id)
                    return None

                logger.info("Checking if car is available: %s", car.car_id)
                if Rental.objects.filter(car=car).overlapping(request.start_date, request.end_date).exists():
                    logger.info("Car is not available: %s", car.car_id)
                    return None

                rental = Rental.objects.create(
                    rental_id=uuid.uuid4(),
                    car=car,
                    start_date=request.start_date,
                    end_date=request.end_date,
                    total_price=car.price_per_day * rental_days(request.start_date, request.end_date),
                    is_confirmed=False,
                    transaction_id=transaction_id,
                )
        except DatabaseError as e:
            logger.error("Error while reserving car: %s", e)
            raise StoreError(f"Reservation of car {request.resource_id} failed: {e}") from e

        return rental.rental_id

    @per_call_connection
    def confirm(self, booking_id):
        """Mark the rental confirmed; True unless the database failed"""
        try:
            with transaction.atomic():
                updated = Rental.objects.filter(pk=booking_id).update(is_confirmed=True)
        except DatabaseError as e:
            logger.error("Error while confirming rental: %s", e)
            return False
        if not updated:
            logger.warning("Confirmed rental %s does not exist", booking_id)
        return True

    @per_call_connection
    def release(self, booking_id):
        """Delete the rental; True if it is gone afterwards"""
        try:
            with transaction.atomic():
                Rental.objects.filter(pk=booking_id).delete()
        except DatabaseError as e:
            logger.error("Error while aborting rental: %s", e)
            return False
        return True

    @per_call_connection
    def release_transaction(self, transaction_id):
        """Delete every unconfirmed rental tagged with a transaction id"""
        try:
            with transaction.atomic():
                deleted, _ = Rental.objects.filter(transaction_id=transaction_id, is_confirmed=False).delete()
        except DatabaseError as e:
            logger.error("Error while releasing rentals of %s: %s", transaction_id, e)
            return False
        if deleted:
            logger.info("Released %d rental(s) of %s", deleted, transaction_id)
        return True

    # --- read queries ---

    @per_call_connection
    def list_rentals(self):
        """All rentals as a JSON array"""
        try:
            return self._dumps(Rental.objects.all())
        except DatabaseError as e:
            logger.error("Error while getting rentals: %s", e)
            raise StoreError(f"Listing rentals failed: {e}") from e

    @per_call_connection
    def list_available(self, request):
        """Cars seating the party with no rental overlapping the window, as a JSON array"""
        if request.end_date < request.start_date:
            return "[]"
        try:
            busy = Rental.objects.overlapping(request.start_date, request.end_date).values("car_id")
            cars = Car.objects.filter(capacity__gte=request.number_of_persons).exclude(car_id__in=busy)
            return self._dumps(cars)
        except DatabaseError as e:
            logger.error("Error while getting available cars: %s", e)
            raise StoreError(f"Availability query failed: {e}") from e

    # --- catalogue ---

    @per_call_connection
    def insert_car(self, model, manufacturer, capacity, price_per_day):
        try:
            return Car.objects.create(model=model, manufacturer=manufacturer,
                                      capacity=capacity, price_per_day=price_per_day)
        except DatabaseError as e:
            raise StoreError(f"Inserting car failed: {e}") from e

    @per_call_connection
    def get_car(self, car_id):
        try:
            return Car.objects.filter(pk=car_id).first()
        except DatabaseError as e:
            raise StoreError(f"Loading car {car_id} failed: {e}") from e

    @per_call_connection
    def delete_car(self, car_id):
        """Delete a car without rentals; returns False if it did not exist"""
        try:
            deleted, _ = Car.objects.filter(pk=car_id).delete()
        except DatabaseError as e:
            # ProtectedError is an IntegrityError: the car still has rentals
            raise StoreError(f"Deleting car {car_id} failed: {e}") from e
        return bool(deleted)
