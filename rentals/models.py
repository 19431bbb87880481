import uuid

from django.db import models


class Car(models.Model):
    car_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    model = models.CharField(max_length=100)
    manufacturer = models.CharField(max_length=100)
    capacity = models.PositiveIntegerField()
    price_per_day = models.FloatField()

    class Meta:
        db_table = "cars"
        ordering = ["manufacturer", "model"]

    def __str__(self):
        return f"{self.manufacturer} {self.model} ({self.car_id})"

    def to_dict(self):
        return {
            "carId": self.car_id,
            "model": self.model,
            "manufacturer": self.manufacturer,
            "capacity": self.capacity,
            "pricePerDay": self.price_per_day,
        }


class RentalQuerySet(models.QuerySet):

    def overlapping(self, start_date, end_date):
        """Rentals sharing at least one day with [start_date, end_date]"""
        return self.filter(start_date__lte=end_date, end_date__gte=start_date)


class Rental(models.Model):
    """A tentative hold (is_confirmed=False) or a committed rental of one car"""
    rental_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    car = models.ForeignKey(Car, on_delete=models.PROTECT, db_column="car_id", related_name="rentals")
    start_date = models.DateField()
    end_date = models.DateField()
    total_price = models.FloatField()
    is_confirmed = models.BooleanField(default=False)
    transaction_id = models.UUIDField(null=True, blank=True, db_index=True)

    objects = RentalQuerySet.as_manager()

    class Meta:
        db_table = "rentals"
        ordering = ["start_date"]

    def __str__(self):
        return f"Rental {self.rental_id} of {self.car_id} {self.start_date}..{self.end_date}"

    def to_dict(self):
        return {
            "rentalId": self.rental_id,
            "carId": self.car_id,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "totalPrice": self.total_price,
            "confirmed": self.is_confirmed,
        }
