import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Car",
            fields=[
                ("car_id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("model", models.CharField(max_length=100)),
                ("manufacturer", models.CharField(max_length=100)),
                ("capacity", models.PositiveIntegerField()),
                ("price_per_day", models.FloatField()),
            ],
            options={
                "db_table": "cars",
                "ordering": ["manufacturer", "model"],
            },
        ),
        migrations.CreateModel(
            name="Rental",
            fields=[
                ("rental_id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("total_price", models.FloatField()),
                ("is_confirmed", models.BooleanField(default=False)),
                ("transaction_id", models.UUIDField(blank=True, db_index=True, null=True)),
                ("car", models.ForeignKey(db_column="car_id", on_delete=django.db.models.deletion.PROTECT,
                                          related_name="rentals", to="rentals.car")),
            ],
            options={
                "db_table": "rentals",
                "ordering": ["start_date"],
            },
        ),
    ]
