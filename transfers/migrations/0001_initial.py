import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def _id():
    return (
        "id",
        models.BigAutoField(
            auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
        ),
    )


def _base():
    return [
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
        ("is_active", models.BooleanField(default=True)),
    ]


ORDER_STATUS_CHOICES = [
    ("new", "New"),
    ("assigned", "Assigned"),
    ("pickup_started", "Pickup started"),
    ("in_transit", "In transit"),
    ("zwischenabgabe", "Intermediate drop (awaiting driver)"),
    ("delivery_started", "Delivery started"),
    ("completed", "Completed"),
    ("cancelled", "Cancelled"),
    ("review", "In review"),
    ("ready_for_billing", "Ready for billing"),
    ("approved", "Approved"),
]

CLEANLINESS_CHOICES = [("clean", "Clean"), ("normal", "Normal"), ("dirty", "Dirty")]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Driver",
            fields=[
                _id(),
                *_base(),
                ("first_name", models.CharField(max_length=50)),
                ("last_name", models.CharField(max_length=50)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("phone", models.CharField(blank=True, max_length=30)),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("inactive", "Inactive")],
                        default="active",
                        max_length=10,
                    ),
                ),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="drivers",
                        to="accounts.company",
                    ),
                ),
                (
                    "user",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="driver_profile",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={"abstract": False},
        ),
        migrations.CreateModel(
            name="Order",
            fields=[
                _id(),
                *_base(),
                ("order_number", models.CharField(max_length=50)),
                ("customer_name", models.CharField(blank=True, max_length=200)),
                ("customer_phone", models.CharField(blank=True, max_length=30)),
                ("customer_email", models.EmailField(blank=True, max_length=254)),
                ("vehicle_brand", models.CharField(blank=True, max_length=100)),
                ("vehicle_model", models.CharField(blank=True, max_length=100)),
                ("license_plate", models.CharField(blank=True, max_length=20)),
                ("vin", models.CharField(blank=True, max_length=17)),
                ("pickup_address", models.CharField(max_length=255)),
                ("pickup_city", models.CharField(blank=True, max_length=100)),
                ("pickup_postal_code", models.CharField(blank=True, max_length=10)),
                ("pickup_date", models.DateField(blank=True, null=True)),
                ("pickup_time", models.TimeField(blank=True, null=True)),
                ("dropoff_address", models.CharField(max_length=255)),
                ("dropoff_city", models.CharField(blank=True, max_length=100)),
                ("dropoff_postal_code", models.CharField(blank=True, max_length=10)),
                ("dropoff_date", models.DateField(blank=True, null=True)),
                ("dropoff_time", models.TimeField(blank=True, null=True)),
                ("assigned_driver_name", models.CharField(blank=True, max_length=120)),
                (
                    "distance_km",
                    models.DecimalField(
                        blank=True,
                        decimal_places=1,
                        help_text="Planned route distance (informational)",
                        max_digits=8,
                        null=True,
                    ),
                ),
                (
                    "driver_price",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Agreed price for the transfer (revenue basis)",
                        max_digits=10,
                        null=True,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=ORDER_STATUS_CHOICES, default="new", max_length=20
                    ),
                ),
                ("assigned_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancellation_reason", models.TextField(blank=True)),
                ("notes", models.TextField(blank=True)),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="orders",
                        to="accounts.company",
                    ),
                ),
                (
                    "assigned_driver",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="orders",
                        to="transfers.driver",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("company", "order_number"),
                        name="unique_order_number_per_company",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Checklist",
            fields=[
                _id(),
                *_base(),
                (
                    "type",
                    models.CharField(
                        choices=[("pickup", "Pickup"), ("dropoff", "Dropoff")],
                        max_length=10,
                    ),
                ),
                ("location", models.CharField(blank=True, max_length=255)),
                ("odometer", models.CharField(blank=True, max_length=20)),
                (
                    "fuel_level",
                    models.CharField(
                        choices=[
                            ("0", "Empty"),
                            ("1/4", "1/4"),
                            ("1/2", "1/2"),
                            ("3/4", "3/4"),
                            ("1/1", "Full"),
                        ],
                        default="1/2",
                        max_length=5,
                    ),
                ),
                (
                    "cleanliness_inside",
                    models.CharField(
                        choices=CLEANLINESS_CHOICES, default="normal", max_length=10
                    ),
                ),
                (
                    "cleanliness_outside",
                    models.CharField(
                        choices=CLEANLINESS_CHOICES, default="normal", max_length=10
                    ),
                ),
                ("accessories", models.JSONField(blank=True, default=dict)),
                (
                    "damages",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="[{location, type, description, severity, photo_url}]",
                    ),
                ),
                (
                    "photos",
                    models.JSONField(blank=True, default=list, help_text="[{type, url}]"),
                ),
                ("mandatory_checks", models.JSONField(blank=True, default=dict)),
                ("notes", models.TextField(blank=True)),
                ("signature_driver", models.URLField(blank=True, max_length=500)),
                ("signature_customer", models.URLField(blank=True, max_length=500)),
                ("customer_name", models.CharField(blank=True, max_length=200)),
                ("customer_refused", models.BooleanField(default=False)),
                ("refuser_name", models.CharField(blank=True, max_length=200)),
                ("refusal_reason", models.TextField(blank=True)),
                ("completed", models.BooleanField(default=False)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="checklists",
                        to="transfers.order",
                    ),
                ),
                (
                    "driver",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="checklists",
                        to="transfers.driver",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("order", "type"),
                        name="one_checklist_per_type_per_order",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="ChecklistExpense",
            fields=[
                _id(),
                *_base(),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("fuel", "Fuel receipt"),
                            ("ticket", "Ticket"),
                            ("taxi", "Taxi"),
                            ("toll", "Toll"),
                            ("additional_protocol", "Additional protocol"),
                            ("parking", "Parking"),
                            ("other", "Other"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=10,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                ("note", models.TextField(blank=True)),
                ("receipt_url", models.URLField(blank=True, max_length=500)),
                (
                    "checklist",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="expenses",
                        to="transfers.checklist",
                    ),
                ),
            ],
            options={"abstract": False},
        ),
        migrations.CreateModel(
            name="OrderHandoff",
            fields=[
                _id(),
                *_base(),
                ("location", models.CharField(max_length=255)),
                (
                    "latitude",
                    models.DecimalField(
                        blank=True, decimal_places=6, max_digits=9, null=True
                    ),
                ),
                (
                    "longitude",
                    models.DecimalField(
                        blank=True, decimal_places=6, max_digits=9, null=True
                    ),
                ),
                ("notes", models.TextField(blank=True)),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("accepted", "Accepted")],
                        default="pending",
                        max_length=10,
                    ),
                ),
                ("accepted_at", models.DateTimeField(blank=True, null=True)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="handoffs",
                        to="transfers.order",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="handoffs_created",
                        to="transfers.driver",
                    ),
                ),
                (
                    "accepted_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="handoffs_accepted",
                        to="transfers.driver",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "pending")),
                        fields=("order",),
                        name="one_pending_handoff_per_order",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderSegment",
            fields=[
                _id(),
                *_base(),
                (
                    "segment_type",
                    models.CharField(
                        choices=[("handoff", "Handoff"), ("shuttle", "Shuttle")],
                        max_length=10,
                    ),
                ),
                ("start_location", models.CharField(max_length=255)),
                ("end_location", models.CharField(max_length=255)),
                (
                    "distance_km",
                    models.DecimalField(
                        blank=True, decimal_places=1, max_digits=8, null=True
                    ),
                ),
                ("notes", models.TextField(blank=True)),
                (
                    "price",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=10,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                (
                    "price_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("approved", "Approved"),
                            ("rejected", "Rejected"),
                        ],
                        default="pending",
                        max_length=10,
                    ),
                ),
                ("price_rejection_reason", models.TextField(blank=True)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="segments",
                        to="transfers.order",
                    ),
                ),
                (
                    "handoff",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="segment",
                        to="transfers.orderhandoff",
                    ),
                ),
                (
                    "driver",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="segments",
                        to="transfers.driver",
                    ),
                ),
            ],
            options={"ordering": ["created_at", "id"]},
        ),
    ]
