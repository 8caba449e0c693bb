from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models, transaction
from django.db.models import Q
from django.utils import timezone

from accounts.models import Company
from transfers.policies.checklist_rules import ChecklistType
from transfers.policies.status_machine import (
    TERMINAL_STATUSES,
    OrderEvent,
    OrderStatus,
    TransitionContext,
    next_status,
)
from transfers.services.exceptions import ChecklistLockedError


class BaseModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        abstract = True


class Driver(BaseModel):
    """Transfer driver. Linked to a login when the driver uses the app."""

    class DriverStatus(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"

    company = models.ForeignKey(
        Company, on_delete=models.CASCADE, related_name="drivers"
    )
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="driver_profile",
    )

    first_name = models.CharField(max_length=50)
    last_name = models.CharField(max_length=50)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=30, blank=True)
    status = models.CharField(
        max_length=10, choices=DriverStatus.choices, default=DriverStatus.ACTIVE
    )

    def __str__(self):
        return self.full_name

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()


class Order(BaseModel):
    """
    Vehicle transfer job - the core business entity.
    Status only changes through _transition(), which consults the status table.
    """

    Status = OrderStatus

    company = models.ForeignKey(
        Company, on_delete=models.CASCADE, related_name="orders"
    )
    order_number = models.CharField(max_length=50)

    # Customer
    customer_name = models.CharField(max_length=200, blank=True)
    customer_phone = models.CharField(max_length=30, blank=True)
    customer_email = models.EmailField(blank=True)

    # Vehicle
    vehicle_brand = models.CharField(max_length=100, blank=True)
    vehicle_model = models.CharField(max_length=100, blank=True)
    license_plate = models.CharField(max_length=20, blank=True)
    vin = models.CharField(max_length=17, blank=True)

    # Pickup
    pickup_address = models.CharField(max_length=255)
    pickup_city = models.CharField(max_length=100, blank=True)
    pickup_postal_code = models.CharField(max_length=10, blank=True)
    pickup_date = models.DateField(null=True, blank=True)
    pickup_time = models.TimeField(null=True, blank=True)

    # Dropoff
    dropoff_address = models.CharField(max_length=255)
    dropoff_city = models.CharField(max_length=100, blank=True)
    dropoff_postal_code = models.CharField(max_length=10, blank=True)
    dropoff_date = models.DateField(null=True, blank=True)
    dropoff_time = models.TimeField(null=True, blank=True)

    # Assignment
    assigned_driver = models.ForeignKey(
        Driver,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    assigned_driver_name = models.CharField(max_length=120, blank=True)

    # Financial
    distance_km = models.DecimalField(
        max_digits=8,
        decimal_places=1,
        null=True,
        blank=True,
        help_text="Planned route distance (informational)",
    )
    driver_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Agreed price for the transfer (revenue basis)",
    )

    status = models.CharField(
        max_length=20, choices=OrderStatus.choices, default=OrderStatus.NEW
    )

    # Milestone timestamps
    assigned_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True)

    notes = models.TextField(blank=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "order_number"], name="unique_order_number_per_company"
            )
        ]

    def save(self, *args, **kwargs):
        # Keep the denormalised driver name in step with the FK
        self.assigned_driver_name = (
            self.assigned_driver.full_name if self.assigned_driver_id else ""
        )
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "assigned_driver" in update_fields:
            kwargs["update_fields"] = {*update_fields, "assigned_driver_name"}
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.order_number} - {self.get_status_display()}"  # type: ignore

    @property
    def pickup_location_label(self):
        locality = " ".join(p for p in [self.pickup_postal_code, self.pickup_city] if p)
        return ", ".join(p for p in [self.pickup_address, locality] if p)

    @property
    def dropoff_location_label(self):
        locality = " ".join(
            p for p in [self.dropoff_postal_code, self.dropoff_city] if p
        )
        return ", ".join(p for p in [self.dropoff_address, locality] if p)

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    def has_pending_handoff(self):
        return self.handoffs.filter(status=OrderHandoff.HandoffStatus.PENDING).exists()

    def checklist_of(self, checklist_type):
        return self.checklists.filter(type=checklist_type).first()

    def clear_assignment(self):
        self.assigned_driver = None
        self.assigned_driver_name = ""

    # ============================================================================
    # STATUS TRANSITIONS
    # ============================================================================

    def _transition(self, event, context=None, **extra_fields):
        """
        Move to the status the table gives for ``event``.

        Raises TransitionNotAllowed (a ValueError) when the table has no entry
        or the guard rejects ``context``.
        """
        self.status = next_status(self.status, event, context)
        for key, value in extra_fields.items():
            setattr(self, key, value)
        self.save()

    @transaction.atomic
    def assign_driver(self, driver):
        """
        NEW/ASSIGNED -> ASSIGNED, or ZWISCHENABGABE -> IN_TRANSIT when dispatch
        gives a parked vehicle to a driver directly.
        """
        if driver.company_id != self.company_id:
            raise ValueError("Driver belongs to another company.")
        context = TransitionContext(has_pending_handoff=self.has_pending_handoff())
        self._transition(
            OrderEvent.ASSIGN_DRIVER,
            context,
            assigned_driver=driver,
            assigned_at=timezone.now(),
        )

    @transaction.atomic
    def cancel(self, reason=""):
        """Any non-terminal status -> CANCELLED."""
        self._transition(
            OrderEvent.CANCEL,
            cancelled_at=timezone.now(),
            cancellation_reason=reason,
        )

    def send_to_review(self):
        self._transition(OrderEvent.SEND_TO_REVIEW)

    def mark_ready_for_billing(self):
        self._transition(OrderEvent.MARK_READY_FOR_BILLING)

    def approve_billing(self):
        self._transition(OrderEvent.APPROVE_BILLING)


class Checklist(BaseModel):
    """
    Pickup or dropoff inspection protocol.

    Editable by its driver until submitted. A completed row refuses every save.
    """

    Type = ChecklistType

    class FuelLevel(models.TextChoices):
        EMPTY = "0", "Empty"
        QUARTER = "1/4", "1/4"
        HALF = "1/2", "1/2"
        THREE_QUARTERS = "3/4", "3/4"
        FULL = "1/1", "Full"

    class Cleanliness(models.TextChoices):
        CLEAN = "clean", "Clean"
        NORMAL = "normal", "Normal"
        DIRTY = "dirty", "Dirty"

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="checklists")
    driver = models.ForeignKey(
        Driver, on_delete=models.PROTECT, related_name="checklists"
    )
    type = models.CharField(max_length=10, choices=ChecklistType.choices)

    location = models.CharField(max_length=255, blank=True)
    odometer = models.CharField(max_length=20, blank=True)
    fuel_level = models.CharField(
        max_length=5, choices=FuelLevel.choices, default=FuelLevel.HALF
    )
    cleanliness_inside = models.CharField(
        max_length=10, choices=Cleanliness.choices, default=Cleanliness.NORMAL
    )
    cleanliness_outside = models.CharField(
        max_length=10, choices=Cleanliness.choices, default=Cleanliness.NORMAL
    )

    # pickup only
    accessories = models.JSONField(default=dict, blank=True)
    damages = models.JSONField(
        default=list,
        blank=True,
        help_text="[{location, type, description, severity, photo_url}]",
    )

    photos = models.JSONField(default=list, blank=True, help_text="[{type, url}]")
    mandatory_checks = models.JSONField(default=dict, blank=True)
    notes = models.TextField(blank=True)

    # Signatures (stored file URLs) or a refusal record
    signature_driver = models.URLField(max_length=500, blank=True)
    signature_customer = models.URLField(max_length=500, blank=True)
    customer_name = models.CharField(max_length=200, blank=True)
    customer_refused = models.BooleanField(default=False)
    refuser_name = models.CharField(max_length=200, blank=True)
    refusal_reason = models.TextField(blank=True)

    completed = models.BooleanField(default=False)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["order", "type"], name="one_checklist_per_type_per_order"
            )
        ]

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._locked = bool(getattr(instance, "completed", False))
        return instance

    def save(self, *args, **kwargs):
        locked = getattr(self, "_locked", False) or (
            self.pk is not None
            and type(self).objects.filter(pk=self.pk, completed=True).exists()
        )
        if locked:
            raise ChecklistLockedError(
                "This protocol has been submitted and can no longer be changed."
            )
        super().save(*args, **kwargs)
        self._locked = self.completed

    def __str__(self):
        return f"{self.order.order_number} - {self.get_type_display()}"  # type: ignore


class ChecklistExpense(BaseModel):
    """
    Driver expense recorded after dropoff (fuel receipt, train ticket, ...).

    Separate rows so a submitted protocol stays untouched.
    """

    class ExpenseType(models.TextChoices):
        FUEL = "fuel", "Fuel receipt"
        TICKET = "ticket", "Ticket"
        TAXI = "taxi", "Taxi"
        TOLL = "toll", "Toll"
        ADDITIONAL_PROTOCOL = "additional_protocol", "Additional protocol"
        PARKING = "parking", "Parking"
        OTHER = "other", "Other"

    checklist = models.ForeignKey(
        Checklist, on_delete=models.CASCADE, related_name="expenses"
    )
    type = models.CharField(max_length=20, choices=ExpenseType.choices)
    amount = models.DecimalField(
        max_digits=10, decimal_places=2, validators=[MinValueValidator(0)]
    )
    note = models.TextField(blank=True)
    receipt_url = models.URLField(max_length=500, blank=True)

    def clean(self):
        super().clean()
        if self.amount is not None and self.amount < 0:
            raise ValidationError({"amount": "Amount cannot be negative."})

    def __str__(self):
        return f"{self.get_type_display()} {self.amount}"  # type: ignore


class OrderHandoff(BaseModel):
    """
    Proposed custody transfer between two drivers.

    At most one pending row per order; the conditional unique constraint
    holds that even when two requests race.
    """

    class HandoffStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        ACCEPTED = "accepted", "Accepted"

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="handoffs")
    created_by = models.ForeignKey(
        Driver, on_delete=models.PROTECT, related_name="handoffs_created"
    )
    location = models.CharField(max_length=255)
    latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    notes = models.TextField(blank=True)

    status = models.CharField(
        max_length=10, choices=HandoffStatus.choices, default=HandoffStatus.PENDING
    )
    accepted_by = models.ForeignKey(
        Driver,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="handoffs_accepted",
    )
    accepted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["order"],
                condition=Q(status="pending"),
                name="one_pending_handoff_per_order",
            )
        ]

    def __str__(self):
        return f"{self.order.order_number} @ {self.location} ({self.get_status_display()})"  # type: ignore


class OrderSegment(BaseModel):
    """
    Route ledger row written by a handoff or shuttle stop.

    Only the settlement fields may change after creation.
    """

    class SegmentType(models.TextChoices):
        HANDOFF = "handoff", "Handoff"
        SHUTTLE = "shuttle", "Shuttle"

    class PriceStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    SETTLEMENT_FIELDS = frozenset(
        {"price", "price_status", "price_rejection_reason", "updated_at"}
    )

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="segments")
    handoff = models.OneToOneField(
        OrderHandoff,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="segment",
    )
    driver = models.ForeignKey(
        Driver, on_delete=models.PROTECT, related_name="segments"
    )
    segment_type = models.CharField(max_length=10, choices=SegmentType.choices)
    start_location = models.CharField(max_length=255)
    end_location = models.CharField(max_length=255)
    distance_km = models.DecimalField(
        max_digits=8, decimal_places=1, null=True, blank=True
    )
    notes = models.TextField(blank=True)

    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
    )
    price_status = models.CharField(
        max_length=10, choices=PriceStatus.choices, default=PriceStatus.PENDING
    )
    price_rejection_reason = models.TextField(blank=True)

    class Meta:
        ordering = ["created_at", "id"]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            update_fields = kwargs.get("update_fields")
            if update_fields is None or not set(update_fields) <= self.SETTLEMENT_FIELDS:
                raise ValueError("Segments are immutable; only the price may be set.")
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.order.order_number}: {self.start_location} → {self.end_location}"
