from django.contrib.auth.models import AbstractUser
from django.core.validators import RegexValidator
from django.db import models


class Company(models.Model):
    """Tenant. Every order, driver and staff user belongs to exactly one company."""

    name = models.CharField(max_length=200)
    notification_email = models.EmailField(
        blank=True, help_text="Dispatch inbox for handoff and completion notices"
    )

    # timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "companies"
        ordering = ["created_at"]

    def __str__(self):
        return self.name


class User(AbstractUser):
    """Custom user model extending Django's AbstractUser."""

    # Django’s enum pattern for model fields.
    class Role(models.TextChoices):
        # actual value stored in the database, human-readable name
        ADMIN = "admin", "Admin"
        DISPATCHER = "dispatcher", "Dispatcher"
        DRIVER = "driver", "Driver"

    role = models.CharField(
        choices=Role.choices,
        default=Role.DISPATCHER,
        max_length=20,
        help_text="User role for permission management",
    )
    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name="users",
        null=True,
        blank=True,
    )
    email = models.EmailField(unique=True)
    phone_regex = RegexValidator(regex=r"^\+\d{10,15}$")
    phone = models.CharField(validators=[phone_regex], max_length=20, null=True)

    is_active = models.BooleanField(default=True)

    # timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.get_full_name()} ({self.username})"
