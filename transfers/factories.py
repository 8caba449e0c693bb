"""Factories for generating demo/test data with factory_boy and Faker.

Use sequences for unique identifiers and Faker for descriptive fields.
"""

import random
from decimal import Decimal

import factory
from django.contrib.auth import get_user_model
from factory import Faker
from factory.django import DjangoModelFactory

from accounts.models import Company

from . import models
from .policies.checklist_rules import MANDATORY_CHECK_IDS, REQUIRED_PHOTO_IDS, ChecklistType


class CompanyFactory(DjangoModelFactory):
    class Meta:
        model = Company

    name = Faker("company")
    notification_email = Faker("company_email")


class UserFactory(DjangoModelFactory):
    class Meta:
        model = get_user_model()
        django_get_or_create = ("username",)

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.LazyAttribute(lambda obj: f"{obj.username}@example.com")
    first_name = Faker("first_name")
    last_name = Faker("last_name")
    company = factory.SubFactory(CompanyFactory)
    role = "dispatcher"
    is_active = True

    @classmethod
    def _create(cls, model_class, *args, **kwargs):
        password = kwargs.pop("password", "password123")
        user = super()._create(model_class, *args, **kwargs)
        user.set_password(password)
        user.save()
        return user


class DriverFactory(DjangoModelFactory):
    class Meta:
        model = models.Driver

    company = factory.SubFactory(CompanyFactory)
    first_name = Faker("first_name")
    last_name = Faker("last_name")
    phone = factory.Sequence(lambda n: f"+4917{n:08d}")
    email = factory.Sequence(lambda n: f"driver{n}@driver.test")
    user = None

    class Params:
        with_login = factory.Trait(
            user=factory.SubFactory(
                UserFactory,
                role="driver",
                company=factory.SelfAttribute("..company"),
            )
        )


class OrderFactory(DjangoModelFactory):
    class Meta:
        model = models.Order

    company = factory.SubFactory(CompanyFactory)
    order_number = factory.Sequence(lambda n: f"TR-{10000 + n}")
    customer_name = Faker("name")
    customer_email = Faker("email")
    vehicle_brand = factory.LazyFunction(
        lambda: random.choice(["VW", "BMW", "Audi", "Mercedes", "Opel"])
    )
    vehicle_model = Faker("word")
    license_plate = factory.Sequence(lambda n: f"B-TR {1000 + n}")
    pickup_address = Faker("street_address")
    pickup_city = Faker("city")
    pickup_postal_code = Faker("postcode")
    dropoff_address = Faker("street_address")
    dropoff_city = Faker("city")
    dropoff_postal_code = Faker("postcode")
    driver_price = Decimal("250.00")
    status = models.Order.Status.NEW


class ChecklistFactory(DjangoModelFactory):
    class Meta:
        model = models.Checklist

    order = factory.SubFactory(OrderFactory)
    driver = factory.SubFactory(
        DriverFactory, company=factory.SelfAttribute("..order.company")
    )
    type = ChecklistType.PICKUP
    odometer = "45210"


class OrderHandoffFactory(DjangoModelFactory):
    class Meta:
        model = models.OrderHandoff

    order = factory.SubFactory(OrderFactory, status=models.Order.Status.ZWISCHENABGABE)
    created_by = factory.SubFactory(
        DriverFactory, company=factory.SelfAttribute("..order.company")
    )
    location = Faker("street_address")


class OrderSegmentFactory(DjangoModelFactory):
    class Meta:
        model = models.OrderSegment

    order = factory.SubFactory(OrderFactory)
    driver = factory.SubFactory(
        DriverFactory, company=factory.SelfAttribute("..order.company")
    )
    segment_type = models.OrderSegment.SegmentType.SHUTTLE
    start_location = Faker("street_address")
    end_location = Faker("street_address")


def complete_photos():
    return [
        {"type": photo_id, "url": f"https://files.test/{photo_id}.jpg"}
        for photo_id in REQUIRED_PHOTO_IDS
    ]


def complete_draft(checklist_type=ChecklistType.PICKUP, **overrides):
    """Protocol fields that pass every submission check."""
    draft = {
        "odometer": "45210",
        "photos": complete_photos(),
        "mandatory_checks": {check_id: True for check_id in MANDATORY_CHECK_IDS},
        "signature_driver": "https://files.test/sig-driver.png",
        "signature_customer": "https://files.test/sig-customer.png",
        "customer_name": "Erika Mustermann",
    }
    if checklist_type == ChecklistType.PICKUP:
        draft["damages"] = []
    draft.update(overrides)
    return draft
