"""Seed a demo company with staff, drivers and transfer orders."""

import random

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from factory import random as factory_random
from faker import Faker

from transfers import factories


class Command(BaseCommand):
    help = "Seed a demo company with staff, drivers and transfer orders"

    def add_arguments(self, parser):
        parser.add_argument("--drivers", type=int, default=4)
        parser.add_argument("--orders", type=int, default=10)
        parser.add_argument(
            "--seed", type=int, default=None, help="Seed for Faker/random"
        )

    @transaction.atomic
    def handle(self, *args, **options):
        seed = options.get("seed")
        if seed is not None:
            random.seed(seed)
            factory_random.reseed_random(seed)
            Faker.seed(seed)
            self.stdout.write(self.style.NOTICE(f"Seeding randomness with seed={seed}"))

        company = factories.CompanyFactory(name="Demo Transfers GmbH")
        admin = self._get_or_create_user("admin", role="admin", company=company)
        dispatcher = self._get_or_create_user(
            "dispatcher", role="dispatcher", company=company
        )
        self.stdout.write(
            self.style.SUCCESS(f"Using users: {admin.username}, {dispatcher.username}")
        )

        self.stdout.write("Creating drivers...")
        drivers = [
            factories.DriverFactory(company=company, with_login=True)
            for _ in range(options["drivers"])
        ]

        self.stdout.write("Creating orders...")
        orders = factories.OrderFactory.create_batch(options["orders"], company=company)
        for order in orders:
            if drivers and random.random() < 0.6:
                order.assign_driver(random.choice(drivers))

        self.stdout.write(self.style.SUCCESS("Seed complete."))
        self.stdout.write(
            self.style.SUCCESS(
                f"Company: {company.name}, Drivers: {len(drivers)}, Orders: {len(orders)}"
            )
        )

    def _get_or_create_user(self, username: str, role: str, company):
        User = get_user_model()
        user, created = User.objects.get_or_create(
            username=username,
            defaults={
                "email": f"{username}@example.com",
                "role": role,
                "company": company,
                "is_staff": True,
            },
        )
        if created:
            user.set_password("password123")
            user.save()
        return user
