"""Park in-transit orders that lost their driver or sit behind an open handoff."""

from django.core.management.base import BaseCommand, CommandError

from accounts.models import Company
from transfers.services.reconciliation import reconcile_stuck_orders


class Command(BaseCommand):
    help = "Correct in-transit orders without a driver or with an unaccepted handoff"

    def add_arguments(self, parser):
        parser.add_argument(
            "--company",
            type=int,
            default=None,
            help="Company id (default: every company)",
        )

    def handle(self, *args, **options):
        company_id = options.get("company")
        if company_id is not None:
            companies = Company.objects.filter(pk=company_id)
            if not companies.exists():
                raise CommandError(f"Company {company_id} does not exist.")
        else:
            companies = Company.objects.all()

        total = 0
        for company in companies:
            result = reconcile_stuck_orders(company)
            total += result.updated_count
            self.stdout.write(
                f"{company.name}: {result.updated_count} corrected "
                f"(no_driver={result.reasons['no_driver']}, "
                f"handoff_latest={result.reasons['handoff_latest']})"
            )

        self.stdout.write(self.style.SUCCESS(f"Reconciliation complete: {total} orders corrected."))
