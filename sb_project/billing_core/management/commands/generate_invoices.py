from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from billing_core.services.invoices import generate_for_period
from billing_core.services.periods import previous_month


class Command(BaseCommand):
    help = "Generate invoices for every active school for one billing period."

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument(
            "--month", type=int, help="Billing month (1-12). Defaults to last month."
        )
        parser.add_argument(
            "--year", type=int, help="Billing year. Defaults to last month's year."
        )
        parser.add_argument(
            "--actor", help="Username recorded as the generating user."
        )

    def handle(self, *args, **options):
        month, year = options["month"], options["year"]
        if month is None or year is None:
            today = timezone.localdate()
            month, year = previous_month(today.month, today.year)

        user = None
        if options["actor"]:
            User = get_user_model()
            try:
                user = User.objects.get(username=options["actor"])
            except User.DoesNotExist:
                raise CommandError(f"No user named {options['actor']!r}")

        results = generate_for_period(month, year, user=user)

        for row in results["successful"]:
            self.stdout.write(self.style.SUCCESS(
                f"{row['invoice_number']}  {row['school']}  {row['amount']}"))
        for row in results["failed"]:
            self.stdout.write(self.style.WARNING(
                f"skipped {row['school']}: {row['reason']}"))
        self.stdout.write(
            f"{month:02d}/{year}: {len(results['successful'])} generated, "
            f"{len(results['failed'])} failed"
        )
