from django.core.management.base import BaseCommand

from billing_core.services.carry_forward import mark_overdue


class Command(BaseCommand):
    help = "Relabel unpaid invoices past their due date as overdue."

    def handle(self, *args, **options):
        result = mark_overdue()
        self.stdout.write(self.style.SUCCESS(
            f"Marked {result['count']} invoice(s) overdue."))
