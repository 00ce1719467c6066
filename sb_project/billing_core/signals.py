from django.core.exceptions import ValidationError
from django.db.models.signals import pre_delete
from django.dispatch import receiver

from .models import (EmployeePosting, Invoice, LedgerEntry,
                     LedgerMonthlySummary, Payment)

""" Postings are history: close them, never delete them. """


# pre_delete fires just before Django deletes the instance
@receiver(pre_delete, sender=EmployeePosting)
def prevent_delete_posting(sender, instance, **kwargs):
    raise ValidationError(
        "Postings cannot be deleted; close them with resign or terminate.")


"""Block invoice deletion once payments or ledger movements reference it."""


@receiver(pre_delete, sender=Invoice)
def prevent_delete_invoice(sender, instance, **kwargs):
    if Payment.objects.filter(invoice=instance).exists():
        raise ValidationError("Cannot delete invoice with recorded payments.")
    if LedgerEntry.objects.filter(
        reference_type="Invoice", reference_id=instance.pk
    ).exists():
        raise ValidationError("Cannot delete an invoice posted to the ledger; cancel it.")


@receiver(pre_delete, sender=Payment)
def prevent_delete_payment(sender, instance, **kwargs):
    raise ValidationError("Payments cannot be deleted; bounce them instead.")


"""Ledger history is append-only."""


@receiver(pre_delete, sender=LedgerEntry)
def prevent_delete_ledger_entry(sender, instance, **kwargs):
    raise ValidationError("Ledger entries are immutable.")


@receiver(pre_delete, sender=LedgerMonthlySummary)
def prevent_delete_ledger_summary(sender, instance, **kwargs):
    raise ValidationError("Ledger summaries are derived from entries and cannot be deleted.")
