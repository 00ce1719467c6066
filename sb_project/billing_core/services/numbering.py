from django.db import transaction

from ..models import DocumentSequence

INVOICE_PREFIX = "INV"
PAYMENT_PREFIX = "PAY"


def next_number(prefix, month, year):
    """
    Next document number in the (prefix, year, month) scope,
    e.g. INV-202403-0007.
    The sequence row stays locked until the caller's transaction ends,
    so two generators for the same month are serialized.
    """
    with transaction.atomic():
        seq, _ = DocumentSequence.objects.select_for_update().get_or_create(
            prefix=prefix, year=year, month=month
        )
        seq.last_value += 1
        seq.save(update_fields=["last_value"])
    return f"{prefix}-{year}{month:02d}-{seq.last_value:04d}"


def next_invoice_number(month, year):
    return next_number(INVOICE_PREFIX, month, year)


def next_payment_number(payment_date):
    return next_number(PAYMENT_PREFIX, payment_date.month, payment_date.year)
