import logging
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from ..models import LedgerEntry, LedgerMonthlySummary, SchoolLedger
from ..money import ZERO, round_cents
from .audit_helper import log_action

logger = logging.getLogger(__name__)


# ----------------------------
# Append
# ----------------------------
def get_or_create_ledger(school):
    ledger, created = SchoolLedger.objects.get_or_create(school=school)
    if created:
        logger.info("Opened ledger for school %s", school.pk)
    return ledger


def add_entry(
    school,
    *,
    entry_type: str,
    entry_date,
    month: int,
    year: int,
    debit: Decimal = ZERO,
    credit: Decimal = ZERO,
    reference=None,
    description: str = "",
    metadata: dict | None = None,
    user=None,
) -> LedgerEntry:
    """
    Append one movement to the school's ledger.

    balance = previous balance + debit - credit. The ledger row is locked
    for the whole append so sequence numbers and balances never fork;
    the monthly summary for (month, year) is updated in the same unit.
    """
    debit, credit = round_cents(debit), round_cents(credit)
    if debit < 0 or credit < 0:
        raise ValidationError("Ledger debit and credit cannot be negative")

    with transaction.atomic():
        ledger = get_or_create_ledger(school)
        ledger = SchoolLedger.objects.select_for_update().get(pk=ledger.pk)

        last = ledger.last_entry()
        previous = last.balance if last else ZERO
        entry = LedgerEntry.objects.create(
            ledger=ledger,
            sequence=(last.sequence + 1) if last else 1,
            entry_type=entry_type,
            date=entry_date,
            month=month,
            year=year,
            debit=debit,
            credit=credit,
            balance=previous + debit - credit,
            reference_type=reference.__class__.__name__ if reference is not None else "",
            reference_id=reference.pk if reference is not None else None,
            reference_number=_reference_number(reference),
            description=description,
            metadata=metadata or {},
            created_by=user,
        )

        ledger.current_balance = entry.balance
        ledger.save(update_fields=["current_balance"])
        _roll_into_summary(ledger, entry)

    logger.debug(
        "Ledger %s #%s %s Dr %s Cr %s -> %s",
        ledger.pk, entry.sequence, entry_type, debit, credit, entry.balance,
    )
    return entry


def _reference_number(reference):
    for attr in ("invoice_number", "payment_number"):
        value = getattr(reference, attr, None)
        if value:
            return value
    return ""


def _opening_balance(ledger, month, year, exclude_pk):
    """Balance of the last entry strictly before (month, year)."""
    before = (
        ledger.entries.filter(Q(year__lt=year) | Q(year=year, month__lt=month))
        .exclude(pk=exclude_pk)
        .order_by("-sequence")
        .first()
    )
    return before.balance if before else ZERO


def _roll_into_summary(ledger, entry):
    summary = (
        LedgerMonthlySummary.objects.select_for_update()
        .filter(ledger=ledger, month=entry.month, year=entry.year)
        .first()
    )
    if summary is None:
        summary = LedgerMonthlySummary(
            ledger=ledger,
            month=entry.month,
            year=entry.year,
            opening_balance=_opening_balance(
                ledger, entry.month, entry.year, entry.pk),
        )

    if entry.entry_type == "invoice":
        summary.total_invoiced += entry.debit - entry.credit
    elif entry.entry_type == "payment":
        summary.total_paid += entry.credit - entry.debit
    else:
        summary.net_adjustments += entry.debit - entry.credit
    summary.recompute_closing()
    summary.save()


# ----------------------------
# Typed postings
# ----------------------------
def post_invoice_entry(invoice, user=None):
    return add_entry(
        invoice.school,
        entry_type="invoice",
        entry_date=invoice.invoice_date,
        month=invoice.month,
        year=invoice.year,
        debit=invoice.grand_total,
        reference=invoice,
        description=f"Invoice {invoice.invoice_number} for {invoice.month:02d}/{invoice.year}",
        metadata={"previous_due": str(invoice.previous_due)},
        user=user,
    )


def post_payment_entry(payment, user=None):
    return add_entry(
        payment.school,
        entry_type="payment",
        entry_date=payment.payment_date,
        month=payment.payment_date.month,
        year=payment.payment_date.year,
        credit=payment.amount,
        reference=payment,
        description=f"Payment {payment.payment_number} ({payment.method}) "
                    f"against {payment.invoice.invoice_number}",
        user=user,
    )


def post_invoice_revision(invoice, delta, user=None, reason=""):
    """Offsetting entry after a verification changed the grand total."""
    if delta == 0:
        return None
    return add_entry(
        invoice.school,
        entry_type="adjustment",
        entry_date=timezone.localdate(),
        month=invoice.month,
        year=invoice.year,
        debit=delta if delta > 0 else ZERO,
        credit=-delta if delta < 0 else ZERO,
        reference=invoice,
        description=reason or f"Revision of invoice {invoice.invoice_number}",
        user=user,
    )


def post_memo(invoice, description, user=None):
    """Zero-amount entry that only leaves a trace in the ledger."""
    return add_entry(
        invoice.school,
        entry_type="memo",
        entry_date=timezone.localdate(),
        month=invoice.month,
        year=invoice.year,
        reference=invoice,
        description=description,
        user=user,
    )


def post_adjustment(school, *, debit=ZERO, credit=ZERO, reason, user=None,
                    entry_date=None, reference=None):
    """
    Manual correction. Exactly one side must be positive; history is
    never edited, so this is the only way to reverse a movement.
    """
    debit, credit = round_cents(debit), round_cents(credit)
    if (debit > 0) == (credit > 0):
        raise ValidationError("Adjustment needs exactly one of debit or credit > 0")
    if not reason:
        raise ValidationError("Adjustment reason is required")
    entry_date = entry_date or timezone.localdate()

    with transaction.atomic():
        entry = add_entry(
            school,
            entry_type="adjustment",
            entry_date=entry_date,
            month=entry_date.month,
            year=entry_date.year,
            debit=debit,
            credit=credit,
            reference=reference,
            description=reason,
            user=user,
        )
        log_action(
            action="ledger_adjustment",
            instance=entry,
            user=user,
            school=school,
            changes={"debit": str(debit), "credit": str(credit), "reason": reason},
        )
    logger.info("Adjustment on school %s: Dr %s Cr %s", school.pk, debit, credit)
    return entry


# ----------------------------
# Read surface
# ----------------------------
def get_ledger(school, date_from=None, date_to=None):
    ledger = SchoolLedger.objects.filter(school=school).first()
    if ledger is None:
        return {"school": school.pk, "entries": [], "current_balance": ZERO}
    entries = ledger.entries.order_by("sequence")
    if date_from:
        entries = entries.filter(date__gte=date_from)
    if date_to:
        entries = entries.filter(date__lte=date_to)
    return {
        "school": school.pk,
        "entries": list(entries),
        "current_balance": ledger.current_balance,
    }


def get_monthly_summary(school, year):
    summaries = LedgerMonthlySummary.objects.filter(
        ledger__school=school, year=year
    ).order_by("month")
    return [s.as_dict() for s in summaries]
