import logging
from datetime import date

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from ..dto import VerificationRequest
from ..exceptions import (BillingError, DuplicateInvoiceError,
                          InvalidTransitionError, NotBillableError,
                          error_message)
from ..models import (Invoice, InvoiceAdjustment, InvoiceLine,
                      InvoiceVerification, School)
from ..money import ZERO
from .audit_helper import log_action
from .billing import (billable_days_for, calculate_school_billing,
                      line_taxes, prorate)
from .carry_forward import calculate_carry_forward
from .delivery import get_delivery_backend
from .ledger import post_invoice_entry, post_invoice_revision, post_memo
from .numbering import next_invoice_number
from .periods import due_date, month_name, previous_month, validate_period

logger = logging.getLogger(__name__)

PENDING_STATUSES = ("verified", "re_verified", "sent", "overdue")
REVERIFIABLE_STATUSES = ("verified", "re_verified", "sent", "overdue")
SENDABLE_STATUSES = ("verified", "re_verified", "overdue")

# totals rewritten by a verification
TOTAL_FIELDS = [
    "subtotal", "tds_percent", "gst_percent", "tds_amount", "gst_amount",
    "round_off", "grand_total", "total_payable", "balance_due", "notes",
]
LINE_VERIFY_FIELDS = [
    "leave_days", "billable_days", "amount",
    "tds_percent", "tds_amount", "gst_percent", "gst_amount",
]
PERCENT_LABELS = {"tds_percent": "TDS", "gst_percent": "GST"}


# ----------------------------
# Generation
# ----------------------------
def generate_invoice(school, month, year, user=None, status=None) -> Invoice:
    """
    Bill one school for one period.

    The invoice, its lines, its number and its ledger debit commit
    together. The partial unique index on live invoices is the real
    duplicate guard; the pre-check only gives a cleaner error.
    """
    validate_period(month, year)
    status = status or settings.INVOICE_DEFAULT_STATUS
    if status not in ("draft", "generated"):
        raise ValidationError(f"Invoices start as draft or generated, not {status!r}")

    if Invoice.objects.live().for_period(school, month, year).exists():
        raise DuplicateInvoiceError(
            f"Invoice already exists for {school} {month_name(month)} {year}")

    lines = calculate_school_billing(school, month, year)
    if not lines:
        raise NotBillableError(
            f"No billable employees at {school} for {month_name(month)} {year}")

    try:
        with transaction.atomic():
            invoice_date = timezone.localdate()
            invoice = Invoice.objects.create(
                invoice_number=next_invoice_number(month, year),
                school=school,
                school_name=school.name,
                month=month,
                year=year,
                previous_due=calculate_carry_forward(school, month, year),
                status=status,
                invoice_date=invoice_date,
                due_date=due_date(invoice_date),
                terms=f"Payment due within {settings.INVOICE_DUE_DAYS} days",
                generated_by=user,
            )
            InvoiceLine.objects.bulk_create([
                InvoiceLine(invoice=invoice, position=pos, **line.as_model_kwargs())
                for pos, line in enumerate(lines, start=1)
            ])
            invoice.recalc_totals()
            invoice.save(update_fields=TOTAL_FIELDS + ["updated_at"])

            post_invoice_entry(invoice, user=user)
            log_action(
                action="generate",
                instance=invoice,
                user=user,
                changes={
                    "period": f"{month:02d}/{year}",
                    "lines": len(lines),
                    "grand_total": str(invoice.grand_total),
                    "previous_due": str(invoice.previous_due),
                },
            )
    except IntegrityError:
        # lost a race with a concurrent generator for the same period
        if Invoice.objects.live().for_period(school, month, year).exists():
            raise DuplicateInvoiceError(
                f"Invoice already exists for {school} {month_name(month)} {year}")
        raise

    logger.info(
        "Generated invoice %s for school %s %02d/%s: %s line(s), payable %s",
        invoice.invoice_number, school.pk, month, year, len(lines),
        invoice.total_payable,
    )
    return invoice


def generate_for_period(month, year, user=None):
    """
    Generate invoices for every active school. Each school runs in its
    own transaction; a failure is reported and the batch carries on.
    """
    validate_period(month, year)
    results = {"successful": [], "failed": []}
    for school in School.objects.filter(status="active").order_by("name"):
        try:
            invoice = generate_invoice(school, month, year, user=user)
        except (BillingError, ValidationError) as exc:
            logger.warning(
                "No invoice for school %s %02d/%s: %s",
                school.pk, month, year, error_message(exc),
            )
            results["failed"].append(
                {"school": school.name, "school_id": school.pk,
                 "reason": error_message(exc)})
        except Exception as exc:
            logger.exception(
                "Invoice generation crashed for school %s %02d/%s",
                school.pk, month, year,
            )
            results["failed"].append(
                {"school": school.name, "school_id": school.pk,
                 "reason": error_message(exc)})
        else:
            results["successful"].append({
                "school": school.name,
                "school_id": school.pk,
                "invoice_number": invoice.invoice_number,
                "amount": invoice.total_payable,
            })

    logger.info(
        "Period %02d/%s: %s invoice(s) generated, %s failed",
        month, year, len(results["successful"]), len(results["failed"]),
    )
    return results


def promote_draft(invoice_id, user=None) -> Invoice:
    with transaction.atomic():
        invoice = Invoice.objects.select_for_update().get(pk=invoice_id)
        invoice.transition_to("generated")
        log_action(action="promote", instance=invoice, user=user,
                   changes={"status": ["draft", "generated"]})
    logger.info("Invoice %s promoted to generated", invoice.invoice_number)
    return invoice


# ----------------------------
# Verification
# ----------------------------
def _apply_verification(invoice, request: VerificationRequest, user):
    """
    Apply tax and leave overrides to the invoice and its lines, record
    one InvoiceAdjustment per changed value. Returns the human-readable
    changes and the grand total delta. Lines are recomputed against the working
    days they were generated with.
    """
    lines = {line.pk: line for line in invoice.lines.select_for_update()}
    adjustments, changes = [], []

    for field, label in PERCENT_LABELS.items():
        new = getattr(request, field)
        if new is None:
            continue
        if not 0 <= new <= 100:
            raise ValidationError(f"{label} percent must be between 0 and 100")
        current = getattr(invoice, field)
        if current is None:
            # no invoice-level rate yet; unchanged if every line already has it
            if all(getattr(line, field) == new for line in lines.values()):
                continue
        elif current == new:
            continue
        adjustments.append(InvoiceAdjustment(
            invoice=invoice, field=field, original_value=current,
            new_value=new, reason=request.reason, adjusted_by=user,
        ))
        shown = f"{current}%" if current is not None else "per-employee rates"
        changes.append(f"{label} changed from {shown} to {new}%")
        setattr(invoice, field, new)
        for line in lines.values():
            setattr(line, field, new)

    for override in request.leave_overrides:
        line = lines.get(override.line_id)
        if line is None:
            raise ValidationError(
                f"Line {override.line_id} is not on invoice {invoice.invoice_number}")
        if not 0 <= override.leave_days <= line.deployed_days:
            raise ValidationError(
                f"Leave days for {line.employee_name} must be between 0 and "
                f"{line.deployed_days}")
        if override.leave_days == line.leave_days:
            continue
        adjustments.append(InvoiceAdjustment(
            invoice=invoice, line=line, field="leave_days",
            original_value=line.leave_days, new_value=override.leave_days,
            reason=override.reason or request.reason, adjusted_by=user,
        ))
        changes.append(
            f"{line.employee_name}: leave days changed from "
            f"{line.leave_days} to {override.leave_days}")
        line.leave_days = override.leave_days
        line.billable_days = billable_days_for(line.deployed_days, line.leave_days)
        _per_day, line.amount = prorate(
            line.monthly_rate, line.working_days, line.billable_days)

    for line in lines.values():
        line.tds_amount, line.gst_amount = line_taxes(
            line.amount, line.tds_percent, line.gst_percent)
    InvoiceLine.objects.bulk_update(lines.values(), LINE_VERIFY_FIELDS)
    InvoiceAdjustment.objects.bulk_create(adjustments)

    if request.notes:
        invoice.notes = request.notes
    old_total = invoice.grand_total
    invoice.recalc_totals()
    return changes, invoice.grand_total - old_total


def _finish_verification(invoice, new_status, changes, delta, request, user):
    invoice.verified_by = user
    invoice.verified_at = timezone.now()
    invoice.transition_to(
        new_status, update_fields=TOTAL_FIELDS + ["verified_by", "verified_at"])
    label = "Re-verification" if new_status == "re_verified" else "Verification"
    post_invoice_revision(
        invoice, delta, user=user,
        reason=f"{label} of invoice {invoice.invoice_number}")
    InvoiceVerification.objects.create(
        invoice=invoice, status=new_status, changes=changes,
        notes=request.notes, verified_by=user,
    )
    log_action(action=new_status, instance=invoice, user=user,
               changes={"changes": changes})


def verify_invoice(invoice_id, request: VerificationRequest | None = None,
                   user=None) -> Invoice:
    request = request or VerificationRequest()
    with transaction.atomic():
        invoice = Invoice.objects.select_for_update().get(pk=invoice_id)
        if invoice.status != "generated":
            raise InvalidTransitionError(
                f"Only generated invoices can be verified "
                f"({invoice.invoice_number} is {invoice.status})")
        changes, delta = _apply_verification(invoice, request, user)
        _finish_verification(invoice, "verified", changes, delta, request, user)

    logger.info("Invoice %s verified with %s change(s)",
                invoice.invoice_number, len(changes))
    return invoice


def reverify_invoice(invoice_id, request: VerificationRequest | None = None,
                     user=None, confirm=False) -> Invoice:
    """
    Correct an already verified invoice. An invoice that has been sent
    (even if since relabelled overdue) has already reached the school,
    so confirm=True is required; it stays locked.
    """
    request = request or VerificationRequest()
    with transaction.atomic():
        invoice = Invoice.objects.select_for_update().get(pk=invoice_id)
        if invoice.status not in REVERIFIABLE_STATUSES:
            raise InvalidTransitionError(
                f"Cannot re-verify a {invoice.status} invoice")
        if invoice.sent_at and not confirm:
            raise ValidationError(
                "Invoice has already been sent; re-verification must be confirmed")
        changes, delta = _apply_verification(invoice, request, user)
        if invoice.total_payable < invoice.paid_amount:
            raise ValidationError(
                f"Re-verified total {invoice.total_payable} is below the "
                f"{invoice.paid_amount} already paid")
        _finish_verification(invoice, "re_verified", changes, delta, request, user)

    logger.info("Invoice %s re-verified with %s change(s)",
                invoice.invoice_number, len(changes))
    return invoice


# ----------------------------
# Sending
# ----------------------------
def build_invoice_document(invoice):
    """JSON-ready snapshot of the invoice as delivered."""
    school = invoice.school
    return {
        "invoice_number": invoice.invoice_number,
        "invoice_date": invoice.invoice_date.isoformat(),
        "due_date": invoice.due_date.isoformat(),
        "period": {
            "month": invoice.month,
            "year": invoice.year,
            "label": f"{month_name(invoice.month)} {invoice.year}",
        },
        "school": {
            "id": school.pk,
            "name": invoice.school_name,
            "city": school.city,
            "address": school.address,
            "contact_person": school.contact_person_name,
            "email": school.email,
        },
        "lines": [
            {
                "employee_code": line.employee_code,
                "employee_name": line.employee_name,
                "designation": line.designation,
                "monthly_rate": str(line.monthly_rate),
                "working_days": line.working_days,
                "deployed_days": line.deployed_days,
                "leave_days": line.leave_days,
                "billable_days": line.billable_days,
                "per_day_rate": str(line.per_day_rate),
                "amount": str(line.amount),
                "tds_percent": str(line.tds_percent),
                "tds_amount": str(line.tds_amount),
                "gst_percent": str(line.gst_percent),
                "gst_amount": str(line.gst_amount),
            }
            for line in invoice.lines.order_by("position")
        ],
        "totals": {
            "subtotal": str(invoice.subtotal),
            "tds_amount": str(invoice.tds_amount),
            "gst_amount": str(invoice.gst_amount),
            "round_off": str(invoice.round_off),
            "grand_total": str(invoice.grand_total),
            "previous_due": str(invoice.previous_due),
            "total_payable": str(invoice.total_payable),
            "paid_amount": str(invoice.paid_amount),
            "balance_due": str(invoice.balance_due),
        },
        "terms": invoice.terms,
        "notes": invoice.notes,
    }


def send_invoice(invoice_id, user=None, backend=None) -> Invoice:
    """Deliver a verified invoice and lock it."""
    with transaction.atomic():
        invoice = (
            Invoice.objects.select_for_update().select_related("school")
            .get(pk=invoice_id)
        )
        if invoice.status not in SENDABLE_STATUSES:
            raise InvalidTransitionError(
                f"Only verified invoices can be sent "
                f"({invoice.invoice_number} is {invoice.status})")
        document = build_invoice_document(invoice)
        backend = backend or get_delivery_backend()
        reference = backend.deliver(invoice, document)

        invoice.sent_document = document
        invoice.delivery_reference = reference or ""
        invoice.sent_by = user
        invoice.sent_at = timezone.now()
        invoice.is_locked = True
        invoice.transition_to("sent", update_fields=[
            "sent_document", "delivery_reference", "sent_by", "sent_at", "is_locked",
        ])
        log_action(action="send", instance=invoice, user=user,
                   changes={"delivery_reference": invoice.delivery_reference})

    logger.info("Invoice %s sent (ref %s)", invoice.invoice_number,
                invoice.delivery_reference)
    return invoice


def send_invoices_bulk(invoice_ids, user=None, backend=None):
    backend = backend or get_delivery_backend()
    results = {"sent": [], "failed": []}
    for invoice_id in invoice_ids:
        try:
            invoice = send_invoice(invoice_id, user=user, backend=backend)
        except (BillingError, ValidationError, Invoice.DoesNotExist) as exc:
            logger.warning("Invoice %s not sent: %s", invoice_id, error_message(exc))
            results["failed"].append(
                {"invoice": invoice_id, "reason": error_message(exc)})
        else:
            results["sent"].append(invoice.invoice_number)
    return results


# ----------------------------
# Cancellation
# ----------------------------
def cancel_invoice(invoice_id, user=None, reason="") -> Invoice:
    """
    Cancel and lock. Earlier ledger movements stay as they are; only a
    zero-amount memo is written. Reversing them takes a manual adjustment.
    """
    with transaction.atomic():
        invoice = Invoice.objects.select_for_update().get(pk=invoice_id)
        previous = invoice.status
        invoice.cancelled_by = user
        invoice.cancelled_at = timezone.now()
        invoice.cancellation_reason = reason
        invoice.is_locked = True
        invoice.transition_to("cancelled", update_fields=[
            "cancelled_by", "cancelled_at", "cancellation_reason", "is_locked",
        ])
        post_memo(
            invoice,
            f"Invoice {invoice.invoice_number} cancelled"
            + (f": {reason}" if reason else ""),
            user=user,
        )
        log_action(action="cancel", instance=invoice, user=user,
                   changes={"status": [previous, "cancelled"], "reason": reason})

    logger.info("Invoice %s cancelled (was %s)", invoice.invoice_number, previous)
    return invoice


# ----------------------------
# Reporting
# ----------------------------
def pending_invoices():
    return (
        Invoice.objects.filter(status__in=PENDING_STATUSES, balance_due__gt=0)
        .select_related("school")
        .order_by("due_date", "invoice_number")
    )


def invoice_stats(year=None, month=None):
    """Counts and amounts per status, headline totals and a 12-period trend."""
    invoices = Invoice.objects.all()
    if year:
        invoices = invoices.filter(year=year)
    if month:
        invoices = invoices.filter(month=month)

    by_status = {
        row["status"]: {"count": row["count"], "amount": row["amount"] or ZERO}
        for row in invoices.values("status").annotate(
            count=Count("id"), amount=Sum("total_payable"))
    }
    live = invoices.exclude(status="cancelled")
    totals = live.aggregate(
        invoiced=Sum("grand_total"),
        collected=Sum("paid_amount"),
        outstanding=Sum("balance_due"),
        overdue=Sum("balance_due", filter=Q(status="overdue")),
    )

    today = timezone.localdate()
    end_month, end_year = month or today.month, year or today.year
    periods = []
    m, y = end_month, end_year
    for _ in range(12):
        periods.append((m, y))
        m, y = previous_month(m, y)
    trend = []
    for m, y in reversed(periods):
        agg = Invoice.objects.live().filter(month=m, year=y).aggregate(
            count=Count("id"), invoiced=Sum("grand_total"), collected=Sum("paid_amount"))
        trend.append({
            "month": m,
            "year": y,
            "label": date(y, m, 1).strftime("%b %Y"),
            "count": agg["count"],
            "invoiced": agg["invoiced"] or ZERO,
            "collected": agg["collected"] or ZERO,
        })

    return {
        "by_status": by_status,
        "total_invoices": sum(v["count"] for v in by_status.values()),
        "invoiced": totals["invoiced"] or ZERO,
        "collected": totals["collected"] or ZERO,
        "outstanding": totals["outstanding"] or ZERO,
        "overdue": totals["overdue"] or ZERO,
        "trend": trend,
    }
