import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, Sum
from django.utils import timezone

from ..dto import PaymentRequest
from ..exceptions import ConflictError
from ..models import Invoice, Payment
from ..models.payment import PAYMENT_METHOD_CHOICES
from ..money import ZERO, round_cents
from .audit_helper import log_action
from .ledger import add_entry, post_payment_entry
from .numbering import next_payment_number

logger = logging.getLogger(__name__)

PAYMENT_METHODS = {code for code, _label in PAYMENT_METHOD_CHOICES}


# ----------------------------
# Payment-related workflows
# ----------------------------
def record_payment(request: PaymentRequest, user=None) -> Payment:
    """
    Apply a payment to an invoice.
    Locks the invoice row; the payment, the invoice balance and the
    ledger credit commit together.
    """
    if request.method not in PAYMENT_METHODS:
        raise ValidationError(f"Unknown payment method {request.method!r}")
    amount = round_cents(request.amount)
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than 0")

    with transaction.atomic():
        invoice = (
            Invoice.objects.select_for_update().select_related("school")
            .get(pk=request.invoice_id)
        )
        if invoice.status in ("paid", "cancelled"):
            raise ConflictError(
                f"Invoice {invoice.invoice_number} is {invoice.status}")
        if invoice.balance_due <= 0:
            raise ConflictError(
                f"Invoice {invoice.invoice_number} has no balance due")
        # Validation: prevent over-payment
        if amount > invoice.balance_due:
            raise ValidationError(
                f"Payment {amount} exceeds balance due {invoice.balance_due}")

        payment_date = request.payment_date or timezone.localdate()
        cleared = request.method == "cash"
        payment = Payment(
            payment_number=next_payment_number(payment_date),
            invoice=invoice,
            school=invoice.school,
            amount=amount,
            payment_date=payment_date,
            method=request.method,
            reference_number=request.reference_number,
            bank_name=request.bank_name,
            branch=request.branch,
            remarks=request.remarks,
            # cash needs no clearing
            status="cleared" if cleared else "pending",
            remaining_balance=invoice.balance_due - amount,
            received_by=user,
            verified_by=user if cleared else None,
            verified_at=timezone.now() if cleared else None,
        )
        payment.full_clean()
        payment.save()

        invoice.paid_amount += amount
        invoice.balance_due = invoice.total_payable - invoice.paid_amount
        fields = ["paid_amount", "balance_due"]
        if invoice.balance_due <= 0:
            invoice.balance_due = ZERO
            invoice.paid_at = timezone.now()
            invoice.transition_to("paid", update_fields=fields + ["paid_at"])
        else:
            invoice.save(update_fields=fields + ["updated_at"])

        post_payment_entry(payment, user=user)
        log_action(
            action="payment",
            instance=payment,
            user=user,
            changes={
                "invoice": invoice.invoice_number,
                "amount": str(amount),
                "method": payment.method,
                "balance_due": str(invoice.balance_due),
            },
        )

    logger.info(
        "Payment %s of %s recorded on %s, balance due %s",
        payment.payment_number, amount, invoice.invoice_number, invoice.balance_due,
    )
    return payment


def clear_payment(payment_id, user=None) -> Payment:
    with transaction.atomic():
        payment = Payment.objects.select_for_update().get(pk=payment_id)
        payment.transition_to("cleared")
        payment.verified_by = user
        payment.verified_at = timezone.now()
        payment.save(update_fields=["status", "verified_by", "verified_at"])
        log_action(action="clear_payment", instance=payment, user=user,
                   changes={"status": ["pending", "cleared"]})
    logger.info("Payment %s cleared", payment.payment_number)
    return payment


def _status_before_payment(invoice):
    if invoice.sent_at:
        return "sent"
    last = invoice.verification_history.order_by("-verified_at", "-id").first()
    return last.status if last else "generated"


def bounce_payment(payment_id, user=None, reason="") -> Payment:
    """
    The instrument did not clear: give the amount back to the invoice
    and offset the ledger credit with an adjustment debit.
    """
    with transaction.atomic():
        payment = Payment.objects.select_for_update().get(pk=payment_id)
        invoice = Invoice.objects.select_for_update().get(pk=payment.invoice_id)
        payment.transition_to("bounced")
        if reason:
            payment.remarks = f"{payment.remarks}\nBounced: {reason}".strip()
        payment.save(update_fields=["status", "remarks"])

        previous = invoice.status
        invoice.paid_amount -= payment.amount
        invoice.balance_due = invoice.total_payable - invoice.paid_amount
        if invoice.status == "paid":
            # paid is terminal for transition_to; a bounce is the one way back
            invoice.status = _status_before_payment(invoice)
            invoice.paid_at = None
        invoice.save(update_fields=[
            "paid_amount", "balance_due", "status", "paid_at", "updated_at",
        ], allow_locked_edit=True)

        today = timezone.localdate()
        add_entry(
            invoice.school,
            entry_type="adjustment",
            entry_date=today,
            month=today.month,
            year=today.year,
            debit=payment.amount,
            reference=payment,
            description=f"Payment {payment.payment_number} bounced"
                        + (f": {reason}" if reason else ""),
            user=user,
        )
        log_action(
            action="bounce_payment",
            instance=payment,
            user=user,
            changes={
                "amount": str(payment.amount),
                "invoice_status": [previous, invoice.status],
                "reason": reason,
            },
        )

    logger.warning(
        "Payment %s bounced, invoice %s back to %s with %s due",
        payment.payment_number, invoice.invoice_number, invoice.status,
        invoice.balance_due,
    )
    return payment


def payment_summary(year, month=None):
    """Received amounts by method and status; bounced payments excluded from totals."""
    payments = Payment.objects.filter(payment_date__year=year)
    if month:
        payments = payments.filter(payment_date__month=month)

    def _grouped(field, qs):
        return {
            row[field]: {"count": row["count"], "amount": row["amount"] or ZERO}
            for row in qs.values(field).annotate(count=Count("id"), amount=Sum("amount"))
        }

    received = payments.exclude(status="bounced")
    totals = received.aggregate(count=Count("id"), amount=Sum("amount"))
    return {
        "year": year,
        "month": month,
        "by_method": _grouped("method", received),
        "by_status": _grouped("status", payments),
        "total_count": totals["count"],
        "total_received": totals["amount"] or ZERO,
    }
