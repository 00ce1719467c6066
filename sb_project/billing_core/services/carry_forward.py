import logging

from django.db import transaction
from django.utils import timezone

from ..models import Invoice, SchoolLedger
from ..models.invoice import SETTLED_STATUSES
from ..money import ZERO
from .periods import previous_month

logger = logging.getLogger(__name__)

OVERDUE_CANDIDATE_STATUSES = ("sent", "verified", "re_verified")


def calculate_carry_forward(school, month, year):
    """
    Unpaid balance of the immediately preceding period's invoice.
    That balance already contains any earlier carry-forward, so only
    one period is consulted.
    """
    prev_month, prev_year = previous_month(month, year)
    previous = (
        Invoice.objects.live()
        .for_period(school, prev_month, prev_year)
        .filter(status__in=SETTLED_STATUSES)
        .only("balance_due")
        .first()
    )
    if previous is None:
        return ZERO
    return max(previous.balance_due, ZERO)


def mark_overdue(today=None):
    """Relabel unpaid invoices past their due date. Returns {"count": n}."""
    today = today or timezone.localdate()
    with transaction.atomic():
        count = Invoice.objects.filter(
            status__in=OVERDUE_CANDIDATE_STATUSES,
            due_date__lt=today,
            balance_due__gt=0,
        ).update(status="overdue", updated_at=timezone.now())
    logger.info("Overdue sweep on %s relabelled %s invoice(s)", today, count)
    return {"count": count}


def school_outstanding_balance(school):
    ledger = SchoolLedger.objects.filter(school=school).only("current_balance").first()
    return ledger.current_balance if ledger else ZERO
