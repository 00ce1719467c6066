import logging

from celery import shared_task
from django.contrib.auth import get_user_model
from django.utils import timezone

logger = logging.getLogger(__name__)


def _actor(actor_id):
    if actor_id is None:
        return None
    return get_user_model().objects.filter(pk=actor_id).first()


@shared_task  # register this function as a Celery task
def generate_monthly_invoices(month=None, year=None, actor_id=None):
    """
    Bill every active school. Without a period it bills the month
    before today, which is what the 1st-of-month beat entry relies on.
    """
    # import services lazily to avoid circular imports at module import time
    from .services.invoices import generate_for_period
    from .services.periods import previous_month

    if month is None or year is None:
        today = timezone.localdate()
        month, year = previous_month(today.month, today.year)

    results = generate_for_period(month, year, user=_actor(actor_id))
    # results travel through the broker, keep them JSON-friendly
    for row in results["successful"]:
        row["amount"] = str(row["amount"])
    logger.info(
        "Monthly invoice run %02d/%s finished: %s ok, %s failed",
        month, year, len(results["successful"]), len(results["failed"]),
    )
    return results


@shared_task
def mark_overdue_invoices():
    from .services.carry_forward import mark_overdue

    return mark_overdue()
