"""
Monthly billing calculator.

Turns the postings of one school that overlap a period into prorated
line items:

    deployed  = days the posting was in effect within the month
    leave     = approved, deductible leave days inside that window,
                holidays not counted
    billable  = max(0, deployed - leave)
    amount    = round(rate / working * billable)   (whole units, per line)

Nothing here writes to the database.
"""
import logging
from dataclasses import dataclass, asdict
from datetime import date
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.db.models import Q

from ..models import EmployeePosting, Holiday, Leave
from ..money import ZERO, percent_of, round_cents, round_whole, to_decimal
from .periods import (days_in_month, is_date_in_month, iter_days,
                      month_bounds, overlap_days)

logger = logging.getLogger(__name__)


@dataclass
class BillingLine:
    posting_id: int
    employee_id: int
    employee_name: str
    employee_code: str
    designation: str
    monthly_rate: Decimal
    deployed_days: int
    leave_days: int
    billable_days: int
    working_days: int
    per_day_rate: Decimal
    amount: Decimal
    tds_percent: Decimal
    tds_amount: Decimal
    gst_percent: Decimal
    gst_amount: Decimal
    join_date: Optional[date]
    leave_date: Optional[date]

    def as_model_kwargs(self):
        return asdict(self)


def holiday_dates(school, first, last):
    """Holidays in [first, last] for this school, global ones included."""
    return set(
        Holiday.objects.filter(date__range=(first, last))
        .filter(Q(school=school) | Q(school__isnull=True))
        .values_list("date", flat=True)
    )


def working_days_for(month, year, holidays=()):
    if settings.BILLING_WORKING_DAYS_MODE == "calendar":
        return days_in_month(month, year) - len(holidays)
    return settings.BILLING_WORKING_DAYS_PER_MONTH


def prorate(rate, working_days, billable_days):
    """Per-day rate (for display) and the whole-unit line amount."""
    rate = to_decimal(rate)
    if working_days <= 0:
        return ZERO, ZERO
    exact = rate / Decimal(working_days)
    return round_cents(exact), round_whole(exact * billable_days)


def billable_days_for(deployed, leave):
    return max(0, deployed - leave)


def deductible_leave_days(employee_id, window_start, window_end, holidays=()):
    """Distinct leave dates in the window; overlapping leaves count once."""
    days = set()
    leaves = Leave.objects.deductible_between(employee_id, window_start, window_end)
    for leave in leaves:
        start = max(leave.start_date, window_start)
        end = min(leave.end_date, window_end)
        days.update(d for d in iter_days(start, end) if d not in holidays)
    return len(days)


def line_taxes(amount, tds_percent, gst_percent):
    return percent_of(amount, tds_percent), percent_of(amount, gst_percent)


def calculate_school_billing(school, month, year):
    """Billable line items for `school` in (month, year), name order.

    Postings with a non-positive rate or nothing billable are skipped;
    an empty result means the school is not billable for the period.
    """
    first, last = month_bounds(month, year)
    holidays = holiday_dates(school, first, last)
    working = working_days_for(month, year, holidays)

    postings = (
        EmployeePosting.objects.for_school(school)
        .overlapping(first, last)
        .select_related("employee")
        .order_by("employee__full_name", "start_date")
    )

    lines = []
    for posting in postings:
        rate = posting.monthly_billing_salary
        if rate is None or rate <= 0:
            logger.warning(
                "Posting %s has no billing rate, skipped for %02d/%s",
                posting.pk, month, year,
            )
            continue

        deployed = overlap_days(posting.start_date, posting.end_date, first, last)
        if deployed == 0:
            continue
        window_start = max(posting.start_date, first)
        window_end = min(posting.end_date or last, last)
        leave = deductible_leave_days(
            posting.employee_id, window_start, window_end, holidays)
        billable = billable_days_for(deployed, leave)
        if billable == 0:
            logger.info(
                "Posting %s has no billable days for %02d/%s",
                posting.pk, month, year,
            )
            continue

        per_day, amount = prorate(rate, working, billable)
        tds, gst = line_taxes(amount, posting.tds_percent, posting.gst_percent)
        employee = posting.employee
        lines.append(BillingLine(
            posting_id=posting.pk,
            employee_id=employee.pk,
            employee_name=employee.full_name,
            employee_code=employee.employee_code,
            designation=employee.designation,
            monthly_rate=rate,
            deployed_days=deployed,
            leave_days=leave,
            billable_days=billable,
            working_days=working,
            per_day_rate=per_day,
            amount=amount,
            tds_percent=posting.tds_percent,
            tds_amount=tds,
            gst_percent=posting.gst_percent,
            gst_amount=gst,
            join_date=(posting.start_date
                       if is_date_in_month(posting.start_date, month, year) else None),
            leave_date=(posting.end_date
                        if posting.end_date and is_date_in_month(posting.end_date, month, year)
                        else None),
        ))
    return lines
