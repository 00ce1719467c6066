import calendar
from datetime import date, timedelta

from django.conf import settings
from django.core.exceptions import ValidationError

"""
    Period arithmetic for billing. A period is a calendar (month, year);
    every range here is inclusive on both ends.
"""


def validate_period(month, year):
    if not isinstance(month, int) or not 1 <= month <= 12:
        raise ValidationError(f"Invalid month {month!r}: must be 1-12")
    if not isinstance(year, int) or not 2000 <= year <= 9999:
        raise ValidationError(f"Invalid year {year!r}")


def days_in_month(month, year):
    return calendar.monthrange(year, month)[1]


def month_bounds(month, year):
    """First and last day of the period."""
    validate_period(month, year)
    return date(year, month, 1), date(year, month, days_in_month(month, year))


def month_name(month):
    return calendar.month_name[month]


def previous_month(month, year):
    if month == 1:
        return 12, year - 1
    return month - 1, year


def is_date_in_month(d, month, year):
    return d.month == month and d.year == year


def overlap_days(start, end, range_start, range_end):
    """Whole days shared by [start, end] and [range_start, range_end].

    An open end (None) runs to the end of the range.
    """
    if end is None:
        end = range_end
    first = max(start, range_start)
    last = min(end, range_end)
    if last < first:
        return 0
    return (last - first).days + 1


def iter_days(start, end):
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def due_date(invoice_date, days=None):
    if days is None:
        days = settings.INVOICE_DUE_DAYS
    return invoice_date + timedelta(days=days)
