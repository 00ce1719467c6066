import datetime
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.test import override_settings

from ..money import percent_of, round_whole
from ..services.periods import (due_date, is_date_in_month, month_bounds,
                                month_name, overlap_days, previous_month,
                                validate_period)


def test_month_bounds_handles_leap_february():
    assert month_bounds(2, 2024) == (datetime.date(2024, 2, 1), datetime.date(2024, 2, 29))
    assert month_bounds(2, 2023)[1] == datetime.date(2023, 2, 28)


@pytest.mark.parametrize("month, year", [(0, 2024), (13, 2024), ("3", 2024), (3, 1999)])
def test_invalid_periods_are_rejected(month, year):
    with pytest.raises(ValidationError):
        validate_period(month, year)


def test_previous_month_wraps_year():
    assert previous_month(1, 2024) == (12, 2023)
    assert previous_month(7, 2024) == (6, 2024)


def test_overlap_days_is_inclusive_and_open_ended():
    first, last = month_bounds(3, 2024)
    # open posting started mid month
    assert overlap_days(datetime.date(2024, 3, 16), None, first, last) == 16
    # closed before the month
    assert overlap_days(datetime.date(2024, 1, 1), datetime.date(2024, 2, 29), first, last) == 0
    # single day
    assert overlap_days(datetime.date(2024, 3, 31), datetime.date(2024, 4, 30), first, last) == 1


def test_month_helpers():
    assert month_name(3) == "March"
    assert is_date_in_month(datetime.date(2024, 3, 31), 3, 2024)
    assert not is_date_in_month(datetime.date(2024, 4, 1), 3, 2024)


@override_settings(INVOICE_DUE_DAYS=15)
def test_due_date_uses_configured_days():
    assert due_date(datetime.date(2024, 4, 1)) == datetime.date(2024, 4, 16)
    assert due_date(datetime.date(2024, 4, 1), days=30) == datetime.date(2024, 5, 1)


def test_rounding_is_half_up_to_whole_units():
    assert round_whole(Decimal("27692.307")) == Decimal("27692.00")
    assert round_whole(Decimal("0.5")) == Decimal("1.00")
    assert percent_of(Decimal("27692.00"), Decimal("10")) == Decimal("2769.00")
