import datetime
from decimal import Decimal

from django.test import TestCase, override_settings

from ..models import EmployeePosting, Holiday
from ..services.billing import (billable_days_for, calculate_school_billing,
                                prorate)
from .factories import approved_leave, make_employee, make_school, post


class BillingCalculatorTests(TestCase):
    def setUp(self):
        self.school = make_school()
        self.employee = make_employee()

    def test_proration_example(self):
        """30,000 a month, 26 working days, 2 leave days -> 27,692."""
        post(self.employee, self.school)  # 6..31 March
        approved_leave(self.employee, datetime.date(2024, 3, 11), datetime.date(2024, 3, 12))

        [line] = calculate_school_billing(self.school, 3, 2024)
        self.assertEqual(line.working_days, 26)
        self.assertEqual(line.deployed_days, 26)
        self.assertEqual(line.leave_days, 2)
        self.assertEqual(line.billable_days, 24)
        self.assertEqual(line.per_day_rate, Decimal("1153.85"))
        self.assertEqual(line.amount, Decimal("27692.00"))
        self.assertEqual(line.employee_code, "EMP-001")
        self.assertEqual(line.join_date, datetime.date(2024, 3, 6))

    def test_full_month_bills_every_deployed_day(self):
        # fixed mode: 31 deployed days at 30,000 / 26
        post(self.employee, self.school, start=datetime.date(2024, 3, 1))

        [line] = calculate_school_billing(self.school, 3, 2024)
        self.assertEqual(line.deployed_days, 31)
        self.assertEqual(line.billable_days, 31)
        self.assertEqual(line.amount, Decimal("35769.00"))
        self.assertIsNone(line.join_date)

    def test_deployment_longer_than_working_days(self):
        post(self.employee, self.school, start=datetime.date(2024, 3, 3))

        [line] = calculate_school_billing(self.school, 3, 2024)
        self.assertEqual((line.deployed_days, line.billable_days), (29, 29))
        self.assertEqual(line.amount, Decimal("33462.00"))

    def test_billable_days_are_deployed_minus_leave(self):
        self.assertEqual(billable_days_for(31, 0), 31)
        self.assertEqual(billable_days_for(31, 2), 29)
        self.assertEqual(billable_days_for(3, 5), 0)

    def test_partial_month_from_join_date(self):
        post(self.employee, self.school, start=datetime.date(2024, 3, 16))

        [line] = calculate_school_billing(self.school, 3, 2024)
        self.assertEqual(line.deployed_days, 16)
        self.assertEqual(line.billable_days, 16)
        self.assertEqual(line.amount, Decimal("18462.00"))
        self.assertEqual(line.join_date, datetime.date(2024, 3, 16))

    def test_closed_posting_billed_until_end_date(self):
        EmployeePosting.objects.create(
            employee=self.employee, school=self.school,
            monthly_billing_salary=Decimal("30000.00"),
            start_date=datetime.date(2024, 1, 1),
            end_date=datetime.date(2024, 3, 10),
            status="resign", is_active=False,
        )
        [line] = calculate_school_billing(self.school, 3, 2024)
        self.assertEqual(line.deployed_days, 10)
        self.assertEqual(line.amount, Decimal("11538.00"))
        self.assertEqual(line.leave_date, datetime.date(2024, 3, 10))
        self.assertIsNone(line.join_date)

        # nothing left to bill the month after
        self.assertEqual(calculate_school_billing(self.school, 4, 2024), [])

    def test_fully_on_leave_is_dropped(self):
        post(self.employee, self.school, start=datetime.date(2024, 3, 25))
        approved_leave(self.employee, datetime.date(2024, 3, 25), datetime.date(2024, 3, 31))
        self.assertEqual(calculate_school_billing(self.school, 3, 2024), [])

    def test_only_approved_deductible_leave_counts(self):
        post(self.employee, self.school)
        approved_leave(self.employee, datetime.date(2024, 3, 11), datetime.date(2024, 3, 12),
                       leave_type="paid")
        approved_leave(self.employee, datetime.date(2024, 3, 13), datetime.date(2024, 3, 13),
                       status="pending")
        [line] = calculate_school_billing(self.school, 3, 2024)
        self.assertEqual(line.leave_days, 0)
        self.assertEqual(line.amount, Decimal("30000.00"))

    def test_holidays_are_not_counted_as_leave(self):
        post(self.employee, self.school)
        Holiday.objects.create(date=datetime.date(2024, 3, 12), name="Festival")
        approved_leave(self.employee, datetime.date(2024, 3, 11), datetime.date(2024, 3, 13))

        [line] = calculate_school_billing(self.school, 3, 2024)
        self.assertEqual(line.leave_days, 2)
        self.assertEqual(line.billable_days, 24)

    def test_leave_outside_deployment_is_ignored(self):
        post(self.employee, self.school, start=datetime.date(2024, 3, 16))
        approved_leave(self.employee, datetime.date(2024, 3, 10), datetime.date(2024, 3, 17))
        [line] = calculate_school_billing(self.school, 3, 2024)
        self.assertEqual(line.leave_days, 2)
        self.assertEqual(line.billable_days, 14)

    @override_settings(BILLING_WORKING_DAYS_MODE="calendar")
    def test_calendar_working_days_subtract_holidays(self):
        post(self.employee, self.school, start=datetime.date(2024, 3, 16))
        Holiday.objects.create(date=datetime.date(2024, 3, 25), name="Holi", school=self.school)
        # another school's holiday does not apply here
        Holiday.objects.create(date=datetime.date(2024, 3, 8), school=make_school("Other"))

        [line] = calculate_school_billing(self.school, 3, 2024)
        self.assertEqual(line.working_days, 30)
        self.assertEqual(line.per_day_rate, Decimal("1000.00"))
        self.assertEqual(line.billable_days, 16)
        self.assertEqual(line.amount, Decimal("16000.00"))

    def test_lines_carry_posting_taxes(self):
        post(self.employee, self.school, tds_percent=Decimal("10.00"),
             gst_percent=Decimal("18.00"))
        [line] = calculate_school_billing(self.school, 3, 2024)
        self.assertEqual(line.tds_amount, Decimal("3000.00"))
        self.assertEqual(line.gst_amount, Decimal("5400.00"))

    def test_prorate_rounds_each_line(self):
        per_day, amount = prorate(Decimal("25000.00"), 26, 3)
        self.assertEqual(per_day, Decimal("961.54"))
        self.assertEqual(amount, Decimal("2885.00"))
