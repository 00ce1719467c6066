import datetime
from decimal import Decimal

from django.test import TestCase

from ..dto import PaymentRequest
from ..services.carry_forward import (calculate_carry_forward,
                                      school_outstanding_balance)
from ..services.invoices import (cancel_invoice, generate_invoice,
                                 verify_invoice)
from ..services.payment import record_payment
from .factories import approved_leave, make_employee, make_school, post


class CarryForwardTests(TestCase):
    def setUp(self):
        self.school = make_school()
        employee = make_employee()
        post(employee, self.school)
        approved_leave(employee, datetime.date(2024, 3, 11), datetime.date(2024, 3, 12))

    def march(self, verify=True):
        invoice = generate_invoice(self.school, 3, 2024)
        if verify:
            invoice = verify_invoice(invoice.pk)
        return invoice

    def pay(self, invoice, amount):
        record_payment(PaymentRequest(
            invoice_id=invoice.pk, amount=Decimal(amount), method="cash",
            payment_date=datetime.date(2024, 4, 10)))

    def test_no_previous_invoice(self):
        self.assertEqual(calculate_carry_forward(self.school, 3, 2024), Decimal("0.00"))

    def test_unpaid_balance_moves_to_next_period(self):
        march = self.march()
        self.pay(march, "22692")

        april = generate_invoice(self.school, 4, 2024)
        self.assertEqual(april.previous_due, Decimal("5000.00"))
        self.assertEqual(april.grand_total, Decimal("34615.00"))
        self.assertEqual(april.total_payable, Decimal("39615.00"))
        self.assertEqual(april.balance_due, Decimal("39615.00"))
        # the ledger only ever carries each period's own charge
        self.assertEqual(school_outstanding_balance(self.school), Decimal("39615.00"))

    def test_only_the_immediately_preceding_period_counts(self):
        self.march()
        april = verify_invoice(generate_invoice(self.school, 4, 2024).pk)
        self.assertEqual(april.total_payable, Decimal("62307.00"))

        may = generate_invoice(self.school, 5, 2024)
        # March's balance is already inside April's
        self.assertEqual(may.previous_due, Decimal("62307.00"))
        self.assertEqual(may.total_payable, Decimal("98076.00"))

    def test_unverified_previous_invoice_is_ignored(self):
        self.march(verify=False)
        self.assertEqual(calculate_carry_forward(self.school, 4, 2024), Decimal("0.00"))

    def test_cancelled_previous_invoice_is_ignored(self):
        march = self.march()
        cancel_invoice(march.pk, reason="Rate disputed")
        self.assertEqual(calculate_carry_forward(self.school, 4, 2024), Decimal("0.00"))

    def test_paid_previous_invoice_carries_nothing(self):
        march = self.march()
        self.pay(march, "27692")
        self.assertEqual(calculate_carry_forward(self.school, 4, 2024), Decimal("0.00"))

    def test_january_looks_at_december(self):
        other = make_school("Lake View School")
        post(make_employee("EMP-003", "Meera Joshi"), other,
             start=datetime.date(2023, 12, 1))
        december = verify_invoice(generate_invoice(other, 12, 2023).pk)
        self.assertEqual(
            calculate_carry_forward(other, 1, 2024), december.balance_due)
        self.assertEqual(december.balance_due, Decimal("35769.00"))
