import datetime
from decimal import Decimal
from unittest import mock

from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.test import TestCase

from ..dto import PaymentRequest
from ..exceptions import ConflictError, InvalidTransitionError
from ..models import Payment, SchoolLedger
from ..services import ledger as ledger_service
from ..services.invoices import (cancel_invoice, generate_invoice,
                                 send_invoice, verify_invoice)
from ..services.ledger import get_monthly_summary
from ..services.payment import (bounce_payment, clear_payment,
                                payment_summary, record_payment)
from .factories import approved_leave, make_employee, make_school, post

APRIL_5 = datetime.date(2024, 4, 5)


class PaymentTests(TestCase):
    def setUp(self):
        self.school = make_school()
        employee = make_employee()
        post(employee, self.school)
        approved_leave(employee, datetime.date(2024, 3, 11), datetime.date(2024, 3, 12))
        invoice = generate_invoice(self.school, 3, 2024)
        self.invoice = verify_invoice(invoice.pk)  # payable 27,692

    def pay(self, amount, method="cash", **kwargs):
        kwargs.setdefault("payment_date", APRIL_5)
        return record_payment(PaymentRequest(
            invoice_id=self.invoice.pk, amount=Decimal(amount), method=method, **kwargs))

    def ledger_balance(self):
        return SchoolLedger.objects.get(school=self.school).current_balance

    def test_overpayment_is_rejected(self):
        with self.assertRaises(ValidationError):
            self.pay("27693")
        self.assertFalse(Payment.objects.exists())
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.balance_due, Decimal("27692.00"))

    def test_exact_payment_settles_invoice(self):
        payment = self.pay("27692")

        self.assertEqual(payment.payment_number, "PAY-202404-0001")
        self.assertEqual(payment.status, "cleared")
        self.assertEqual(payment.remaining_balance, Decimal("0.00"))
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, "paid")
        self.assertEqual(self.invoice.balance_due, Decimal("0.00"))
        self.assertIsNotNone(self.invoice.paid_at)
        self.assertEqual(self.ledger_balance(), Decimal("0.00"))

        with self.assertRaises(ConflictError):
            self.pay("1")

    def test_partial_payment_keeps_status(self):
        payment = self.pay("10000")

        self.assertEqual(payment.remaining_balance, Decimal("17692.00"))
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, "verified")
        self.assertEqual(self.invoice.paid_amount, Decimal("10000.00"))
        self.assertEqual(self.invoice.balance_due, Decimal("17692.00"))
        self.assertEqual(self.ledger_balance(), Decimal("17692.00"))

        # credit lands in the month it was received
        april = [m for m in get_monthly_summary(self.school, 2024) if m["month"] == 4][0]
        self.assertEqual(april["paid"], Decimal("10000.00"))
        self.assertEqual(april["opening"], Decimal("27692.00"))
        self.assertEqual(april["closing"], Decimal("17692.00"))

    def test_invalid_amount_or_method(self):
        with self.assertRaises(ValidationError):
            self.pay("0")
        with self.assertRaises(ValidationError):
            self.pay("-5")
        with self.assertRaises(ValidationError):
            self.pay("100", method="barter")

    def test_cancelled_invoice_takes_no_payment(self):
        cancel_invoice(self.invoice.pk, reason="Raised in error")
        with self.assertRaises(ConflictError):
            self.pay("100")

    def test_cheque_waits_for_clearing(self):
        payment = self.pay("5000", method="cheque", reference_number="004512",
                           bank_name="State Bank")
        self.assertEqual(payment.status, "pending")
        self.assertIsNone(payment.verified_at)
        # the balance moves on receipt
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.balance_due, Decimal("22692.00"))

        payment = clear_payment(payment.pk)
        self.assertEqual(payment.status, "cleared")
        self.assertIsNotNone(payment.verified_at)
        with self.assertRaises(InvalidTransitionError):
            clear_payment(payment.pk)
        with self.assertRaises(InvalidTransitionError):
            bounce_payment(payment.pk)

    def test_bounced_cheque_reopens_invoice(self):
        payment = self.pay("27692", method="cheque", reference_number="004513")
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, "paid")

        payment = bounce_payment(payment.pk, reason="Insufficient funds")
        self.assertEqual(payment.status, "bounced")
        self.assertIn("Insufficient funds", payment.remarks)

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, "verified")
        self.assertEqual(self.invoice.paid_amount, Decimal("0.00"))
        self.assertEqual(self.invoice.balance_due, Decimal("27692.00"))
        self.assertIsNone(self.invoice.paid_at)
        # credit and offsetting debit both stay in the ledger
        self.assertEqual(self.ledger_balance(), Decimal("27692.00"))

    def test_bounce_on_sent_invoice_returns_to_sent(self):
        send_invoice(self.invoice.pk)
        payment = self.pay("27692", method="cheque")
        bounce_payment(payment.pk)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, "sent")
        self.assertTrue(self.invoice.is_locked)

    def test_partial_payment_on_sent_invoice(self):
        send_invoice(self.invoice.pk)
        self.pay("10000")
        self.invoice.refresh_from_db()
        self.assertEqual((self.invoice.status, self.invoice.is_locked), ("sent", True))
        self.assertEqual(self.invoice.balance_due, Decimal("17692.00"))

    def test_ledger_failure_leaves_no_payment(self):
        with mock.patch.object(ledger_service, "add_entry",
                               side_effect=DatabaseError("ledger unavailable")):
            with self.assertRaises(DatabaseError):
                self.pay("10000")

        self.assertFalse(Payment.objects.exists())
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, "verified")
        self.assertEqual(self.invoice.paid_amount, Decimal("0.00"))
        self.assertEqual(self.invoice.balance_due, Decimal("27692.00"))
        self.assertEqual(self.ledger_balance(), Decimal("27692.00"))
        # numbering restarts where it was
        self.assertEqual(self.pay("10000").payment_number, "PAY-202404-0001")

    def test_ledger_failure_on_full_payment_keeps_invoice_open(self):
        with mock.patch.object(ledger_service, "add_entry",
                               side_effect=DatabaseError("ledger unavailable")):
            with self.assertRaises(DatabaseError):
                self.pay("27692")
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, "verified")
        self.assertIsNone(self.invoice.paid_at)

    def test_non_finite_amount_is_rejected_at_the_boundary(self):
        for raw in ("NaN", "Infinity", "-Infinity"):
            with self.assertRaises(ValidationError):
                PaymentRequest.from_payload(self.invoice.pk, {"amount": raw})

    def test_summary_excludes_bounced(self):
        self.pay("10000")
        self.pay("5000", method="cheque")
        bounced = self.pay("2000", method="cheque")
        bounce_payment(bounced.pk)

        summary = payment_summary(2024, 4)
        self.assertEqual(summary["total_count"], 2)
        self.assertEqual(summary["total_received"], Decimal("15000.00"))
        self.assertEqual(summary["by_method"]["cash"]["amount"], Decimal("10000.00"))
        self.assertEqual(summary["by_method"]["cheque"]["amount"], Decimal("5000.00"))
        self.assertEqual(summary["by_status"]["bounced"]["count"], 1)
        self.assertEqual(payment_summary(2024, 5)["total_count"], 0)
