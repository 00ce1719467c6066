import datetime
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction
from django.test import TestCase

from ..models import AuditLog, LedgerEntry, SchoolLedger
from ..services.carry_forward import school_outstanding_balance
from ..services.ledger import (add_entry, get_ledger, get_monthly_summary,
                               post_adjustment)
from .factories import make_school


class LedgerTests(TestCase):
    def setUp(self):
        self.school = make_school()

    def _entry(self, day, debit="0", credit="0", entry_type="invoice"):
        return add_entry(
            self.school,
            entry_type=entry_type,
            entry_date=day,
            month=day.month,
            year=day.year,
            debit=Decimal(debit),
            credit=Decimal(credit),
        )

    def assertBalanceIdentity(self):
        ledger = SchoolLedger.objects.get(school=self.school)
        previous = Decimal("0.00")
        entries = list(ledger.entries.order_by("sequence"))
        for i, entry in enumerate(entries, start=1):
            self.assertEqual(entry.sequence, i)
            self.assertEqual(entry.balance, previous + entry.debit - entry.credit)
            previous = entry.balance
        self.assertEqual(ledger.current_balance, entries[-1].balance)

    def test_running_balance_identity(self):
        self._entry(datetime.date(2024, 3, 31), debit="27692")
        self._entry(datetime.date(2024, 4, 10), credit="20000", entry_type="payment")
        self._entry(datetime.date(2024, 4, 30), debit="30000")
        self._entry(datetime.date(2024, 5, 2), credit="500", entry_type="adjustment")

        self.assertBalanceIdentity()
        self.assertEqual(school_outstanding_balance(self.school), Decimal("37192.00"))

    def test_monthly_summary_seeds_opening_from_earlier_months(self):
        self._entry(datetime.date(2024, 3, 31), debit="1000")
        self._entry(datetime.date(2024, 4, 15), credit="400", entry_type="payment")
        self._entry(datetime.date(2024, 4, 20), debit="50", entry_type="adjustment")

        march, april = get_monthly_summary(self.school, 2024)
        self.assertEqual(march["closing"], Decimal("1000.00"))
        self.assertEqual(april["opening"], Decimal("1000.00"))
        self.assertEqual(april["paid"], Decimal("400.00"))
        self.assertEqual(april["adjustments"], Decimal("50.00"))
        self.assertEqual(april["closing"], Decimal("650.00"))

    def test_entries_are_immutable(self):
        entry = self._entry(datetime.date(2024, 3, 31), debit="100")
        entry.debit = Decimal("1")
        with self.assertRaises(ValidationError):
            entry.save()
        # the delete runs in its own savepoint so the test transaction survives
        with self.assertRaises(ValidationError), transaction.atomic():
            entry.delete()
        self.assertEqual(LedgerEntry.objects.get(pk=entry.pk).debit, Decimal("100.00"))

    def test_negative_sides_rejected(self):
        with self.assertRaises(ValidationError):
            self._entry(datetime.date(2024, 3, 31), debit="-1")
        self.assertFalse(LedgerEntry.objects.exists())

    def test_manual_adjustment(self):
        self._entry(datetime.date(2024, 3, 31), debit="1000")
        entry = post_adjustment(
            self.school, credit=Decimal("250"), reason="Goodwill discount",
            entry_date=datetime.date(2024, 4, 2))

        self.assertEqual(entry.entry_type, "adjustment")
        self.assertEqual(entry.balance, Decimal("750.00"))
        self.assertTrue(AuditLog.objects.filter(action="ledger_adjustment").exists())
        self.assertBalanceIdentity()

    def test_adjustment_needs_exactly_one_side_and_reason(self):
        with self.assertRaises(ValidationError):
            post_adjustment(self.school, reason="nothing")
        with self.assertRaises(ValidationError):
            post_adjustment(self.school, debit=Decimal("1"), credit=Decimal("1"),
                            reason="both")
        with self.assertRaises(ValidationError):
            post_adjustment(self.school, debit=Decimal("1"), reason="")

    def test_get_ledger_filters_by_date(self):
        self._entry(datetime.date(2024, 3, 31), debit="1000")
        self._entry(datetime.date(2024, 4, 15), credit="400", entry_type="payment")

        data = get_ledger(self.school, date_from=datetime.date(2024, 4, 1))
        self.assertEqual([e.sequence for e in data["entries"]], [2])
        self.assertEqual(data["current_balance"], Decimal("600.00"))

    def test_school_without_ledger(self):
        data = get_ledger(self.school)
        self.assertEqual(data["entries"], [])
        self.assertEqual(school_outstanding_balance(self.school), Decimal("0"))
