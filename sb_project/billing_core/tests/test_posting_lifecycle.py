import datetime
from decimal import Decimal
from unittest import mock

from django.core.exceptions import ValidationError
from django.db import OperationalError
from django.test import TestCase
from django.utils import timezone

from ..dto import PostingUpdate
from ..exceptions import (ConflictError, NotCurrentlyPostedError,
                          PostingReactivationError)
from ..models import AuditLog, EmployeePosting, School
from ..services import postings
from ..services.postings import (TRANSFER_REMARK, close_posting,
                                 employee_current_status, posting_analytics,
                                 posting_history, save_posting, update_posting)
from .factories import make_employee, make_school, post


class PostingLifecycleTests(TestCase):
    def setUp(self):
        self.school_a = make_school("School A")
        self.school_b = make_school("School B")
        self.employee = make_employee()

    def assertSingleActive(self, employee):
        self.assertLessEqual(
            EmployeePosting.objects.active().for_employee(employee).count(), 1)

    def assertRosterConsistent(self):
        """Roster of every school == employees with an active posting there."""
        for school in School.objects.all():
            expected = set(
                EmployeePosting.objects.active().for_school(school)
                .values_list("employee_id", flat=True)
            )
            roster = set(school.current_trainers.values_list("pk", flat=True))
            self.assertSetEqual(roster, expected, msg=f"roster drift at {school}")

    def test_open_posting_activates_and_rosters(self):
        posting = post(self.employee, self.school_a)

        posting.refresh_from_db()
        self.assertTrue(posting.is_active)
        self.assertEqual(posting.status, "continue")
        self.assertIn(self.employee, self.school_a.current_trainers.all())
        self.assertRosterConsistent()
        self.assertTrue(
            AuditLog.objects.filter(action="open_posting", object_id=str(posting.pk)).exists())

    def test_continue_elsewhere_becomes_transfer(self):
        first = post(self.employee, self.school_a)
        second = post(self.employee, self.school_b)

        first.refresh_from_db()
        second.refresh_from_db()
        self.assertEqual(second.status, "change_school")
        self.assertEqual(second.remark, TRANSFER_REMARK)
        self.assertTrue(second.is_active)
        self.assertFalse(first.is_active)
        self.assertEqual(first.end_date, timezone.localdate())

        self.assertSingleActive(self.employee)
        self.assertRosterConsistent()
        self.assertNotIn(self.employee, self.school_a.current_trainers.all())

    def test_change_school_requires_current_posting(self):
        with self.assertRaises(NotCurrentlyPostedError):
            post(self.employee, self.school_a, status="change_school")
        self.assertFalse(EmployeePosting.objects.exists())

    def test_posting_again_at_same_school_is_a_conflict(self):
        post(self.employee, self.school_a)
        with self.assertRaises(ConflictError):
            post(self.employee, self.school_a)
        with self.assertRaises(ConflictError):
            post(self.employee, self.school_a, status="change_school")
        self.assertEqual(EmployeePosting.objects.count(), 1)

    def test_invalid_rate_fails_before_any_roster_change(self):
        for rate in ("0.00", "-5.00"):
            with self.assertRaises(ValidationError):
                post(self.employee, self.school_a, rate=rate)
        self.assertFalse(EmployeePosting.objects.exists())
        self.assertFalse(self.school_a.current_trainers.exists())

    def test_closing_statuses_cannot_open(self):
        with self.assertRaises(ValidationError):
            post(self.employee, self.school_a, status="resign")

    def test_inactive_school_is_rejected(self):
        closed = make_school("Closed School", status="inactive")
        with self.assertRaises(ValidationError):
            post(self.employee, closed)

    def test_close_posting_pulls_from_roster(self):
        posting = post(self.employee, self.school_a)
        close_posting(posting.pk, "resign")

        posting.refresh_from_db()
        self.assertFalse(posting.is_active)
        self.assertEqual(posting.status, "resign")
        self.assertIsNotNone(posting.end_date)
        self.assertFalse(self.school_a.current_trainers.exists())
        self.assertRosterConsistent()

        with self.assertRaises(ConflictError):
            close_posting(posting.pk, "terminate")

    def test_closed_posting_cannot_be_reactivated(self):
        posting = post(self.employee, self.school_a)
        close_posting(posting.pk, "terminate")

        with self.assertRaises(PostingReactivationError):
            update_posting(posting.pk, PostingUpdate(status="continue"))
        posting.refresh_from_db()
        self.assertFalse(posting.is_active)

    def test_superseded_posting_cannot_be_reactivated(self):
        first = post(self.employee, self.school_a)
        post(self.employee, self.school_b)
        with self.assertRaises(PostingReactivationError):
            update_posting(first.pk, PostingUpdate(status="continue"))
        self.assertSingleActive(self.employee)

    def test_update_rate_keeps_invariants(self):
        posting = post(self.employee, self.school_a)
        update_posting(posting.pk, PostingUpdate(
            monthly_billing_salary=Decimal("32000.00"), remark="Revised"))

        posting.refresh_from_db()
        self.assertEqual(posting.monthly_billing_salary, Decimal("32000.00"))
        self.assertTrue(posting.is_active)
        self.assertRosterConsistent()
        log = AuditLog.objects.get(action="update_posting")
        self.assertIn("monthly_billing_salary", log.changes)

    def test_update_with_closing_status_routes_to_close(self):
        posting = post(self.employee, self.school_a)
        update_posting(posting.pk, PostingUpdate(status="resign", remark="Moved city"))

        posting.refresh_from_db()
        self.assertEqual(posting.status, "resign")
        self.assertEqual(posting.remark, "Moved city")
        self.assertFalse(posting.is_active)
        self.assertRosterConsistent()

    def test_internal_write_skips_cascade(self):
        posting = EmployeePosting(
            employee=self.employee, school=self.school_a,
            monthly_billing_salary=Decimal("30000.00"),
            start_date=datetime.date(2024, 3, 1),
        )
        save_posting(posting, skip_cascade=True)

        posting.refresh_from_db()
        self.assertFalse(posting.is_active)
        self.assertFalse(self.school_a.current_trainers.exists())

    def test_cascade_is_retried_after_lock_error(self):
        real_cascade = postings.apply_posting_cascade
        calls = []

        def flaky(posting, user=None):
            calls.append(posting.pk)
            if len(calls) == 1:
                raise OperationalError("database is locked")
            return real_cascade(posting, user=user)

        with mock.patch.object(postings, "apply_posting_cascade", side_effect=flaky):
            with self.assertLogs("billing_core.services.postings", level="WARNING"):
                posting = post(self.employee, self.school_a)

        self.assertEqual(len(calls), 2)
        self.assertEqual(EmployeePosting.objects.count(), 1)
        posting.refresh_from_db()
        self.assertTrue(posting.is_active)
        self.assertRosterConsistent()

    def test_many_transfers_never_leave_two_active(self):
        schools = [self.school_a, self.school_b, make_school("School C")]
        for school in schools * 2:
            post(self.employee, school)
            self.assertSingleActive(self.employee)
            self.assertRosterConsistent()
        self.assertEqual(EmployeePosting.objects.count(), 6)


class PostingReadSurfaceTests(TestCase):
    def setUp(self):
        self.school = make_school(trainers_required=2)
        self.other = make_school("Hill Top School")
        self.employee = make_employee()

    def test_history_and_current_status(self):
        post(self.employee, self.other, start=datetime.date(2024, 1, 1))
        current = post(self.employee, self.school, start=datetime.date(2024, 3, 1))

        history = posting_history(self.employee)
        self.assertEqual(history["current"], current)
        self.assertEqual(history["postings"][0], current)
        self.assertEqual(len(history["postings"]), 2)
        self.assertEqual(history["roster_schools"], [self.school])

        status = employee_current_status(self.employee)
        self.assertTrue(status["is_posted"])
        self.assertEqual(status["school"], self.school.pk)

    def test_not_posted_status(self):
        status = employee_current_status(self.employee)
        self.assertFalse(status["is_posted"])
        self.assertIsNone(status["school"])

    def test_analytics_reports_staffing(self):
        post(self.employee, self.school)
        data = posting_analytics()

        self.assertEqual(data["by_status"]["continue"]["active"], 1)
        self.assertEqual(data["total_active"], 1)
        staffing = {row["name"]: row for row in data["schools"]}
        self.assertEqual(staffing[self.school.name]["status"], "shortage")
        self.assertEqual(staffing[self.school.name]["shortage"], 1)
        self.assertEqual(staffing[self.other.name]["status"], "critical")
