import logging
from collections import Counter

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import OperationalError, transaction
from django.utils import timezone

from ..dto import PostingRequest, PostingUpdate
from ..exceptions import (ConflictError, NotCurrentlyPostedError,
                          PostingReactivationError)
from ..models import Employee, EmployeePosting, School
from ..models.posting import (CLOSING_STATUSES, OPENING_STATUSES,
                              POSTING_STATUS_CHOICES)
from .audit_helper import log_action

logger = logging.getLogger(__name__)

TRANSFER_REMARK = "Transferred from previous school"

# fields a posting update may touch; the school never changes
UPDATABLE_FIELDS = (
    "monthly_billing_salary", "tds_percent", "gst_percent", "end_date", "remark",
)


# ----------------------------
# Retry wrapper
# ----------------------------
def _run_serialized(fn, employee_id):
    """
    Run fn() in its own transaction, retrying on lock/serialization
    failures. Roster add/remove are set operations, so a retry after a
    rolled back attempt is safe.
    """
    attempts = max(1, settings.POSTING_CASCADE_MAX_RETRIES)
    for attempt in range(1, attempts + 1):
        try:
            with transaction.atomic():
                return fn()
        except OperationalError as exc:
            if attempt == attempts:
                raise
            logger.warning(
                "Posting write for employee %s failed (%s), retry %s/%s",
                employee_id, exc, attempt, attempts - 1,
            )


def _lock_employee(employee_id):
    # one posting change per employee at a time
    return Employee.objects.select_for_update().get(pk=employee_id)


def _check_rate(rate):
    if rate is None:
        raise ValidationError("Billing rate is required")
    if rate <= 0:
        raise ValidationError("Billing rate must be greater than 0")


# ----------------------------
# Persistence + cascade
# ----------------------------
def save_posting(posting, *, user=None, skip_cascade=False, update_fields=None):
    """
    Persist a posting and, unless skip_cascade is set, enforce the
    single-active-posting rule for its employee.

    The cascade writes postings of its own; those writes pass
    skip_cascade=True so they never fan out again.
    """
    creating = posting._state.adding
    if user is not None:
        if creating:
            posting.created_by = user
        posting.updated_by = user
        if update_fields is not None:
            update_fields = list(update_fields) + ["updated_by"]
    posting.save(update_fields=update_fields)

    opening = posting.status in OPENING_STATUSES
    if not skip_cascade and opening and (creating or posting.is_active):
        apply_posting_cascade(posting, user=user)
    return posting


def apply_posting_cascade(posting, user=None):
    """
    Make `posting` the employee's only active posting:
    close every other active one, pull it off its school's roster,
    put the employee on this school's roster and activate.
    Caller holds the employee lock.
    """
    today = timezone.localdate()
    others = (
        EmployeePosting.objects.active()
        .for_employee(posting.employee_id)
        .exclude(pk=posting.pk)
        .select_related("school")
        .select_for_update()
    )
    for other in others:
        _deactivate(other, end_date=max(today, other.start_date), user=user)
        logger.info(
            "Closed posting %s of employee %s at %s (superseded by %s)",
            other.pk, other.employee_id, other.school_id, posting.pk,
        )

    posting.school.current_trainers.add(posting.employee_id)
    if not posting.is_active:
        posting.is_active = True
        save_posting(
            posting, user=user, skip_cascade=True,
            update_fields=["is_active", "updated_at"],
        )


def _deactivate(posting, *, end_date, user=None, status=None):
    was_active = posting.is_active
    posting.is_active = False
    posting.end_date = end_date
    fields = ["is_active", "end_date", "updated_at"]
    if status:
        posting.status = status
        fields.append("status")
    save_posting(posting, user=user, skip_cascade=True, update_fields=fields)
    if was_active:
        posting.school.current_trainers.remove(posting.employee_id)


# ----------------------------
# Lifecycle operations
# ----------------------------
def open_posting(request: PostingRequest, user=None) -> EmployeePosting:
    """
    Post an employee to a school.

    continue at a different school than the current posting becomes a
    transfer (change_school); change_school requires a current posting.
    """
    if request.status in CLOSING_STATUSES:
        raise ValidationError(
            f"Cannot open a posting with status {request.status}")
    if request.status not in OPENING_STATUSES:
        raise ValidationError(f"Unknown posting status {request.status!r}")
    _check_rate(request.monthly_billing_salary)

    def _open():
        employee = _lock_employee(request.employee_id)
        school = School.objects.get(pk=request.school_id)
        if not school.is_active:
            raise ValidationError(f"School {school} is inactive")
        if employee.employment_status != "active":
            raise ValidationError(
                f"Employee {employee} is {employee.employment_status}")

        current = (
            EmployeePosting.objects.active().for_employee(employee).first()
        )
        status, remark = request.status, request.remark
        if status == "continue" and current is not None:
            if current.school_id == school.pk:
                raise ConflictError(
                    f"{employee} is already posted at {school}")
            status = "change_school"
            remark = remark or TRANSFER_REMARK
        elif status == "change_school":
            if current is None:
                raise NotCurrentlyPostedError(
                    f"{employee} is not currently posted at any school")
            if current.school_id == school.pk:
                raise ConflictError(
                    f"{employee} is already posted at {school}")

        posting = EmployeePosting(
            employee=employee,
            school=school,
            monthly_billing_salary=request.monthly_billing_salary,
            tds_percent=request.tds_percent,
            gst_percent=request.gst_percent,
            start_date=request.start_date,
            end_date=request.end_date,
            status=status,
            remark=remark,
            is_active=False,
        )
        posting.full_clean()
        save_posting(posting, user=user)

        log_action(
            action="open_posting",
            instance=posting,
            user=user,
            changes={
                "status": status,
                "rate": str(posting.monthly_billing_salary),
                "previous_school": current.school_id if current else None,
            },
        )
        logger.info(
            "Opened posting %s: employee %s at school %s (%s)",
            posting.pk, employee.pk, school.pk, status,
        )
        return posting

    return _run_serialized(_open, request.employee_id)


def close_posting(posting_id, status, user=None, remark=None) -> EmployeePosting:
    """Resign / terminate: deactivate, set the end date, leave the roster."""
    if status not in CLOSING_STATUSES:
        raise ValidationError(f"{status!r} is not a closing status")
    employee_id = (
        EmployeePosting.objects.values_list("employee_id", flat=True)
        .get(pk=posting_id)
    )

    def _close():
        _lock_employee(employee_id)
        posting = (
            EmployeePosting.objects.select_for_update()
            .select_related("school").get(pk=posting_id)
        )
        if posting.is_closed:
            raise ConflictError(f"Posting {posting.pk} is already {posting.status}")
        previous = posting.status
        if remark is not None:
            posting.remark = remark
            save_posting(posting, user=user, skip_cascade=True,
                         update_fields=["remark", "updated_at"])
        if not posting.is_active and posting.end_date:
            end_date = posting.end_date  # already superseded, keep its end
        else:
            end_date = max(timezone.localdate(), posting.start_date)
        _deactivate(posting, end_date=end_date, user=user, status=status)

        log_action(
            action="close_posting",
            instance=posting,
            user=user,
            changes={"status": [previous, status], "end_date": str(end_date)},
        )
        logger.info("Closed posting %s (%s)", posting.pk, status)
        return posting

    return _run_serialized(_close, employee_id)


def update_posting(posting_id, update: PostingUpdate, user=None) -> EmployeePosting:
    """
    Change rate, taxes, end date, remark or status of a posting.

    A closing status is routed through close_posting. Asking a
    deactivated posting to become open again is refused; a new posting
    must be created instead.
    """
    if update.status in CLOSING_STATUSES:
        posting = close_posting(posting_id, update.status, user=user,
                                remark=update.remark)
        rest = PostingUpdate(
            monthly_billing_salary=update.monthly_billing_salary,
            tds_percent=update.tds_percent,
            gst_percent=update.gst_percent,
            end_date=update.end_date,
        )
        if rest == PostingUpdate():
            return posting
        update = rest
    if update.status is not None and update.status not in OPENING_STATUSES:
        raise ValidationError(f"Unknown posting status {update.status!r}")
    if update.monthly_billing_salary is not None:
        _check_rate(update.monthly_billing_salary)

    employee_id = (
        EmployeePosting.objects.values_list("employee_id", flat=True)
        .get(pk=posting_id)
    )

    def _update():
        _lock_employee(employee_id)
        posting = (
            EmployeePosting.objects.select_for_update()
            .select_related("school").get(pk=posting_id)
        )
        if update.status in OPENING_STATUSES and not posting.is_active:
            raise PostingReactivationError(
                f"Posting {posting.pk} is closed; create a new posting instead")
        if update.status == "change_school" and posting.status != "change_school":
            # a transfer targets a different school, never the current one
            raise ConflictError(
                f"{posting.employee} is already posted at {posting.school}")

        changes = {}
        for name in UPDATABLE_FIELDS:
            value = getattr(update, name)
            if value is not None and value != getattr(posting, name):
                changes[name] = [str(getattr(posting, name)), str(value)]
                setattr(posting, name, value)
        if update.status and update.status != posting.status:
            changes["status"] = [posting.status, update.status]
            posting.status = update.status
        if not changes:
            return posting

        posting.full_clean()
        # re-running the cascade on an active posting is idempotent
        save_posting(posting, user=user)
        log_action(action="update_posting", instance=posting, user=user,
                   changes=changes)
        logger.info("Updated posting %s: %s", posting.pk, sorted(changes))
        return posting

    return _run_serialized(_update, employee_id)


# ----------------------------
# Read surface
# ----------------------------
def posting_history(employee):
    postings = list(
        EmployeePosting.objects.for_employee(employee)
        .select_related("school")
        .order_by("-start_date", "-created_at")
    )
    current = next((p for p in postings if p.is_active), None)
    return {
        "employee": employee,
        "current": current,
        "postings": postings,
        "roster_schools": list(employee.current_schools.all()),
    }


def employee_current_status(employee):
    current = (
        EmployeePosting.objects.active().for_employee(employee)
        .select_related("school").first()
    )
    return {
        "employee": employee.pk,
        "employment_status": employee.employment_status,
        "is_posted": current is not None,
        "posting": current.pk if current else None,
        "school": current.school_id if current else None,
        "school_name": current.school.name if current else None,
        "since": current.start_date if current else None,
        "monthly_billing_salary": current.monthly_billing_salary if current else None,
    }


def posting_analytics():
    """Posting counts per status plus staffing per active school."""
    counts = Counter(
        EmployeePosting.objects.values_list("status", "is_active")
    )
    by_status = {
        status: {
            "active": counts.get((status, True), 0),
            "inactive": counts.get((status, False), 0),
        }
        for status, _label in POSTING_STATUS_CHOICES
    }
    schools = School.objects.filter(status="active").prefetch_related("current_trainers")
    staffing = [school.staffing() for school in schools]
    return {
        "by_status": by_status,
        "total_active": sum(v["active"] for v in by_status.values()),
        "schools": staffing,
        "schools_short": sum(1 for s in staffing if s["status"] != "adequate"),
    }
