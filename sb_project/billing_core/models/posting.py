from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import PostingManager
from .school import Employee, School

POSTING_STATUS_CHOICES = [
    ("continue", "Continue"),
    ("change_school", "Change school"),
    ("resign", "Resign"),
    ("terminate", "Terminate"),
]

OPENING_STATUSES = ("continue", "change_school")
CLOSING_STATUSES = ("resign", "terminate")


# ---------- EmployeePosting ----------
class EmployeePosting(models.Model):  # one employee at one school for a time
    employee = models.ForeignKey(
        Employee, on_delete=models.PROTECT, related_name="postings"
    )
    school = models.ForeignKey(
        School, on_delete=models.PROTECT, related_name="postings"
    )

    # Monthly amount billed to the school for this trainer
    monthly_billing_salary = models.DecimalField(
        max_digits=12, decimal_places=2
    )
    tds_percent = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("0.00")
    )
    gst_percent = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("0.00")
    )

    start_date = models.DateField()
    end_date = models.DateField(null=True, blank=True)
    status = models.CharField(
        max_length=16, choices=POSTING_STATUS_CHOICES, default="continue"
    )
    """ Workflow:
        continue / change_school = open assignment.
        resign / terminate = closed, kept as history. """
    is_active = models.BooleanField(default=False)
    remark = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PostingManager()

    class Meta:
        indexes = [
            models.Index(fields=["employee", "is_active"], name="posting_employee_active_idx"),
            models.Index(fields=["school", "is_active"], name="posting_school_active_idx"),
            models.Index(fields=["status"], name="posting_status_idx"),
        ]
        constraints = [
            # The single-active-posting rule, checked by the database too
            models.UniqueConstraint(
                fields=["employee"],
                condition=models.Q(is_active=True),
                name="uq_posting_one_active_per_employee",
            ),
            models.CheckConstraint(
                condition=models.Q(monthly_billing_salary__gte=0),
                name="posting_non_negative_rate",
            ),
        ]

    def __str__(self):
        return f"{self.employee} @ {self.school} [{self.status}]"

    @property
    def is_closed(self):
        return self.status in CLOSING_STATUSES

    def clean(self):
        if self.monthly_billing_salary is None:
            raise ValidationError("Billing rate is required")
        if self.status in OPENING_STATUSES and self.monthly_billing_salary <= 0:
            raise ValidationError("Billing rate must be greater than 0")
        for field in ("tds_percent", "gst_percent"):
            value = getattr(self, field)
            if value is not None and not Decimal("0") <= value <= Decimal("100"):
                raise ValidationError(f"{field} must be between 0 and 100")
        if self.end_date and self.start_date and self.end_date < self.start_date:
            raise ValidationError("end_date cannot be before start_date")
