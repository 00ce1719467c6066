from django.core.exceptions import ValidationError
from django.db import models
from ..managers import LeaveQuerySet
from .posting import EmployeePosting
from .school import Employee, School

LEAVE_TYPE_CHOICES = [
    ("paid", "Paid"),
    ("unpaid", "Unpaid"),
    ("sick", "Sick"),
    ("casual", "Casual"),
    ("emergency", "Emergency"),
]

LEAVE_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("approved", "Approved"),
    ("rejected", "Rejected"),
    ("cancelled", "Cancelled"),
]


# ---------- Leave ----------
class Leave(models.Model):
    """Leave taken by a trainer. Read-only input to billing."""
    employee = models.ForeignKey(
        Employee, on_delete=models.CASCADE, related_name="leaves"
    )
    school = models.ForeignKey(
        School, null=True, blank=True, on_delete=models.SET_NULL
    )
    posting = models.ForeignKey(
        EmployeePosting,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="leaves",
    )
    leave_type = models.CharField(max_length=10, choices=LEAVE_TYPE_CHOICES)
    start_date = models.DateField()
    end_date = models.DateField()
    reason = models.TextField(blank=True)
    status = models.CharField(
        max_length=10, choices=LEAVE_STATUS_CHOICES, default="pending"
    )
    # Only deductible leave reduces billing; defaults to unpaid leave
    is_deductible = models.BooleanField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = LeaveQuerySet.as_manager()

    class Meta:
        indexes = [
            models.Index(fields=["employee", "start_date"], name="leave_employee_start_idx"),
            models.Index(fields=["is_deductible"], name="leave_deductible_idx"),
        ]

    def __str__(self):
        return f"{self.employee} {self.leave_type} {self.start_date}..{self.end_date}"

    @property
    def number_of_days(self):
        return (self.end_date - self.start_date).days + 1

    def clean(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValidationError("Start date cannot be after end date")

    def save(self, *args, **kwargs):
        if self.is_deductible is None:
            self.is_deductible = self.leave_type == "unpaid"
        self.full_clean()
        return super().save(*args, **kwargs)
