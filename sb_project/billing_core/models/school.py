from django.core.exceptions import ValidationError
from django.db import models

EMPLOYMENT_STATUS_CHOICES = [
    ("active", "Active"),
    ("resigned", "Resigned"),
    ("terminated", "Terminated"),
]

SCHOOL_STATUS_CHOICES = [
    ("active", "Active"),
    ("inactive", "Inactive"),
]


# ---------- Employee (trainer) ----------
class Employee(models.Model):
    """A trainer who can be posted to client schools.

    Owned by the HR side of the system; billing only reads identity.
    """
    employee_code = models.CharField(max_length=32, unique=True)
    full_name = models.CharField(max_length=200)
    designation = models.CharField(max_length=100, blank=True)
    employment_status = models.CharField(
        max_length=12, choices=EMPLOYMENT_STATUS_CHOICES, default="active"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("full_name",)

    def __str__(self):
        return f"{self.full_name} ({self.employee_code})"


# ---------- School (client site) ----------
class School(models.Model):
    name = models.CharField(max_length=200)
    city = models.CharField(max_length=100, blank=True)
    address = models.TextField(blank=True)
    contact_person_name = models.CharField(max_length=200, blank=True)
    mobile = models.CharField(max_length=32, blank=True)
    email = models.EmailField(blank=True)

    # How many trainers the school asked for
    trainers_required = models.PositiveIntegerField(default=1)
    status = models.CharField(
        max_length=10, choices=SCHOOL_STATUS_CHOICES, default="active"
    )

    # Derived roster: employees with an active posting here.
    # Written only by services.postings, never directly.
    current_trainers = models.ManyToManyField(
        Employee, related_name="current_schools", blank=True
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("name",)
        indexes = [models.Index(fields=["status"], name="school_status_idx")]

    def __str__(self):
        return self.name

    @property
    def is_active(self):
        return self.status == "active"

    def staffing(self):
        """Required vs. rostered trainers, with a shortage label."""
        current = self.current_trainers.count()
        shortage = max(0, self.trainers_required - current)
        if current >= self.trainers_required:
            label = "adequate"
        elif current > 0:
            label = "shortage"
        else:
            label = "critical"
        return {
            "school": self.pk,
            "name": self.name,
            "city": self.city,
            "trainers_required": self.trainers_required,
            "current_count": current,
            "shortage": shortage,
            "status": label,
        }


# ---------- Holiday ----------
class Holiday(models.Model):
    """A non-working day. A null school means it applies everywhere."""
    date = models.DateField()
    name = models.CharField(max_length=100, blank=True)
    school = models.ForeignKey(
        School,
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name="holidays",
    )

    class Meta:
        ordering = ("date",)
        constraints = [
            models.UniqueConstraint(
                fields=["date", "school"], name="uq_holiday_date_school"
            )
        ]

    def __str__(self):
        return f"{self.date:%Y-%m-%d} {self.name}".strip()

    def clean(self):
        if self.school_id and not self.school.is_active:
            raise ValidationError("Cannot add a holiday to an inactive school.")
