from django.conf import settings
from django.db import models
from ..managers import SchoolScopedManager
from .school import School


# ---------- Audit / Event log ----------
class AuditLog(models.Model):  # who did what to which billing record
    # Null for events not tied to one school (bulk runs, sweeps)
    school = models.ForeignKey(
        School,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="audit_logs",
    )
    # Null when the action came from a scheduled task
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL
    )
    action = models.CharField(
        max_length=50
    )  # e.g. generate, verify, re_verify, send, cancel, payment
    object_type = models.CharField(
        max_length=100
    )  # e.g. "Invoice", "Payment", "EmployeePosting"
    object_id = models.CharField(max_length=100)
    # before/after details
    changes = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = SchoolScopedManager()

    class Meta:
        indexes = [
            models.Index(fields=["school", "created_at"], name="auditlog_school_created_idx"),
            models.Index(fields=["object_type", "object_id"], name="auditlog_object_idx"),
        ]

    def __str__(self):
        return (f"[{self.created_at:%Y-%m-%d %H:%M}] {self.user} "
                f"{self.action} {self.object_type}({self.object_id})")
