from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..exceptions import InvalidTransitionError, InvoiceLockedError
from ..managers import InvoiceManager
from ..money import ZERO, round_whole
from .posting import EmployeePosting
from .school import Employee, School

INV_STATUS_CHOICES = [
    ("draft", "Draft"),
    ("generated", "Generated"),
    ("verified", "Verified"),
    ("re_verified", "Re-verified"),
    ("sent", "Sent"),
    ("paid", "Paid"),
    ("overdue", "Overdue"),
    ("cancelled", "Cancelled"),
]

# Statuses whose balance can be carried into the next period
SETTLED_STATUSES = ("verified", "re_verified", "sent", "paid", "overdue")

# Fields that only the verification path may change once an invoice is locked
LOCKED_FIELDS = (
    "invoice_number", "school_id", "month", "year", "subtotal",
    "tds_percent", "gst_percent", "tds_amount", "gst_amount", "round_off",
    "grand_total", "previous_due", "total_payable",
)
# Workflow state; only service transitions move it on a locked invoice
LOCK_STATE_FIELDS = ("is_locked", "status", "due_date")


def _money_field(**kwargs):
    kwargs.setdefault("default", ZERO)
    return models.DecimalField(max_digits=14, decimal_places=2, **kwargs)


class Invoice(models.Model):  # monthly invoice for one school

    invoice_number = models.CharField(max_length=32, unique=True)
    school = models.ForeignKey(
        School, on_delete=models.PROTECT, related_name="invoices"
    )
    school_name = models.CharField(max_length=200)  # snapshot at generation
    month = models.PositiveSmallIntegerField()
    year = models.PositiveSmallIntegerField()

    subtotal = _money_field()
    # null percent = per-line rates copied from the postings
    tds_percent = models.DecimalField(
        max_digits=5, decimal_places=2, null=True, blank=True
    )
    gst_percent = models.DecimalField(
        max_digits=5, decimal_places=2, null=True, blank=True
    )
    tds_amount = _money_field()
    gst_amount = _money_field()
    round_off = _money_field()
    grand_total = _money_field()
    # unpaid balance brought in from the previous period
    previous_due = _money_field()
    total_payable = _money_field()
    paid_amount = _money_field()
    balance_due = _money_field()

    status = models.CharField(
        max_length=12, choices=INV_STATUS_CHOICES, default="generated"
    )
    """ Workflow:
        draft -> generated -> verified <-> re_verified -> sent -> paid.
        overdue is a label on unpaid verified/sent invoices and blocks nothing.
        cancelled is reachable from everything except paid. """
    is_locked = models.BooleanField(default=False)

    invoice_date = models.DateField()
    due_date = models.DateField()
    notes = models.TextField(blank=True)
    terms = models.CharField(max_length=200, default="Payment due within 30 days")

    generated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    generated_at = models.DateTimeField(auto_now_add=True)
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    verified_at = models.DateTimeField(null=True, blank=True)
    sent_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    sent_at = models.DateTimeField(null=True, blank=True)
    # what was delivered, frozen at send time
    sent_document = models.JSONField(null=True, blank=True)
    delivery_reference = models.CharField(max_length=255, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = InvoiceManager()

    class Meta:
        indexes = [
            models.Index(fields=["status"], name="invoice_status_idx"),
            models.Index(fields=["school", "status"], name="invoice_school_status_idx"),
            models.Index(fields=["due_date"], name="invoice_due_date_idx"),
        ]
        constraints = [
            # One live invoice per school and period, enforced at commit
            models.UniqueConstraint(
                fields=["school", "month", "year"],
                condition=~models.Q(status="cancelled"),
                name="uq_live_invoice_school_period",
            ),
            models.CheckConstraint(
                condition=models.Q(month__gte=1) & models.Q(month__lte=12),
                name="invoice_month_range",
            ),
            models.CheckConstraint(
                condition=models.Q(paid_amount__gte=0)
                & models.Q(balance_due__gte=0),
                name="invoice_non_negative_balances",
            ),
        ]
        ordering = ("-year", "-month", "school_name")

    def __str__(self):
        return f"Inv {self.invoice_number} ({self.month:02d}/{self.year})"

    @property
    def can_edit(self):
        return not self.is_locked and self.status in ("draft", "generated", "verified")

    def recalc_totals(self):
        """Recompute every derived amount from the lines.

        Lines are already rounded, so the subtotal is their plain sum;
        the grand total is rounded once more and the difference kept as
        round_off.
        """
        lines = list(self.lines.all()) if self.pk else []
        self.subtotal = sum((line.amount for line in lines), ZERO)
        self.tds_amount = sum((line.tds_amount for line in lines), ZERO)
        self.gst_amount = sum((line.gst_amount for line in lines), ZERO)
        raw = self.subtotal - self.tds_amount + self.gst_amount
        self.grand_total = round_whole(raw)
        self.round_off = self.grand_total - raw
        self.total_payable = self.grand_total + self.previous_due
        self.balance_due = max(self.total_payable - self.paid_amount, ZERO)

    def clean(self):
        if self.month is not None and not 1 <= self.month <= 12:
            raise ValidationError("Month must be between 1 and 12")
        if self.paid_amount > self.total_payable:
            raise ValidationError("Paid amount cannot exceed total payable")

    def save(self, *args, allow_locked_edit=False, **kwargs):
        """Refuse direct edits to locked money fields.

        The verification and payment services pass allow_locked_edit=True;
        nothing else may rewrite a delivered document or unlock it.
        """
        if self.pk and not allow_locked_edit:
            guarded = LOCKED_FIELDS + LOCK_STATE_FIELDS
            orig = Invoice.objects.filter(pk=self.pk).values(*guarded).first()
            if orig and orig["is_locked"]:
                changed = [f for f in guarded if orig[f] != getattr(self, f)]
                if changed:
                    raise InvoiceLockedError(
                        f"Cannot modify {changed} on locked invoice {self.invoice_number}."
                    )
        return super().save(*args, **kwargs)

    def transition_to(self, new_status, update_fields=None):
        # Current state vs. allowed next states
        allowed = {
            "draft": ["generated", "paid", "cancelled"],
            "generated": ["verified", "paid", "cancelled"],
            "verified": ["re_verified", "sent", "paid", "overdue", "cancelled"],
            "re_verified": ["re_verified", "sent", "paid", "overdue", "cancelled"],
            "sent": ["re_verified", "paid", "overdue", "cancelled"],
            # overdue is a label: the invoice keeps moving
            "overdue": ["re_verified", "sent", "paid", "cancelled"],
            "paid": [],
            "cancelled": [],
        }
        if new_status not in allowed.get(self.status, []):
            raise InvalidTransitionError(
                f"Cannot go from {self.status} to {new_status}")
        self.status = new_status
        fields = ["status", "updated_at"] + list(update_fields or [])
        self.save(update_fields=fields, allow_locked_edit=True)


class InvoiceLine(models.Model):  # one billed employee on an invoice
    invoice = models.ForeignKey(
        Invoice, on_delete=models.CASCADE, related_name="lines"
    )
    position = models.PositiveIntegerField(default=0)
    # source posting, kept for traceability
    posting = models.ForeignKey(
        EmployeePosting, on_delete=models.PROTECT, related_name="invoice_lines"
    )
    employee = models.ForeignKey(
        Employee, on_delete=models.PROTECT, related_name="invoice_lines"
    )
    employee_name = models.CharField(max_length=200)
    employee_code = models.CharField(max_length=32)
    designation = models.CharField(max_length=100, blank=True)

    monthly_rate = models.DecimalField(max_digits=12, decimal_places=2)
    deployed_days = models.PositiveSmallIntegerField()
    leave_days = models.PositiveSmallIntegerField(default=0)
    billable_days = models.PositiveSmallIntegerField()
    working_days = models.PositiveSmallIntegerField()
    per_day_rate = models.DecimalField(max_digits=12, decimal_places=2)
    amount = _money_field()

    tds_percent = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("0.00"))
    tds_amount = _money_field()
    gst_percent = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("0.00"))
    gst_amount = _money_field()

    join_date = models.DateField(null=True, blank=True)
    leave_date = models.DateField(null=True, blank=True)

    class Meta:
        ordering = ("invoice", "position")
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gte=0),
                name="invl_non_negative_amount",
            ),
        ]

    def __str__(self):
        return f"{self.invoice.invoice_number}: {self.employee_name} {self.amount}"

    def save(self, *args, allow_locked_edit=False, **kwargs):
        # lines of a locked invoice change only through re-verification
        if not allow_locked_edit and Invoice.objects.filter(
            pk=self.invoice_id, is_locked=True
        ).exists():
            raise InvoiceLockedError(
                f"Lines of locked invoice {self.invoice_id} cannot be edited."
            )
        return super().save(*args, **kwargs)


ADJUSTMENT_FIELD_CHOICES = [
    ("tds_percent", "TDS %"),
    ("gst_percent", "GST %"),
    ("leave_days", "Leave days"),
]


class InvoiceAdjustment(models.Model):
    """One admin override made while verifying. Append-only."""
    invoice = models.ForeignKey(
        Invoice, on_delete=models.CASCADE, related_name="adjustments"
    )
    line = models.ForeignKey(
        InvoiceLine, null=True, blank=True, on_delete=models.CASCADE,
        related_name="adjustments",
    )
    field = models.CharField(max_length=16, choices=ADJUSTMENT_FIELD_CHOICES)
    original_value = models.DecimalField(max_digits=12, decimal_places=2, null=True)
    new_value = models.DecimalField(max_digits=12, decimal_places=2)
    reason = models.TextField(blank=True)
    adjusted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    adjusted_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("adjusted_at", "id")

    def save(self, *args, **kwargs):
        if self.pk:
            raise ValidationError("Invoice adjustments are append-only.")
        return super().save(*args, **kwargs)


class InvoiceVerification(models.Model):
    """Verification history: one row per verify / re-verify."""
    invoice = models.ForeignKey(
        Invoice, on_delete=models.CASCADE, related_name="verification_history"
    )
    status = models.CharField(max_length=12)  # verified / re_verified
    changes = models.JSONField(default=list)  # human-readable change lines
    notes = models.TextField(blank=True)
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    verified_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("verified_at", "id")

    def save(self, *args, **kwargs):
        if self.pk:
            raise ValidationError("Verification history is append-only.")
        return super().save(*args, **kwargs)
