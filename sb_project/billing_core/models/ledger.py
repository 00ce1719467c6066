from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import SchoolScopedManager
from ..money import ZERO
from .school import School

ENTRY_TYPE_CHOICES = [
    ("invoice", "Invoice generated"),  # debit
    ("payment", "Payment received"),  # credit
    ("adjustment", "Adjustment"),  # either side, manual or reversal
    ("memo", "Memo"),  # zero-amount trace, e.g. cancellation
]


# ---------- SchoolLedger ----------
class SchoolLedger(models.Model):
    """Running account of what one school owes."""
    school = models.OneToOneField(
        School, on_delete=models.PROTECT, related_name="ledger"
    )
    # always equals the balance of the last entry
    current_balance = models.DecimalField(
        max_digits=14, decimal_places=2, default=ZERO
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = SchoolScopedManager()

    def __str__(self):
        return f"Ledger {self.school} ({self.current_balance})"

    def last_entry(self):
        return self.entries.order_by("-sequence").first()


class LedgerEntry(models.Model):
    """One debit/credit movement. Immutable once written."""
    ledger = models.ForeignKey(
        SchoolLedger, on_delete=models.PROTECT, related_name="entries"
    )
    # position in the ledger, 1-based and gapless
    sequence = models.PositiveIntegerField()
    entry_type = models.CharField(max_length=12, choices=ENTRY_TYPE_CHOICES)
    date = models.DateField()
    # accounting period the movement belongs to
    month = models.PositiveSmallIntegerField()
    year = models.PositiveSmallIntegerField()
    debit = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    credit = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    balance = models.DecimalField(max_digits=14, decimal_places=2)

    # polymorphic source (Invoice, Payment, ...)
    reference_type = models.CharField(max_length=20, blank=True)
    reference_id = models.BigIntegerField(null=True, blank=True)
    reference_number = models.CharField(max_length=32, blank=True)
    description = models.CharField(max_length=255, blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("ledger", "sequence")
        indexes = [
            models.Index(fields=["ledger", "date"], name="ledger_entry_date_idx"),
            models.Index(fields=["reference_type", "reference_id"], name="ledger_entry_reference_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["ledger", "sequence"], name="uq_ledger_entry_sequence"
            ),
            models.CheckConstraint(
                condition=models.Q(debit__gte=0) & models.Q(credit__gte=0),
                name="ledger_entry_non_negative_sides",
            ),
        ]

    def __str__(self):
        return (f"#{self.sequence} {self.entry_type} "
                f"Dr {self.debit} Cr {self.credit} = {self.balance}")

    def save(self, *args, **kwargs):
        # corrections are new adjustment entries, never edits
        if self.pk:
            raise ValidationError("Ledger entries are immutable.")
        return super().save(*args, **kwargs)


class LedgerMonthlySummary(models.Model):
    """Per-period rollup, maintained on every append."""
    ledger = models.ForeignKey(
        SchoolLedger, on_delete=models.PROTECT, related_name="monthly_summaries"
    )
    month = models.PositiveSmallIntegerField()
    year = models.PositiveSmallIntegerField()
    opening_balance = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    total_invoiced = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    total_paid = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    net_adjustments = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    closing_balance = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)

    class Meta:
        ordering = ("ledger", "year", "month")
        constraints = [
            models.UniqueConstraint(
                fields=["ledger", "year", "month"], name="uq_ledger_summary_period"
            ),
        ]

    def __str__(self):
        return f"{self.ledger.school} {self.month:02d}/{self.year}: {self.closing_balance}"

    def recompute_closing(self):
        self.closing_balance = (
            self.opening_balance + self.total_invoiced
            - self.total_paid + self.net_adjustments
        )

    def as_dict(self):
        return {
            "month": self.month,
            "year": self.year,
            "opening": self.opening_balance,
            "invoiced": self.total_invoiced,
            "paid": self.total_paid,
            "adjustments": self.net_adjustments,
            "closing": self.closing_balance,
        }
