from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..exceptions import InvalidTransitionError
from ..managers import SchoolScopedManager
from .invoice import Invoice
from .school import School

PAYMENT_METHOD_CHOICES = [
    ("cash", "Cash"),
    ("cheque", "Cheque"),
    ("bank_transfer", "Bank transfer"),
    ("online", "Online"),
    ("dd", "Demand draft"),
]

PAYMENT_STATUS_CHOICES = [
    ("pending", "Pending"),  # instrument not yet cleared
    ("cleared", "Cleared"),
    ("bounced", "Bounced"),
]


class Payment(models.Model):  # money received against one invoice
    payment_number = models.CharField(max_length=32, unique=True)
    invoice = models.ForeignKey(
        Invoice, on_delete=models.PROTECT, related_name="payments"
    )
    school = models.ForeignKey(
        School, on_delete=models.PROTECT, related_name="payments"
    )
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    payment_date = models.DateField()
    method = models.CharField(max_length=16, choices=PAYMENT_METHOD_CHOICES)
    reference_number = models.CharField(max_length=64, blank=True)  # cheque / UTR
    bank_name = models.CharField(max_length=100, blank=True)
    branch = models.CharField(max_length=100, blank=True)
    remarks = models.TextField(blank=True)
    status = models.CharField(
        max_length=10, choices=PAYMENT_STATUS_CHOICES, default="pending"
    )
    # invoice balance right after this payment was applied
    remaining_balance = models.DecimalField(max_digits=14, decimal_places=2)

    received_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    verified_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = SchoolScopedManager()

    class Meta:
        ordering = ("-payment_date", "-id")
        indexes = [
            models.Index(fields=["school", "payment_date"], name="payment_school_date_idx"),
            models.Index(fields=["status"], name="payment_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0), name="payment_positive_amount"
            ),
        ]

    def __str__(self):
        return f"{self.payment_number} {self.amount} ({self.status})"

    def clean(self):
        if self.amount is not None and self.amount <= 0:
            raise ValidationError("Payment amount must be greater than 0")
        if self.invoice_id and self.school_id != self.invoice.school_id:
            raise ValidationError("Payment school must match the invoice school.")

    def transition_to(self, new_status):
        # pending is the only status that can still move
        allowed = {
            "pending": ["cleared", "bounced"],
            "cleared": [],
            "bounced": [],
        }
        if new_status not in allowed.get(self.status, []):
            raise InvalidTransitionError(
                f"Payment already {self.status}")
        self.status = new_status
