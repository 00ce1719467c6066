from django.contrib import admin

from billing_core.models import (InvoiceAdjustment, InvoiceLine,
                                 InvoiceVerification, LedgerEntry)

# ---------- Read-only inline tables ----------


class _ReadOnlyInline(admin.TabularInline):
    extra = 0  # no empty rows
    can_delete = False

    def get_readonly_fields(self, request, obj=None):
        return self.fields

    def has_add_permission(self, request, obj=None):
        return False


class InvoiceLineInline(_ReadOnlyInline):
    """Lines change only through verification."""
    model = InvoiceLine
    fields = (
        "position", "employee_code", "employee_name", "monthly_rate",
        "working_days", "deployed_days", "leave_days", "billable_days",
        "per_day_rate", "amount", "tds_amount", "gst_amount",
    )
    ordering = ("position",)


class InvoiceAdjustmentInline(_ReadOnlyInline):
    model = InvoiceAdjustment
    fields = ("field", "line", "original_value", "new_value", "reason",
              "adjusted_by", "adjusted_at")


class InvoiceVerificationInline(_ReadOnlyInline):
    model = InvoiceVerification
    fields = ("status", "changes", "notes", "verified_by", "verified_at")


class LedgerEntryInline(_ReadOnlyInline):
    model = LedgerEntry
    fields = ("sequence", "date", "entry_type", "reference_number",
              "description", "debit", "credit", "balance")
    ordering = ("sequence",)
