from django.contrib import admin

from billing_core.models import Invoice, Payment

from .actions import cancel_selected_invoices, send_selected_invoices
from .inlines import (InvoiceAdjustmentInline, InvoiceLineInline,
                      InvoiceVerificationInline)
from .readonly import ReadOnlyAdmin


# Register `Invoice` model
@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = (
        "invoice_number",
        "school_name",
        "month",
        "year",
        "status",
        "grand_total",
        "total_payable",
        "balance_due",
        "due_date",
        "is_locked",
    )
    list_filter = ("status", "year", "month", "is_locked")
    search_fields = ("invoice_number", "school_name")
    actions = [send_selected_invoices, cancel_selected_invoices]
    inlines = [InvoiceLineInline, InvoiceAdjustmentInline, InvoiceVerificationInline]

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("school")

    """ Money moves only through the services; admin edits notes and terms. """

    def get_readonly_fields(self, request, obj=None):
        editable = set() if obj is None or obj.is_locked else {"notes", "terms"}
        return [f.name for f in self.model._meta.fields if f.name not in editable]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Payment)
class PaymentAdmin(ReadOnlyAdmin):
    list_display = (
        "payment_number", "invoice", "school", "amount", "method",
        "payment_date", "status",
    )
    list_filter = ("status", "method", "payment_date")
    search_fields = ("payment_number", "reference_number", "invoice__invoice_number")

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("invoice", "school")
