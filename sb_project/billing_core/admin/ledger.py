from django.contrib import admin

from billing_core.models import LedgerEntry, LedgerMonthlySummary, SchoolLedger

from .inlines import LedgerEntryInline
from .readonly import ReadOnlyAdmin


@admin.register(SchoolLedger)
class SchoolLedgerAdmin(ReadOnlyAdmin):
    list_display = ("school", "current_balance", "created_at")
    search_fields = ("school__name",)
    inlines = [LedgerEntryInline]


@admin.register(LedgerEntry)
class LedgerEntryAdmin(ReadOnlyAdmin):
    list_display = (
        "ledger", "sequence", "date", "entry_type", "reference_number",
        "debit", "credit", "balance",
    )
    list_filter = ("entry_type", "year", "month")
    search_fields = ("reference_number", "ledger__school__name")

    # Fetch everything in one SQL join
    def get_queryset(self, request):
        return super().get_queryset(request).select_related("ledger__school")


@admin.register(LedgerMonthlySummary)
class LedgerMonthlySummaryAdmin(ReadOnlyAdmin):
    list_display = (
        "ledger", "year", "month", "opening_balance", "total_invoiced",
        "total_paid", "net_adjustments", "closing_balance",
    )
    list_filter = ("year", "month")
