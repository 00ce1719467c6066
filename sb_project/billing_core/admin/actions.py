from django.contrib import admin, messages

from billing_core.exceptions import error_message
from billing_core.services.invoices import cancel_invoice, send_invoices_bulk

# ---------- Admin actions ----------


@admin.action(description="Send selected invoices")
def send_selected_invoices(modeladmin, request, queryset):
    """
    Each invoice is sent in its own transaction through the send
    service; failures are reported per invoice.
    """
    results = send_invoices_bulk(
        list(queryset.values_list("pk", flat=True)), user=request.user)
    for failure in results["failed"]:
        modeladmin.message_user(
            request,
            f"Could not send invoice {failure['invoice']}: {failure['reason']}",
            level=messages.ERROR,
        )
    modeladmin.message_user(
        request,
        f"Sent {len(results['sent'])} invoice(s), {len(results['failed'])} failed.",
        level=messages.SUCCESS if not results["failed"] else messages.WARNING,
    )


@admin.action(description="Cancel selected invoices")
def cancel_selected_invoices(modeladmin, request, queryset):
    success = 0
    for inv in queryset:
        try:
            cancel_invoice(inv.pk, user=request.user, reason="Cancelled from admin")
            success += 1
        except Exception as exc:
            # one failure must not stop the batch
            modeladmin.message_user(
                request,
                f"Failed to cancel invoice {inv.invoice_number}: {error_message(exc)}",
                level=messages.ERROR,
            )
    modeladmin.message_user(
        request, f"Cancelled {success} of {queryset.count()} invoices.",
        level=messages.SUCCESS,
    )
