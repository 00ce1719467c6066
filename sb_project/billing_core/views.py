import json
from datetime import date
from functools import wraps

from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_POST

from .dto import PaymentRequest, VerificationRequest
from .exceptions import ConflictError, NotBillableError, error_message
from .models import Invoice, School
from .services import (cancel_invoice, get_ledger, get_monthly_summary,
                       record_payment, reverify_invoice, send_invoice,
                       verify_invoice)

# Error kind -> HTTP status
ERROR_STATUS = (
    (ValidationError, 400),
    (ObjectDoesNotExist, 404),
    (ConflictError, 409),
    (NotBillableError, 422),
)


def json_errors(view):
    """Turn service exceptions into {"ok": false, "error": ...} responses."""
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except tuple(exc for exc, _ in ERROR_STATUS) as e:
            status = next(code for exc, code in ERROR_STATUS if isinstance(e, exc))
            return JsonResponse({"ok": False, "error": error_message(e)}, status=status)
    return wrapper


def _payload(request):
    if request.content_type == "application/json":
        try:
            return json.loads(request.body or b"{}")
        except ValueError:
            raise ValidationError("Malformed JSON body")
    return request.POST.dict()


def _user(request):
    user = getattr(request, "user", None)
    return user if user is not None and user.is_authenticated else None


def _invoice_json(invoice):
    return {
        "id": invoice.pk,
        "invoice_number": invoice.invoice_number,
        "school": invoice.school_id,
        "school_name": invoice.school_name,
        "month": invoice.month,
        "year": invoice.year,
        "status": invoice.status,
        "is_locked": invoice.is_locked,
        "subtotal": invoice.subtotal,
        "tds_percent": invoice.tds_percent,
        "gst_percent": invoice.gst_percent,
        "tds_amount": invoice.tds_amount,
        "gst_amount": invoice.gst_amount,
        "round_off": invoice.round_off,
        "grand_total": invoice.grand_total,
        "previous_due": invoice.previous_due,
        "total_payable": invoice.total_payable,
        "paid_amount": invoice.paid_amount,
        "balance_due": invoice.balance_due,
        "invoice_date": invoice.invoice_date,
        "due_date": invoice.due_date,
        "lines": [
            {
                "id": line.pk,
                "employee": line.employee_id,
                "employee_name": line.employee_name,
                "monthly_rate": line.monthly_rate,
                "deployed_days": line.deployed_days,
                "leave_days": line.leave_days,
                "billable_days": line.billable_days,
                "working_days": line.working_days,
                "amount": line.amount,
            }
            for line in invoice.lines.order_by("position")
        ],
        "verification_history": [
            {
                "status": v.status,
                "changes": v.changes,
                "verified_by": v.verified_by_id,
                "verified_at": v.verified_at,
            }
            for v in invoice.verification_history.all()
        ],
    }


# ----------------------------
# Ledger
# ----------------------------
@require_GET
@json_errors
def ledger_view(request, school_id):
    school = get_object_or_404(School, pk=school_id)
    try:
        date_from = date.fromisoformat(request.GET["from"]) if request.GET.get("from") else None
        date_to = date.fromisoformat(request.GET["to"]) if request.GET.get("to") else None
    except ValueError:
        raise ValidationError("from/to must be YYYY-MM-DD")
    ledger = get_ledger(school, date_from, date_to)
    return JsonResponse({
        "school": school.pk,
        "current_balance": ledger["current_balance"],
        "entries": [
            {
                "sequence": e.sequence,
                "date": e.date,
                "type": e.entry_type,
                "reference": e.reference_number,
                "description": e.description,
                "debit": e.debit,
                "credit": e.credit,
                "balance": e.balance,
            }
            for e in ledger["entries"]
        ],
    })


@require_GET
@json_errors
def monthly_summary_view(request, school_id, year):
    school = get_object_or_404(School, pk=school_id)
    return JsonResponse({"school": school.pk, "year": year,
                         "months": get_monthly_summary(school, year)})


# ----------------------------
# Invoices
# ----------------------------
@require_GET
@json_errors
def invoice_detail_view(request, invoice_id):
    invoice = get_object_or_404(Invoice, pk=invoice_id)
    return JsonResponse(_invoice_json(invoice))


@require_POST
@json_errors
def verify_invoice_view(request, invoice_id):
    data = _payload(request)
    verification = VerificationRequest.from_payload(data)
    invoice = get_object_or_404(Invoice, pk=invoice_id)
    if invoice.status == "generated":
        invoice = verify_invoice(invoice.pk, verification, user=_user(request))
    else:
        confirm = str(data.get("confirm", "")).lower() in ("1", "true", "yes")
        invoice = reverify_invoice(invoice.pk, verification,
                                   user=_user(request), confirm=confirm)
    return JsonResponse({"ok": True, "invoice": _invoice_json(invoice)})


@require_POST
@json_errors
def send_invoice_view(request, invoice_id):
    invoice = send_invoice(invoice_id, user=_user(request))
    return JsonResponse({"ok": True, "status": invoice.status,
                         "delivery_reference": invoice.delivery_reference})


@require_POST
@json_errors
def cancel_invoice_view(request, invoice_id):
    reason = _payload(request).get("reason", "")
    invoice = cancel_invoice(invoice_id, user=_user(request), reason=reason)
    return JsonResponse({"ok": True, "status": invoice.status})


@require_POST
@json_errors
def record_payment_view(request, invoice_id):
    # call the service and handle response or errors
    payment = record_payment(
        PaymentRequest.from_payload(invoice_id, _payload(request)),
        user=_user(request),
    )
    invoice = payment.invoice
    return JsonResponse({
        "ok": True,
        "payment_number": payment.payment_number,
        "payment_status": payment.status,
        "invoice_status": invoice.status,
        "balance_due": invoice.balance_due,
    })
