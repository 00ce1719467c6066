from django.urls import path

from . import views

app_name = "billing_core"

urlpatterns = [
    path("schools/<int:school_id>/ledger/", views.ledger_view, name="ledger"),
    path("schools/<int:school_id>/ledger/<int:year>/summary/",
         views.monthly_summary_view, name="ledger-summary"),
    path("invoices/<int:invoice_id>/", views.invoice_detail_view, name="invoice-detail"),
    path("invoices/<int:invoice_id>/verify/", views.verify_invoice_view, name="invoice-verify"),
    path("invoices/<int:invoice_id>/send/", views.send_invoice_view, name="invoice-send"),
    path("invoices/<int:invoice_id>/cancel/", views.cancel_invoice_view, name="invoice-cancel"),
    path("invoices/<int:invoice_id>/payments/", views.record_payment_view, name="invoice-payment"),
]
