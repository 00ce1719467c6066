from .actions import cancel_selected_invoices, send_selected_invoices
from .auditlog import AuditLogAdmin
from .inlines import (InvoiceAdjustmentInline, InvoiceLineInline,
                      InvoiceVerificationInline, LedgerEntryInline)
from .invoice import InvoiceAdmin, PaymentAdmin
from .ledger import LedgerEntryAdmin, LedgerMonthlySummaryAdmin, SchoolLedgerAdmin
from .readonly import ReadOnlyAdmin
from .school import (EmployeeAdmin, EmployeePostingAdmin, HolidayAdmin,
                     LeaveAdmin, SchoolAdmin)
