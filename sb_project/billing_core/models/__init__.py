from .auditlog import AuditLog
from .invoice import (Invoice, InvoiceAdjustment, InvoiceLine,
                      InvoiceVerification)
from .leave import Leave
from .ledger import LedgerEntry, LedgerMonthlySummary, SchoolLedger
from .payment import Payment
from .posting import EmployeePosting
from .school import Employee, Holiday, School
from .sequence import DocumentSequence
