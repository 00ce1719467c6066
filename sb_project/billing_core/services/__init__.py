from .carry_forward import (calculate_carry_forward, mark_overdue,
                            school_outstanding_balance)
from .invoices import (cancel_invoice, generate_for_period, generate_invoice,
                       invoice_stats, pending_invoices, promote_draft,
                       reverify_invoice, send_invoice, send_invoices_bulk,
                       verify_invoice)
from .ledger import (add_entry, get_ledger, get_monthly_summary,
                     post_adjustment)
from .payment import (bounce_payment, clear_payment, payment_summary,
                      record_payment)
from .postings import (close_posting, employee_current_status, open_posting,
                       posting_analytics, posting_history, update_posting)
