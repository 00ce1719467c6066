"""
Domain errors for the billing core.

Validation failures are raised as django ValidationError; everything
here is an invariant violation or a collaborator failure.
"""


class BillingError(Exception):
    """Base exception for billing core failures."""


class ConflictError(BillingError):
    """Raised when an operation would break a lifecycle invariant."""


class DuplicateInvoiceError(ConflictError):
    """Raised when a non-cancelled invoice already exists for the period."""


class NotCurrentlyPostedError(ConflictError):
    """Raised when a transfer is requested for an employee with no active posting."""


class PostingReactivationError(ConflictError):
    """Raised when a closed posting is asked to become active again."""


class InvoiceLockedError(ConflictError):
    """Raised on direct edits to a sent or cancelled invoice."""


class InvalidTransitionError(ConflictError):
    """Raised when a status change is not allowed from the current status."""


class NotBillableError(BillingError):
    """Raised when a school has no billable employees for a period."""


class DeliveryError(BillingError):
    """Raised when the invoice delivery backend fails."""


def error_message(exc):
    """Flat, human-readable text for any error the services raise."""
    messages = getattr(exc, "messages", None)
    if messages:
        return "; ".join(str(m) for m in messages)
    return str(exc)
