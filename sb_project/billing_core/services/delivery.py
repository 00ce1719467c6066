import logging
import uuid

from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


class BaseDeliveryBackend:
    """Hands a finished invoice document to whatever delivers it.

    deliver() returns a reference string for the delivered artifact and
    raises DeliveryError when delivery fails.
    """

    def deliver(self, invoice, document):
        raise NotImplementedError


class LoggingDeliveryBackend(BaseDeliveryBackend):
    """Logs the delivery; used when no real transport is configured."""

    def deliver(self, invoice, document):
        reference = f"{invoice.invoice_number}:{uuid.uuid4().hex[:12]}"
        logger.info(
            "Delivered invoice %s to %s (total payable %s, ref %s)",
            invoice.invoice_number,
            document["school"].get("email") or document["school"]["name"],
            document["totals"]["total_payable"],
            reference,
        )
        return reference


def get_delivery_backend():
    backend_cls = import_string(settings.INVOICE_DELIVERY_BACKEND)
    return backend_cls()
