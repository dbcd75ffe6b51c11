"""Sandbox invoice provider for development without gateway credentials.

Issues `sandbox_inv_...` invoices that stay PENDING until the DEBUG
simulation endpoints mark the payment paid or expired.
"""

import logging
import uuid
from datetime import timedelta

from src.ds_common.datetime_utils import utc_now
from src.ds_common.enums import PaymentStatus
from src.ds_payment.domain.gateway import Invoice, InvoiceRequest

logger = logging.getLogger(__name__)


class SandboxInvoiceGateway:
    def __init__(self, checkout_base_url: str = "https://checkout-staging.xendit.co/web") -> None:
        self._checkout_base_url = checkout_base_url.rstrip("/")

    async def create_invoice(self, request: InvoiceRequest) -> Invoice:
        invoice_id = f"sandbox_inv_{uuid.uuid4().hex[:16]}"
        logger.warning(
            "No gateway secret configured; issuing sandbox invoice %s for %s",
            invoice_id, request.external_id,
        )
        return Invoice(
            id=invoice_id,
            invoice_url=f"{self._checkout_base_url}/{invoice_id}",
            expires_at=utc_now() + timedelta(hours=request.duration_hours),
            status=PaymentStatus.PENDING,
        )

    async def check_status(self, invoice_id: str) -> str:
        return PaymentStatus.PENDING
