"""Invoice provider interface.

The escrow core treats the payment gateway as opaque: it asks for an invoice
and, on the poll path, for the invoice's status. Webhook delivery is not
handled here.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


@dataclass
class Invoice:
    id: str
    invoice_url: str
    expires_at: datetime
    status: str


@dataclass
class InvoiceRequest:
    external_id: str
    amount: int
    payer_email: str
    description: str
    success_url: str
    failure_url: str
    payment_method: str
    duration_hours: int


class InvoiceProviderProtocol(Protocol):
    async def create_invoice(self, request: InvoiceRequest) -> Invoice: ...

    async def check_status(self, invoice_id: str) -> str:
        """Return PENDING, PAID or EXPIRED."""
        ...
