"""Select the invoice provider from settings."""

from config.settings import settings
from src.ds_payment.domain.gateway import InvoiceProviderProtocol
from src.ds_payment.infrastructure.sandbox import SandboxInvoiceGateway
from src.ds_payment.infrastructure.xendit import XenditInvoiceGateway


def build_invoice_provider() -> InvoiceProviderProtocol:
    if settings.XENDIT_SECRET_KEY:
        return XenditInvoiceGateway(
            secret_key=settings.XENDIT_SECRET_KEY,
            base_url=settings.XENDIT_API_URL,
            timeout=settings.XENDIT_TIMEOUT_SECONDS,
        )
    return SandboxInvoiceGateway()
