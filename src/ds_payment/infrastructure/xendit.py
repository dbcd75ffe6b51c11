"""Xendit invoice gateway (https://developers.xendit.co/api-reference/#invoices).

    POST /v2/invoices          create a hosted invoice
    GET  /v2/invoices/{id}     poll its status

Authentication is HTTP basic with the secret key as username and an empty
password. Any transport error or non-2xx response becomes
InvoiceCreationError on create and InvoiceStatusError on a status poll; both
abort the caller's unit of work.
"""

import logging
from datetime import datetime

import httpx

from src.ds_common.enums import PaymentMethod, PaymentStatus
from src.ds_common.errors import InvoiceCreationError, InvoiceStatusError
from src.ds_payment.domain.gateway import Invoice, InvoiceRequest

logger = logging.getLogger(__name__)

# Xendit channel codes offered on the hosted page per requested method
_CHANNELS: dict[str, list[str]] = {
    PaymentMethod.VA: ["BCA", "BNI", "BRI", "MANDIRI", "PERMATA"],
    PaymentMethod.EWALLET: ["OVO", "DANA", "SHOPEEPAY", "LINKAJA"],
    PaymentMethod.QRIS: ["QRIS"],
    PaymentMethod.CARD: ["CREDIT_CARD"],
    PaymentMethod.RETAIL: ["ALFAMART", "INDOMARET"],
}

# Xendit reports SETTLED once funds are disbursed to the merchant balance
_STATUS_MAP = {
    "PENDING": PaymentStatus.PENDING,
    "PAID": PaymentStatus.PAID,
    "SETTLED": PaymentStatus.PAID,
    "EXPIRED": PaymentStatus.EXPIRED,
}


def _parse_expiry(raw: str) -> datetime:
    # Xendit returns e.g. "2026-10-20T09:00:00.000Z"
    return datetime.fromisoformat(raw.replace("Z", "+00:00"))


class XenditInvoiceGateway:
    def __init__(
        self,
        secret_key: str,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._secret_key = secret_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            auth=httpx.BasicAuth(self._secret_key, ""),
            timeout=self._timeout,
            transport=self._transport,
        )

    async def create_invoice(self, request: InvoiceRequest) -> Invoice:
        body = {
            "external_id": request.external_id,
            "amount": request.amount,
            "payer_email": request.payer_email,
            "description": request.description,
            "invoice_duration": request.duration_hours * 3600,
            "currency": "IDR",
            "success_redirect_url": request.success_url,
            "failure_redirect_url": request.failure_url,
            "payment_methods": _CHANNELS.get(request.payment_method, []),
        }
        try:
            async with self._client() as client:
                response = await client.post("/v2/invoices", json=body)
            response.raise_for_status()
            data = response.json()
            invoice = Invoice(
                id=data["id"],
                invoice_url=data["invoice_url"],
                expires_at=_parse_expiry(data["expiry_date"]),
                status=_STATUS_MAP.get(data.get("status", "PENDING"), PaymentStatus.PENDING),
            )
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Xendit invoice creation failed for %s: %d %s",
                request.external_id, exc.response.status_code, exc.response.text,
            )
            raise InvoiceCreationError(f"gateway returned {exc.response.status_code}") from exc
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            logger.error("Xendit invoice creation failed for %s: %r", request.external_id, exc)
            raise InvoiceCreationError("gateway unreachable or returned an invalid response") from exc

        logger.info("Xendit invoice %s created for %s", invoice.id, request.external_id)
        return invoice

    async def check_status(self, invoice_id: str) -> str:
        try:
            async with self._client() as client:
                response = await client.get(f"/v2/invoices/{invoice_id}")
            response.raise_for_status()
            raw = response.json()["status"]
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            logger.error("Xendit status check failed for %s: %r", invoice_id, exc)
            raise InvoiceStatusError(
                invoice_id, "gateway unreachable or returned an invalid response"
            ) from exc
        return _STATUS_MAP.get(raw, PaymentStatus.PENDING)
