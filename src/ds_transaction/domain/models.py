"""Domain models for ds_transaction — pure dataclasses, no business logic."""

from dataclasses import dataclass
from datetime import datetime

from src.ds_common.enums import TERMINAL_TRANSACTION_STATUSES, PaymentStatus


@dataclass
class Transaction:
    id: str
    listing_id: str
    buyer_id: str
    seller_id: str
    transaction_amount: int      # frozen at creation
    platform_fee_amount: int
    seller_payout_amount: int    # platform_fee_amount + seller_payout_amount == transaction_amount
    payment_method: str
    status: str
    paid_at: datetime | None = None
    item_transferred_at: datetime | None = None
    verification_deadline: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    refunded_at: datetime | None = None
    transfer_proof_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status not in TERMINAL_TRANSACTION_STATUSES

    def is_party(self, user_id: str) -> bool:
        return user_id in (self.buyer_id, self.seller_id)

    def snapshot(self) -> dict[str, object]:
        """Audit-log view of the mutable fields."""
        return {
            "status": self.status,
            "transaction_amount": self.transaction_amount,
            "platform_fee_amount": self.platform_fee_amount,
            "seller_payout_amount": self.seller_payout_amount,
            "verification_deadline": (
                self.verification_deadline.isoformat() if self.verification_deadline else None
            ),
        }


@dataclass
class Payment:
    id: str
    transaction_id: str
    external_invoice_id: str
    invoice_url: str
    amount: int
    payment_method: str
    status: str
    expires_at: datetime
    paid_at: datetime | None = None
    created_at: datetime | None = None

    def is_reusable(self, now: datetime) -> bool:
        """An unexpired PENDING invoice can be handed back instead of a new one."""
        return self.status == PaymentStatus.PENDING and self.expires_at > now


@dataclass
class Payout:
    id: str
    transaction_id: str
    seller_id: str
    bank_account_id: str
    amount: int
    status: str
    created_at: datetime | None = None
