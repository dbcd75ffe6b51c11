"""Transaction lifecycle — pure transition decisions.

    PENDING_PAYMENT ──paid──> PAID ──transferred──> ITEM_TRANSFERRED ──confirmed──> COMPLETED
          │                    │                          │
      cancel/expiry     stale refund                 dispute opened
          v                    v                          v
      CANCELLED            REFUNDED <──refund── DISPUTED ──no refund──> COMPLETED

Every decide_* function validates actor and state, then returns a
TransitionResult: the updated transaction (a copy, the input is untouched),
the listing status the guard must apply, and the side effects to emit.
No function here performs I/O, so the whole table is unit-testable without
mocks. COMPLETED is reachable only from ITEM_TRANSFERRED or DISPUTED, and
DISPUTED only from ITEM_TRANSFERRED, so no path to COMPLETED skips the
item transfer.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime

from src.ds_common.datetime_utils import hours_from
from src.ds_common.effects import AuditRecord, Effect, Notify, PayoutRequest
from src.ds_common.enums import (
    AuditAction,
    DisputeResolution,
    ListingStatus,
    NotificationType,
    TransactionStatus,
)
from src.ds_common.errors import (
    DisputeWindowClosedError,
    InvalidRefundAmountError,
    InvalidTransitionError,
    NotTransactionPartyError,
    OpenDisputeExistsError,
    RefundNotDueError,
    VerificationWindowOpenError,
)
from src.ds_common.money import format_idr
from src.ds_listing.domain.models import Listing
from src.ds_transaction.domain.fees import compute_fees, verification_deadline
from src.ds_transaction.domain.models import Transaction

_S = TransactionStatus

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    _S.PENDING_PAYMENT: frozenset({_S.PAID, _S.CANCELLED}),
    _S.PAID: frozenset({_S.ITEM_TRANSFERRED, _S.REFUNDED}),
    _S.ITEM_TRANSFERRED: frozenset({_S.COMPLETED, _S.DISPUTED}),
    _S.DISPUTED: frozenset({_S.COMPLETED, _S.REFUNDED}),
    _S.COMPLETED: frozenset(),
    _S.CANCELLED: frozenset(),
    _S.REFUNDED: frozenset(),
}

_ENTITY = "TRANSACTION"


@dataclass
class TransitionResult:
    transaction: Transaction
    listing_status: str | None = None
    effects: list[Effect] = field(default_factory=list)


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def _require_transition(txn: Transaction, target: str, action: str) -> None:
    if not can_transition(txn.status, target):
        raise InvalidTransitionError(txn.id, txn.status, action)


def _require_buyer(txn: Transaction, user_id: str) -> None:
    if user_id != txn.buyer_id:
        raise NotTransactionPartyError(txn.id, "buyer")


def _require_seller(txn: Transaction, user_id: str) -> None:
    if user_id != txn.seller_id:
        raise NotTransactionPartyError(txn.id, "seller")


def _audit(
    before: Transaction | None,
    after: Transaction,
    action: str,
    description: str,
    actor_id: str | None,
) -> AuditRecord:
    return AuditRecord(
        entity_type=_ENTITY,
        entity_id=after.id,
        action_type=action,
        description=description,
        actor_id=actor_id,
        old_value=before.snapshot() if before else None,
        new_value=after.snapshot(),
    )


def _payload(txn: Transaction) -> dict[str, object]:
    return {"transaction_id": txn.id, "listing_id": txn.listing_id}


def is_verification_expired(txn: Transaction, now: datetime) -> bool:
    """True once an ITEM_TRANSFERRED transaction is strictly past its deadline."""
    return (
        txn.status == _S.ITEM_TRANSFERRED
        and txn.verification_deadline is not None
        and now > txn.verification_deadline
    )


def is_stale_paid(txn: Transaction, now: datetime, stale_hours: int) -> bool:
    """True when the seller never transferred within `stale_hours` of payment."""
    return (
        txn.status == _S.PAID
        and txn.paid_at is not None
        and now > hours_from(txn.paid_at, stale_hours)
    )


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


def decide_open(
    transaction_id: str,
    listing: Listing,
    buyer_id: str,
    amount: int,
    payment_method: str,
    fee_percentage: float,
    now: datetime,
    via_auction: bool = False,
) -> TransitionResult:
    """Build a PENDING_PAYMENT transaction; the caller reserves the listing."""
    platform_fee, seller_payout = compute_fees(amount, fee_percentage)
    txn = Transaction(
        id=transaction_id,
        listing_id=listing.id,
        buyer_id=buyer_id,
        seller_id=listing.seller_id,
        transaction_amount=amount,
        platform_fee_amount=platform_fee,
        seller_payout_amount=seller_payout,
        payment_method=payment_method,
        status=_S.PENDING_PAYMENT,
        created_at=now,
        updated_at=now,
    )
    origin = "auction close" if via_auction else "purchase"
    effects: list[Effect] = [
        _audit(None, txn, AuditAction.TRANSACTION_CREATED,
               f"Transaction created by {origin} of listing {listing.id}", buyer_id),
        Notify(
            user_id=listing.seller_id,
            notification_type=NotificationType.NEW_ORDER,
            title="New order",
            body=f"'{listing.title}' was ordered for {format_idr(amount)}. "
                 "Waiting for the buyer's payment.",
            payload=_payload(txn),
        ),
    ]
    if via_auction:
        effects.append(
            Notify(
                user_id=buyer_id,
                notification_type=NotificationType.AUCTION_WON,
                title="You won the auction",
                body=f"Your bid of {format_idr(amount)} won '{listing.title}'. "
                     "Complete the payment to secure the item.",
                payload=_payload(txn),
            )
        )
    return TransitionResult(transaction=txn, effects=effects)


# ---------------------------------------------------------------------------
# Payment
# ---------------------------------------------------------------------------


def decide_paid(txn: Transaction, now: datetime) -> TransitionResult:
    """Gateway confirmed payment. The listing stays PENDING until completion."""
    _require_transition(txn, _S.PAID, "marked paid")
    after = replace(txn, status=_S.PAID, paid_at=now, updated_at=now)
    return TransitionResult(
        transaction=after,
        effects=[
            _audit(txn, after, AuditAction.PAYMENT_CONFIRMED, "Payment confirmed by gateway", None),
            Notify(
                user_id=txn.seller_id,
                notification_type=NotificationType.PAYMENT_RECEIVED,
                title="Payment received",
                body=f"The buyer paid {format_idr(txn.transaction_amount)}. "
                     "Transfer the item to the buyer.",
                payload=_payload(after),
            ),
            Notify(
                user_id=txn.buyer_id,
                notification_type=NotificationType.PAYMENT_RECEIVED,
                title="Payment successful",
                body="Your payment is held in escrow until you confirm receipt.",
                payload=_payload(after),
            ),
        ],
    )


def decide_cancel(txn: Transaction, buyer_id: str, now: datetime) -> TransitionResult:
    """Buyer abandons an unpaid order; the listing goes back on sale."""
    _require_buyer(txn, buyer_id)
    _require_transition(txn, _S.CANCELLED, "cancelled")
    after = replace(txn, status=_S.CANCELLED, cancelled_at=now, updated_at=now)
    return TransitionResult(
        transaction=after,
        listing_status=ListingStatus.ACTIVE,
        effects=[
            _audit(txn, after, AuditAction.TRANSACTION_CANCELLED, "Cancelled by buyer", buyer_id),
            Notify(
                user_id=txn.seller_id,
                notification_type=NotificationType.TRANSACTION_CANCELLED,
                title="Order cancelled",
                body="The buyer cancelled the order. Your listing is active again.",
                payload=_payload(after),
            ),
        ],
    )


def decide_payment_expired(txn: Transaction, now: datetime) -> TransitionResult:
    """The last pending invoice lapsed: same outcome as a buyer cancel."""
    _require_transition(txn, _S.CANCELLED, "cancelled on payment expiry")
    after = replace(txn, status=_S.CANCELLED, cancelled_at=now, updated_at=now)
    return TransitionResult(
        transaction=after,
        listing_status=ListingStatus.ACTIVE,
        effects=[
            _audit(txn, after, AuditAction.PAYMENT_EXPIRED,
                   "Cancelled: payment window expired", None),
            Notify(
                user_id=txn.buyer_id,
                notification_type=NotificationType.PAYMENT_EXPIRED,
                title="Payment expired",
                body="Your payment window expired and the order was cancelled.",
                payload=_payload(after),
            ),
            Notify(
                user_id=txn.seller_id,
                notification_type=NotificationType.TRANSACTION_CANCELLED,
                title="Order expired",
                body="The buyer did not pay in time. Your listing is active again.",
                payload=_payload(after),
            ),
        ],
    )


# ---------------------------------------------------------------------------
# Fulfilment
# ---------------------------------------------------------------------------


def decide_transferred(
    txn: Transaction,
    seller_id: str,
    proof_url: str | None,
    now: datetime,
    verification_hours: int,
) -> TransitionResult:
    _require_seller(txn, seller_id)
    _require_transition(txn, _S.ITEM_TRANSFERRED, "marked transferred")
    deadline = verification_deadline(now, verification_hours)
    after = replace(
        txn,
        status=_S.ITEM_TRANSFERRED,
        item_transferred_at=now,
        verification_deadline=deadline,
        transfer_proof_url=proof_url,
        updated_at=now,
    )
    return TransitionResult(
        transaction=after,
        effects=[
            _audit(txn, after, AuditAction.ITEM_TRANSFERRED, "Seller transferred the item", seller_id),
            Notify(
                user_id=txn.buyer_id,
                notification_type=NotificationType.ITEM_TRANSFERRED,
                title="Item transferred",
                body="The seller transferred the item. Check it and confirm receipt "
                     f"before {deadline.isoformat()} or open a dispute.",
                payload={**_payload(after), "verification_deadline": deadline.isoformat()},
            ),
        ],
    )


def _complete(
    txn: Transaction,
    now: datetime,
    action: str,
    description: str,
    actor_id: str | None,
) -> TransitionResult:
    after = replace(txn, status=_S.COMPLETED, completed_at=now, updated_at=now)
    return TransitionResult(
        transaction=after,
        listing_status=ListingStatus.SOLD,
        effects=[
            _audit(txn, after, action, description, actor_id),
            PayoutRequest(
                transaction_id=txn.id,
                seller_id=txn.seller_id,
                amount=txn.seller_payout_amount,
            ),
            Notify(
                user_id=txn.seller_id,
                notification_type=NotificationType.PAYOUT_COMPLETED,
                title="Transaction completed",
                body=f"{format_idr(txn.seller_payout_amount)} will be paid out to "
                     "your default bank account.",
                payload=_payload(after),
            ),
        ],
    )


def decide_confirm_received(
    txn: Transaction, buyer_id: str, has_open_dispute: bool, now: datetime
) -> TransitionResult:
    _require_buyer(txn, buyer_id)
    if txn.status != _S.ITEM_TRANSFERRED:
        raise InvalidTransitionError(txn.id, txn.status, "confirmed received")
    if has_open_dispute:
        raise OpenDisputeExistsError(txn.id)
    result = _complete(txn, now, AuditAction.ITEM_CONFIRMED, "Buyer confirmed receipt", buyer_id)
    result.effects.append(
        Notify(
            user_id=txn.buyer_id,
            notification_type=NotificationType.ITEM_CONFIRMED,
            title="Thanks for confirming",
            body="The transaction is complete. You can now review the seller.",
            payload=_payload(result.transaction),
        )
    )
    return result


def decide_auto_release(
    txn: Transaction, has_dispute: bool, now: datetime
) -> TransitionResult:
    """System-actor confirm_received once the verification window has passed."""
    if txn.status != _S.ITEM_TRANSFERRED:
        raise InvalidTransitionError(txn.id, txn.status, "auto-released")
    if not is_verification_expired(txn, now):
        raise VerificationWindowOpenError(txn.id)
    if has_dispute:
        raise OpenDisputeExistsError(txn.id)
    result = _complete(
        txn, now, AuditAction.AUTO_RELEASE,
        "Verification period elapsed without dispute; funds released", None,
    )
    result.effects.append(
        Notify(
            user_id=txn.buyer_id,
            notification_type=NotificationType.ITEM_CONFIRMED,
            title="Transaction completed automatically",
            body="The verification period ended without a dispute, so the "
                 "payment was released to the seller.",
            payload=_payload(result.transaction),
        )
    )
    return result


def decide_stale_refund(
    txn: Transaction, now: datetime, stale_hours: int
) -> TransitionResult:
    """Refund a paid order whose seller never transferred the item."""
    if txn.status != _S.PAID:
        raise InvalidTransitionError(txn.id, txn.status, "refunded for non-delivery")
    if not is_stale_paid(txn, now, stale_hours):
        raise RefundNotDueError(txn.id)
    after = replace(txn, status=_S.REFUNDED, refunded_at=now, updated_at=now)
    return TransitionResult(
        transaction=after,
        listing_status=ListingStatus.ACTIVE,
        effects=[
            _audit(txn, after, AuditAction.AUTO_REFUND,
                   f"Seller did not transfer within {stale_hours}h of payment", None),
            Notify(
                user_id=txn.buyer_id,
                notification_type=NotificationType.REFUND_ISSUED,
                title="Refund issued",
                body=f"The seller did not deliver in time. {format_idr(txn.transaction_amount)} "
                     "will be refunded.",
                payload={**_payload(after), "refund_amount": txn.transaction_amount},
            ),
            Notify(
                user_id=txn.seller_id,
                notification_type=NotificationType.TRANSACTION_CANCELLED,
                title="Order refunded",
                body="You did not transfer the item in time, so the buyer was refunded.",
                payload=_payload(after),
            ),
        ],
    )


# ---------------------------------------------------------------------------
# Disputes
# ---------------------------------------------------------------------------


def decide_dispute_opened(
    txn: Transaction, buyer_id: str, dispute_id: str, now: datetime
) -> TransitionResult:
    """Buyer contests the item; allowed up to and including the deadline."""
    _require_buyer(txn, buyer_id)
    if txn.status != _S.ITEM_TRANSFERRED:
        raise InvalidTransitionError(txn.id, txn.status, "disputed")
    if txn.verification_deadline is None or now > txn.verification_deadline:
        raise DisputeWindowClosedError(txn.id)
    after = replace(txn, status=_S.DISPUTED, updated_at=now)
    return TransitionResult(
        transaction=after,
        effects=[
            _audit(txn, after, AuditAction.DISPUTE_OPENED, f"Dispute {dispute_id} opened", buyer_id),
            Notify(
                user_id=txn.seller_id,
                notification_type=NotificationType.DISPUTE_OPENED,
                title="Dispute opened",
                body="The buyer opened a dispute. Add your evidence for the admin review.",
                payload={**_payload(after), "dispute_id": dispute_id},
            ),
        ],
    )


def decide_dispute_settlement(
    txn: Transaction,
    dispute_id: str,
    resolution: str,
    refund_amount: int | None,
    admin_id: str,
    now: datetime,
) -> tuple[TransitionResult, int]:
    """Settle a DISPUTED transaction. Returns the result and the refund amount.

    NO_REFUND completes the sale (payout to seller). FULL_REFUND and
    PARTIAL_REFUND move to REFUNDED and put the listing back on sale; the
    partial amount is admin-supplied and only recorded, never computed.
    """
    if txn.status != _S.DISPUTED:
        raise InvalidTransitionError(txn.id, txn.status, "settled by dispute resolution")

    if resolution == DisputeResolution.NO_REFUND:
        result = _complete(
            txn, now, AuditAction.DISPUTE_RESOLVED,
            f"Dispute {dispute_id} resolved: NO_REFUND", admin_id,
        )
        result.effects.append(
            Notify(
                user_id=txn.buyer_id,
                notification_type=NotificationType.DISPUTE_RESOLVED,
                title="Dispute resolved",
                body="The dispute was resolved in the seller's favour.",
                payload={**_payload(result.transaction), "dispute_id": dispute_id,
                         "resolution": resolution},
            )
        )
        return result, 0

    if resolution == DisputeResolution.FULL_REFUND:
        amount = txn.transaction_amount
    elif resolution == DisputeResolution.PARTIAL_REFUND:
        if refund_amount is None:
            raise InvalidRefundAmountError("a partial refund needs an amount")
        if not (0 < refund_amount <= txn.transaction_amount):
            raise InvalidRefundAmountError(
                f"{refund_amount} is outside 1..{txn.transaction_amount}"
            )
        amount = refund_amount
    else:
        raise InvalidRefundAmountError(f"unknown resolution {resolution}")

    after = replace(txn, status=_S.REFUNDED, refunded_at=now, updated_at=now)
    payload = {**_payload(after), "dispute_id": dispute_id,
               "resolution": resolution, "refund_amount": amount}
    return (
        TransitionResult(
            transaction=after,
            listing_status=ListingStatus.ACTIVE,
            effects=[
                _audit(txn, after, AuditAction.DISPUTE_RESOLVED,
                       f"Dispute {dispute_id} resolved: {resolution} ({amount})", admin_id),
                Notify(
                    user_id=txn.buyer_id,
                    notification_type=NotificationType.REFUND_ISSUED,
                    title="Dispute resolved: refund",
                    body=f"{format_idr(amount)} will be refunded to you.",
                    payload=payload,
                ),
                Notify(
                    user_id=txn.seller_id,
                    notification_type=NotificationType.DISPUTE_RESOLVED,
                    title="Dispute resolved",
                    body=f"The dispute was resolved with a {resolution.replace('_', ' ').lower()}.",
                    payload=payload,
                ),
            ],
        ),
        amount,
    )
