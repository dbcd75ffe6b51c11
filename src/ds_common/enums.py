"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class UserRole(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class ListingType(str, Enum):
    FIXED = "FIXED"
    AUCTION = "AUCTION"


class ListingStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    PENDING = "PENDING"      # held by exactly one non-terminal transaction
    SOLD = "SOLD"
    CANCELLED = "CANCELLED"


class TransactionStatus(str, Enum):
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PAID = "PAID"
    ITEM_TRANSFERRED = "ITEM_TRANSFERRED"
    DISPUTED = "DISPUTED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


TERMINAL_TRANSACTION_STATUSES: frozenset[str] = frozenset(
    {
        TransactionStatus.COMPLETED,
        TransactionStatus.CANCELLED,
        TransactionStatus.REFUNDED,
    }
)


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    EXPIRED = "EXPIRED"


class PaymentMethod(str, Enum):
    VA = "VA"
    EWALLET = "EWALLET"
    QRIS = "QRIS"
    CARD = "CARD"
    RETAIL = "RETAIL"


class PayoutStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class DisputeStatus(str, Enum):
    OPEN = "OPEN"
    UNDER_REVIEW = "UNDER_REVIEW"
    RESOLVED = "RESOLVED"


class DisputeCategory(str, Enum):
    NOT_AS_DESCRIBED = "NOT_AS_DESCRIBED"
    ACCESS_ISSUE = "ACCESS_ISSUE"
    FRAUD = "FRAUD"
    OTHER = "OTHER"


class DisputeResolution(str, Enum):
    FULL_REFUND = "FULL_REFUND"
    PARTIAL_REFUND = "PARTIAL_REFUND"
    NO_REFUND = "NO_REFUND"


class NotificationType(str, Enum):
    NEW_ORDER = "NEW_ORDER"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    PAYMENT_EXPIRED = "PAYMENT_EXPIRED"
    TRANSACTION_CANCELLED = "TRANSACTION_CANCELLED"
    ITEM_TRANSFERRED = "ITEM_TRANSFERRED"
    ITEM_CONFIRMED = "ITEM_CONFIRMED"
    PAYOUT_COMPLETED = "PAYOUT_COMPLETED"
    REFUND_ISSUED = "REFUND_ISSUED"
    OUTBID = "OUTBID"
    AUCTION_WON = "AUCTION_WON"
    AUCTION_ENDED = "AUCTION_ENDED"
    DISPUTE_OPENED = "DISPUTE_OPENED"
    DISPUTE_RESOLVED = "DISPUTE_RESOLVED"
    REVIEW_RECEIVED = "REVIEW_RECEIVED"


class AuditAction(str, Enum):
    # Transaction lifecycle
    TRANSACTION_CREATED = "TRANSACTION_CREATED"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    ITEM_TRANSFERRED = "ITEM_TRANSFERRED"
    ITEM_CONFIRMED = "ITEM_CONFIRMED"
    TRANSACTION_CANCELLED = "TRANSACTION_CANCELLED"
    AUTO_RELEASE = "AUTO_RELEASE"
    AUTO_REFUND = "AUTO_REFUND"
    # Payments
    INVOICE_CREATED = "INVOICE_CREATED"
    PAYMENT_EXPIRED = "PAYMENT_EXPIRED"
    PAYOUT_REQUESTED = "PAYOUT_REQUESTED"
    # Auction
    BID_PLACED = "BID_PLACED"
    AUCTION_CLOSED = "AUCTION_CLOSED"
    # Listing
    LISTING_CREATED = "LISTING_CREATED"
    LISTING_PUBLISHED = "LISTING_PUBLISHED"
    LISTING_UPDATED = "LISTING_UPDATED"
    LISTING_CANCELLED = "LISTING_CANCELLED"
    # Dispute
    DISPUTE_OPENED = "DISPUTE_OPENED"
    DISPUTE_UNDER_REVIEW = "DISPUTE_UNDER_REVIEW"
    DISPUTE_RESOLVED = "DISPUTE_RESOLVED"
    EVIDENCE_ADDED = "EVIDENCE_ADDED"
    # Admin
    CONFIG_UPDATED = "CONFIG_UPDATED"
