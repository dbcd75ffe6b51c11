"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/User
  2xxx: Listing
  3xxx: Auction
  4xxx: Transaction
  5xxx: Payment
  6xxx: Dispute
  7xxx: Review
  9xxx: System

Every concrete error derives from one of the taxonomy bases below so callers
(and the HTTP layer) can tell "not found" from "wrong actor" from "wrong state"
from "someone else got there first".
"""

from typing import Any


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
        data: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        self.data = data
        super().__init__(message)


# --- Taxonomy bases ---

class NotFoundError(AppError):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message, 404)


class ForbiddenError(AppError):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message, 403)


class PreconditionFailedError(AppError):
    def __init__(self, code: int, message: str, data: dict[str, Any] | None = None) -> None:
        super().__init__(code, message, 422, data)


class ConflictError(AppError):
    def __init__(self, code: int, message: str, data: dict[str, Any] | None = None) -> None:
        super().__init__(code, message, 409, data)


class ExternalServiceError(AppError):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message, 502)


# --- 1xxx: Auth/User ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid or expired token", 401)


class AccountDisabledError(ForbiddenError):
    def __init__(self) -> None:
        super().__init__(1004, "Account is disabled")


class KycIncompleteError(PreconditionFailedError):
    def __init__(self, action: str) -> None:
        super().__init__(
            1006,
            f"Complete your profile (phone number and ID document) before {action}",
        )


class AdminRequiredError(ForbiddenError):
    def __init__(self) -> None:
        super().__init__(1007, "Admin privileges required")


class InvalidCronSecretError(AppError):
    def __init__(self) -> None:
        super().__init__(1008, "Invalid scheduler credentials", 401)


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str) -> None:
        super().__init__(1009, f"User not found: {user_id}")


# --- 2xxx: Listing ---

class ListingNotFoundError(NotFoundError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(2001, f"Listing not found: {listing_id}")


class ListingUnavailableError(ConflictError):
    """The listing is not for sale at all (draft, cancelled)."""

    def __init__(self, listing_id: str, status: str) -> None:
        super().__init__(
            2002,
            f"Listing {listing_id} is not available for purchase (status={status})",
        )


class ListingReservedError(ConflictError):
    """Another buyer holds the reservation."""

    def __init__(self, listing_id: str) -> None:
        super().__init__(
            2003, f"Listing {listing_id} is reserved by another buyer's pending order"
        )


class ListingSoldError(ConflictError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(2004, f"Listing {listing_id} has already been sold")


class ListingHasActiveTransactionError(ConflictError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(
            2005, f"Listing {listing_id} has an active transaction and cannot be changed"
        )


class ListingNotEditableError(PreconditionFailedError):
    def __init__(self, listing_id: str, status: str) -> None:
        super().__init__(
            2006, f"Listing {listing_id} in status {status} cannot be modified"
        )


class NotListingOwnerError(ForbiddenError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(2007, f"Only the seller may manage listing {listing_id}")


class InvalidListingError(PreconditionFailedError):
    def __init__(self, detail: str) -> None:
        super().__init__(2008, f"Invalid listing: {detail}")


class SelfPurchaseError(PreconditionFailedError):
    def __init__(self) -> None:
        super().__init__(2009, "You cannot buy your own listing")


# --- 3xxx: Auction ---

class NotAnAuctionError(PreconditionFailedError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(3001, f"Listing {listing_id} is not an auction")


class AuctionNotActiveError(PreconditionFailedError):
    def __init__(self, listing_id: str, status: str) -> None:
        super().__init__(
            3002, f"Auction {listing_id} is not accepting bids (status={status})"
        )


class AuctionEndedError(PreconditionFailedError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(3003, f"Auction {listing_id} has ended")


class BidTooLowError(PreconditionFailedError):
    def __init__(self, amount: int, minimum: int) -> None:
        super().__init__(
            3004,
            f"Bid too low: {amount}, minimum accepted bid is {minimum}",
            {"minimum_bid": minimum},
        )


class SelfBidError(PreconditionFailedError):
    def __init__(self) -> None:
        super().__init__(3005, "Sellers cannot bid on their own auction")


class AuctionNotEndedError(PreconditionFailedError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(3006, f"Auction {listing_id} is still running")


# --- 4xxx: Transaction ---

class TransactionNotFoundError(NotFoundError):
    def __init__(self, transaction_id: str) -> None:
        super().__init__(4001, f"Transaction not found: {transaction_id}")


class InvalidTransitionError(PreconditionFailedError):
    def __init__(self, transaction_id: str, status: str, action: str) -> None:
        super().__init__(
            4002,
            f"Transaction {transaction_id} in status {status} cannot be {action}",
        )


class PendingTransactionExistsError(ConflictError):
    """The buyer already holds this listing; point them at their own order."""

    def __init__(self, transaction_id: str) -> None:
        super().__init__(
            4003,
            "You already have a pending order for this listing; resume its payment",
            {"transaction_id": transaction_id},
        )


class NotTransactionPartyError(ForbiddenError):
    def __init__(self, transaction_id: str, role: str) -> None:
        super().__init__(
            4004, f"Only the {role} of transaction {transaction_id} may do this"
        )


class VerificationWindowOpenError(PreconditionFailedError):
    def __init__(self, transaction_id: str) -> None:
        super().__init__(
            4005, f"Verification window of transaction {transaction_id} has not expired"
        )


class OpenDisputeExistsError(PreconditionFailedError):
    def __init__(self, transaction_id: str) -> None:
        super().__init__(
            4006, f"Transaction {transaction_id} has an unresolved dispute"
        )


class RefundNotDueError(PreconditionFailedError):
    def __init__(self, transaction_id: str) -> None:
        super().__init__(
            4007,
            f"Transaction {transaction_id} is still within the seller's transfer period",
        )


# --- 5xxx: Payment ---

class PaymentNotFoundError(NotFoundError):
    def __init__(self, payment_id: str) -> None:
        super().__init__(5001, f"Payment not found: {payment_id}")


class PaymentAlreadyProcessedError(ConflictError):
    def __init__(self, payment_id: str, status: str) -> None:
        super().__init__(
            5002, f"Payment {payment_id} has already been processed (status={status})"
        )


class InvoiceCreationError(ExternalServiceError):
    def __init__(self, detail: str) -> None:
        super().__init__(5003, f"Payment gateway error: {detail}")


class InvoiceStatusError(ExternalServiceError):
    def __init__(self, invoice_id: str, detail: str) -> None:
        super().__init__(5005, f"Could not fetch status of invoice {invoice_id}: {detail}")


class PaymentSimulationDisabledError(ForbiddenError):
    def __init__(self) -> None:
        super().__init__(5004, "Payment simulation is only available in debug mode")


# --- 6xxx: Dispute ---

class DisputeNotFoundError(NotFoundError):
    def __init__(self, dispute_id: str) -> None:
        super().__init__(6001, f"Dispute not found: {dispute_id}")


class DisputeExistsError(ConflictError):
    def __init__(self, transaction_id: str) -> None:
        super().__init__(
            6002, f"A dispute already exists for transaction {transaction_id}"
        )


class DisputeWindowClosedError(PreconditionFailedError):
    def __init__(self, transaction_id: str) -> None:
        super().__init__(
            6003,
            f"Verification period of transaction {transaction_id} has ended; contact support",
        )


class DisputeResolvedError(PreconditionFailedError):
    def __init__(self, dispute_id: str) -> None:
        super().__init__(6004, f"Dispute {dispute_id} is already resolved")


class EvidenceLimitError(PreconditionFailedError):
    def __init__(self, limit: int) -> None:
        super().__init__(6005, f"Maximum of {limit} evidence items per participant")


class InvalidRefundAmountError(PreconditionFailedError):
    def __init__(self, detail: str) -> None:
        super().__init__(6006, f"Invalid refund amount: {detail}")


class InvalidDisputeTransitionError(PreconditionFailedError):
    def __init__(self, dispute_id: str, status: str, action: str) -> None:
        super().__init__(
            6007, f"Dispute {dispute_id} in status {status} cannot be {action}"
        )


# --- 7xxx: Review ---

class ReviewNotAllowedError(PreconditionFailedError):
    def __init__(self, detail: str) -> None:
        super().__init__(7001, f"Review not allowed: {detail}")


class DuplicateReviewError(ConflictError):
    def __init__(self, transaction_id: str) -> None:
        super().__init__(
            7002, f"You have already reviewed transaction {transaction_id}"
        )


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self, retry_after: int) -> None:
        super().__init__(
            9001,
            f"Rate limit exceeded, retry after {retry_after} seconds",
            429,
            {"retry_after": retry_after},
        )


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class InvalidConfigError(PreconditionFailedError):
    def __init__(self, key: str, value: str) -> None:
        super().__init__(9003, f"Invalid value for {key}: {value!r}")
