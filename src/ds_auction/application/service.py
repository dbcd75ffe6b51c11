"""AuctionEngine — bid acceptance and auction close for a single listing.

Bidding and purchase reservation both mutate the listing row, so every
operation here takes the same per-listing lock and row lock as the
transaction state machine.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_auction.domain.rules import check_bid, is_auction_over, minimum_next_bid
from src.ds_common.datetime_utils import utc_now
from src.ds_common.effects import AuditRecord, Effect, Notify
from src.ds_common.enums import (
    AuditAction,
    ListingStatus,
    NotificationType,
    PaymentMethod,
)
from src.ds_common.errors import (
    AuctionNotActiveError,
    AuctionNotEndedError,
    KycIncompleteError,
    ListingNotFoundError,
    NotAnAuctionError,
    NotListingOwnerError,
)
from src.ds_common.id_generator import generate_id
from src.ds_common.money import format_idr
from src.ds_gateway.user.providers import UserProfileProvider, UserProfileProviderProtocol
from src.ds_listing.domain.guard import unavailable_error
from src.ds_listing.domain.models import Bid, Listing
from src.ds_listing.domain.repository import ListingRepositoryProtocol
from src.ds_listing.infrastructure.persistence import ListingRepository
from src.ds_transaction.application.service import (
    TransactionStateMachine,
    get_transaction_service,
)
from src.ds_transaction.domain.models import Payment, Transaction
from src.ds_transaction.domain.repository import TransactionRepositoryProtocol
from src.ds_transaction.infrastructure.persistence import TransactionRepository

logger = logging.getLogger(__name__)


@dataclass
class AuctionOutcome:
    listing: Listing
    winning_bid: Bid | None = None
    transaction: Transaction | None = None
    payment: Payment | None = None


class AuctionEngine:
    def __init__(
        self,
        listings: ListingRepositoryProtocol | None = None,
        transactions: TransactionRepositoryProtocol | None = None,
        machine: TransactionStateMachine | None = None,
        profiles: UserProfileProviderProtocol | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._listings: ListingRepositoryProtocol = listings or ListingRepository()
        self._transactions: TransactionRepositoryProtocol = transactions or TransactionRepository()
        self._machine = machine or get_transaction_service()
        self._profiles: UserProfileProviderProtocol = profiles or UserProfileProvider()
        self._clock = clock

    async def place_bid(
        self, db: AsyncSession, listing_id: str, bidder_id: str, amount: int
    ) -> Bid:
        if not await self._profiles.has_completed_kyc(db, bidder_id):
            raise KycIncompleteError("bidding")

        async with self._machine.locks.get(listing_id):
            try:
                listing = await self._listings.get_for_update(db, listing_id)
                if listing is None:
                    raise ListingNotFoundError(listing_id)
                previous = await self._listings.get_highest_bid(db, listing_id)
                now = self._clock()
                check_bid(listing, bidder_id, amount, previous, now)

                bid = await self._listings.insert_bid(
                    db,
                    Bid(
                        id=generate_id(),
                        listing_id=listing_id,
                        bidder_id=bidder_id,
                        amount=amount,
                        created_at=now,
                    ),
                )
                await self._listings.set_current_bid(db, listing_id, amount)

                effects: list[Effect] = [
                    AuditRecord(
                        entity_type="LISTING",
                        entity_id=listing_id,
                        action_type=AuditAction.BID_PLACED,
                        description=f"Bid {bid.id} of {amount}",
                        actor_id=bidder_id,
                        old_value={"current_bid": listing.current_bid},
                        new_value={"current_bid": amount},
                    )
                ]
                if previous is not None and previous.bidder_id != bidder_id:
                    next_minimum = amount + (listing.bid_increment or 0)
                    effects.append(
                        Notify(
                            user_id=previous.bidder_id,
                            notification_type=NotificationType.OUTBID,
                            title="You have been outbid",
                            body=f"Someone bid {format_idr(amount)} on '{listing.title}'. "
                                 f"Bid at least {format_idr(next_minimum)} "
                                 "to take the lead.",
                            payload={"listing_id": listing_id, "current_bid": amount},
                        )
                    )
                await self._machine.effects.apply(db, effects)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        await self._machine.effects.dispatch(effects)
        logger.info("Bid %s: %d on listing %s by %s", bid.id, amount, listing_id, bidder_id)
        return bid

    async def close_auction(
        self,
        db: AsyncSession,
        listing_id: str,
        actor_id: str | None,
        payment_method: str = PaymentMethod.VA,
    ) -> AuctionOutcome:
        """Close an auction on behalf of its seller.

        actor_id is the seller, or None when a scheduler sweep closes an
        auction whose end time has passed. With no bids the listing is
        cancelled; otherwise the highest bidder's transaction is opened in the
        same unit of work. A winner whose earlier order on this listing was
        cancelled or refunded is not offered it again: the auction closes
        unsold.
        """
        async with self._machine.locks.get(listing_id):
            try:
                listing = await self._listings.get_for_update(db, listing_id)
                if listing is None:
                    raise ListingNotFoundError(listing_id)
                if actor_id is not None and actor_id != listing.seller_id:
                    raise NotListingOwnerError(listing_id)
                if not listing.is_auction:
                    raise NotAnAuctionError(listing_id)
                if listing.status != ListingStatus.ACTIVE:
                    raise AuctionNotActiveError(listing_id, listing.status)
                if actor_id is None and not is_auction_over(listing, self._clock()):
                    raise AuctionNotEndedError(listing_id)

                winning = await self._listings.get_highest_bid(db, listing_id)
                if winning is None:
                    outcome, effects = await self._close_unsold(db, listing, actor_id)
                elif await self._transactions.has_lapsed_order(
                    db, listing_id, winning.bidder_id
                ):
                    outcome, effects = await self._close_unsold(
                        db, listing, actor_id, lapsed_winner=winning
                    )
                else:
                    outcome, effects = await self._close_with_winner(
                        db, listing, winning, actor_id, payment_method
                    )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        await self._machine.effects.dispatch(effects)
        return outcome

    async def _close_unsold(
        self,
        db: AsyncSession,
        listing: Listing,
        actor_id: str | None,
        lapsed_winner: Bid | None = None,
    ) -> tuple[AuctionOutcome, list[Effect]]:
        swapped = await self._listings.compare_and_set_status(
            db, listing.id, ListingStatus.ACTIVE, ListingStatus.CANCELLED
        )
        if not swapped:
            raise unavailable_error(listing.id, listing.status)
        listing.status = ListingStatus.CANCELLED
        if lapsed_winner is None:
            description = "Auction closed without bids"
            title = "Auction ended without bids"
            body = f"Nobody bid on '{listing.title}'. The listing has been closed."
        else:
            description = (
                f"Auction closed unsold: winning bid {lapsed_winner.id} "
                "already had its order cancelled or refunded"
            )
            title = "Auction closed unsold"
            body = (
                f"The winning order for '{listing.title}' was not completed. "
                "The listing has been closed."
            )
        effects: list[Effect] = [
            AuditRecord(
                entity_type="LISTING",
                entity_id=listing.id,
                action_type=AuditAction.AUCTION_CLOSED,
                description=description,
                actor_id=actor_id,
                old_value={"status": ListingStatus.ACTIVE},
                new_value={"status": ListingStatus.CANCELLED},
            ),
            Notify(
                user_id=listing.seller_id,
                notification_type=NotificationType.AUCTION_ENDED,
                title=title,
                body=body,
                payload={"listing_id": listing.id},
            ),
        ]
        await self._machine.effects.apply(db, effects)
        logger.info("Auction %s closed unsold", listing.id)
        return AuctionOutcome(listing=listing), effects

    async def _close_with_winner(
        self,
        db: AsyncSession,
        listing: Listing,
        winning: Bid,
        actor_id: str | None,
        payment_method: str,
    ) -> tuple[AuctionOutcome, list[Effect]]:
        opened = await self._machine.open_for_auction_winner(
            db, listing, winning.bidder_id, winning.amount, payment_method
        )
        audit = AuditRecord(
            entity_type="LISTING",
            entity_id=listing.id,
            action_type=AuditAction.AUCTION_CLOSED,
            description=f"Auction won by bid {winning.id}",
            actor_id=actor_id,
            new_value={
                "winning_bid": winning.amount,
                "winner_id": winning.bidder_id,
                "transaction_id": opened.transaction.id,
            },
        )
        await self._machine.effects.apply(db, [audit])
        logger.info(
            "Auction %s won by %s at %d (transaction %s)",
            listing.id, winning.bidder_id, winning.amount, opened.transaction.id,
        )
        outcome = AuctionOutcome(
            listing=listing,
            winning_bid=winning,
            transaction=opened.transaction,
            payment=opened.payment,
        )
        return outcome, [*opened.effects, audit]

    async def minimum_bid(self, db: AsyncSession, listing_id: str) -> int:
        listing = await self._listings.get_by_id(db, listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)
        if not listing.is_auction:
            raise NotAnAuctionError(listing_id)
        highest = await self._listings.get_highest_bid(db, listing_id)
        return minimum_next_bid(listing, highest)


_engine: AuctionEngine | None = None


def get_auction_engine() -> AuctionEngine:
    global _engine  # noqa: PLW0603
    if _engine is None:
        _engine = AuctionEngine()
    return _engine
