"""ListingService — seller-side listing lifecycle.

    create   -> DRAFT
    publish  DRAFT -> ACTIVE
    update   DRAFT/ACTIVE, never while a transaction holds the listing
    cancel   DRAFT/ACTIVE -> CANCELLED (soft delete)

PENDING and SOLD are owned by the transaction state machine and never set here.
"""

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_audit.infrastructure.persistence import AuditLogRepository
from src.ds_common.datetime_utils import utc_now
from src.ds_common.effects import AuditRecord
from src.ds_common.enums import AuditAction, ListingStatus, ListingType
from src.ds_common.errors import (
    InvalidListingError,
    KycIncompleteError,
    ListingHasActiveTransactionError,
    ListingNotEditableError,
    ListingNotFoundError,
    NotListingOwnerError,
)
from src.ds_common.id_generator import generate_id
from src.ds_common.locks import ListingLockRegistry, get_listing_lock_registry
from src.ds_common.platform_config import PlatformConfigLoader, PlatformConfigProvider
from src.ds_gateway.user.providers import UserProfileProvider, UserProfileProviderProtocol
from src.ds_listing.application.schemas import CreateListingRequest, UpdateListingRequest
from src.ds_listing.domain.models import Bid, Listing
from src.ds_listing.domain.repository import ListingRepositoryProtocol
from src.ds_listing.domain.rules import AUCTION_PRICING_FIELDS, check_listing_terms
from src.ds_listing.infrastructure.persistence import ListingRepository
from src.ds_transaction.domain.repository import TransactionRepositoryProtocol
from src.ds_transaction.infrastructure.persistence import TransactionRepository

logger = logging.getLogger(__name__)

_EDITABLE = (ListingStatus.DRAFT, ListingStatus.ACTIVE)


def _snapshot(listing: Listing) -> dict[str, object]:
    return {
        "status": listing.status,
        "title": listing.title,
        "price": listing.price,
        "starting_bid": listing.starting_bid,
        "bid_increment": listing.bid_increment,
        "buy_now_price": listing.buy_now_price,
        "auction_ends_at": (
            listing.auction_ends_at.isoformat() if listing.auction_ends_at else None
        ),
    }


class ListingService:
    def __init__(
        self,
        repo: ListingRepositoryProtocol | None = None,
        transactions: TransactionRepositoryProtocol | None = None,
        profiles: UserProfileProviderProtocol | None = None,
        audit: AuditLogRepository | None = None,
        config: PlatformConfigProvider | None = None,
        locks: ListingLockRegistry | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo: ListingRepositoryProtocol = repo or ListingRepository()
        self._transactions: TransactionRepositoryProtocol = transactions or TransactionRepository()
        self._profiles: UserProfileProviderProtocol = profiles or UserProfileProvider()
        self._audit = audit or AuditLogRepository()
        self._config: PlatformConfigProvider = config or PlatformConfigLoader()
        self._locks = locks or get_listing_lock_registry()
        self._clock = clock

    async def create(
        self, db: AsyncSession, seller_id: str, req: CreateListingRequest
    ) -> Listing:
        if not await self._profiles.has_completed_kyc(db, seller_id):
            raise KycIncompleteError("creating a listing")

        is_auction = req.listing_type == ListingType.AUCTION
        if not is_auction and (req.starting_bid is not None or req.auction_ends_at is not None):
            raise InvalidListingError("fixed-price listings take no auction terms")

        try:
            config = await self._config.load(db)
            now = self._clock()
            listing = Listing(
                id=generate_id(),
                seller_id=seller_id,
                title=req.title,
                description=req.description,
                category=req.category,
                listing_type=req.listing_type,
                price=req.price,
                status=ListingStatus.DRAFT,
                starting_bid=req.starting_bid if is_auction else None,
                bid_increment=(
                    (req.bid_increment or config.default_bid_increment) if is_auction else None
                ),
                buy_now_price=req.buy_now_price,
                auction_ends_at=req.auction_ends_at if is_auction else None,
            )
            check_listing_terms(listing, now)
            listing = await self._repo.insert(db, listing)
            await self._audit.append(
                db,
                AuditRecord(
                    entity_type="LISTING",
                    entity_id=listing.id,
                    action_type=AuditAction.LISTING_CREATED,
                    description=f"{listing.listing_type} listing created",
                    actor_id=seller_id,
                    new_value=_snapshot(listing),
                ),
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Listing %s created by %s", listing.id, seller_id)
        return listing

    async def publish(self, db: AsyncSession, listing_id: str, seller_id: str) -> Listing:
        async with self._locks.get(listing_id):
            try:
                listing = await self._owned_for_update(db, listing_id, seller_id)
                if listing.status != ListingStatus.DRAFT:
                    raise ListingNotEditableError(listing_id, listing.status)
                check_listing_terms(listing, self._clock())
                if not await self._repo.compare_and_set_status(
                    db, listing_id, ListingStatus.DRAFT, ListingStatus.ACTIVE
                ):
                    raise ListingNotEditableError(listing_id, "changed concurrently")
                published = replace(listing, status=ListingStatus.ACTIVE)
                await self._audit.append(
                    db,
                    AuditRecord(
                        entity_type="LISTING",
                        entity_id=listing_id,
                        action_type=AuditAction.LISTING_PUBLISHED,
                        description="Listing published",
                        actor_id=seller_id,
                        old_value={"status": ListingStatus.DRAFT},
                        new_value={"status": ListingStatus.ACTIVE},
                    ),
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info("Listing %s published", listing_id)
        return published

    async def update(
        self,
        db: AsyncSession,
        listing_id: str,
        seller_id: str,
        req: UpdateListingRequest,
    ) -> Listing:
        changes = req.model_dump(exclude_unset=True)
        async with self._locks.get(listing_id):
            try:
                listing = await self._owned_for_update(db, listing_id, seller_id)
                await self._require_editable(db, listing)

                if listing.is_auction:
                    frozen = [f for f in AUCTION_PRICING_FIELDS if f in changes]
                    if frozen and await self._repo.count_bids(db, listing_id) > 0:
                        raise InvalidListingError(
                            f"{', '.join(frozen)} cannot change once bids exist"
                        )
                elif changes.get("starting_bid") is not None or changes.get("auction_ends_at"):
                    raise InvalidListingError("fixed-price listings take no auction terms")

                updated = replace(listing, **changes)
                check_listing_terms(updated, self._clock())
                updated = await self._repo.update_details(db, updated)
                await self._audit.append(
                    db,
                    AuditRecord(
                        entity_type="LISTING",
                        entity_id=listing_id,
                        action_type=AuditAction.LISTING_UPDATED,
                        description=f"Updated {', '.join(sorted(changes)) or 'nothing'}",
                        actor_id=seller_id,
                        old_value=_snapshot(listing),
                        new_value=_snapshot(updated),
                    ),
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info("Listing %s updated: %s", listing_id, sorted(changes))
        return updated

    async def cancel(self, db: AsyncSession, listing_id: str, seller_id: str) -> Listing:
        async with self._locks.get(listing_id):
            try:
                listing = await self._owned_for_update(db, listing_id, seller_id)
                await self._require_editable(db, listing)
                if not await self._repo.compare_and_set_status(
                    db, listing_id, listing.status, ListingStatus.CANCELLED
                ):
                    raise ListingNotEditableError(listing_id, "changed concurrently")
                cancelled = replace(listing, status=ListingStatus.CANCELLED)
                await self._audit.append(
                    db,
                    AuditRecord(
                        entity_type="LISTING",
                        entity_id=listing_id,
                        action_type=AuditAction.LISTING_CANCELLED,
                        description="Listing cancelled by seller",
                        actor_id=seller_id,
                        old_value={"status": listing.status},
                        new_value={"status": ListingStatus.CANCELLED},
                    ),
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info("Listing %s cancelled", listing_id)
        return cancelled

    async def get(
        self, db: AsyncSession, listing_id: str, viewer_id: str | None = None
    ) -> tuple[Listing, int]:
        """Return the listing and its bid count. Drafts are visible to their seller only."""
        listing = await self._repo.get_by_id(db, listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)
        if listing.status == ListingStatus.DRAFT and viewer_id != listing.seller_id:
            raise ListingNotFoundError(listing_id)
        bid_count = await self._repo.count_bids(db, listing_id) if listing.is_auction else 0
        return listing, bid_count

    async def list_bids(self, db: AsyncSession, listing_id: str, limit: int) -> list[Bid]:
        if await self._repo.get_by_id(db, listing_id) is None:
            raise ListingNotFoundError(listing_id)
        return await self._repo.list_bids(db, listing_id, limit)

    async def _owned_for_update(
        self, db: AsyncSession, listing_id: str, seller_id: str
    ) -> Listing:
        listing = await self._repo.get_for_update(db, listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)
        if listing.seller_id != seller_id:
            raise NotListingOwnerError(listing_id)
        return listing

    async def _require_editable(self, db: AsyncSession, listing: Listing) -> None:
        if listing.status == ListingStatus.PENDING:
            raise ListingHasActiveTransactionError(listing.id)
        if listing.status not in _EDITABLE:
            raise ListingNotEditableError(listing.id, listing.status)
        if await self._transactions.get_active_by_listing(db, listing.id) is not None:
            raise ListingHasActiveTransactionError(listing.id)
