"""ListingRepository — concrete implementation of ListingRepositoryProtocol.

Status changes use a compare-and-swap UPDATE ... WHERE status = :expected.
A result of 0 rows means another unit of work moved the listing first.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_common.errors import InternalError
from src.ds_listing.domain.models import Bid, Listing

_LISTING_COLUMNS = """
    id, seller_id, title, description, category, listing_type, price, status,
    starting_bid, current_bid, bid_increment, buy_now_price, auction_ends_at,
    created_at, updated_at
"""

_GET_LISTING_SQL = text(f"SELECT {_LISTING_COLUMNS} FROM listings WHERE id = :id")

_GET_LISTING_FOR_UPDATE_SQL = text(
    f"SELECT {_LISTING_COLUMNS} FROM listings WHERE id = :id FOR UPDATE"
)

_INSERT_LISTING_SQL = text(f"""
    INSERT INTO listings
        (id, seller_id, title, description, category, listing_type, price, status,
         starting_bid, current_bid, bid_increment, buy_now_price, auction_ends_at)
    VALUES
        (:id, :seller_id, :title, :description, :category, :listing_type, :price, :status,
         :starting_bid, :current_bid, :bid_increment, :buy_now_price, :auction_ends_at)
    RETURNING {_LISTING_COLUMNS}
""")

_UPDATE_DETAILS_SQL = text(f"""
    UPDATE listings
    SET title = :title,
        description = :description,
        category = :category,
        price = :price,
        starting_bid = :starting_bid,
        bid_increment = :bid_increment,
        buy_now_price = :buy_now_price,
        auction_ends_at = :auction_ends_at,
        updated_at = NOW()
    WHERE id = :id
    RETURNING {_LISTING_COLUMNS}
""")

_CAS_STATUS_SQL = text("""
    UPDATE listings
    SET status = :new_status, updated_at = NOW()
    WHERE id = :id AND status = :expected_status
    RETURNING id
""")

_SET_CURRENT_BID_SQL = text("""
    UPDATE listings SET current_bid = :amount, updated_at = NOW() WHERE id = :id
""")

_INSERT_BID_SQL = text("""
    INSERT INTO bids (id, listing_id, bidder_id, amount, created_at)
    VALUES (:id, :listing_id, :bidder_id, :amount, :created_at)
    RETURNING id, listing_id, bidder_id, amount, created_at
""")

_GET_HIGHEST_BID_SQL = text("""
    SELECT id, listing_id, bidder_id, amount, created_at
    FROM bids
    WHERE listing_id = :listing_id
    ORDER BY amount DESC, created_at ASC
    LIMIT 1
""")

_LIST_BIDS_SQL = text("""
    SELECT id, listing_id, bidder_id, amount, created_at
    FROM bids
    WHERE listing_id = :listing_id
    ORDER BY amount DESC, created_at ASC
    LIMIT :limit
""")

_COUNT_BIDS_SQL = text("SELECT COUNT(*) FROM bids WHERE listing_id = :listing_id")

_LIST_ENDED_AUCTIONS_SQL = text("""
    SELECT id FROM listings
    WHERE listing_type = 'AUCTION'
      AND status = 'ACTIVE'
      AND auction_ends_at IS NOT NULL
      AND auction_ends_at < :now
    ORDER BY auction_ends_at ASC
    LIMIT :limit
""")


def _row_to_listing(row: object) -> Listing:
    return Listing(
        id=str(row.id),  # type: ignore[attr-defined]
        seller_id=str(row.seller_id),  # type: ignore[attr-defined]
        title=row.title,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        category=row.category,  # type: ignore[attr-defined]
        listing_type=row.listing_type,  # type: ignore[attr-defined]
        price=row.price,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        starting_bid=row.starting_bid,  # type: ignore[attr-defined]
        current_bid=row.current_bid,  # type: ignore[attr-defined]
        bid_increment=row.bid_increment,  # type: ignore[attr-defined]
        buy_now_price=row.buy_now_price,  # type: ignore[attr-defined]
        auction_ends_at=row.auction_ends_at,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_bid(row: object) -> Bid:
    return Bid(
        id=str(row.id),  # type: ignore[attr-defined]
        listing_id=str(row.listing_id),  # type: ignore[attr-defined]
        bidder_id=str(row.bidder_id),  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _listing_params(listing: Listing) -> dict[str, object]:
    return {
        "id": listing.id,
        "seller_id": listing.seller_id,
        "title": listing.title,
        "description": listing.description,
        "category": listing.category,
        "listing_type": listing.listing_type,
        "price": listing.price,
        "status": listing.status,
        "starting_bid": listing.starting_bid,
        "current_bid": listing.current_bid,
        "bid_increment": listing.bid_increment,
        "buy_now_price": listing.buy_now_price,
        "auction_ends_at": listing.auction_ends_at,
    }


class ListingRepository:
    async def get_by_id(self, db: AsyncSession, listing_id: str) -> Listing | None:
        row = (await db.execute(_GET_LISTING_SQL, {"id": listing_id})).fetchone()
        return _row_to_listing(row) if row else None

    async def get_for_update(self, db: AsyncSession, listing_id: str) -> Listing | None:
        row = (await db.execute(_GET_LISTING_FOR_UPDATE_SQL, {"id": listing_id})).fetchone()
        return _row_to_listing(row) if row else None

    async def insert(self, db: AsyncSession, listing: Listing) -> Listing:
        row = (await db.execute(_INSERT_LISTING_SQL, _listing_params(listing))).fetchone()
        if row is None:
            raise InternalError("Listing insert returned no rows")
        return _row_to_listing(row)

    async def update_details(self, db: AsyncSession, listing: Listing) -> Listing:
        row = (await db.execute(_UPDATE_DETAILS_SQL, _listing_params(listing))).fetchone()
        if row is None:
            raise InternalError(f"Listing {listing.id} vanished during update")
        return _row_to_listing(row)

    async def compare_and_set_status(
        self, db: AsyncSession, listing_id: str, expected: str, new: str
    ) -> bool:
        result = await db.execute(
            _CAS_STATUS_SQL,
            {"id": listing_id, "expected_status": expected, "new_status": new},
        )
        return result.fetchone() is not None

    async def set_current_bid(self, db: AsyncSession, listing_id: str, amount: int) -> None:
        await db.execute(_SET_CURRENT_BID_SQL, {"id": listing_id, "amount": amount})

    async def insert_bid(self, db: AsyncSession, bid: Bid) -> Bid:
        row = (
            await db.execute(
                _INSERT_BID_SQL,
                {
                    "id": bid.id,
                    "listing_id": bid.listing_id,
                    "bidder_id": bid.bidder_id,
                    "amount": bid.amount,
                    "created_at": bid.created_at,
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError("Bid insert returned no rows")
        return _row_to_bid(row)

    async def get_highest_bid(self, db: AsyncSession, listing_id: str) -> Bid | None:
        row = (await db.execute(_GET_HIGHEST_BID_SQL, {"listing_id": listing_id})).fetchone()
        return _row_to_bid(row) if row else None

    async def list_bids(self, db: AsyncSession, listing_id: str, limit: int) -> list[Bid]:
        rows = (
            await db.execute(_LIST_BIDS_SQL, {"listing_id": listing_id, "limit": limit})
        ).fetchall()
        return [_row_to_bid(r) for r in rows]

    async def count_bids(self, db: AsyncSession, listing_id: str) -> int:
        result = await db.execute(_COUNT_BIDS_SQL, {"listing_id": listing_id})
        return int(result.scalar_one())

    async def list_ended_auction_ids(
        self, db: AsyncSession, now: datetime, limit: int
    ) -> list[str]:
        rows = (
            await db.execute(_LIST_ENDED_AUCTIONS_SQL, {"now": now, "limit": limit})
        ).fetchall()
        return [str(r.id) for r in rows]
