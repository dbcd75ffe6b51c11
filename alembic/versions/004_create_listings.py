"""004: create listings and bids tables

Revision ID: 004
Revises: 003
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE listings (
            id              UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            seller_id       UUID            NOT NULL REFERENCES users(id),
            title           VARCHAR(100)    NOT NULL,
            description     TEXT            NOT NULL,
            category        VARCHAR(64)     NOT NULL,
            listing_type    VARCHAR(10)     NOT NULL DEFAULT 'FIXED',
            price           BIGINT          NOT NULL,
            status          VARCHAR(20)     NOT NULL DEFAULT 'DRAFT',
            starting_bid    BIGINT,
            current_bid     BIGINT,
            bid_increment   BIGINT,
            buy_now_price   BIGINT,
            auction_ends_at TIMESTAMPTZ,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_listings_type     CHECK (listing_type IN ('FIXED', 'AUCTION')),
            CONSTRAINT ck_listings_status   CHECK (
                status IN ('DRAFT', 'ACTIVE', 'PENDING', 'SOLD', 'CANCELLED')
            ),
            CONSTRAINT ck_listings_price    CHECK (price > 0),
            CONSTRAINT ck_listings_auction_fields CHECK (
                listing_type = 'FIXED' OR (
                    starting_bid IS NOT NULL
                    AND bid_increment IS NOT NULL AND bid_increment > 0
                    AND auction_ends_at IS NOT NULL
                )
            )
        );
    """)
    op.execute("CREATE INDEX idx_listings_seller ON listings (seller_id, created_at DESC);")
    op.execute("""
        CREATE INDEX idx_listings_auction_due
            ON listings (auction_ends_at)
            WHERE listing_type = 'AUCTION' AND status = 'ACTIVE';
    """)
    op.execute("""
        CREATE TRIGGER trg_listings_updated_at
            BEFORE UPDATE ON listings
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)

    # Bids are immutable: no updated_at, no trigger.
    op.execute("""
        CREATE TABLE bids (
            id              UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            listing_id      UUID            NOT NULL REFERENCES listings(id),
            bidder_id       UUID            NOT NULL REFERENCES users(id),
            amount          BIGINT          NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_bids_amount CHECK (amount > 0)
        );
    """)
    op.execute("CREATE INDEX idx_bids_listing_amount ON bids (listing_id, amount DESC);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS bids CASCADE;")
    op.execute("DROP TABLE IF EXISTS listings CASCADE;")
