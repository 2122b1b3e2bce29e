"""002: create markets, market_options and positions tables

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE markets (
            id                  TEXT            PRIMARY KEY,
            question            TEXT            NOT NULL,
            description         TEXT,
            category            TEXT            NOT NULL DEFAULT 'General',
            banner_url          TEXT,
            close_time          TIMESTAMPTZ     NOT NULL,
            status              TEXT            NOT NULL DEFAULT 'open',
            winning_option_id   TEXT,
            creator_id          TEXT            NOT NULL,
            total_liquidity     BIGINT          NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            resolved_at         TIMESTAMPTZ,
            CONSTRAINT ck_markets_status CHECK (
                status IN ('open', 'closed', 'resolved', 'finalized', 'disputed')
            ),
            CONSTRAINT ck_markets_liquidity_gte_0 CHECK (total_liquidity >= 0),
            CONSTRAINT ck_markets_question_len CHECK (LENGTH(question) >= 10)
        );
    """)
    op.execute("CREATE INDEX idx_markets_created ON markets (created_at, id);")
    op.execute("CREATE INDEX idx_markets_status_close ON markets (status, close_time);")

    op.execute("""
        CREATE TABLE market_options (
            id              TEXT            PRIMARY KEY,
            market_id       TEXT            NOT NULL REFERENCES markets(id) ON DELETE CASCADE,
            text            TEXT            NOT NULL,
            sort_order      INTEGER         NOT NULL,
            total_staked    BIGINT          NOT NULL DEFAULT 0,
            CONSTRAINT ck_options_staked_gte_0 CHECK (total_staked >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_options_market ON market_options (market_id, sort_order);")

    op.execute("""
        CREATE TABLE positions (
            id              TEXT            PRIMARY KEY,
            market_id       TEXT            NOT NULL REFERENCES markets(id) ON DELETE CASCADE,
            option_id       TEXT            NOT NULL REFERENCES market_options(id) ON DELETE CASCADE,
            user_address    TEXT            NOT NULL REFERENCES users(address),
            amount          BIGINT          NOT NULL,
            status          TEXT            NOT NULL DEFAULT 'pending',
            claimed         BOOLEAN         NOT NULL DEFAULT FALSE,
            payout          BIGINT,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            settled_at      TIMESTAMPTZ,
            CONSTRAINT ck_positions_amount_gt_0 CHECK (amount > 0),
            CONSTRAINT ck_positions_status CHECK (status IN ('pending', 'won', 'lost'))
        );
    """)
    op.execute("CREATE INDEX idx_positions_market_user ON positions (market_id, user_address);")
    op.execute("CREATE INDEX idx_positions_user_created ON positions (user_address, created_at);")
    op.execute(
        "COMMENT ON COLUMN positions.claimed IS "
        "'Flipped false->true exactly once by a compare-and-set at claim time';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS positions CASCADE;")
    op.execute("DROP TABLE IF EXISTS market_options CASCADE;")
    op.execute("DROP TABLE IF EXISTS markets CASCADE;")
