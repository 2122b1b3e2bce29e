"""001: create users and ledger_entries tables

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE users (
            address         TEXT            PRIMARY KEY,
            balance         BIGINT          NOT NULL,
            reputation      INTEGER         NOT NULL DEFAULT 100,
            holdings        JSON            NOT NULL DEFAULT '{}',
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_users_balance_gte_0 CHECK (balance >= 0)
        );
    """)
    op.execute("""
        CREATE TABLE ledger_entries (
            id              SERIAL          PRIMARY KEY,
            user_address    TEXT            NOT NULL,
            entry_type      TEXT            NOT NULL,
            amount          BIGINT          NOT NULL,
            balance_after   BIGINT          NOT NULL,
            reference_type  TEXT,
            reference_id    TEXT,
            description     TEXT,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_ledger_entry_type CHECK (entry_type IN (
                'INITIAL_GRANT', 'FAUCET', 'STAKE', 'PAYOUT', 'REFUND',
                'TOKEN_BUY', 'TOKEN_SELL'
            ))
        );
    """)
    op.execute("CREATE INDEX idx_ledger_user_id ON ledger_entries (user_address, id);")
    op.execute("COMMENT ON TABLE users IS 'Wallets keyed by address; balance in micro-USDC';")
    op.execute("COMMENT ON TABLE ledger_entries IS 'Append-only journal, one row per balance change';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS ledger_entries CASCADE;")
    op.execute("DROP TABLE IF EXISTS users CASCADE;")
