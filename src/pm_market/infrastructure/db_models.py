"""SQLAlchemy ORM models for markets, market_options and positions.

Alembic migration 001 is the authoritative DDL; these mirror it so tests can
create the schema with metadata.create_all on SQLite.
"""

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.pm_common.database import Base
from src.pm_common.datetime_utils import utc_now


class MarketORM(Base):
    __tablename__ = "markets"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str] = mapped_column(Text, nullable=False, default="General")
    banner_url: Mapped[str | None] = mapped_column(Text)
    close_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="open")
    winning_option_id: Mapped[str | None] = mapped_column(Text)
    creator_id: Mapped[str] = mapped_column(Text, nullable=False)
    total_liquidity: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint(
            "status IN ('open', 'closed', 'resolved', 'finalized', 'disputed')",
            name="ck_markets_status",
        ),
        CheckConstraint("total_liquidity >= 0", name="ck_markets_liquidity_gte_0"),
        Index("idx_markets_created", "created_at", "id"),
        Index("idx_markets_status_close", "status", "close_time"),
    )


class MarketOptionORM(Base):
    __tablename__ = "market_options"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    market_id: Mapped[str] = mapped_column(
        Text, ForeignKey("markets.id", ondelete="CASCADE"), nullable=False
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False)
    total_staked: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("total_staked >= 0", name="ck_options_staked_gte_0"),
        Index("idx_options_market", "market_id", "sort_order"),
    )


class PositionORM(Base):
    __tablename__ = "positions"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    market_id: Mapped[str] = mapped_column(
        Text, ForeignKey("markets.id", ondelete="CASCADE"), nullable=False
    )
    option_id: Mapped[str] = mapped_column(
        Text, ForeignKey("market_options.id", ondelete="CASCADE"), nullable=False
    )
    user_address: Mapped[str] = mapped_column(
        Text, ForeignKey("users.address"), nullable=False
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")
    claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payout: Mapped[int | None] = mapped_column(BigInteger)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    settled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_positions_amount_gt_0"),
        CheckConstraint(
            "status IN ('pending', 'won', 'lost')", name="ck_positions_status"
        ),
        Index("idx_positions_market_user", "market_id", "user_address"),
        Index("idx_positions_user_created", "user_address", "created_at"),
    )
