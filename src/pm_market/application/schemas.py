"""Pydantic schemas for pm_market API requests and responses.

Request bodies accept the camelCase keys of the web client (closeTime,
creatorId, marketId, ...). Amounts are rendered as 6-decimal strings, with
the raw micro value alongside for clients that do their own arithmetic.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from src.pm_common.micros import micros_to_display
from src.pm_market.domain.models import Market, MarketOption, Position


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class CreateMarketRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question: str
    options: list[str]
    close_time: datetime = Field(..., alias="closeTime")
    creator_id: str = Field(..., alias="creatorId")
    category: str | None = None
    description: str | None = None
    banner_url: str | None = Field(None, alias="bannerUrl")


class CreatePositionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    market_id: str = Field(..., alias="marketId", min_length=1)
    option_id: str = Field(..., alias="optionId", min_length=1)
    user_address: str = Field(..., alias="userAddress", min_length=1)
    amount: Decimal


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class OptionOut(BaseModel):
    id: str
    text: str
    sort_order: int
    total_staked: str
    total_staked_micros: int

    @classmethod
    def from_domain(cls, o: MarketOption) -> "OptionOut":
        return cls(
            id=o.id,
            text=o.text,
            sort_order=o.sort_order,
            total_staked=micros_to_display(o.total_staked),
            total_staked_micros=o.total_staked,
        )


class MarketOut(BaseModel):
    id: str
    question: str
    description: str | None
    category: str
    banner_url: str | None
    close_time: str
    status: str
    winning_option_id: str | None
    creator_id: str
    total_liquidity: str
    total_liquidity_micros: int
    created_at: str
    resolved_at: str | None
    options: list[OptionOut]
    position_count: int

    @classmethod
    def from_domain(cls, m: Market) -> "MarketOut":
        return cls(
            id=m.id,
            question=m.question,
            description=m.description,
            category=m.category,
            banner_url=m.banner_url,
            close_time=m.close_time.isoformat(),
            status=m.status,
            winning_option_id=m.winning_option_id,
            creator_id=m.creator_id,
            total_liquidity=micros_to_display(m.total_liquidity),
            total_liquidity_micros=m.total_liquidity,
            created_at=m.created_at.isoformat(),
            resolved_at=_iso(m.resolved_at),
            options=[OptionOut.from_domain(o) for o in m.options],
            position_count=m.position_count,
        )


class MarketListResponse(BaseModel):
    items: list[MarketOut]
    total: int


class PositionOut(BaseModel):
    id: str
    market_id: str
    option_id: str
    user_address: str
    amount: str
    amount_micros: int
    status: str
    claimed: bool
    payout: str | None
    created_at: str
    settled_at: str | None
    market_question: str | None
    option_text: str | None

    @classmethod
    def from_domain(cls, p: Position) -> "PositionOut":
        return cls(
            id=p.id,
            market_id=p.market_id,
            option_id=p.option_id,
            user_address=p.user_address,
            amount=micros_to_display(p.amount),
            amount_micros=p.amount,
            status=p.status,
            claimed=p.claimed,
            payout=micros_to_display(p.payout) if p.payout is not None else None,
            created_at=p.created_at.isoformat(),
            settled_at=_iso(p.settled_at),
            market_question=p.market_question,
            option_text=p.option_text,
        )


class PositionListResponse(BaseModel):
    items: list[PositionOut]
    total: int


class DeleteMarketResponse(BaseModel):
    deleted: bool = True
    market_id: str
    refunded_positions: int
    refunded_total: str
