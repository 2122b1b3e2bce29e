"""Domain models for pm_market — pure dataclasses, no business logic."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class MarketOption:
    id: str
    market_id: str
    text: str
    sort_order: int
    total_staked: int = 0            # micros


@dataclass
class Market:
    id: str
    question: str
    description: str | None
    category: str
    banner_url: str | None
    close_time: datetime
    status: str                      # MarketStatus value
    winning_option_id: str | None
    creator_id: str
    total_liquidity: int             # micros, == sum(options.total_staked)
    created_at: datetime
    resolved_at: datetime | None = None
    options: list[MarketOption] = field(default_factory=list)   # by sort_order
    position_count: int = 0

    def option(self, option_id: str) -> MarketOption | None:
        for opt in self.options:
            if opt.id == option_id:
                return opt
        return None


@dataclass
class Position:
    id: str
    market_id: str
    option_id: str
    user_address: str
    amount: int                      # micros, immutable after insert
    status: str                      # PositionStatus value
    claimed: bool
    created_at: datetime
    payout: int | None = None        # micros, set at claim
    settled_at: datetime | None = None
    # Denormalised for position listings
    market_question: str | None = None
    option_text: str | None = None
