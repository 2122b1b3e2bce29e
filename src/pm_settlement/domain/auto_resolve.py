"""Default resolution rule for markets whose close time has passed."""

from datetime import datetime

from src.pm_common.datetime_utils import as_utc
from src.pm_common.enums import MarketStatus
from src.pm_market.domain.models import Market, MarketOption


def needs_transition(market: Market, now: datetime) -> bool:
    """Open past close time, or closed without a winner (left by the no-option path)."""
    if market.status == MarketStatus.OPEN:
        return as_utc(market.close_time) <= now
    return market.status == MarketStatus.CLOSED and market.winning_option_id is None


def pick_winner(options: list[MarketOption]) -> MarketOption | None:
    """Highest total_staked wins; ties go to the lowest sort_order."""
    best: MarketOption | None = None
    for opt in sorted(options, key=lambda o: o.sort_order):
        if best is None or opt.total_staked > best.total_staked:
            best = opt
    return best
