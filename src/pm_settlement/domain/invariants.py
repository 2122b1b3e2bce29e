"""Conservation checks over per-market aggregates."""

from dataclasses import dataclass


@dataclass(frozen=True)
class MarketTotals:
    market_id: str
    total_liquidity: int         # markets.total_liquidity
    options_staked: int          # SUM(market_options.total_staked)
    positions_staked: int        # SUM(positions.amount)
    paid_out: int                # SUM(positions.payout)


def check_market_totals(t: MarketTotals) -> list[str]:
    """Return human-readable violations; empty when the market is consistent.

    total_liquidity == sum(option stakes) == sum(position amounts)
    sum(payouts) <= total_liquidity
    """
    violations: list[str] = []
    if t.total_liquidity != t.options_staked:
        violations.append(
            f"market {t.market_id}: total_liquidity={t.total_liquidity} "
            f"!= sum(options.total_staked)={t.options_staked}"
        )
    if t.total_liquidity != t.positions_staked:
        violations.append(
            f"market {t.market_id}: total_liquidity={t.total_liquidity} "
            f"!= sum(positions.amount)={t.positions_staked}"
        )
    if t.paid_out > t.total_liquidity:
        violations.append(
            f"market {t.market_id}: paid_out={t.paid_out} exceeds "
            f"total_liquidity={t.total_liquidity}"
        )
    return violations
