"""Pari-mutuel payout computation.

Winners split the entire pool (every option's stakes) in proportion to their
share of the winning option's stake:

    payout = floor(stake * total_liquidity / winning_pool)

Flooring each share means the sum of all payouts never exceeds
total_liquidity; the remainder (at most one micro per winning position)
stays in the market.
"""

from dataclasses import dataclass

from src.pm_common.micros import MICROS_PER_UNIT, pro_rata


@dataclass(frozen=True)
class ClaimedStake:
    position_id: str
    option_id: str
    amount: int                  # micros


def effective_winning_pool(winning_pool: int) -> int:
    """A winning option nobody staked on counts as a pool of 1.000000."""
    return winning_pool if winning_pool > 0 else MICROS_PER_UNIT


def compute_payouts(
    stakes: list[ClaimedStake],
    winning_option_id: str,
    total_liquidity: int,
    winning_pool: int,
) -> dict[str, int]:
    """Map position_id -> payout micros (0 for losing positions)."""
    pool = effective_winning_pool(winning_pool)
    payouts: dict[str, int] = {}
    for stake in stakes:
        if stake.option_id == winning_option_id:
            payouts[stake.position_id] = pro_rata(stake.amount, pool, total_liquidity)
        else:
            payouts[stake.position_id] = 0
    return payouts
