"""Tests for pm_settlement.domain.invariants."""

from src.pm_settlement.domain.invariants import MarketTotals, check_market_totals


def _totals(**kwargs) -> MarketTotals:
    defaults = dict(
        market_id="m1", total_liquidity=400, options_staked=400,
        positions_staked=400, paid_out=0,
    )
    defaults.update(kwargs)
    return MarketTotals(**defaults)


class TestCheckMarketTotals:
    def test_consistent(self) -> None:
        assert check_market_totals(_totals()) == []

    def test_full_payout_is_fine(self) -> None:
        assert check_market_totals(_totals(paid_out=400)) == []

    def test_option_sum_mismatch(self) -> None:
        violations = check_market_totals(_totals(options_staked=399))
        assert len(violations) == 1
        assert "sum(options.total_staked)=399" in violations[0]

    def test_position_sum_mismatch(self) -> None:
        violations = check_market_totals(_totals(positions_staked=401))
        assert "sum(positions.amount)=401" in violations[0]

    def test_overpayment(self) -> None:
        violations = check_market_totals(_totals(paid_out=401))
        assert violations == ["market m1: paid_out=401 exceeds total_liquidity=400"]
