"""Unit tests for SettlementService using mock repositories."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.pm_common.datetime_utils import utc_now
from src.pm_common.errors import (
    MarketAlreadyResolvedError,
    MarketNotFoundError,
    MarketNotResolvableError,
    MarketNotResolvedError,
    NothingToClaimError,
    OptionNotFoundError,
)
from src.pm_common.locks import KeyedLocks
from src.pm_ledger.domain.models import User
from src.pm_market.domain.models import Market, MarketOption
from src.pm_settlement.application.service import SettlementService
from src.pm_settlement.domain.invariants import MarketTotals
from src.pm_settlement.domain.payout import ClaimedStake


def _make_market(status="open", winner=None, closes_in=timedelta(hours=1), options=None) -> Market:
    now = utc_now()
    if options is None:
        options = [
            MarketOption(id="a", market_id="m1", text="A", sort_order=0, total_staked=100),
            MarketOption(id="b", market_id="m1", text="B", sort_order=1, total_staked=300),
        ]
    return Market(
        id="m1", question="Which option wins?", description=None, category="General",
        banner_url=None, close_time=now + closes_in, status=status,
        winning_option_id=winner, creator_id="alice",
        total_liquidity=sum(o.total_staked for o in options), created_at=now,
        options=options,
    )


@pytest.fixture
def db():
    return AsyncMock()


@pytest.fixture
def repo():
    return AsyncMock()


@pytest.fixture
def market_repo():
    return AsyncMock()


@pytest.fixture
def ledger():
    return AsyncMock()


@pytest.fixture
def events():
    return MagicMock()


@pytest.fixture
def svc(repo, market_repo, ledger, events) -> SettlementService:
    return SettlementService(
        repo=repo, market_repo=market_repo, ledger=ledger, events=events, locks=KeyedLocks()
    )


class TestResolve:
    async def test_open_market_resolves(self, svc, db, repo, market_repo, events):
        market_repo.get_market_for_update.return_value = _make_market()
        market_repo.get_market.return_value = _make_market(status="resolved", winner="b")
        repo.mark_resolved.return_value = True
        repo.settle_positions.return_value = (1, 1)

        out = await svc.resolve(db, "m1", "b")

        assert out.status == "resolved"
        assert out.winning_option_id == "b"
        repo.settle_positions.assert_awaited_once()
        db.commit.assert_awaited_once()
        assert [c.args for c in events.publish.call_args_list] == [
            ("market-resolved", {"marketId": "m1", "winningOptionId": "b", "auto": False}),
            ("market-updated", {"marketId": "m1", "status": "resolved"}),
        ]

    async def test_same_winner_is_noop(self, svc, db, repo, market_repo, events):
        resolved = _make_market(status="resolved", winner="b")
        market_repo.get_market_for_update.return_value = resolved
        market_repo.get_market.return_value = resolved

        out = await svc.resolve(db, "m1", "b")

        assert out.winning_option_id == "b"
        repo.mark_resolved.assert_not_awaited()
        repo.settle_positions.assert_not_awaited()
        events.publish.assert_not_called()

    async def test_different_winner_rejected(self, svc, db, repo, market_repo):
        market_repo.get_market_for_update.return_value = _make_market(status="resolved", winner="b")

        with pytest.raises(MarketAlreadyResolvedError):
            await svc.resolve(db, "m1", "a")

        repo.settle_positions.assert_not_awaited()
        db.rollback.assert_awaited_once()

    @pytest.mark.parametrize("status", ["finalized", "disputed"])
    async def test_terminal_statuses_rejected(self, svc, db, market_repo, status):
        market_repo.get_market_for_update.return_value = _make_market(status=status)
        with pytest.raises(MarketNotResolvableError):
            await svc.resolve(db, "m1", "a")

    async def test_lost_compare_and_set(self, svc, db, repo, market_repo):
        market_repo.get_market_for_update.return_value = _make_market()
        repo.mark_resolved.return_value = False

        with pytest.raises(MarketAlreadyResolvedError):
            await svc.resolve(db, "m1", "a")

        repo.settle_positions.assert_not_awaited()
        db.rollback.assert_awaited_once()

    async def test_unknown_market(self, svc, db, market_repo):
        market_repo.get_market_for_update.return_value = None
        with pytest.raises(MarketNotFoundError):
            await svc.resolve(db, "m1", "a")

    async def test_unknown_option(self, svc, db, market_repo):
        market_repo.get_market_for_update.return_value = _make_market()
        with pytest.raises(OptionNotFoundError):
            await svc.resolve(db, "m1", "zzz")


class TestAutoTransition:
    async def test_resolves_to_highest_stake(self, svc, db, repo, market_repo, events):
        market_repo.get_market_for_update.return_value = _make_market(closes_in=timedelta(seconds=-5))
        repo.mark_resolved.return_value = True
        repo.settle_positions.return_value = (1, 1)

        action = await svc.auto_transition(db, "m1")

        assert action == "resolved"
        assert repo.mark_resolved.call_args.args[2] == "b"
        assert [c.args[0] for c in events.publish.call_args_list] == [
            "market-resolved",
            "market-updated",
        ]
        assert events.publish.call_args_list[0].args[1]["auto"] is True

    async def test_closes_market_without_options(self, svc, db, repo, market_repo, events):
        market_repo.get_market_for_update.return_value = _make_market(
            closes_in=timedelta(seconds=-5), options=[]
        )
        repo.mark_closed.return_value = True

        assert await svc.auto_transition(db, "m1") == "closed"
        repo.mark_resolved.assert_not_awaited()
        events.publish.assert_called_once_with(
            "market-updated", {"marketId": "m1", "status": "closed"}
        )

    async def test_not_stale_is_skipped(self, svc, db, repo, market_repo, events):
        market_repo.get_market_for_update.return_value = _make_market()

        assert await svc.auto_transition(db, "m1") is None
        repo.mark_resolved.assert_not_awaited()
        events.publish.assert_not_called()

    async def test_other_writer_won(self, svc, db, repo, market_repo, events):
        market_repo.get_market_for_update.return_value = _make_market(closes_in=timedelta(seconds=-5))
        repo.mark_resolved.return_value = False

        assert await svc.auto_transition(db, "m1") is None
        repo.settle_positions.assert_not_awaited()
        events.publish.assert_not_called()


class TestClaimPayout:
    async def test_pays_winner(self, svc, db, repo, market_repo, ledger):
        market_repo.get_market_for_update.return_value = _make_market(status="resolved", winner="b")
        repo.claim_positions.return_value = [ClaimedStake("p1", "b", 300)]
        ledger.credit.return_value = User(address="Y", balance=1_100)

        result = await svc.claim_payout(db, "m1", "Y")

        assert result.amount_micros == 400
        assert result.positions_claimed == 1
        repo.set_payout.assert_awaited_once_with(db, "p1", 400)
        assert ledger.credit.call_args.args[2] == 400
        db.commit.assert_awaited_once()

    async def test_loser_gets_zero(self, svc, db, repo, market_repo, ledger):
        market_repo.get_market_for_update.return_value = _make_market(status="resolved", winner="b")
        repo.claim_positions.return_value = [ClaimedStake("p1", "a", 100)]
        ledger.credit.return_value = User(address="X", balance=900)

        result = await svc.claim_payout(db, "m1", "X")

        assert result.amount == "0.000000"
        repo.set_payout.assert_awaited_once_with(db, "p1", 0)

    async def test_nothing_to_claim(self, svc, db, repo, market_repo, ledger):
        market_repo.get_market_for_update.return_value = _make_market(status="resolved", winner="b")
        repo.claim_positions.return_value = []

        with pytest.raises(NothingToClaimError):
            await svc.claim_payout(db, "m1", "X")
        ledger.credit.assert_not_awaited()
        db.rollback.assert_awaited_once()

    @pytest.mark.parametrize("status", ["open", "closed", "disputed"])
    async def test_not_resolved(self, svc, db, repo, market_repo, status):
        market_repo.get_market_for_update.return_value = _make_market(status=status)
        with pytest.raises(MarketNotResolvedError):
            await svc.claim_payout(db, "m1", "X")
        repo.claim_positions.assert_not_awaited()


class TestVerifyInvariants:
    async def test_reports_violations(self, svc, db, repo):
        repo.market_totals.return_value = [
            MarketTotals("m1", 10, 10, 10, 0),
            MarketTotals("m2", 10, 9, 10, 0),
        ]
        report = await svc.verify_invariants(db)
        assert report.ok is False
        assert report.markets_checked == 2
        assert len(report.violations) == 1
