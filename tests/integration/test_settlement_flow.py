"""End-to-end settlement flows on SQLite: stake, auto-resolve, resolve, claim."""

import asyncio

import pytest

from src.pm_common.errors import (
    InsufficientFundsError,
    MarketAlreadyResolvedError,
    MarketClosedError,
    MarketNotResolvedError,
    NothingToClaimError,
    OptionNotFoundError,
)


async def _two_option_market(markets, session, close_time, options=("A", "B")):
    return await markets.create_market(
        session,
        question="Which side wins the final?",
        options=list(options),
        close_time=close_time,
        creator_id="creator",
    )


class TestExampleScenario:
    async def test_auto_resolve_and_claims(
        self, session, markets, positions, settlement, wallets, expire, in_one_hour
    ):
        m = await _two_option_market(markets, session, in_one_hour)
        opt_a, opt_b = m.options
        await positions.create_position(session, m.id, opt_a.id, "X", "100")
        await positions.create_position(session, m.id, opt_b.id, "Y", "300")

        await expire(session, m.id)
        detail = await markets.get_market(session, m.id)
        assert detail.status == "resolved"
        assert detail.winning_option_id == opt_b.id
        assert detail.total_liquidity == "400.000000"

        y_claim = await settlement.claim_payout(session, m.id, "Y")
        assert y_claim.amount == "400.000000"
        assert y_claim.balance == "1100.000000"

        x_claim = await settlement.claim_payout(session, m.id, "X")
        assert x_claim.amount == "0.000000"
        assert x_claim.balance == "900.000000"

        with pytest.raises(NothingToClaimError):
            await settlement.claim_payout(session, m.id, "X")
        with pytest.raises(NothingToClaimError):
            await settlement.claim_payout(session, m.id, "Y")

        y_wallet = await wallets.get_wallet(session, "Y")
        assert y_wallet.balance == "1100.000000"

    async def test_positions_marked_won_and_lost(
        self, session, markets, positions, expire, in_one_hour
    ):
        m = await _two_option_market(markets, session, in_one_hour)
        opt_a, opt_b = m.options
        await positions.create_position(session, m.id, opt_a.id, "X", "100")
        await positions.create_position(session, m.id, opt_b.id, "Y", "300")
        await expire(session, m.id)

        x_positions = await positions.list_positions(session, "X")
        y_positions = await positions.list_positions(session, "Y")
        assert x_positions.items[0].status == "lost"
        assert y_positions.items[0].status == "won"
        assert x_positions.items[0].settled_at is not None
        assert y_positions.items[0].market_question == "Which side wins the final?"
        assert y_positions.items[0].option_text == "B"


class TestAutoResolveRule:
    async def test_tie_goes_to_first_option(
        self, session, markets, positions, expire, in_one_hour
    ):
        m = await _two_option_market(markets, session, in_one_hour, ("First", "Second"))
        await positions.create_position(session, m.id, m.options[1].id, "u1", "50")
        await positions.create_position(session, m.id, m.options[0].id, "u2", "50")
        await expire(session, m.id)

        listed = await markets.list_markets(session)
        assert listed.items[0].status == "resolved"
        assert listed.items[0].winning_option_id == m.options[0].id

    async def test_market_without_stakes_resolves_to_first_option(
        self, session, markets, expire, in_one_hour
    ):
        m = await _two_option_market(markets, session, in_one_hour)
        await expire(session, m.id)

        detail = await markets.get_market(session, m.id)
        assert detail.status == "resolved"
        assert detail.winning_option_id == m.options[0].id

    async def test_open_market_before_close_is_untouched(
        self, session, markets, in_one_hour
    ):
        m = await _two_option_market(markets, session, in_one_hour)
        detail = await markets.get_market(session, m.id)
        assert detail.status == "open"
        assert detail.winning_option_id is None


class TestResolve:
    async def test_same_winner_is_idempotent(
        self, session, markets, positions, settlement, in_one_hour
    ):
        m = await _two_option_market(markets, session, in_one_hour)
        opt_a, opt_b = m.options
        await positions.create_position(session, m.id, opt_a.id, "X", "10")
        await positions.create_position(session, m.id, opt_b.id, "Y", "20")

        first = await settlement.resolve(session, m.id, opt_a.id)
        before = await positions.list_positions(session, "X")
        second = await settlement.resolve(session, m.id, opt_a.id)
        after = await positions.list_positions(session, "X")

        assert first.status == second.status == "resolved"
        assert first.resolved_at == second.resolved_at
        assert [p.status for p in before.items] == [p.status for p in after.items] == ["won"]

    async def test_different_winner_rejected(
        self, session, markets, positions, settlement, in_one_hour
    ):
        m = await _two_option_market(markets, session, in_one_hour)
        opt_a, opt_b = m.options
        await positions.create_position(session, m.id, opt_a.id, "X", "10")
        await settlement.resolve(session, m.id, opt_a.id)

        with pytest.raises(MarketAlreadyResolvedError):
            await settlement.resolve(session, m.id, opt_b.id)

        x_positions = await positions.list_positions(session, "X")
        assert x_positions.items[0].status == "won"

    async def test_option_from_another_market_rejected(
        self, session, markets, settlement, in_one_hour
    ):
        m1 = await _two_option_market(markets, session, in_one_hour)
        m2 = await _two_option_market(markets, session, in_one_hour)
        with pytest.raises(OptionNotFoundError):
            await settlement.resolve(session, m1.id, m2.options[0].id)

    async def test_claim_before_resolution_rejected(
        self, session, markets, positions, settlement, in_one_hour
    ):
        m = await _two_option_market(markets, session, in_one_hour)
        await positions.create_position(session, m.id, m.options[0].id, "X", "10")
        with pytest.raises(MarketNotResolvedError):
            await settlement.claim_payout(session, m.id, "X")


class TestStakingGuards:
    async def test_stake_after_close_fails_without_debit(
        self, session, markets, positions, wallets, expire, in_one_hour
    ):
        m = await _two_option_market(markets, session, in_one_hour)
        await wallets.connect(session, "late")
        await expire(session, m.id)

        with pytest.raises(MarketClosedError):
            await positions.create_position(session, m.id, m.options[0].id, "late", "5")

        wallet = await wallets.get_wallet(session, "late")
        assert wallet.balance == "1000.000000"

    async def test_balance_floor(self, session, markets, positions, wallets, in_one_hour):
        m = await _two_option_market(markets, session, in_one_hour)
        await positions.create_position(session, m.id, m.options[0].id, "poor", "990")

        with pytest.raises(InsufficientFundsError):
            await positions.create_position(session, m.id, m.options[1].id, "poor", "15")

        wallet = await wallets.get_wallet(session, "poor")
        assert wallet.balance == "10.000000"
        detail = await markets.get_market(session, m.id)
        assert detail.total_liquidity == "990.000000"
        assert detail.options[1].total_staked == "0.000000"
        assert detail.position_count == 1


class TestConservation:
    async def test_payouts_never_exceed_pool(
        self, session, markets, positions, settlement, in_one_hour
    ):
        m = await _two_option_market(markets, session, in_one_hour)
        opt_a, opt_b = m.options
        for user in ("u1", "u2", "u3"):
            await positions.create_position(session, m.id, opt_a.id, user, "1")
        await positions.create_position(session, m.id, opt_b.id, "u4", "1")

        report = await settlement.verify_invariants(session)
        assert report.ok

        await settlement.resolve(session, m.id, opt_a.id)
        paid = []
        for user in ("u1", "u2", "u3", "u4"):
            claim = await settlement.claim_payout(session, m.id, user)
            paid.append(claim.amount_micros)

        # 1 * 4 / 3 = 1.333333 each, flooring leaves one micro in the pool
        assert paid == [1_333_333, 1_333_333, 1_333_333, 0]
        assert sum(paid) <= 4_000_000

        report = await settlement.verify_invariants(session)
        assert report.ok
        assert report.markets_checked == 1

    async def test_multiple_positions_claimed_in_one_call(
        self, session, markets, positions, settlement, in_one_hour
    ):
        m = await _two_option_market(markets, session, in_one_hour)
        opt_a, opt_b = m.options
        await positions.create_position(session, m.id, opt_a.id, "multi", "30")
        await positions.create_position(session, m.id, opt_a.id, "multi", "10")
        await positions.create_position(session, m.id, opt_b.id, "multi", "20")
        await positions.create_position(session, m.id, opt_b.id, "other", "40")
        await settlement.resolve(session, m.id, opt_a.id)

        claim = await settlement.claim_payout(session, m.id, "multi")
        # winning pool 40, total 100: 30 -> 75, 10 -> 25
        assert claim.positions_claimed == 3
        assert claim.amount == "100.000000"
        assert claim.balance == "1040.000000"


class TestConcurrentAccess:
    """Each task runs on its own session, as concurrent requests would."""

    async def test_parallel_claims_pay_once(
        self, session, session_factory, markets, positions, settlement, wallets, in_one_hour
    ):
        m = await _two_option_market(markets, session, in_one_hour)
        opt_a, opt_b = m.options
        await positions.create_position(session, m.id, opt_a.id, "X", "100")
        await positions.create_position(session, m.id, opt_b.id, "Y", "300")
        await settlement.resolve(session, m.id, opt_b.id)

        async def claim() -> str | None:
            async with session_factory() as db:
                try:
                    return (await settlement.claim_payout(db, m.id, "Y")).amount
                except NothingToClaimError:
                    return None

        results = await asyncio.gather(*(claim() for _ in range(3)))

        assert [r for r in results if r is not None] == ["400.000000"]
        assert results.count(None) == 2
        async with session_factory() as db:
            assert (await wallets.get_wallet(db, "Y")).balance == "1100.000000"
            assert (await settlement.verify_invariants(db)).ok

    async def test_parallel_readers_settle_expired_market_once(
        self, session, session_factory, markets, positions, expire, in_one_hour
    ):
        m = await _two_option_market(markets, session, in_one_hour)
        opt_a, opt_b = m.options
        await positions.create_position(session, m.id, opt_a.id, "X", "100")
        await positions.create_position(session, m.id, opt_b.id, "Y", "300")
        await expire(session, m.id)

        async def read():
            async with session_factory() as db:
                return await markets.get_market(db, m.id)

        seen = await asyncio.gather(*(read() for _ in range(5)))

        assert {d.status for d in seen} == {"resolved"}
        assert {d.winning_option_id for d in seen} == {opt_b.id}
        assert len({d.resolved_at for d in seen}) == 1
        async with session_factory() as db:
            y_positions = await positions.list_positions(db, "Y")
        assert [p.status for p in y_positions.items] == ["won"]
