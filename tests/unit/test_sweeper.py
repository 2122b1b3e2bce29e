"""Unit tests for MarketSweeper."""

import asyncio
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock

from src.pm_settlement.application.sweeper import MarketSweeper


class TestSweep:
    async def test_counts_transitions(self):
        repo = AsyncMock()
        repo.list_stale_market_ids.return_value = ["m1", "m2", "m3"]
        settlement = AsyncMock()
        settlement.auto_transition.side_effect = ["resolved", None, "closed"]
        sweeper = MarketSweeper(settlement=settlement, market_repo=repo)

        assert await sweeper.sweep(AsyncMock()) == 2
        assert settlement.auto_transition.await_count == 3

    async def test_scoped_to_given_markets(self):
        repo = AsyncMock()
        repo.list_stale_market_ids.return_value = []
        sweeper = MarketSweeper(settlement=AsyncMock(), market_repo=repo)
        db = AsyncMock()

        assert await sweeper.sweep(db, ["m9"]) == 0
        assert repo.list_stale_market_ids.call_args.args[2] == ["m9"]


class TestRunForever:
    async def test_failed_tick_does_not_stop_loop(self):
        second_tick = asyncio.Event()
        calls = 0

        async def flaky_sweep(db, market_ids=None, now=None):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("database unavailable")
            second_tick.set()
            return 0

        @asynccontextmanager
        async def session_factory():
            yield AsyncMock()

        sweeper = MarketSweeper(settlement=AsyncMock(), market_repo=AsyncMock())
        sweeper.sweep = flaky_sweep  # type: ignore[method-assign]
        task = asyncio.create_task(sweeper.run_forever(0.01, session_factory))  # type: ignore[arg-type]
        await asyncio.wait_for(second_tick.wait(), timeout=2)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        assert calls >= 2
