"""MarketSweeper — moves markets past their close time through the auto rule.

Two entry points share one sweep():
  * read paths (market list/detail, position list) sweep before loading data,
    so every response reflects settled state even with the ticker disabled;
  * run_forever() is the background ticker started by the app lifespan when
    SWEEP_INTERVAL_SECONDS > 0.
"""

import asyncio
import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.pm_common.datetime_utils import utc_now
from src.pm_market.domain.repository import MarketRepositoryProtocol
from src.pm_market.infrastructure.persistence import MarketRepository
from src.pm_settlement.application.service import SettlementService

logger = logging.getLogger(__name__)


class MarketSweeper:
    def __init__(
        self,
        settlement: SettlementService | None = None,
        market_repo: MarketRepositoryProtocol | None = None,
    ) -> None:
        self._settlement = settlement or SettlementService()
        self._markets: MarketRepositoryProtocol = market_repo or MarketRepository()

    async def sweep(
        self,
        db: AsyncSession,
        market_ids: list[str] | None = None,
        now: datetime | None = None,
    ) -> int:
        """Transition stale markets (all of them, or only `market_ids`). Returns count."""
        now = now or utc_now()
        stale = await self._markets.list_stale_market_ids(db, now, market_ids)
        transitioned = 0
        for market_id in stale:
            if await self._settlement.auto_transition(db, market_id, now):
                transitioned += 1
        if transitioned:
            logger.info("Sweep transitioned %d market(s)", transitioned)
        return transitioned

    async def run_forever(
        self, interval_seconds: float, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Sweep every `interval_seconds` until cancelled; a failed tick is logged and skipped."""
        logger.info("Market sweeper started (interval=%.1fs)", interval_seconds)
        while True:
            try:
                async with session_factory() as db:
                    await self.sweep(db)
            except asyncio.CancelledError:
                logger.info("Market sweeper stopped")
                raise
            except Exception:
                logger.exception("Market sweep failed")
            await asyncio.sleep(interval_seconds)
