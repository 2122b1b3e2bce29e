"""Helpers shared by the database-backed flow tests."""

from datetime import timedelta

import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.datetime_utils import utc_now
from src.pm_ledger.application.service import WalletService
from src.pm_market.application.service import MarketService, PositionService
from src.pm_market.infrastructure.db_models import MarketORM
from src.pm_settlement.application.service import SettlementService


async def _expire_market(db: AsyncSession, market_id: str) -> None:
    await db.execute(
        update(MarketORM)
        .where(MarketORM.id == market_id)
        .values(close_time=utc_now() - timedelta(seconds=1))
    )
    await db.commit()


@pytest.fixture
def expire():
    """Move a market's close_time into the past, as if the clock had run past it."""
    return _expire_market


@pytest.fixture
def markets() -> MarketService:
    return MarketService()


@pytest.fixture
def positions() -> PositionService:
    return PositionService()


@pytest.fixture
def settlement() -> SettlementService:
    return SettlementService()


@pytest.fixture
def wallets() -> WalletService:
    return WalletService()


@pytest.fixture
def in_one_hour():
    return utc_now() + timedelta(hours=1)
