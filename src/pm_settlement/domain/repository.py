"""Repository Protocol for settlement writes (dependency inversion for tests)."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_settlement.domain.invariants import MarketTotals
from src.pm_settlement.domain.payout import ClaimedStake


class SettlementRepositoryProtocol(Protocol):
    async def mark_resolved(
        self, db: AsyncSession, market_id: str, winning_option_id: str, now: datetime
    ) -> bool: ...

    async def mark_closed(self, db: AsyncSession, market_id: str) -> bool: ...

    async def settle_positions(
        self, db: AsyncSession, market_id: str, winning_option_id: str, now: datetime
    ) -> tuple[int, int]: ...

    async def claim_positions(
        self, db: AsyncSession, market_id: str, user_address: str
    ) -> list[ClaimedStake]: ...

    async def set_payout(self, db: AsyncSession, position_id: str, payout: int) -> None: ...

    async def market_totals(self, db: AsyncSession) -> list[MarketTotals]: ...
