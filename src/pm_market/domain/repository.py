# src/pm_market/domain/repository.py
"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_market.domain.models import Market, Position


class MarketRepositoryProtocol(Protocol):
    async def create_market(self, db: AsyncSession, market: Market) -> None: ...

    async def get_market(self, db: AsyncSession, market_id: str) -> Market | None: ...

    async def get_market_for_update(
        self, db: AsyncSession, market_id: str
    ) -> Market | None: ...

    async def list_markets(
        self, db: AsyncSession, status: str | None, category: str | None
    ) -> list[Market]: ...

    async def count_markets(self, db: AsyncSession) -> int: ...

    async def list_stale_market_ids(
        self, db: AsyncSession, now: datetime, market_ids: list[str] | None = None
    ) -> list[str]: ...

    async def add_stake(
        self,
        db: AsyncSession,
        market_id: str,
        option_id: str,
        amount: int,
        now: datetime,
    ) -> bool: ...

    async def insert_position(self, db: AsyncSession, position: Position) -> None: ...

    async def list_positions(
        self, db: AsyncSession, user_address: str
    ) -> list[Position]: ...

    async def unclaimed_stakes(
        self, db: AsyncSession, market_id: str
    ) -> list[tuple[str, int]]: ...

    async def delete_market(self, db: AsyncSession, market_id: str) -> int: ...
