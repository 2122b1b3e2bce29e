"""SettlementRepository — status transitions, position settlement and claims.

Every transition is a compare-and-set so two writers (two processes, or a
sweeper racing an admin resolve) cannot both apply it:

    resolve:  UPDATE markets   SET status='resolved' ... WHERE status IN ('open','closed')
    close:    UPDATE markets   SET status='closed'       WHERE status = 'open'
    claim:    UPDATE positions SET claimed=true          WHERE claimed = false RETURNING ...

Transaction ownership: The CALLER (application service) commits or rolls back.
"""

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.enums import MarketStatus, PositionStatus
from src.pm_market.infrastructure.db_models import MarketOptionORM, MarketORM, PositionORM
from src.pm_settlement.domain.invariants import MarketTotals
from src.pm_settlement.domain.payout import ClaimedStake


class SettlementRepository:
    async def mark_resolved(
        self, db: AsyncSession, market_id: str, winning_option_id: str, now: datetime
    ) -> bool:
        result = await db.execute(
            update(MarketORM)
            .where(
                MarketORM.id == market_id,
                MarketORM.status.in_([MarketStatus.OPEN.value, MarketStatus.CLOSED.value]),
            )
            .values(
                status=MarketStatus.RESOLVED.value,
                winning_option_id=winning_option_id,
                resolved_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def mark_closed(self, db: AsyncSession, market_id: str) -> bool:
        result = await db.execute(
            update(MarketORM)
            .where(MarketORM.id == market_id, MarketORM.status == MarketStatus.OPEN.value)
            .values(status=MarketStatus.CLOSED.value)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def settle_positions(
        self, db: AsyncSession, market_id: str, winning_option_id: str, now: datetime
    ) -> tuple[int, int]:
        """Mark every position of the market won/lost. Returns (won, lost)."""
        won = await db.execute(
            update(PositionORM)
            .where(
                PositionORM.market_id == market_id,
                PositionORM.option_id == winning_option_id,
            )
            .values(status=PositionStatus.WON.value, settled_at=now)
            .execution_options(synchronize_session=False)
        )
        lost = await db.execute(
            update(PositionORM)
            .where(
                PositionORM.market_id == market_id,
                PositionORM.option_id != winning_option_id,
            )
            .values(status=PositionStatus.LOST.value, settled_at=now)
            .execution_options(synchronize_session=False)
        )
        return won.rowcount, lost.rowcount

    async def claim_positions(
        self, db: AsyncSession, market_id: str, user_address: str
    ) -> list[ClaimedStake]:
        """Flip claimed false->true on the user's positions; only flipped rows come back."""
        result = await db.execute(
            update(PositionORM)
            .where(
                PositionORM.market_id == market_id,
                PositionORM.user_address == user_address,
                PositionORM.claimed.is_(False),
            )
            .values(claimed=True)
            .returning(PositionORM.id, PositionORM.option_id, PositionORM.amount)
            .execution_options(synchronize_session=False)
        )
        return [
            ClaimedStake(position_id=row.id, option_id=row.option_id, amount=row.amount)
            for row in result.fetchall()
        ]

    async def set_payout(self, db: AsyncSession, position_id: str, payout: int) -> None:
        await db.execute(
            update(PositionORM)
            .where(PositionORM.id == position_id)
            .values(payout=payout)
            .execution_options(synchronize_session=False)
        )

    async def market_totals(self, db: AsyncSession) -> list[MarketTotals]:
        options = (
            select(
                MarketOptionORM.market_id,
                func.coalesce(func.sum(MarketOptionORM.total_staked), 0).label("staked"),
            )
            .group_by(MarketOptionORM.market_id)
            .subquery()
        )
        positions = (
            select(
                PositionORM.market_id,
                func.coalesce(func.sum(PositionORM.amount), 0).label("staked"),
                func.coalesce(func.sum(PositionORM.payout), 0).label("paid"),
            )
            .group_by(PositionORM.market_id)
            .subquery()
        )
        stmt = (
            select(
                MarketORM.id,
                MarketORM.total_liquidity,
                func.coalesce(options.c.staked, 0).label("options_staked"),
                func.coalesce(positions.c.staked, 0).label("positions_staked"),
                func.coalesce(positions.c.paid, 0).label("paid_out"),
            )
            .outerjoin(options, options.c.market_id == MarketORM.id)
            .outerjoin(positions, positions.c.market_id == MarketORM.id)
            .order_by(MarketORM.id)
        )
        rows = (await db.execute(stmt)).fetchall()
        return [
            MarketTotals(
                market_id=row.id,
                total_liquidity=int(row.total_liquidity),
                options_staked=int(row.options_staked),
                positions_staked=int(row.positions_staked),
                paid_out=int(row.paid_out),
            )
            for row in rows
        ]
