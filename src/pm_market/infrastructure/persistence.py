"""MarketRepository — concrete implementation of MarketRepositoryProtocol.

Queries use SQLAlchemy Core constructs over the ORM tables so the same code
runs on PostgreSQL (asyncpg) and on SQLite (aiosqlite) in tests.

Stake accounting is a compare-and-set on the market row:
    UPDATE markets SET total_liquidity = total_liquidity + :amount
    WHERE id = :id AND status = 'open' AND close_time > :now
Zero rows updated means the market closed between the caller's read and write.

Transaction ownership: The CALLER (application service) commits or rolls back.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.datetime_utils import as_utc
from src.pm_common.enums import MarketStatus
from src.pm_market.domain.models import Market, MarketOption, Position
from src.pm_market.infrastructure.db_models import MarketOptionORM, MarketORM, PositionORM

_MARKET_COLUMNS = (
    MarketORM.id,
    MarketORM.question,
    MarketORM.description,
    MarketORM.category,
    MarketORM.banner_url,
    MarketORM.close_time,
    MarketORM.status,
    MarketORM.winning_option_id,
    MarketORM.creator_id,
    MarketORM.total_liquidity,
    MarketORM.created_at,
    MarketORM.resolved_at,
)

_OPTION_COLUMNS = (
    MarketOptionORM.id,
    MarketOptionORM.market_id,
    MarketOptionORM.text,
    MarketOptionORM.sort_order,
    MarketOptionORM.total_staked,
)

_POSITION_COLUMNS = (
    PositionORM.id,
    PositionORM.market_id,
    PositionORM.option_id,
    PositionORM.user_address,
    PositionORM.amount,
    PositionORM.status,
    PositionORM.claimed,
    PositionORM.payout,
    PositionORM.created_at,
    PositionORM.settled_at,
)

# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_market(row: Any) -> Market:
    return Market(
        id=row.id,
        question=row.question,
        description=row.description,
        category=row.category,
        banner_url=row.banner_url,
        close_time=as_utc(row.close_time),
        status=row.status,
        winning_option_id=row.winning_option_id,
        creator_id=row.creator_id,
        total_liquidity=row.total_liquidity,
        created_at=as_utc(row.created_at),
        resolved_at=as_utc(row.resolved_at) if row.resolved_at else None,
    )


def _row_to_option(row: Any) -> MarketOption:
    return MarketOption(
        id=row.id,
        market_id=row.market_id,
        text=row.text,
        sort_order=row.sort_order,
        total_staked=row.total_staked,
    )


def _row_to_position(row: Any) -> Position:
    return Position(
        id=row.id,
        market_id=row.market_id,
        option_id=row.option_id,
        user_address=row.user_address,
        amount=row.amount,
        status=row.status,
        claimed=bool(row.claimed),
        payout=row.payout,
        created_at=as_utc(row.created_at),
        settled_at=as_utc(row.settled_at) if row.settled_at else None,
        market_question=getattr(row, "question", None),
        option_text=getattr(row, "text", None),
    )


def _is_stale(status: str, close_time: datetime, winning_option_id: str | None, now: datetime) -> bool:
    if status == MarketStatus.OPEN:
        return as_utc(close_time) <= now
    return status == MarketStatus.CLOSED and winning_option_id is None


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class MarketRepository:
    async def create_market(self, db: AsyncSession, market: Market) -> None:
        await db.execute(
            insert(MarketORM).values(
                id=market.id,
                question=market.question,
                description=market.description,
                category=market.category,
                banner_url=market.banner_url,
                close_time=market.close_time,
                status=market.status,
                winning_option_id=None,
                creator_id=market.creator_id,
                total_liquidity=market.total_liquidity,
                created_at=market.created_at,
            )
        )
        await db.execute(
            insert(MarketOptionORM),
            [
                {
                    "id": opt.id,
                    "market_id": market.id,
                    "text": opt.text,
                    "sort_order": opt.sort_order,
                    "total_staked": opt.total_staked,
                }
                for opt in market.options
            ],
        )

    async def get_market(self, db: AsyncSession, market_id: str) -> Market | None:
        row = (
            await db.execute(select(*_MARKET_COLUMNS).where(MarketORM.id == market_id))
        ).fetchone()
        if row is None:
            return None
        markets = await self._hydrate(db, [_row_to_market(row)])
        return markets[0]

    async def get_market_for_update(
        self, db: AsyncSession, market_id: str
    ) -> Market | None:
        """Row-lock the market (FOR UPDATE; a no-op on SQLite) and load its options."""
        row = (
            await db.execute(
                select(*_MARKET_COLUMNS).where(MarketORM.id == market_id).with_for_update()
            )
        ).fetchone()
        if row is None:
            return None
        market = _row_to_market(row)
        market.options = await self._options_for(db, [market_id])
        return market

    async def list_markets(
        self, db: AsyncSession, status: str | None, category: str | None
    ) -> list[Market]:
        stmt = select(*_MARKET_COLUMNS)
        if status is not None:
            stmt = stmt.where(MarketORM.status == status)
        if category is not None:
            stmt = stmt.where(MarketORM.category == category)
        stmt = stmt.order_by(MarketORM.created_at.desc(), MarketORM.id.desc())
        rows = (await db.execute(stmt)).fetchall()
        return await self._hydrate(db, [_row_to_market(row) for row in rows])

    async def count_markets(self, db: AsyncSession) -> int:
        return (await db.execute(select(func.count()).select_from(MarketORM))).scalar_one()

    async def list_stale_market_ids(
        self, db: AsyncSession, now: datetime, market_ids: list[str] | None = None
    ) -> list[str]:
        """Ids of markets that are open past close time, or closed without a winner."""
        stmt = select(
            MarketORM.id, MarketORM.status, MarketORM.close_time, MarketORM.winning_option_id
        ).where(MarketORM.status.in_([MarketStatus.OPEN.value, MarketStatus.CLOSED.value]))
        if market_ids is not None:
            if not market_ids:
                return []
            stmt = stmt.where(MarketORM.id.in_(market_ids))
        rows = (await db.execute(stmt.order_by(MarketORM.close_time))).fetchall()
        return [
            row.id
            for row in rows
            if _is_stale(row.status, row.close_time, row.winning_option_id, now)
        ]

    async def add_stake(
        self,
        db: AsyncSession,
        market_id: str,
        option_id: str,
        amount: int,
        now: datetime,
    ) -> bool:
        """Increment market liquidity (CAS on open + not expired) and the option total."""
        result = await db.execute(
            update(MarketORM)
            .where(
                MarketORM.id == market_id,
                MarketORM.status == MarketStatus.OPEN.value,
                MarketORM.close_time > now,
            )
            .values(total_liquidity=MarketORM.total_liquidity + amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        result = await db.execute(
            update(MarketOptionORM)
            .where(MarketOptionORM.id == option_id, MarketOptionORM.market_id == market_id)
            .values(total_staked=MarketOptionORM.total_staked + amount)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def insert_position(self, db: AsyncSession, position: Position) -> None:
        await db.execute(
            insert(PositionORM).values(
                id=position.id,
                market_id=position.market_id,
                option_id=position.option_id,
                user_address=position.user_address,
                amount=position.amount,
                status=position.status,
                claimed=position.claimed,
                payout=position.payout,
                created_at=position.created_at,
            )
        )

    async def list_positions(
        self, db: AsyncSession, user_address: str
    ) -> list[Position]:
        stmt = (
            select(*_POSITION_COLUMNS, MarketORM.question, MarketOptionORM.text)
            .join(MarketORM, MarketORM.id == PositionORM.market_id)
            .join(MarketOptionORM, MarketOptionORM.id == PositionORM.option_id)
            .where(PositionORM.user_address == user_address)
            .order_by(PositionORM.created_at.desc(), PositionORM.id.desc())
        )
        rows = (await db.execute(stmt)).fetchall()
        return [_row_to_position(row) for row in rows]

    async def unclaimed_stakes(
        self, db: AsyncSession, market_id: str
    ) -> list[tuple[str, int]]:
        """(user_address, summed amount) of every unclaimed position in the market."""
        stmt = (
            select(PositionORM.user_address, func.sum(PositionORM.amount).label("total"))
            .where(PositionORM.market_id == market_id, PositionORM.claimed.is_(False))
            .group_by(PositionORM.user_address)
            .order_by(PositionORM.user_address)
        )
        rows = (await db.execute(stmt)).fetchall()
        return [(row.user_address, int(row.total)) for row in rows]

    async def delete_market(self, db: AsyncSession, market_id: str) -> int:
        """Delete the market with its positions and options. Returns positions removed.

        Children are deleted explicitly so the cascade does not depend on the
        backend enforcing foreign keys (SQLite does not by default).
        """
        removed = await db.execute(
            delete(PositionORM)
            .where(PositionORM.market_id == market_id)
            .execution_options(synchronize_session=False)
        )
        await db.execute(
            delete(MarketOptionORM)
            .where(MarketOptionORM.market_id == market_id)
            .execution_options(synchronize_session=False)
        )
        await db.execute(
            delete(MarketORM)
            .where(MarketORM.id == market_id)
            .execution_options(synchronize_session=False)
        )
        return removed.rowcount

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    async def _options_for(
        self, db: AsyncSession, market_ids: list[str]
    ) -> list[MarketOption]:
        stmt = (
            select(*_OPTION_COLUMNS)
            .where(MarketOptionORM.market_id.in_(market_ids))
            .order_by(MarketOptionORM.market_id, MarketOptionORM.sort_order)
        )
        return [_row_to_option(row) for row in (await db.execute(stmt)).fetchall()]

    async def _hydrate(self, db: AsyncSession, markets: list[Market]) -> list[Market]:
        """Attach options and position counts to each market."""
        if not markets:
            return markets
        ids = [m.id for m in markets]
        by_market: dict[str, list[MarketOption]] = {market_id: [] for market_id in ids}
        for opt in await self._options_for(db, ids):
            by_market[opt.market_id].append(opt)
        count_rows = (
            await db.execute(
                select(PositionORM.market_id, func.count().label("n"))
                .where(PositionORM.market_id.in_(ids))
                .group_by(PositionORM.market_id)
            )
        ).fetchall()
        counts = {row.market_id: row.n for row in count_rows}
        for market in markets:
            market.options = by_market[market.id]
            market.position_count = counts.get(market.id, 0)
        return markets
