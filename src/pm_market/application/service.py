"""MarketService and PositionService.

Reads sweep stale markets first (see MarketSweeper), so listings never show an
expired market as open. Writes follow the usual unit shape: take the market
lock, run every mutation in one transaction, commit, then publish an event.
"""

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pm_common.datetime_utils import as_utc, utc_now
from src.pm_common.enums import EventName, LedgerEntryType, MarketStatus, PositionStatus
from src.pm_common.errors import (
    InvalidInputError,
    MarketClosedError,
    MarketNotDeletableError,
    MarketNotFoundError,
    NotMarketCreatorError,
    OptionNotFoundError,
)
from src.pm_common.id_generator import generate_id, generate_ids
from src.pm_common.locks import KeyedLocks, market_locks
from src.pm_common.micros import micros_to_display, parse_amount
from src.pm_events.broadcaster import EventBroadcaster, broadcaster
from src.pm_ledger.application.service import normalize_address
from src.pm_ledger.domain.repository import LedgerRepositoryProtocol
from src.pm_ledger.infrastructure.persistence import LedgerRepository
from src.pm_market.application.schemas import (
    DeleteMarketResponse,
    MarketListResponse,
    MarketOut,
    PositionListResponse,
    PositionOut,
)
from src.pm_market.domain.models import Market, MarketOption, Position
from src.pm_market.domain.repository import MarketRepositoryProtocol
from src.pm_market.domain.rules import accepts_stakes, is_deletable, may_delete, validate_new_market
from src.pm_market.infrastructure.persistence import MarketRepository
from src.pm_settlement.application.sweeper import MarketSweeper

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "General"


class MarketService:
    def __init__(
        self,
        repo: MarketRepositoryProtocol | None = None,
        ledger: LedgerRepositoryProtocol | None = None,
        sweeper: MarketSweeper | None = None,
        events: EventBroadcaster | None = None,
        locks: KeyedLocks | None = None,
    ) -> None:
        self._repo: MarketRepositoryProtocol = repo or MarketRepository()
        self._ledger: LedgerRepositoryProtocol = ledger or LedgerRepository()
        self._sweeper = sweeper or MarketSweeper(market_repo=self._repo)
        self._events = events or broadcaster
        self._locks = locks or market_locks

    async def create_market(
        self,
        db: AsyncSession,
        question: str,
        options: list[str],
        close_time: datetime,
        creator_id: str,
        category: str | None = None,
        description: str | None = None,
        banner_url: str | None = None,
    ) -> MarketOut:
        now = utc_now()
        question, texts = validate_new_market(question, options, close_time, creator_id, now)
        market_id = generate_id()
        market = Market(
            id=market_id,
            question=question,
            description=description,
            category=(category or "").strip() or DEFAULT_CATEGORY,
            banner_url=banner_url,
            close_time=as_utc(close_time),
            status=MarketStatus.OPEN.value,
            winning_option_id=None,
            creator_id=creator_id.strip(),
            total_liquidity=0,
            created_at=now,
            options=[
                MarketOption(id=option_id, market_id=market_id, text=text, sort_order=i)
                for i, (option_id, text) in enumerate(zip(generate_ids(len(texts)), texts))
            ],
        )
        try:
            await self._repo.create_market(db, market)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Market created: id=%s creator=%s", market_id, market.creator_id)
        self._events.publish(EventName.MARKET_CREATED.value, {"marketId": market_id})
        return MarketOut.from_domain(market)

    async def get_market(self, db: AsyncSession, market_id: str) -> MarketOut:
        await self._sweeper.sweep(db, [market_id])
        market = await self._repo.get_market(db, market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        return MarketOut.from_domain(market)

    async def list_markets(
        self, db: AsyncSession, status: str | None = None, category: str | None = None
    ) -> MarketListResponse:
        if status is not None and status not in {s.value for s in MarketStatus}:
            raise InvalidInputError(f"Unknown market status: {status}")
        await self._sweeper.sweep(db)
        markets = await self._repo.list_markets(db, status, category)
        return MarketListResponse(
            items=[MarketOut.from_domain(m) for m in markets], total=len(markets)
        )

    async def delete_market(
        self, db: AsyncSession, market_id: str, requester_id: str
    ) -> DeleteMarketResponse:
        """Remove an unresolved market, refunding every unclaimed stake to its owner."""
        async with self._locks.for_key(market_id):
            try:
                market = await self._repo.get_market_for_update(db, market_id)
                if market is None:
                    raise MarketNotFoundError(market_id)
                if not is_deletable(market):
                    raise MarketNotDeletableError(market_id, market.status)
                if not may_delete(market, requester_id, settings.SYSTEM_CREATOR_ID):
                    raise NotMarketCreatorError(market_id)

                refunds = await self._repo.unclaimed_stakes(db, market_id)
                for address, amount in refunds:
                    await self._ledger.credit(
                        db,
                        address,
                        amount,
                        LedgerEntryType.REFUND,
                        ref_type="MARKET",
                        ref_id=market_id,
                        description=f"Refund for deleted market {market_id}",
                    )
                removed = await self._repo.delete_market(db, market_id)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        refunded_total = sum(amount for _, amount in refunds)
        logger.info(
            "Market deleted: id=%s by=%s positions=%d refunded=%s",
            market_id, requester_id, removed, micros_to_display(refunded_total),
        )
        self._events.publish(EventName.MARKET_DELETED.value, {"marketId": market_id})
        return DeleteMarketResponse(
            market_id=market_id,
            refunded_positions=removed,
            refunded_total=micros_to_display(refunded_total),
        )


class PositionService:
    def __init__(
        self,
        repo: MarketRepositoryProtocol | None = None,
        ledger: LedgerRepositoryProtocol | None = None,
        sweeper: MarketSweeper | None = None,
        events: EventBroadcaster | None = None,
        locks: KeyedLocks | None = None,
    ) -> None:
        self._repo: MarketRepositoryProtocol = repo or MarketRepository()
        self._ledger: LedgerRepositoryProtocol = ledger or LedgerRepository()
        self._sweeper = sweeper or MarketSweeper(market_repo=self._repo)
        self._events = events or broadcaster
        self._locks = locks or market_locks

    async def create_position(
        self,
        db: AsyncSession,
        market_id: str,
        option_id: str,
        user_address: str,
        amount: Decimal | str | int,
    ) -> PositionOut:
        """Stake `amount` on an option.

        Debit, position insert, option total and market total are one
        transaction; a failure at any step (closed market, insufficient
        balance) rolls all of them back.
        """
        user_address = normalize_address(user_address)
        stake = parse_amount(amount)
        async with self._locks.for_key(market_id):
            try:
                now = utc_now()
                market = await self._repo.get_market_for_update(db, market_id)
                if market is None:
                    raise MarketNotFoundError(market_id)
                option = market.option(option_id)
                if option is None:
                    raise OptionNotFoundError(option_id, market_id)
                if not accepts_stakes(market, now):
                    raise MarketClosedError(market_id)

                await self._ledger.get_or_create(db, user_address)
                await self._ledger.debit(
                    db,
                    user_address,
                    stake,
                    LedgerEntryType.STAKE,
                    ref_type="MARKET",
                    ref_id=market_id,
                    description=f"Stake on {option.text}",
                )
                if not await self._repo.add_stake(db, market_id, option_id, stake, now):
                    raise MarketClosedError(market_id)
                position = Position(
                    id=generate_id(),
                    market_id=market_id,
                    option_id=option_id,
                    user_address=user_address,
                    amount=stake,
                    status=PositionStatus.PENDING.value,
                    claimed=False,
                    created_at=now,
                    market_question=market.question,
                    option_text=option.text,
                )
                await self._repo.insert_position(db, position)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info(
            "Position placed: market=%s option=%s user=%s amount=%s",
            market_id, option_id, user_address, micros_to_display(stake),
        )
        self._events.publish(
            EventName.POSITION_PLACED.value,
            {"marketId": market_id, "optionId": option_id, "userAddress": user_address},
        )
        return PositionOut.from_domain(position)

    async def list_positions(
        self, db: AsyncSession, user_address: str
    ) -> PositionListResponse:
        user_address = normalize_address(user_address)
        await self._sweeper.sweep(db)
        positions = await self._repo.list_positions(db, user_address)
        return PositionListResponse(
            items=[PositionOut.from_domain(p) for p in positions], total=len(positions)
        )
