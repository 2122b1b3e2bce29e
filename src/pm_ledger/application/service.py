"""WalletService — user accounts, faucet, token desk and the ledger journal.

Mutating operations commit on success and roll back on any exception.
Events are published only after a successful commit.
"""

import logging
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pm_common.enums import EventName, LedgerEntryType, TradeSide
from src.pm_common.errors import InsufficientHoldingsError, InvalidInputError, UserNotFoundError
from src.pm_common.locks import KeyedLocks, wallet_locks
from src.pm_common.micros import micros_to_display, mul_price, parse_amount
from src.pm_events.broadcaster import EventBroadcaster, broadcaster
from src.pm_ledger.application.schemas import (
    FaucetResponse,
    LedgerEntryItem,
    LedgerResponse,
    TradeResponse,
    UserResponse,
    WalletResponse,
    cursor_decode,
    cursor_encode,
)
from src.pm_ledger.domain.repository import LedgerRepositoryProtocol
from src.pm_ledger.domain.tokens import quote
from src.pm_ledger.infrastructure.persistence import LedgerRepository

logger = logging.getLogger(__name__)


def normalize_address(address: str | None) -> str:
    cleaned = (address or "").strip()
    if not cleaned:
        raise InvalidInputError("userId/address is required", code=1005)
    return cleaned


class WalletService:
    def __init__(
        self,
        repo: LedgerRepositoryProtocol | None = None,
        events: EventBroadcaster | None = None,
        locks: KeyedLocks | None = None,
    ) -> None:
        self._repo: LedgerRepositoryProtocol = repo or LedgerRepository()
        self._events = events or broadcaster
        self._locks = locks or wallet_locks

    async def connect(self, db: AsyncSession, address: str) -> UserResponse:
        """Get-or-create by address; no credential check."""
        address = normalize_address(address)
        try:
            user, created = await self._repo.get_or_create(db, address)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if created:
            logger.info("User created: %s", address)
        return UserResponse.from_domain(user)

    async def get_user(self, db: AsyncSession, address: str) -> UserResponse | None:
        user = await self._repo.get_user(db, address)
        return UserResponse.from_domain(user) if user else None

    async def get_wallet(self, db: AsyncSession, address: str | None) -> WalletResponse:
        address = normalize_address(address)
        try:
            user, _ = await self._repo.get_or_create(db, address)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return WalletResponse.from_domain(user)

    async def faucet(
        self, db: AsyncSession, address: str, amount: Decimal | str | None = None
    ) -> FaucetResponse:
        """Test-funds injection.

        A first-time address is only created (it already receives the starting
        balance); an existing one is credited `amount` (default FAUCET_DEFAULT_AMOUNT).
        """
        address = normalize_address(address)
        credit = parse_amount(
            amount if amount is not None else settings.FAUCET_DEFAULT_AMOUNT
        )
        try:
            user, created = await self._repo.get_or_create(db, address)
            credited = 0
            if not created:
                user = await self._repo.credit(
                    db,
                    address,
                    credit,
                    LedgerEntryType.FAUCET,
                    ref_type="FAUCET",
                    description="Faucet test funds",
                )
                credited = credit
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Faucet: %s +%s", address, micros_to_display(credited))
        self._events.publish(EventName.FAUCET_FUNDED.value, {"userId": address})
        return FaucetResponse(
            user_id=address,
            credited=micros_to_display(credited),
            points=micros_to_display(user.balance),
        )

    async def trade_token(
        self,
        db: AsyncSession,
        address: str,
        symbol: str,
        side: TradeSide,
        amount: Decimal | str,
    ) -> TradeResponse:
        address = normalize_address(address)
        symbol = symbol.strip().upper()
        price = quote(symbol)
        quantity = parse_amount(amount, "amountToken")
        total = mul_price(quantity, price)
        if total <= 0:
            raise InvalidInputError("amountToken is too small to trade")

        async with self._locks.for_key(address):
            try:
                await self._repo.get_or_create(db, address)
                user = await self._repo.get_user_for_update(db, address)
                if user is None:
                    raise UserNotFoundError(address)
                holdings = dict(user.holdings)
                held = holdings.get(symbol, 0)
                if side == TradeSide.BUY:
                    user = await self._repo.debit(
                        db, address, total, LedgerEntryType.TOKEN_BUY,
                        ref_type="TOKEN", ref_id=symbol,
                        description=f"Buy {micros_to_display(quantity)} {symbol}",
                    )
                    holdings[symbol] = held + quantity
                else:
                    if held < quantity:
                        raise InsufficientHoldingsError(
                            symbol, micros_to_display(quantity), micros_to_display(held)
                        )
                    user = await self._repo.credit(
                        db, address, total, LedgerEntryType.TOKEN_SELL,
                        ref_type="TOKEN", ref_id=symbol,
                        description=f"Sell {micros_to_display(quantity)} {symbol}",
                    )
                    holdings[symbol] = held - quantity
                await self._repo.set_holdings(db, address, holdings)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        self._events.publish(
            EventName.TOKEN_TRADED.value,
            {"userId": address, "symbol": symbol, "side": side.value},
        )
        return TradeResponse(
            side=side,
            symbol=symbol,
            amount=micros_to_display(quantity),
            price=micros_to_display(price),
            total_usdc=micros_to_display(total),
            balance=micros_to_display(user.balance),
            holdings={s: micros_to_display(q) for s, q in sorted(holdings.items())},
        )

    async def list_ledger(
        self,
        db: AsyncSession,
        address: str,
        cursor: str | None,
        limit: int,
        entry_type: str | None,
    ) -> LedgerResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        entries = await self._repo.list_entries(db, address, cursor_id, limit + 1, entry_type)
        has_more = len(entries) > limit
        page = entries[:limit]
        items = [LedgerEntryItem.from_domain(e) for e in page]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return LedgerResponse(items=items, next_cursor=next_cursor, has_more=has_more)
