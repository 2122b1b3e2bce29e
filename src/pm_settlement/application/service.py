"""SettlementService — resolution, the auto-transition rule, claims, invariants.

State machine (this service only moves markets along these edges):
    open   -> resolved | closed
    closed -> resolved
    resolved is terminal; finalized and disputed are never entered here.

Every unit runs under the per-market lock and in one transaction. The market
row is read FOR UPDATE and every status change is a compare-and-set, so the
outcome is the same when another process races on the same market.
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import EventName, LedgerEntryType, MarketStatus
from src.pm_common.errors import (
    MarketAlreadyResolvedError,
    MarketNotFoundError,
    MarketNotResolvableError,
    MarketNotResolvedError,
    NothingToClaimError,
    OptionNotFoundError,
)
from src.pm_common.locks import KeyedLocks, market_locks
from src.pm_common.micros import micros_to_display
from src.pm_events.broadcaster import EventBroadcaster, broadcaster
from src.pm_ledger.application.service import normalize_address
from src.pm_ledger.domain.repository import LedgerRepositoryProtocol
from src.pm_ledger.infrastructure.persistence import LedgerRepository
from src.pm_market.application.schemas import MarketOut
from src.pm_market.domain.models import Market
from src.pm_market.domain.repository import MarketRepositoryProtocol
from src.pm_market.infrastructure.persistence import MarketRepository
from src.pm_settlement.application.schemas import ClaimResponse, InvariantReport
from src.pm_settlement.domain.auto_resolve import needs_transition, pick_winner
from src.pm_settlement.domain.invariants import check_market_totals
from src.pm_settlement.domain.payout import compute_payouts
from src.pm_settlement.domain.repository import SettlementRepositoryProtocol
from src.pm_settlement.infrastructure.persistence import SettlementRepository

logger = logging.getLogger(__name__)

ACTION_RESOLVED = "resolved"
ACTION_CLOSED = "closed"


def _needs_resolution(market: Market, winning_option_id: str) -> bool:
    """False for a repeat of the same resolution; raise for any conflicting state."""
    if market.status == MarketStatus.RESOLVED:
        if market.winning_option_id == winning_option_id:
            return False
        raise MarketAlreadyResolvedError(market.id, market.winning_option_id)
    if market.status not in (MarketStatus.OPEN, MarketStatus.CLOSED):
        raise MarketNotResolvableError(market.id, market.status)
    return True


class SettlementService:
    def __init__(
        self,
        repo: SettlementRepositoryProtocol | None = None,
        market_repo: MarketRepositoryProtocol | None = None,
        ledger: LedgerRepositoryProtocol | None = None,
        events: EventBroadcaster | None = None,
        locks: KeyedLocks | None = None,
    ) -> None:
        self._repo: SettlementRepositoryProtocol = repo or SettlementRepository()
        self._markets: MarketRepositoryProtocol = market_repo or MarketRepository()
        self._ledger: LedgerRepositoryProtocol = ledger or LedgerRepository()
        self._events = events or broadcaster
        self._locks = locks or market_locks

    async def resolve(
        self, db: AsyncSession, market_id: str, winning_option_id: str
    ) -> MarketOut:
        """Explicit resolution. Repeating it with the same winner is a no-op."""
        async with self._locks.for_key(market_id):
            try:
                market = await self._markets.get_market_for_update(db, market_id)
                if market is None:
                    raise MarketNotFoundError(market_id)
                if market.option(winning_option_id) is None:
                    raise OptionNotFoundError(winning_option_id, market_id)
                changed = _needs_resolution(market, winning_option_id)
                if changed:
                    now = utc_now()
                    if not await self._repo.mark_resolved(db, market_id, winning_option_id, now):
                        raise MarketAlreadyResolvedError(market_id, None)
                    won, lost = await self._repo.settle_positions(
                        db, market_id, winning_option_id, now
                    )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        if changed:
            logger.info(
                "Market resolved: market=%s winner=%s won=%d lost=%d",
                market_id, winning_option_id, won, lost,
            )
            self._publish_resolved(market_id, winning_option_id, auto=False)
        else:
            logger.info("Resolve repeated with same winner: market=%s", market_id)
        resolved = await self._markets.get_market(db, market_id)
        if resolved is None:
            raise MarketNotFoundError(market_id)
        return MarketOut.from_domain(resolved)

    async def auto_transition(
        self, db: AsyncSession, market_id: str, now: datetime | None = None
    ) -> str | None:
        """Apply the default rule to a stale market.

        Highest-staked option wins (ties to the lowest sort_order); a market
        without options is closed with no winner. Returns the action taken, or
        None when another writer got there first or the market is not stale.
        """
        async with self._locks.for_key(market_id):
            try:
                now = now or utc_now()
                market = await self._markets.get_market_for_update(db, market_id)
                action: str | None = None
                winner_id: str | None = None
                if market is not None and needs_transition(market, now):
                    winner = pick_winner(market.options)
                    if winner is None:
                        if market.status == MarketStatus.OPEN and await self._repo.mark_closed(
                            db, market_id
                        ):
                            action = ACTION_CLOSED
                    elif await self._repo.mark_resolved(db, market_id, winner.id, now):
                        await self._repo.settle_positions(db, market_id, winner.id, now)
                        action = ACTION_RESOLVED
                        winner_id = winner.id
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        if action == ACTION_RESOLVED:
            logger.info("Market auto-resolved: market=%s winner=%s", market_id, winner_id)
            self._publish_resolved(market_id, winner_id, auto=True)
        elif action == ACTION_CLOSED:
            logger.warning("Market closed without options: market=%s", market_id)
            self._events.publish(
                EventName.MARKET_UPDATED.value,
                {"marketId": market_id, "status": MarketStatus.CLOSED.value},
            )
        return action

    async def claim_payout(
        self, db: AsyncSession, market_id: str, user_address: str
    ) -> ClaimResponse:
        """Settle all of the user's unclaimed positions in one resolved market.

        Winning positions pay their pari-mutuel share, losing ones pay 0; all of
        them are flagged claimed, so a second call finds nothing to claim.
        """
        user_address = normalize_address(user_address)
        async with self._locks.for_key(market_id):
            try:
                market = await self._markets.get_market_for_update(db, market_id)
                if market is None:
                    raise MarketNotFoundError(market_id)
                if market.status != MarketStatus.RESOLVED or market.winning_option_id is None:
                    raise MarketNotResolvedError(market_id)

                stakes = await self._repo.claim_positions(db, market_id, user_address)
                if not stakes:
                    raise NothingToClaimError(market_id, user_address)

                winner = market.option(market.winning_option_id)
                payouts = compute_payouts(
                    stakes,
                    market.winning_option_id,
                    market.total_liquidity,
                    winner.total_staked if winner else 0,
                )
                for position_id, payout in payouts.items():
                    await self._repo.set_payout(db, position_id, payout)
                total = sum(payouts.values())
                user = await self._ledger.credit(
                    db,
                    user_address,
                    total,
                    LedgerEntryType.PAYOUT,
                    ref_type="MARKET",
                    ref_id=market_id,
                    description=f"Payout for market {market_id}",
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info(
            "Payout claimed: market=%s user=%s positions=%d amount=%s",
            market_id, user_address, len(stakes), micros_to_display(total),
        )
        self._events.publish(
            EventName.PAYOUT_CLAIMED.value,
            {"marketId": market_id, "userAddress": user_address, "amount": micros_to_display(total)},
        )
        return ClaimResponse(
            market_id=market_id,
            user_address=user_address,
            amount=micros_to_display(total),
            amount_micros=total,
            positions_claimed=len(stakes),
            balance=micros_to_display(user.balance),
        )

    async def verify_invariants(self, db: AsyncSession) -> InvariantReport:
        totals = await self._repo.market_totals(db)
        violations: list[str] = []
        for t in totals:
            violations.extend(check_market_totals(t))
        if violations:
            logger.error("Invariant violations: %s", violations)
        return InvariantReport(
            ok=not violations, markets_checked=len(totals), violations=violations
        )

    def _publish_resolved(self, market_id: str, winning_option_id: str, auto: bool) -> None:
        # Clients that only follow market-updated still see the status change
        self._events.publish(
            EventName.MARKET_RESOLVED.value,
            {"marketId": market_id, "winningOptionId": winning_option_id, "auto": auto},
        )
        self._events.publish(
            EventName.MARKET_UPDATED.value,
            {"marketId": market_id, "status": MarketStatus.RESOLVED.value},
        )
