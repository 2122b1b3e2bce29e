"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class MarketStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    RESOLVED = "resolved"
    FINALIZED = "finalized"
    DISPUTED = "disputed"


class PositionStatus(str, Enum):
    PENDING = "pending"
    WON = "won"
    LOST = "lost"


class LedgerEntryType(str, Enum):
    INITIAL_GRANT = "INITIAL_GRANT"
    FAUCET = "FAUCET"
    # Market stakes (user side)
    STAKE = "STAKE"
    PAYOUT = "PAYOUT"
    REFUND = "REFUND"
    # Token side feature
    TOKEN_BUY = "TOKEN_BUY"
    TOKEN_SELL = "TOKEN_SELL"


class TradeSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


class EventName(str, Enum):
    MARKET_CREATED = "market-created"
    MARKET_UPDATED = "market-updated"
    MARKET_RESOLVED = "market-resolved"
    MARKET_DELETED = "market-deleted"
    POSITION_PLACED = "position-placed"
    PAYOUT_CLAIMED = "payout-claimed"
    FAUCET_FUNDED = "faucet-funded"
    TOKEN_TRADED = "token-traded"
