"""Pydantic schemas and cursor utilities for pm_ledger API.

Request bodies accept the camelCase keys the web client sends (userId,
amountToken); responses are snake_case. Money is rendered as 6-decimal strings.
"""

import base64
import json
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from src.pm_common.enums import TradeSide
from src.pm_common.micros import micros_to_display
from src.pm_ledger.domain.models import LedgerEntry, User

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode an integer primary key into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except (ValueError, KeyError, TypeError):
        return None


def _holdings_display(holdings: dict[str, int]) -> dict[str, str]:
    return {symbol: micros_to_display(qty) for symbol, qty in sorted(holdings.items())}


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class ConnectRequest(BaseModel):
    address: str = Field(..., min_length=1)


class FaucetRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1)
    amount: Decimal | None = None


class TradeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1)
    symbol: str = Field(..., min_length=1)
    side: TradeSide
    amount_token: Decimal = Field(..., alias="amountToken")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    address: str
    balance: str
    balance_micros: int
    reputation: int
    holdings: dict[str, str]

    @classmethod
    def from_domain(cls, user: User) -> "UserResponse":
        return cls(
            address=user.address,
            balance=micros_to_display(user.balance),
            balance_micros=user.balance,
            reputation=user.reputation,
            holdings=_holdings_display(user.holdings),
        )


class WalletResponse(BaseModel):
    ok: bool = True
    user_id: str
    address: str
    balance: str
    points: str
    holdings: dict[str, str]

    @classmethod
    def from_domain(cls, user: User) -> "WalletResponse":
        balance = micros_to_display(user.balance)
        return cls(
            user_id=user.address,
            address=user.address,
            balance=balance,
            points=balance,
            holdings=_holdings_display(user.holdings),
        )


class FaucetResponse(BaseModel):
    ok: bool = True
    user_id: str
    credited: str
    points: str


class TradeResponse(BaseModel):
    ok: bool = True
    side: TradeSide
    symbol: str
    amount: str
    price: str
    total_usdc: str
    balance: str
    holdings: dict[str, str]


class LedgerEntryItem(BaseModel):
    id: int
    entry_type: str
    amount: str
    balance_after: str
    reference_type: str | None
    reference_id: str | None
    description: str | None
    created_at: str  # ISO8601 string

    @classmethod
    def from_domain(cls, e: LedgerEntry) -> "LedgerEntryItem":
        return cls(
            id=e.id,
            entry_type=e.entry_type,
            amount=micros_to_display(e.amount),
            balance_after=micros_to_display(e.balance_after),
            reference_type=e.reference_type,
            reference_id=e.reference_id,
            description=e.description,
            created_at=e.created_at.isoformat() if e.created_at else "",
        )


class LedgerResponse(BaseModel):
    items: list[LedgerEntryItem]
    next_cursor: str | None
    has_more: bool
