"""Domain models for pm_ledger — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class User:
    address: str
    balance: int                 # micros
    reputation: int = 100
    holdings: dict[str, int] = field(default_factory=dict)  # symbol -> micro-quantity
    created_at: datetime | None = None


@dataclass
class LedgerEntry:
    id: int
    user_address: str
    entry_type: str              # LedgerEntryType value
    amount: int                  # micros, positive=income negative=expense
    balance_after: int           # micros, balance snapshot after op
    reference_type: str | None = None
    reference_id: str | None = None
    description: str | None = None
    created_at: datetime | None = None
