"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_ledger.domain.models import LedgerEntry, User


class LedgerRepositoryProtocol(Protocol):
    async def get_user(self, db: AsyncSession, address: str) -> User | None: ...

    async def get_user_for_update(self, db: AsyncSession, address: str) -> User | None: ...

    async def get_or_create(self, db: AsyncSession, address: str) -> tuple[User, bool]: ...

    async def debit(
        self,
        db: AsyncSession,
        address: str,
        amount: int,
        entry_type: str,
        ref_type: str | None = None,
        ref_id: str | None = None,
        description: str | None = None,
    ) -> User: ...

    async def credit(
        self,
        db: AsyncSession,
        address: str,
        amount: int,
        entry_type: str,
        ref_type: str | None = None,
        ref_id: str | None = None,
        description: str | None = None,
    ) -> User: ...

    async def set_holdings(
        self, db: AsyncSession, address: str, holdings: dict[str, int]
    ) -> None: ...

    async def list_entries(
        self,
        db: AsyncSession,
        address: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[LedgerEntry]: ...
