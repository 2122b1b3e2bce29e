"""LedgerRepository — concrete implementation of LedgerRepositoryProtocol.

All balance-mutating operations are single conditional UPDATE ... RETURNING
statements. Zero rows returned means a business constraint was violated
(insufficient funds) or the user does not exist.

Every balance change writes one ledger_entries row in the same transaction.

Transaction ownership: The CALLER (application service) commits or rolls back.
"""

from typing import Any

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pm_common.datetime_utils import as_utc, utc_now
from src.pm_common.enums import LedgerEntryType
from src.pm_common.errors import (
    BalanceLimitError,
    InsufficientFundsError,
    InternalError,
    UserNotFoundError,
)
from src.pm_common.micros import MAX_BALANCE_MICROS, micros_to_display, to_micros
from src.pm_ledger.domain.models import LedgerEntry, User
from src.pm_ledger.infrastructure.db_models import LedgerEntryORM, UserORM

_USER_COLUMNS = (
    UserORM.address,
    UserORM.balance,
    UserORM.reputation,
    UserORM.holdings,
    UserORM.created_at,
)

_ENTRY_COLUMNS = (
    LedgerEntryORM.id,
    LedgerEntryORM.user_address,
    LedgerEntryORM.entry_type,
    LedgerEntryORM.amount,
    LedgerEntryORM.balance_after,
    LedgerEntryORM.reference_type,
    LedgerEntryORM.reference_id,
    LedgerEntryORM.description,
    LedgerEntryORM.created_at,
)


def _row_to_user(row: Any) -> User:
    return User(
        address=row.address,
        balance=row.balance,
        reputation=row.reputation,
        holdings=dict(row.holdings or {}),
        created_at=as_utc(row.created_at) if row.created_at else None,
    )


def _row_to_entry(row: Any) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,
        user_address=row.user_address,
        entry_type=row.entry_type,
        amount=row.amount,
        balance_after=row.balance_after,
        reference_type=row.reference_type,
        reference_id=row.reference_id,
        description=row.description,
        created_at=as_utc(row.created_at) if row.created_at else None,
    )


def _upsert_ignore(db: AsyncSession) -> Any:
    """INSERT ... ON CONFLICT DO NOTHING for the session's dialect."""
    return pg_insert if db.get_bind().dialect.name == "postgresql" else sqlite_insert


class LedgerRepository:
    """Concrete repository — all operations atomic at the SQL level."""

    def __init__(self, starting_balance: int | None = None) -> None:
        self._starting_balance = (
            starting_balance
            if starting_balance is not None
            else to_micros(settings.STARTING_BALANCE)
        )

    async def get_user(self, db: AsyncSession, address: str) -> User | None:
        result = await db.execute(select(*_USER_COLUMNS).where(UserORM.address == address))
        row = result.fetchone()
        return _row_to_user(row) if row else None

    async def get_user_for_update(self, db: AsyncSession, address: str) -> User | None:
        result = await db.execute(
            select(*_USER_COLUMNS).where(UserORM.address == address).with_for_update()
        )
        row = result.fetchone()
        return _row_to_user(row) if row else None

    async def get_or_create(self, db: AsyncSession, address: str) -> tuple[User, bool]:
        """Return (user, created). Concurrent creators race on the PK; the loser reads."""
        insert = _upsert_ignore(db)
        stmt = (
            insert(UserORM)
            .values(
                address=address,
                balance=self._starting_balance,
                reputation=100,
                holdings={},
                created_at=utc_now(),
            )
            .on_conflict_do_nothing(index_elements=["address"])
            .returning(*_USER_COLUMNS)
        )
        row = (await db.execute(stmt)).fetchone()
        if row is not None:
            user = _row_to_user(row)
            await self._write_entry(
                db,
                address,
                LedgerEntryType.INITIAL_GRANT,
                user.balance,
                user.balance,
                description="Starting balance",
            )
            return user, True

        existing = await self.get_user(db, address)
        if existing is None:
            raise InternalError(f"User {address} neither inserted nor found")
        return existing, False

    async def debit(
        self,
        db: AsyncSession,
        address: str,
        amount: int,
        entry_type: str,
        ref_type: str | None = None,
        ref_id: str | None = None,
        description: str | None = None,
    ) -> User:
        if amount <= 0:
            raise ValueError(f"Debit amount must be positive, got {amount}")
        stmt = (
            update(UserORM)
            .where(UserORM.address == address, UserORM.balance >= amount)
            .values(balance=UserORM.balance - amount)
            .returning(*_USER_COLUMNS)
            .execution_options(synchronize_session=False)
        )
        row = (await db.execute(stmt)).fetchone()
        if row is None:
            current = await self.get_user(db, address)
            if current is None:
                raise UserNotFoundError(address)
            raise InsufficientFundsError(
                micros_to_display(amount), micros_to_display(current.balance)
            )
        user = _row_to_user(row)
        await self._write_entry(
            db, address, entry_type, -amount, user.balance, ref_type, ref_id, description
        )
        return user

    async def credit(
        self,
        db: AsyncSession,
        address: str,
        amount: int,
        entry_type: str,
        ref_type: str | None = None,
        ref_id: str | None = None,
        description: str | None = None,
    ) -> User:
        if amount < 0:
            raise ValueError(f"Credit amount must not be negative, got {amount}")
        if amount == 0:
            current = await self.get_user(db, address)
            if current is None:
                raise UserNotFoundError(address)
            return current
        stmt = (
            update(UserORM)
            .where(UserORM.address == address, UserORM.balance <= MAX_BALANCE_MICROS - amount)
            .values(balance=UserORM.balance + amount)
            .returning(*_USER_COLUMNS)
            .execution_options(synchronize_session=False)
        )
        row = (await db.execute(stmt)).fetchone()
        if row is None:
            if await self.get_user(db, address) is None:
                raise UserNotFoundError(address)
            raise BalanceLimitError(address)
        user = _row_to_user(row)
        await self._write_entry(
            db, address, entry_type, amount, user.balance, ref_type, ref_id, description
        )
        return user

    async def set_holdings(
        self, db: AsyncSession, address: str, holdings: dict[str, int]
    ) -> None:
        stmt = (
            update(UserORM)
            .where(UserORM.address == address)
            .values(holdings=holdings)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        if result.rowcount == 0:
            raise UserNotFoundError(address)

    async def list_entries(
        self,
        db: AsyncSession,
        address: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[LedgerEntry]:
        stmt = select(*_ENTRY_COLUMNS).where(LedgerEntryORM.user_address == address)
        if cursor_id is not None:
            stmt = stmt.where(LedgerEntryORM.id < cursor_id)
        if entry_type is not None:
            stmt = stmt.where(LedgerEntryORM.entry_type == entry_type)
        stmt = stmt.order_by(LedgerEntryORM.id.desc()).limit(limit)
        rows = (await db.execute(stmt)).fetchall()
        return [_row_to_entry(row) for row in rows]

    async def _write_entry(
        self,
        db: AsyncSession,
        address: str,
        entry_type: str,
        amount: int,
        balance_after: int,
        ref_type: str | None = None,
        ref_id: str | None = None,
        description: str | None = None,
    ) -> None:
        await db.execute(
            LedgerEntryORM.__table__.insert().values(
                user_address=address,
                entry_type=LedgerEntryType(entry_type).value,
                amount=amount,
                balance_after=balance_after,
                reference_type=ref_type,
                reference_id=ref_id,
                description=description,
                created_at=utc_now(),
            )
        )
