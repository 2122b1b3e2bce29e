"""Shared test fixtures.

Database-backed tests run against in-memory SQLite (aiosqlite). The schema is
created from the ORM metadata; StaticPool keeps the single in-memory
connection alive for the whole test.
"""

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.main import app
from src.pm_common.database import Base, get_db_session
from src.pm_gateway.middleware.rate_limit import FixedWindowRateLimiter, get_faucet_limiter
from src.pm_ledger.infrastructure import db_models as _ledger_models  # noqa: F401
from src.pm_market.infrastructure import db_models as _market_models  # noqa: F401


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncSession:
    async with session_factory() as s:
        yield s


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncClient:
    """Async HTTP client wired to the SQLite database; faucet rate limit disabled."""

    async def _db_override():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_db_session] = _db_override
    app.dependency_overrides[get_faucet_limiter] = lambda: FixedWindowRateLimiter("faucet", 0)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
