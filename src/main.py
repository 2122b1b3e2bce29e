"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from config.settings import settings
from src.pm_common.database import async_session_factory, engine
from src.pm_common.errors import AppError, InternalError
from src.pm_common.logging_config import configure_logging
from src.pm_common.redis_client import close_redis, ping_redis
from src.pm_common.response import error_response
from src.pm_events.api.router import router as events_router
from src.pm_gateway.middleware.request_log import RequestLogMiddleware
from src.pm_ledger.api.router import router as wallet_router
from src.pm_market.api.router import router as market_router
from src.pm_market.application.seed import seed_demo_markets
from src.pm_settlement.api.router import router as settlement_router
from src.pm_settlement.application.sweeper import MarketSweeper

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB, seed demo data, start the sweeper. Shutdown: stop and dispose."""
    # Startup
    configure_logging()
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    if settings.FAUCET_RATE_LIMIT_PER_MINUTE > 0:
        await ping_redis()
    if settings.SEED_DEMO_MARKETS:
        async with async_session_factory() as db:
            await seed_demo_markets(db)

    sweeper_task: asyncio.Task[None] | None = None
    if settings.SWEEP_INTERVAL_SECONDS > 0:
        sweeper_task = asyncio.create_task(
            MarketSweeper().run_forever(settings.SWEEP_INTERVAL_SECONDS, async_session_factory)
        )
    yield
    # Shutdown
    if sweeper_task is not None:
        sweeper_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper_task
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


@app.exception_handler(SQLAlchemyError)
async def db_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    internal = InternalError()
    resp = error_response(internal.code, internal.message)
    return JSONResponse(
        status_code=internal.http_status,
        content=resp.model_dump(),
    )


app.include_router(wallet_router, prefix="/api/v1")
app.include_router(market_router, prefix="/api/v1")
app.include_router(settlement_router, prefix="/api/v1")
app.include_router(events_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
