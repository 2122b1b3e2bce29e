"""pm_ledger REST endpoints.

POST /auth/connect                 — get-or-create user by address
GET  /auth/me/{address}            — user lookup (null when unknown)
GET  /wallet/me                    — balance + holdings (?userId= or X-User-Id)
POST /wallet/faucet                — test-funds credit (rate limited per address)
POST /wallet/trade                 — demo token desk buy/sell
GET  /wallet/{address}/ledger      — balance journal, cursor pagination
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.database import get_db_session
from src.pm_common.response import ApiResponse, success_response
from src.pm_gateway.auth.dependencies import get_requester_id
from src.pm_gateway.middleware.rate_limit import FixedWindowRateLimiter, get_faucet_limiter
from src.pm_ledger.application.schemas import ConnectRequest, FaucetRequest, TradeRequest
from src.pm_ledger.application.service import WalletService, normalize_address

router = APIRouter(tags=["wallet"])

_service = WalletService()


@router.post("/auth/connect")
async def connect(
    body: ConnectRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    data = await _service.connect(db, body.address)
    return success_response(data.model_dump(), request)


@router.get("/auth/me/{address}")
async def get_me(
    address: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    data = await _service.get_user(db, address)
    return success_response(data.model_dump() if data else None, request)


@router.get("/wallet/me")
async def get_wallet(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    requester_id: Annotated[str | None, Depends(get_requester_id)],
    user_id: str | None = Query(None, alias="userId"),
) -> ApiResponse:
    data = await _service.get_wallet(db, user_id or requester_id)
    return success_response(data.model_dump(), request)


@router.post("/wallet/faucet")
async def faucet(
    body: FaucetRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    limiter: Annotated[FixedWindowRateLimiter, Depends(get_faucet_limiter)],
) -> ApiResponse:
    await limiter.hit(normalize_address(body.user_id))
    data = await _service.faucet(db, body.user_id, body.amount)
    return success_response(data.model_dump(), request)


@router.post("/wallet/trade")
async def trade(
    body: TradeRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    data = await _service.trade_token(
        db, body.user_id, body.symbol, body.side, body.amount_token
    )
    return success_response(data.model_dump(mode="json"), request)


@router.get("/wallet/{address}/ledger")
async def list_ledger(
    address: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    entry_type: str | None = Query(None, description="Filter by LedgerEntryType"),
) -> ApiResponse:
    data = await _service.list_ledger(db, address, cursor, limit, entry_type)
    return success_response(data.model_dump(), request)
