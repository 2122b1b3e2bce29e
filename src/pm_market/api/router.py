"""pm_market REST endpoints.

POST   /markets                 — create a market
GET    /markets                 — list (status/category filters), newest first
GET    /markets/{market_id}     — detail with options and position count
DELETE /markets/{market_id}     — creator-only delete (X-User-Id header)
POST   /positions               — stake on an option
GET    /positions/{address}     — a user's positions, newest first
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.database import get_db_session
from src.pm_common.response import ApiResponse, success_response
from src.pm_gateway.auth.dependencies import require_requester_id
from src.pm_market.application.schemas import CreateMarketRequest, CreatePositionRequest
from src.pm_market.application.service import MarketService, PositionService

router = APIRouter(tags=["markets"])

_markets = MarketService()
_positions = PositionService()


@router.post("/markets", status_code=status.HTTP_201_CREATED)
async def create_market(
    body: CreateMarketRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    data = await _markets.create_market(
        db,
        question=body.question,
        options=body.options,
        close_time=body.close_time,
        creator_id=body.creator_id,
        category=body.category,
        description=body.description,
        banner_url=body.banner_url,
    )
    return success_response(data.model_dump(), request)


@router.get("/markets")
async def list_markets(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    status: str | None = Query(None, description="open | closed | resolved | finalized | disputed"),
    category: str | None = Query(None),
) -> ApiResponse:
    data = await _markets.list_markets(db, status, category)
    return success_response(data.model_dump(), request)


@router.get("/markets/{market_id}")
async def get_market(
    market_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    data = await _markets.get_market(db, market_id)
    return success_response(data.model_dump(), request)


@router.delete("/markets/{market_id}")
async def delete_market(
    market_id: str,
    request: Request,
    requester_id: Annotated[str, Depends(require_requester_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    data = await _markets.delete_market(db, market_id, requester_id)
    return success_response(data.model_dump(), request)


@router.post("/positions", status_code=status.HTTP_201_CREATED)
async def create_position(
    body: CreatePositionRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    data = await _positions.create_position(
        db, body.market_id, body.option_id, body.user_address, body.amount
    )
    return success_response(data.model_dump(), request)


@router.get("/positions/{address}")
async def list_positions(
    address: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    data = await _positions.list_positions(db, address)
    return success_response(data.model_dump(), request)
