"""pm_settlement REST endpoints.

POST /markets/{market_id}/resolve   — explicit resolution (admin action)
POST /markets/{market_id}/claim     — pay out the caller's positions
GET  /admin/invariants              — conservation check over every market
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.database import get_db_session
from src.pm_common.response import ApiResponse, success_response
from src.pm_settlement.application.schemas import ClaimRequest, ResolveRequest
from src.pm_settlement.application.service import SettlementService

router = APIRouter(tags=["settlement"])

_service = SettlementService()


@router.post("/markets/{market_id}/resolve")
async def resolve_market(
    market_id: str,
    body: ResolveRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    data = await _service.resolve(db, market_id, body.winning_option_id)
    return success_response(data.model_dump(), request)


@router.post("/markets/{market_id}/claim")
async def claim_payout(
    market_id: str,
    body: ClaimRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    data = await _service.claim_payout(db, market_id, body.user_address)
    return success_response(data.model_dump(), request)


@router.get("/admin/invariants")
async def verify_invariants(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    data = await _service.verify_invariants(db)
    return success_response(data.model_dump(), request)
