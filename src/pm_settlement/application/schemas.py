"""Pydantic schemas for pm_settlement API."""

from pydantic import BaseModel, ConfigDict, Field


class ResolveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    winning_option_id: str = Field(..., alias="winningOptionId", min_length=1)


class ClaimRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_address: str = Field(..., alias="userAddress", min_length=1)


class ClaimResponse(BaseModel):
    market_id: str
    user_address: str
    amount: str                      # 6-decimal string, "0.000000" for a loser
    amount_micros: int
    positions_claimed: int
    balance: str


class InvariantReport(BaseModel):
    ok: bool
    markets_checked: int
    violations: list[str]
