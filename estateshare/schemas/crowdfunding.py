"""Crowdfunding API schemas."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes from clients as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class StartFundingRequest(BaseModel):
    end_date: datetime
    description: Optional[str] = Field(default=None, max_length=5000)

    @field_validator("end_date")
    @classmethod
    def normalize_end_date(cls, value: datetime) -> datetime:
        return as_utc(value)


class InvestRequest(BaseModel):
    tokens: int = Field(..., ge=1, description="Number of tokens to buy")


class InvestmentResponse(BaseModel):
    """Result of a successful investment: the pending transaction to pay."""

    transaction_id: UUID
    property_id: UUID
    tokens: int
    amount: float
    property_status: str
    current_amount: float
    tokens_sold: int


class UserInvestmentResponse(BaseModel):
    property_id: UUID
    property_name: str
    property_status: str
    tokens: int
    token_price: float
    invested_amount: float
    ownership_percentage: float


class FundingStatisticsResponse(BaseModel):
    active_crowdfunding: int
    funded_properties: int
    completed_investments: int
    total_invested: float
