"""Profile and admin dashboard schemas."""

from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from estateshare.schemas.auth import Email, UserResponse
from estateshare.schemas.crowdfunding import UserInvestmentResponse
from estateshare.schemas.property import PropertyResponse
from estateshare.schemas.transaction import TransactionResponse
from estateshare.schemas.voting import VotingHistoryEntry, VotingResponse


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[Email] = None
    date_of_birth: Optional[date] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("Name cannot be blank")
        return value


class UserProfileResponse(BaseModel):
    user: UserResponse
    investments: List[UserInvestmentResponse]
    recent_transactions: List[TransactionResponse]
    recent_votes: List[VotingHistoryEntry]


class AdminOverviewResponse(BaseModel):
    user: UserResponse
    properties: List[PropertyResponse]
    property_counts: Dict[str, int]
    recent_transactions: List[TransactionResponse]
    active_votings: List[VotingResponse]


class StatusBreakdown(BaseModel):
    count: int
    total: float = 0.0


class PlatformStatisticsResponse(BaseModel):
    total_users: int
    properties: Dict[str, StatusBreakdown]
    transactions: Dict[str, StatusBreakdown]
    votings: Dict[str, int]
    recent_transactions: List[TransactionResponse]
