"""Voting API schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from estateshare.models.voting import VoteChoice, Voting, VotingStatus
from estateshare.schemas.crowdfunding import as_utc
from estateshare.services import calculations


class VotingCreate(BaseModel):
    property_id: UUID
    title: str = Field(..., min_length=3, max_length=255)
    description: str = Field(..., min_length=10)
    end_date: datetime

    @field_validator("end_date")
    @classmethod
    def normalize_end_date(cls, value: datetime) -> datetime:
        return as_utc(value)


class VoteRequest(BaseModel):
    choice: VoteChoice


class VoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    choice: VoteChoice
    tokens: int
    voted_at: datetime


class VotingResponse(BaseModel):
    id: UUID
    property_id: UUID
    property_name: Optional[str] = None
    title: str
    description: str
    start_date: datetime
    end_date: datetime
    status: VotingStatus
    created_by_id: UUID
    total_votes: int
    total_tokens_voted: int
    result: Optional[str] = None
    votes: List[VoteResponse] = Field(default_factory=list)
    created_at: datetime

    @classmethod
    def from_model(cls, voting: Voting, *, include_votes: bool = True) -> "VotingResponse":
        total_votes, total_tokens_voted = calculations.tally(
            (vote.choice.value, vote.tokens) for vote in voting.votes
        )
        return cls(
            id=voting.id,
            property_id=voting.property_id,
            property_name=voting.property.name if voting.property else None,
            title=voting.title,
            description=voting.description,
            start_date=voting.start_date,
            end_date=voting.end_date,
            status=voting.status,
            created_by_id=voting.created_by_id,
            total_votes=total_votes,
            total_tokens_voted=total_tokens_voted,
            result=calculations.voting_result(total_votes, voting.status == VotingStatus.COMPLETED),
            votes=[VoteResponse.model_validate(vote) for vote in voting.votes] if include_votes else [],
            created_at=voting.created_at,
        )


class VotingHistoryEntry(BaseModel):
    voting: VotingResponse
    choice: VoteChoice
    tokens: int
    voted_at: datetime
