"""Shareholder voting endpoints."""

from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status

from estateshare.api.dependencies import get_actor, get_voting_service
from estateshare.schemas.voting import VoteRequest, VotingCreate, VotingHistoryEntry, VotingResponse
from estateshare.services.access import Actor
from estateshare.services.voting import VotingService

router = APIRouter()


@router.get("", response_model=List[VotingResponse])
def list_active_votings(
    actor: Actor = Depends(get_actor),
    service: VotingService = Depends(get_voting_service),
) -> List[VotingResponse]:
    return [VotingResponse.from_model(voting) for voting in service.list_active(actor)]


@router.get("/admin/results", response_model=List[VotingResponse])
def voting_results(
    actor: Actor = Depends(get_actor),
    service: VotingService = Depends(get_voting_service),
) -> List[VotingResponse]:
    return [VotingResponse.from_model(voting) for voting in service.completed_results(actor)]


@router.get("/user/history", response_model=List[VotingHistoryEntry])
def voting_history(
    actor: Actor = Depends(get_actor),
    service: VotingService = Depends(get_voting_service),
) -> List[VotingHistoryEntry]:
    return [
        VotingHistoryEntry(
            voting=VotingResponse.from_model(voting, include_votes=False),
            choice=vote.choice,
            tokens=vote.tokens,
            voted_at=vote.voted_at,
        )
        for voting, vote in service.history(actor.user_id)
    ]


@router.get("/{voting_id}", response_model=VotingResponse)
def get_voting(
    voting_id: UUID,
    actor: Actor = Depends(get_actor),
    service: VotingService = Depends(get_voting_service),
) -> VotingResponse:
    return VotingResponse.from_model(service.get_voting(actor, voting_id))


@router.post("", response_model=VotingResponse, status_code=status.HTTP_201_CREATED)
def create_voting(
    payload: VotingCreate,
    actor: Actor = Depends(get_actor),
    service: VotingService = Depends(get_voting_service),
) -> VotingResponse:
    return VotingResponse.from_model(service.create_voting(actor, payload))


@router.post("/{voting_id}/vote", response_model=VotingResponse)
def cast_vote(
    voting_id: UUID,
    payload: VoteRequest,
    actor: Actor = Depends(get_actor),
    service: VotingService = Depends(get_voting_service),
) -> VotingResponse:
    return VotingResponse.from_model(service.cast_vote(actor, voting_id, payload.choice))


@router.post("/{voting_id}/end", response_model=VotingResponse)
def end_voting(
    voting_id: UUID,
    actor: Actor = Depends(get_actor),
    service: VotingService = Depends(get_voting_service),
) -> VotingResponse:
    return VotingResponse.from_model(service.end_voting(actor, voting_id))
