"""Crowdfunding campaign endpoints."""

from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status

from estateshare.api.dependencies import get_actor, get_funding_service, require_capability
from estateshare.schemas.crowdfunding import (
    FundingStatisticsResponse,
    InvestmentResponse,
    InvestRequest,
    StartFundingRequest,
    UserInvestmentResponse,
)
from estateshare.schemas.property import PropertyResponse
from estateshare.services.access import Actor, Capability
from estateshare.services.funding import FundingService

router = APIRouter()


@router.get("", response_model=List[PropertyResponse])
def list_campaigns(service: FundingService = Depends(get_funding_service)) -> List[PropertyResponse]:
    """Active campaigns, closing soonest first."""
    return [PropertyResponse.from_model(prop) for prop in service.list_active_campaigns()]


@router.get("/user/investments", response_model=List[UserInvestmentResponse])
def list_user_investments(
    actor: Actor = Depends(get_actor),
    service: FundingService = Depends(get_funding_service),
) -> List[UserInvestmentResponse]:
    return service.user_investments(actor.user_id)


@router.get("/admin/statistics", response_model=FundingStatisticsResponse)
def funding_statistics(
    actor: Actor = Depends(require_capability(Capability.PLATFORM_STATS)),
    service: FundingService = Depends(get_funding_service),
) -> FundingStatisticsResponse:
    return service.statistics(actor)


@router.get("/{property_id}", response_model=PropertyResponse)
def get_campaign(
    property_id: UUID,
    service: FundingService = Depends(get_funding_service),
) -> PropertyResponse:
    return PropertyResponse.from_model(service.get_campaign(property_id))


@router.post("/{property_id}/start", response_model=PropertyResponse)
def start_funding(
    property_id: UUID,
    payload: StartFundingRequest,
    actor: Actor = Depends(get_actor),
    service: FundingService = Depends(get_funding_service),
) -> PropertyResponse:
    return PropertyResponse.from_model(service.start_funding(actor, property_id, payload))


@router.post("/{property_id}/end", response_model=PropertyResponse)
def end_funding(
    property_id: UUID,
    actor: Actor = Depends(get_actor),
    service: FundingService = Depends(get_funding_service),
) -> PropertyResponse:
    return PropertyResponse.from_model(service.end_funding(actor, property_id))


@router.post("/{property_id}/invest", response_model=InvestmentResponse, status_code=status.HTTP_201_CREATED)
def invest(
    property_id: UUID,
    payload: InvestRequest,
    actor: Actor = Depends(get_actor),
    service: FundingService = Depends(get_funding_service),
) -> InvestmentResponse:
    """
    Reserve tokens in an active campaign.

    Returns the pending transaction; the client pays it through
    ``/api/payments/create-payment-intent``.
    """
    transaction, prop = service.invest(actor, property_id, payload.tokens)
    return InvestmentResponse(
        transaction_id=transaction.id,
        property_id=prop.id,
        tokens=payload.tokens,
        amount=transaction.amount,
        property_status=prop.status.value,
        current_amount=prop.current_amount,
        tokens_sold=prop.tokens_sold,
    )
