"""Profile and admin dashboard endpoints."""

from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends

from estateshare.api.dependencies import (
    get_actor,
    get_dashboard_service,
    get_payment_service,
    get_user_service,
    require_capability,
)
from estateshare.core.config import get_settings
from estateshare.schemas.auth import UserResponse
from estateshare.schemas.profile import (
    AdminOverviewResponse,
    PlatformStatisticsResponse,
    ProfileUpdate,
    UserProfileResponse,
)
from estateshare.schemas.transaction import TransactionResponse, UserTransactionsResponse
from estateshare.services.access import Actor, Capability
from estateshare.services.dashboard import DashboardService
from estateshare.services.payments import PaymentService
from estateshare.services.users import UserService

router = APIRouter()


@router.get("/me", response_model=UserProfileResponse)
def my_profile(
    actor: Actor = Depends(get_actor),
    service: DashboardService = Depends(get_dashboard_service),
) -> UserProfileResponse:
    return service.user_profile(actor, actor.user_id)


@router.put("/me", response_model=UserResponse)
def update_my_profile(
    payload: ProfileUpdate,
    actor: Actor = Depends(get_actor),
    service: UserService = Depends(get_user_service),
) -> UserResponse:
    return UserResponse.model_validate(service.update_profile(actor, actor.user_id, payload))


@router.get("/user/transactions", response_model=UserTransactionsResponse)
def my_transactions(
    actor: Actor = Depends(get_actor),
    service: PaymentService = Depends(get_payment_service),
) -> UserTransactionsResponse:
    transactions = service.user_transactions(actor.user_id)
    window = get_settings().refund_window_days
    return UserTransactionsResponse(
        transactions=[TransactionResponse.from_model(txn, refund_window_days=window) for txn in transactions],
        totals=service.totals_for(transactions),
    )


@router.get("/user/{user_id}", response_model=UserProfileResponse)
def user_profile(
    user_id: UUID,
    actor: Actor = Depends(get_actor),
    service: DashboardService = Depends(get_dashboard_service),
) -> UserProfileResponse:
    return service.user_profile(actor, user_id)


@router.put("/user/{user_id}", response_model=UserResponse)
def update_user_profile(
    user_id: UUID,
    payload: ProfileUpdate,
    actor: Actor = Depends(get_actor),
    service: UserService = Depends(get_user_service),
) -> UserResponse:
    return UserResponse.model_validate(service.update_profile(actor, user_id, payload))


@router.get("/admin", response_model=AdminOverviewResponse)
def admin_overview(
    actor: Actor = Depends(get_actor),
    service: DashboardService = Depends(get_dashboard_service),
) -> AdminOverviewResponse:
    return service.admin_overview(actor)


@router.get("/admin/statistics", response_model=PlatformStatisticsResponse)
def admin_statistics(
    actor: Actor = Depends(get_actor),
    service: DashboardService = Depends(get_dashboard_service),
) -> PlatformStatisticsResponse:
    return service.platform_statistics(actor)


@router.get("/admin/users", response_model=List[UserResponse])
def admin_users(
    actor: Actor = Depends(require_capability(Capability.PLATFORM_STATS)),
    service: UserService = Depends(get_user_service),
) -> List[UserResponse]:
    return [UserResponse.model_validate(user) for user in service.list_users()]
