"""Read models for user profiles and the admin dashboard."""

from __future__ import annotations

from typing import Dict, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from estateshare.core.config import AppSettings, get_settings
from estateshare.models.property import Property, PropertyStatus
from estateshare.models.transaction import Transaction, TransactionStatus
from estateshare.models.user import User
from estateshare.models.voting import Voting, VotingStatus
from estateshare.schemas.auth import UserResponse
from estateshare.schemas.profile import (
    AdminOverviewResponse,
    PlatformStatisticsResponse,
    StatusBreakdown,
    UserProfileResponse,
)
from estateshare.schemas.property import PropertyResponse
from estateshare.schemas.transaction import TransactionResponse
from estateshare.schemas.voting import VotingHistoryEntry, VotingResponse
from estateshare.services.access import AccessPolicy, Actor, Capability, ResourceContext
from estateshare.services.errors import NotFoundError
from estateshare.services.funding import FundingService
from estateshare.services.payments import PaymentService
from estateshare.services.voting import VotingService

RECENT_LIMIT = 10
STATISTICS_RECENT_LIMIT = 5


class DashboardService:
    """Aggregates profile and platform views across the other services."""

    def __init__(
        self,
        session: Session,
        funding: FundingService,
        payments: PaymentService,
        voting: VotingService,
        policy: Optional[AccessPolicy] = None,
        settings: Optional[AppSettings] = None,
    ) -> None:
        self._session = session
        self._funding = funding
        self._payments = payments
        self._voting = voting
        self._policy = policy or AccessPolicy()
        self._settings = settings or get_settings()

    def _transaction(self, txn: Transaction) -> TransactionResponse:
        return TransactionResponse.from_model(txn, refund_window_days=self._settings.refund_window_days)

    def user_profile(self, actor: Actor, user_id: UUID) -> UserProfileResponse:
        user = self._session.get(User, user_id)
        if not user:
            raise NotFoundError(f"User {user_id} not found")
        self._policy.require(actor, Capability.PROFILE_VIEW, ResourceContext(owner_id=user.id))

        history = self._voting.history(user.id, limit=RECENT_LIMIT)
        return UserProfileResponse(
            user=UserResponse.model_validate(user),
            investments=self._funding.user_investments(user.id),
            recent_transactions=[
                self._transaction(txn) for txn in self._payments.user_transactions(user.id, limit=RECENT_LIMIT)
            ],
            recent_votes=[
                VotingHistoryEntry(
                    voting=VotingResponse.from_model(voting, include_votes=False),
                    choice=vote.choice,
                    tokens=vote.tokens,
                    voted_at=vote.voted_at,
                )
                for voting, vote in history
            ],
        )

    def admin_overview(self, actor: Actor) -> AdminOverviewResponse:
        self._policy.require(actor, Capability.PLATFORM_STATS)
        admin = self._session.get(User, actor.user_id)
        if not admin:
            raise NotFoundError(f"User {actor.user_id} not found")

        properties = list(
            self._session.scalars(
                select(Property).where(Property.created_by_id == admin.id).order_by(Property.created_at.desc())
            )
        )
        counts: Dict[str, int] = {status.value: 0 for status in PropertyStatus}
        for prop in properties:
            counts[prop.status.value] += 1

        return AdminOverviewResponse(
            user=UserResponse.model_validate(admin),
            properties=[PropertyResponse.from_model(prop) for prop in properties],
            property_counts=counts,
            recent_transactions=[
                self._transaction(txn) for txn in self._payments.list_transactions(actor, limit=RECENT_LIMIT)
            ],
            active_votings=[
                VotingResponse.from_model(voting, include_votes=False)
                for voting in self._voting.list_by_status(VotingStatus.ACTIVE)
            ],
        )

    def platform_statistics(self, actor: Actor) -> PlatformStatisticsResponse:
        self._policy.require(actor, Capability.PLATFORM_STATS)

        properties = {status.value: StatusBreakdown(count=0) for status in PropertyStatus}
        property_rows = self._session.execute(
            select(Property.status, func.count(Property.id), func.coalesce(func.sum(Property.total_value), 0.0))
            .group_by(Property.status)
        ).all()
        for status, count, total in property_rows:
            properties[status.value] = StatusBreakdown(count=int(count), total=float(total))

        transactions = {status.value: StatusBreakdown(count=0) for status in TransactionStatus}
        transaction_rows = self._session.execute(
            select(Transaction.status, func.count(Transaction.id), func.coalesce(func.sum(Transaction.amount), 0.0))
            .group_by(Transaction.status)
        ).all()
        for status, count, total in transaction_rows:
            transactions[status.value] = StatusBreakdown(count=int(count), total=float(total))

        votings = {status.value: 0 for status in VotingStatus}
        for status, count in self._session.execute(
            select(Voting.status, func.count(Voting.id)).group_by(Voting.status)
        ).all():
            votings[status.value] = int(count)

        return PlatformStatisticsResponse(
            total_users=int(self._session.scalar(select(func.count(User.id))) or 0),
            properties=properties,
            transactions=transactions,
            votings=votings,
            recent_transactions=[
                self._transaction(txn)
                for txn in self._payments.list_transactions(actor, limit=STATISTICS_RECENT_LIMIT)
            ],
        )
