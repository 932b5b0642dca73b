"""Crowdfunding lifecycle: start, invest, end.

Every status transition and every change to ``tokens_sold`` is a single
conditional UPDATE whose WHERE clause re-checks the precondition, so two
requests racing on the same property cannot oversell tokens or apply a
transition twice. A zero rowcount is diagnosed against the freshly loaded
row.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from estateshare.core.config import AppSettings, get_settings
from estateshare.models.property import Property, PropertyInvestor, PropertyStatus
from estateshare.models.transaction import Transaction, TransactionStatus, TransactionType
from estateshare.schemas.crowdfunding import (
    FundingStatisticsResponse,
    StartFundingRequest,
    UserInvestmentResponse,
)
from estateshare.services import calculations
from estateshare.services.access import AccessPolicy, Actor, Capability
from estateshare.services.audit import AuditService
from estateshare.services.errors import (
    CampaignEndedError,
    InsufficientTokensError,
    InvalidStateError,
    NotFoundError,
    ValidationFailedError,
)
from estateshare.services.payment_bridge import PaymentBridge, get_payment_bridge, refund_idempotency_key

logger = logging.getLogger("estateshare.services.funding")

UNFUNDED_REASON = "Crowdfunding ended without reaching its funding goal"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def token_balance(session: Session, property_id: UUID, user_id: UUID) -> int:
    """Tokens a user holds in a property: the sum of their investor entries."""

    stmt = select(func.coalesce(func.sum(PropertyInvestor.tokens), 0)).where(
        PropertyInvestor.property_id == property_id,
        PropertyInvestor.user_id == user_id,
    )
    return int(session.scalar(stmt) or 0)


def mark_funded_if_goal_met(session: Session, property_id: UUID) -> bool:
    """Flip a crowdfunding property to funded once the raised amount covers its value."""

    stmt = (
        update(Property)
        .where(
            Property.id == property_id,
            Property.status == PropertyStatus.CROWDFUNDING,
            Property.current_amount + calculations.FUNDING_TOLERANCE >= Property.total_value,
        )
        .values(status=PropertyStatus.FUNDED)
        .execution_options(synchronize_session=False)
    )
    return session.execute(stmt).rowcount == 1


class FundingService:
    """Starts and ends funding rounds and records investments."""

    def __init__(
        self,
        session: Session,
        audit_service: Optional[AuditService] = None,
        bridge: Optional[PaymentBridge] = None,
        policy: Optional[AccessPolicy] = None,
        settings: Optional[AppSettings] = None,
    ) -> None:
        self._session = session
        self._audit = audit_service or AuditService(session)
        self._bridge = bridge or get_payment_bridge()
        self._policy = policy or AccessPolicy()
        self._settings = settings or get_settings()

    def _get_property(self, property_id: UUID) -> Property:
        prop = self._session.get(Property, property_id)
        if not prop:
            raise NotFoundError(f"Property {property_id} not found")
        return prop

    def _reload(self, prop: Property) -> Property:
        # bulk updates bypass the identity map
        self._session.expire(prop)
        self._session.refresh(prop)
        return prop

    def list_active_campaigns(self) -> List[Property]:
        stmt = (
            select(Property)
            .where(Property.status == PropertyStatus.CROWDFUNDING)
            .order_by(Property.crowdfunding_end_date.asc())
        )
        return list(self._session.scalars(stmt))

    def get_campaign(self, property_id: UUID) -> Property:
        prop = self._session.get(Property, property_id)
        if not prop or prop.status != PropertyStatus.CROWDFUNDING:
            raise NotFoundError("Crowdfunding campaign not found")
        return prop

    def start_funding(self, actor: Actor, property_id: UUID, payload: StartFundingRequest) -> Property:
        self._policy.require(actor, Capability.CROWDFUNDING_MANAGE)
        prop = self._get_property(property_id)
        now = _utcnow()
        if payload.end_date <= now:
            raise ValidationFailedError("End date must be in the future")

        stmt = (
            update(Property)
            .where(Property.id == property_id, Property.status == PropertyStatus.LISTED)
            .values(
                status=PropertyStatus.CROWDFUNDING,
                crowdfunding_start_date=now,
                crowdfunding_end_date=payload.end_date,
                crowdfunding_description=payload.description,
                current_amount=0.0,
                tokens_sold=0,
            )
            .execution_options(synchronize_session=False)
        )
        if self._session.execute(stmt).rowcount != 1:
            self._reload(prop)
            raise InvalidStateError(f"Crowdfunding can only start on a listed property; property is {prop.status.value}")

        self._session.execute(delete(PropertyInvestor).where(PropertyInvestor.property_id == property_id))
        self._reload(prop)

        self._audit.record(
            action="crowdfunding.start",
            actor_id=actor.user_id,
            entity_id=prop.id,
            entity_type="property",
            details={"end_date": payload.end_date.isoformat()},
        )
        logger.info(
            "crowdfunding_started",
            extra={"property_id": str(prop.id), "end_date": payload.end_date.isoformat()},
        )
        return prop

    def invest(self, actor: Actor, property_id: UUID, tokens: int) -> Tuple[Transaction, Property]:
        """
        Reserve ``tokens`` of a crowdfunding property for the actor.

        Returns:
            The pending investment transaction and the refreshed property.

        Raises:
            InvalidStateError: Property is not crowdfunding
            CampaignEndedError: The end date has passed
            InsufficientTokensError: Fewer than ``tokens`` remain
        """
        self._policy.require(actor, Capability.CROWDFUNDING_INVEST)
        if tokens < 1:
            raise ValidationFailedError("At least one token is required")
        prop = self._get_property(property_id)

        price = prop.token_price
        amount = calculations.investment_amount(tokens, price)
        now = _utcnow()

        reserve = (
            update(Property)
            .where(
                Property.id == property_id,
                Property.status == PropertyStatus.CROWDFUNDING,
                Property.crowdfunding_end_date >= now,
                Property.tokens_sold + tokens <= Property.total_tokens,
            )
            .values(
                tokens_sold=Property.tokens_sold + tokens,
                current_amount=Property.current_amount + amount,
            )
            .execution_options(synchronize_session=False)
        )
        if self._session.execute(reserve).rowcount != 1:
            self._reload(prop)
            raise self._rejected_investment(prop, tokens, now)

        transaction = Transaction(
            user_id=actor.user_id,
            property_id=property_id,
            type=TransactionType.INVESTMENT,
            amount=amount,
            tokens=tokens,
            status=TransactionStatus.PENDING,
            description=f"Investment of {tokens} tokens in {prop.name}",
            payment_metadata={"token_price": str(price)},
        )
        self._session.add(transaction)
        self._session.flush()

        self._session.add(
            PropertyInvestor(
                property_id=property_id,
                user_id=actor.user_id,
                transaction_id=transaction.id,
                tokens=tokens,
                invested_at=now,
            )
        )
        self._session.flush()

        funded = mark_funded_if_goal_met(self._session, property_id)
        self._reload(prop)

        self._audit.record(
            action="crowdfunding.invest",
            actor_id=actor.user_id,
            entity_id=prop.id,
            entity_type="property",
            details={"transaction_id": str(transaction.id), "tokens": tokens, "amount": amount},
        )
        if funded:
            self._record_funded(prop, actor.user_id)
        logger.info(
            "investment_recorded",
            extra={
                "property_id": str(prop.id),
                "user_id": str(actor.user_id),
                "transaction_id": str(transaction.id),
                "tokens": tokens,
                "funded": funded,
            },
        )
        return transaction, prop

    @staticmethod
    def _rejected_investment(prop: Property, tokens: int, now: datetime) -> InvalidStateError:
        if prop.status != PropertyStatus.CROWDFUNDING:
            return InvalidStateError("Property is not open for crowdfunding")
        if prop.crowdfunding_end_date is None or prop.crowdfunding_end_date < now:
            return CampaignEndedError("Crowdfunding period has ended")
        remaining = calculations.available_tokens(prop.total_tokens, prop.tokens_sold)
        return InsufficientTokensError(f"Only {remaining} tokens are available; requested {tokens}")

    def end_funding(self, actor: Actor, property_id: UUID) -> Property:
        self._policy.require(actor, Capability.CROWDFUNDING_MANAGE)
        prop = self._reload(self._get_property(property_id))
        if prop.status != PropertyStatus.CROWDFUNDING:
            raise InvalidStateError("Property is not in crowdfunding")

        if calculations.funding_goal_met(prop.current_amount, prop.total_value):
            values = {"status": PropertyStatus.FUNDED}
        else:
            values = {
                "status": PropertyStatus.LISTED,
                "crowdfunding_start_date": None,
                "crowdfunding_end_date": None,
                "crowdfunding_description": None,
                "current_amount": 0.0,
                "tokens_sold": 0,
            }
        stmt = (
            update(Property)
            .where(Property.id == property_id, Property.status == PropertyStatus.CROWDFUNDING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if self._session.execute(stmt).rowcount != 1:
            raise InvalidStateError("Property is not in crowdfunding")

        if values["status"] == PropertyStatus.FUNDED:
            self._reload(prop)
            self._record_funded(prop, actor.user_id)
            return prop

        unwound = self._unwind_investments(property_id)
        self._reload(prop)
        self._audit.record(
            action="crowdfunding.revert",
            actor_id=actor.user_id,
            entity_id=prop.id,
            entity_type="property",
            details=unwound,
        )
        logger.info("crowdfunding_reverted", extra={"property_id": str(prop.id), **unwound})
        return prop

    def _unwind_investments(self, property_id: UUID) -> dict:
        """Fail pending and refund completed investments of an unfunded campaign, then drop its investors."""

        transaction_ids = [
            txn_id
            for txn_id in self._session.scalars(
                select(PropertyInvestor.transaction_id).where(PropertyInvestor.property_id == property_id)
            )
            if txn_id is not None
        ]
        self._session.execute(delete(PropertyInvestor).where(PropertyInvestor.property_id == property_id))
        if not transaction_ids:
            return {"failed": 0, "refunded": 0}

        now = _utcnow()
        failed = self._session.execute(
            update(Transaction)
            .where(Transaction.id.in_(transaction_ids), Transaction.status == TransactionStatus.PENDING)
            .values(status=TransactionStatus.FAILED, failed_at=now, failure_reason=UNFUNDED_REASON)
            .execution_options(synchronize_session=False)
        ).rowcount

        refunded = 0
        completed = self._session.execute(
            select(Transaction.id, Transaction.stripe_payment_id)
            .where(
                Transaction.id.in_(transaction_ids),
                Transaction.status == TransactionStatus.COMPLETED,
            )
            .order_by(Transaction.created_at)
        ).all()
        for txn_id, payment_id in completed:
            if payment_id:
                self._bridge.refund(payment_id, idempotency_key=refund_idempotency_key(txn_id))
            refunded += self._session.execute(
                update(Transaction)
                .where(Transaction.id == txn_id, Transaction.status == TransactionStatus.COMPLETED)
                .values(status=TransactionStatus.REFUNDED, failure_reason=UNFUNDED_REASON)
                .execution_options(synchronize_session=False)
            ).rowcount

        # loaded Transaction instances no longer match their rows
        self._session.expire_all()
        return {"failed": failed, "refunded": refunded}

    def _record_funded(self, prop: Property, actor_id: Optional[UUID]) -> None:
        self._audit.record(
            action="crowdfunding.funded",
            actor_id=actor_id,
            entity_id=prop.id,
            entity_type="property",
            details={"current_amount": prop.current_amount, "total_value": prop.total_value},
        )
        logger.info("property_funded", extra={"property_id": str(prop.id)})

    def user_investments(self, user_id: UUID) -> List[UserInvestmentResponse]:
        stmt = (
            select(Property, func.sum(PropertyInvestor.tokens))
            .join(PropertyInvestor, PropertyInvestor.property_id == Property.id)
            .where(PropertyInvestor.user_id == user_id)
            .group_by(Property.id)
            .order_by(Property.name.asc())
        )
        investments = []
        for prop, tokens in self._session.execute(stmt).all():
            tokens = int(tokens or 0)
            investments.append(
                UserInvestmentResponse(
                    property_id=prop.id,
                    property_name=prop.name,
                    property_status=prop.status.value,
                    tokens=tokens,
                    token_price=prop.token_price,
                    invested_amount=calculations.investment_amount(tokens, prop.token_price),
                    ownership_percentage=tokens / prop.total_tokens * 100,
                )
            )
        return investments

    def statistics(self, actor: Actor) -> FundingStatisticsResponse:
        self._policy.require(actor, Capability.PLATFORM_STATS)

        def _count_properties(status: PropertyStatus) -> int:
            stmt = select(func.count()).select_from(Property).where(Property.status == status)
            return int(self._session.scalar(stmt) or 0)

        completed = select(
            func.count(Transaction.id),
            func.coalesce(func.sum(Transaction.amount), 0.0),
        ).where(
            Transaction.type == TransactionType.INVESTMENT,
            Transaction.status == TransactionStatus.COMPLETED,
        )
        count, total = self._session.execute(completed).one()
        return FundingStatisticsResponse(
            active_crowdfunding=_count_properties(PropertyStatus.CROWDFUNDING),
            funded_properties=_count_properties(PropertyStatus.FUNDED),
            completed_investments=int(count or 0),
            total_invested=float(total or 0.0),
        )
