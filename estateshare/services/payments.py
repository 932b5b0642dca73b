"""Payment intents, webhook reconciliation and direct purchases."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, exists, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from estateshare.core.config import AppSettings, get_settings
from estateshare.models.property import Property, PropertyInvestor, PropertyStatus
from estateshare.models.transaction import Transaction, TransactionStatus, TransactionType
from estateshare.schemas.transaction import TransactionTotals
from estateshare.services.access import AccessPolicy, Actor, Capability, ResourceContext
from estateshare.services.audit import AuditService
from estateshare.services.errors import (
    DuplicatePaymentReferenceError,
    InvalidStateError,
    NotFoundError,
    PaymentNotCompletedError,
)
from estateshare.services.funding import mark_funded_if_goal_met
from estateshare.services.payment_bridge import (
    PaymentBridge,
    PaymentIntent,
    WebhookEvent,
    get_payment_bridge,
    refund_idempotency_key,
)

logger = logging.getLogger("estateshare.services.payments")

INTENT_SUCCEEDED = "payment_intent.succeeded"
INTENT_FAILED = "payment_intent.payment_failed"
DIRECT_PURCHASE = "direct_purchase"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_direct_purchase(txn: Transaction) -> bool:
    return (txn.payment_metadata or {}).get("purpose") == DIRECT_PURCHASE


class PaymentService:
    """Moves investment transactions through pending, completed and failed."""

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

    def get_transaction(self, actor: Actor, transaction_id: UUID) -> Transaction:
        txn = self._session.get(Transaction, transaction_id)
        if not txn:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        self._policy.require(actor, Capability.TRANSACTION_VIEW, ResourceContext(owner_id=txn.user_id))
        return txn

    def list_transactions(self, actor: Actor, *, limit: Optional[int] = None) -> List[Transaction]:
        """Admins see every transaction; users see their own. Newest first."""

        stmt = select(Transaction)
        if not actor.is_admin:
            stmt = stmt.where(Transaction.user_id == actor.user_id)
        stmt = stmt.order_by(Transaction.created_at.desc())
        if limit:
            stmt = stmt.limit(limit)
        return list(self._session.scalars(stmt))

    def user_transactions(self, user_id: UUID, *, limit: Optional[int] = None) -> List[Transaction]:
        stmt = select(Transaction).where(Transaction.user_id == user_id).order_by(Transaction.created_at.desc())
        if limit:
            stmt = stmt.limit(limit)
        return list(self._session.scalars(stmt))

    def totals_for(self, transactions: List[Transaction]) -> TransactionTotals:
        return TransactionTotals(
            count=len(transactions),
            total_amount=sum(txn.amount for txn in transactions),
            tokens_owned=sum(
                txn.tokens or 0
                for txn in transactions
                if txn.type == TransactionType.INVESTMENT and txn.status == TransactionStatus.COMPLETED
            ),
        )

    def create_payment_intent(self, actor: Actor, transaction_id: UUID) -> Tuple[PaymentIntent, Transaction]:
        """Return the intent the client should confirm for a pending transaction.

        A transaction that already carries a payment reference gets that
        intent back instead of a second one.
        """

        txn = self._session.get(Transaction, transaction_id)
        if not txn:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        self._policy.require(actor, Capability.TRANSACTION_PAY, ResourceContext(owner_id=txn.user_id))
        if txn.status != TransactionStatus.PENDING:
            raise InvalidStateError(f"Transaction is {txn.status.value}; only pending transactions can be paid")

        if txn.stripe_payment_id:
            return self._bridge.retrieve_intent(txn.stripe_payment_id), txn

        intent = self._bridge.create_intent(
            amount=txn.amount,
            currency=self._settings.payment_currency,
            metadata={
                "transaction_id": str(txn.id),
                "user_id": str(txn.user_id),
                "property_id": str(txn.property_id),
            },
        )
        self._attach_reference(txn, intent.id)

        self._audit.record(
            action="payment.intent_create",
            actor_id=actor.user_id,
            entity_id=txn.id,
            entity_type="transaction",
            details={"payment_intent_id": intent.id, "amount": txn.amount},
        )
        logger.info(
            "payment_intent_created",
            extra={"transaction_id": str(txn.id), "payment_intent_id": intent.id},
        )
        return intent, txn

    def _attach_reference(self, txn: Transaction, reference: str) -> None:
        stmt = (
            update(Transaction)
            .where(Transaction.id == txn.id, Transaction.stripe_payment_id.is_(None))
            .values(stripe_payment_id=reference)
            .execution_options(synchronize_session=False)
        )
        try:
            rowcount = self._session.execute(stmt).rowcount
        except IntegrityError as exc:
            raise DuplicatePaymentReferenceError(f"Payment reference {reference} is already in use") from exc
        self._session.refresh(txn)
        if rowcount != 1 and txn.stripe_payment_id != reference:
            raise DuplicatePaymentReferenceError("Transaction already has a payment reference")

    def reconcile(self, event: WebhookEvent) -> bool:
        """Apply a verified webhook event. Returns ``False`` for ignored event types."""

        if event.type == INTENT_SUCCEEDED:
            self._apply_success(event)
            return True
        if event.type == INTENT_FAILED:
            self._apply_failure(event)
            return True
        logger.info("webhook_event_ignored", extra={"event_id": event.id, "event_type": event.type})
        return False

    def _find_by_reference(self, event: WebhookEvent) -> Transaction:
        txn = None
        if event.intent_id:
            txn = self._session.scalar(select(Transaction).where(Transaction.stripe_payment_id == event.intent_id))
        if txn is None:
            logger.error(
                "webhook_transaction_missing",
                extra={"event_id": event.id, "event_type": event.type, "payment_intent_id": event.intent_id},
            )
            raise NotFoundError(f"No transaction for payment intent {event.intent_id}")
        return txn

    def _apply_success(self, event: WebhookEvent) -> None:
        txn = self._find_by_reference(event)
        completable = Transaction.status == TransactionStatus.PENDING
        failed = Transaction.status == TransactionStatus.FAILED
        if _is_direct_purchase(txn):
            completable = or_(completable, failed)
        else:
            # an investment failed by an unfunded campaign end has no investor row left
            backed = exists().where(PropertyInvestor.transaction_id == txn.id)
            completable = or_(completable, and_(failed, backed))
        stmt = (
            update(Transaction)
            .where(Transaction.id == txn.id, completable)
            .values(
                status=TransactionStatus.COMPLETED,
                completed_at=_utcnow(),
                stripe_charge_id=event.latest_charge,
                failed_at=None,
                failure_reason=None,
            )
            .execution_options(synchronize_session=False)
        )
        if self._session.execute(stmt).rowcount != 1:
            self._session.refresh(txn)
            if txn.status == TransactionStatus.FAILED:
                self._refund_unwound(txn, event)
                return
            logger.info(
                "webhook_event_already_applied",
                extra={"event_id": event.id, "transaction_id": str(txn.id), "status": txn.status.value},
            )
            return

        funded = mark_funded_if_goal_met(self._session, txn.property_id)
        self._session.refresh(txn)
        self._audit.record(
            action="payment.complete",
            actor_id=None,
            entity_id=txn.id,
            entity_type="transaction",
            details={"event_id": event.id, "payment_intent_id": event.intent_id, "property_funded": funded},
        )
        logger.info(
            "payment_completed",
            extra={"transaction_id": str(txn.id), "property_id": str(txn.property_id), "funded": funded},
        )

    def _refund_unwound(self, txn: Transaction, event: WebhookEvent) -> None:
        """Give back a payment captured after its investment was unwound."""

        stmt = (
            update(Transaction)
            .where(Transaction.id == txn.id, Transaction.status == TransactionStatus.FAILED)
            .values(status=TransactionStatus.REFUNDED, stripe_charge_id=event.latest_charge)
            .execution_options(synchronize_session=False)
        )
        if self._session.execute(stmt).rowcount != 1:
            self._session.refresh(txn)
            logger.info(
                "webhook_event_already_applied",
                extra={"event_id": event.id, "transaction_id": str(txn.id), "status": txn.status.value},
            )
            return

        refund_id = self._bridge.refund(event.intent_id, idempotency_key=refund_idempotency_key(txn.id))
        self._session.refresh(txn)
        self._audit.record(
            action="payment.refund_late",
            actor_id=None,
            entity_id=txn.id,
            entity_type="transaction",
            details={"event_id": event.id, "payment_intent_id": event.intent_id, "refund_id": refund_id},
        )
        logger.warning(
            "payment_refunded_after_unwind",
            extra={"transaction_id": str(txn.id), "property_id": str(txn.property_id), "refund_id": refund_id},
        )

    def _apply_failure(self, event: WebhookEvent) -> None:
        txn = self._find_by_reference(event)
        reason = event.failure_message or "Payment failed"
        stmt = (
            update(Transaction)
            .where(Transaction.id == txn.id, Transaction.status == TransactionStatus.PENDING)
            .values(status=TransactionStatus.FAILED, failed_at=_utcnow(), failure_reason=reason)
            .execution_options(synchronize_session=False)
        )
        if self._session.execute(stmt).rowcount != 1:
            logger.info(
                "webhook_event_already_applied",
                extra={"event_id": event.id, "transaction_id": str(txn.id), "status": txn.status.value},
            )
            return

        self._session.refresh(txn)
        self._audit.record(
            action="payment.fail",
            actor_id=None,
            entity_id=txn.id,
            entity_type="transaction",
            details={"event_id": event.id, "reason": reason},
        )
        logger.warning("payment_failed", extra={"transaction_id": str(txn.id), "reason": reason})

    def buy_property(self, actor: Actor, property_id: UUID) -> Tuple[PaymentIntent, Transaction]:
        """Open a direct single-unit purchase of a listed property."""

        self._policy.require(actor, Capability.PROPERTY_PURCHASE)
        prop = self._session.get(Property, property_id)
        if not prop:
            raise NotFoundError(f"Property {property_id} not found")
        if prop.status != PropertyStatus.LISTED:
            raise InvalidStateError("Property is not available for purchase")

        intent = self._bridge.create_intent(
            amount=prop.total_value,
            currency=self._settings.payment_currency,
            metadata={"property_id": str(prop.id), "user_id": str(actor.user_id), "purpose": DIRECT_PURCHASE},
        )
        txn = Transaction(
            user_id=actor.user_id,
            property_id=prop.id,
            type=TransactionType.INVESTMENT,
            amount=prop.total_value,
            tokens=1,
            status=TransactionStatus.PENDING,
            stripe_payment_id=intent.id,
            description=f"Purchase of {prop.name}",
            payment_metadata={"purpose": DIRECT_PURCHASE},
        )
        self._session.add(txn)
        try:
            self._session.flush()
        except IntegrityError as exc:
            raise DuplicatePaymentReferenceError(f"Payment reference {intent.id} is already in use") from exc

        self._audit.record(
            action="property.purchase_start",
            actor_id=actor.user_id,
            entity_id=prop.id,
            entity_type="property",
            details={"transaction_id": str(txn.id), "payment_intent_id": intent.id},
        )
        return intent, txn

    def _sold_through(self, prop: Property, txn: Transaction) -> bool:
        if prop.status != PropertyStatus.SOLD:
            return False
        return any(
            entry.action == "property.sold" and entry.details.get("transaction_id") == str(txn.id)
            for entry in self._audit.list_for_entity(prop.id)
        )

    def confirm_purchase(self, actor: Actor, property_id: UUID, payment_intent_id: str) -> Tuple[Transaction, Property]:
        """Complete a direct purchase once its payment intent has succeeded and mark the property sold."""

        self._policy.require(actor, Capability.PROPERTY_PURCHASE)
        intent = self._bridge.retrieve_intent(payment_intent_id)
        if not intent.succeeded:
            raise PaymentNotCompletedError("Payment has not been completed")

        txn = self._session.scalar(
            select(Transaction).where(
                Transaction.stripe_payment_id == payment_intent_id,
                Transaction.user_id == actor.user_id,
                Transaction.property_id == property_id,
            )
        )
        if txn is None:
            raise NotFoundError("No pending purchase matches this payment")
        if txn.status not in (TransactionStatus.PENDING, TransactionStatus.COMPLETED):
            raise InvalidStateError(f"Transaction is {txn.status.value}")

        self._session.execute(
            update(Transaction)
            .where(Transaction.id == txn.id, Transaction.status == TransactionStatus.PENDING)
            .values(
                status=TransactionStatus.COMPLETED,
                completed_at=_utcnow(),
                stripe_charge_id=intent.latest_charge,
            )
            .execution_options(synchronize_session=False)
        )

        sold = self._session.execute(
            update(Property)
            .where(Property.id == property_id, Property.status == PropertyStatus.LISTED)
            .values(status=PropertyStatus.SOLD)
            .execution_options(synchronize_session=False)
        ).rowcount == 1

        prop = self._session.get(Property, property_id)
        self._session.refresh(prop)
        self._session.refresh(txn)
        if not sold and not self._sold_through(prop, txn):
            raise InvalidStateError("Property is no longer available for purchase")

        if sold:
            self._audit.record(
                action="property.sold",
                actor_id=actor.user_id,
                entity_id=prop.id,
                entity_type="property",
                details={"transaction_id": str(txn.id), "payment_intent_id": payment_intent_id},
            )
            logger.info("property_sold", extra={"property_id": str(prop.id), "transaction_id": str(txn.id)})
        return txn, prop

