"""Payment and transaction API schemas."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from estateshare.models.transaction import Transaction, TransactionStatus, TransactionType
from estateshare.services import calculations


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    property_id: UUID
    type: TransactionType
    amount: float
    tokens: Optional[int] = None
    status: TransactionStatus
    stripe_payment_id: Optional[str] = None
    stripe_charge_id: Optional[str] = None
    description: Optional[str] = None
    failure_reason: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict, validation_alias="payment_metadata")
    refundable: bool = False
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_model(cls, txn: Transaction, *, refund_window_days: int = 7) -> "TransactionResponse":
        response = cls.model_validate(txn)
        response.refundable = calculations.is_refundable(
            status=txn.status,
            transaction_type=txn.type,
            created_at=txn.created_at,
            now=datetime.now(timezone.utc),
            window_days=refund_window_days,
        )
        return response


class PaymentIntentRequest(BaseModel):
    transaction_id: UUID


class PaymentIntentResponse(BaseModel):
    client_secret: Optional[str]
    payment_intent_id: str
    transaction_id: UUID


class BuyPropertyRequest(BaseModel):
    property_id: UUID


class ConfirmPaymentRequest(BaseModel):
    property_id: UUID
    payment_intent_id: str = Field(..., min_length=1)


class ConfirmPaymentResponse(BaseModel):
    transaction: TransactionResponse
    property_status: str


class TransactionTotals(BaseModel):
    count: int
    total_amount: float
    tokens_owned: int


class UserTransactionsResponse(BaseModel):
    transactions: List[TransactionResponse]
    totals: TransactionTotals


class WebhookAck(BaseModel):
    received: bool = True
    handled: bool = False
