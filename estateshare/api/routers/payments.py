"""Payment endpoints and the Stripe webhook."""

from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Request

from estateshare.api.dependencies import get_actor, get_bridge, get_payment_service
from estateshare.core.config import get_settings
from estateshare.schemas.property import PurchaseResponse
from estateshare.schemas.transaction import (
    BuyPropertyRequest,
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
    PaymentIntentRequest,
    PaymentIntentResponse,
    TransactionResponse,
    WebhookAck,
)
from estateshare.services.access import Actor
from estateshare.services.payment_bridge import PaymentBridge
from estateshare.services.payments import PaymentService

router = APIRouter()


def _response(transaction) -> TransactionResponse:
    return TransactionResponse.from_model(transaction, refund_window_days=get_settings().refund_window_days)


@router.post("/create-payment-intent", response_model=PaymentIntentResponse)
def create_payment_intent(
    payload: PaymentIntentRequest,
    actor: Actor = Depends(get_actor),
    service: PaymentService = Depends(get_payment_service),
) -> PaymentIntentResponse:
    intent, transaction = service.create_payment_intent(actor, payload.transaction_id)
    return PaymentIntentResponse(
        client_secret=intent.client_secret,
        payment_intent_id=intent.id,
        transaction_id=transaction.id,
    )


async def read_raw_body(request: Request) -> bytes:
    return await request.body()


@router.post("/webhook", response_model=WebhookAck)
def stripe_webhook(
    payload: bytes = Depends(read_raw_body),
    stripe_signature: str = Header(default="", alias="stripe-signature"),
    bridge: PaymentBridge = Depends(get_bridge),
    service: PaymentService = Depends(get_payment_service),
) -> WebhookAck:
    """Verify and apply a Stripe event; non-2xx responses make Stripe redeliver."""
    event = bridge.verify_webhook(payload, stripe_signature)
    handled = service.reconcile(event)
    return WebhookAck(received=True, handled=handled)


@router.get("/transactions", response_model=List[TransactionResponse])
def list_transactions(
    actor: Actor = Depends(get_actor),
    service: PaymentService = Depends(get_payment_service),
) -> List[TransactionResponse]:
    return [_response(txn) for txn in service.list_transactions(actor)]


@router.get("/transactions/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: UUID,
    actor: Actor = Depends(get_actor),
    service: PaymentService = Depends(get_payment_service),
) -> TransactionResponse:
    return _response(service.get_transaction(actor, transaction_id))


@router.post("/buy-property", response_model=PurchaseResponse)
def buy_property(
    payload: BuyPropertyRequest,
    actor: Actor = Depends(get_actor),
    service: PaymentService = Depends(get_payment_service),
) -> PurchaseResponse:
    intent, transaction = service.buy_property(actor, payload.property_id)
    return PurchaseResponse(
        client_secret=intent.client_secret,
        transaction_id=transaction.id,
        payment_intent_id=intent.id,
        amount=transaction.amount,
    )


@router.post("/confirm-payment", response_model=ConfirmPaymentResponse)
def confirm_payment(
    payload: ConfirmPaymentRequest,
    actor: Actor = Depends(get_actor),
    service: PaymentService = Depends(get_payment_service),
) -> ConfirmPaymentResponse:
    transaction, prop = service.confirm_purchase(actor, payload.property_id, payload.payment_intent_id)
    return ConfirmPaymentResponse(transaction=_response(transaction), property_status=prop.status.value)
