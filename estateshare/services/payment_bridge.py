"""Stripe payment processor integration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import stripe

from estateshare.core.config import get_settings
from estateshare.services.errors import ExternalServiceError, WebhookSignatureError

LOGGER = logging.getLogger("estateshare.payments.stripe")

SUCCEEDED = "succeeded"
ALREADY_REFUNDED = "charge_already_refunded"


@dataclass(frozen=True)
class PaymentIntent:
    id: str
    client_secret: Optional[str]
    status: str
    latest_charge: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCEEDED


@dataclass(frozen=True)
class WebhookEvent:
    """The subset of a verified Stripe event that reconciliation reads."""

    id: str
    type: str
    intent_id: Optional[str]
    latest_charge: Optional[str] = None
    failure_message: Optional[str] = None


class PaymentBridge(Protocol):
    """Operations the service layer needs from a payment processor."""

    def create_intent(self, *, amount: float, currency: str, metadata: Dict[str, str]) -> PaymentIntent:
        ...

    def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        ...

    def refund(self, intent_id: str, *, idempotency_key: Optional[str] = None) -> Optional[str]:
        ...

    def verify_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        ...


def refund_idempotency_key(transaction_id: Any) -> str:
    return f"refund-{transaction_id}"


def to_minor_units(amount: float) -> int:
    return int(round(amount * 100))


def _field(obj: Any, key: str) -> Any:
    try:
        return obj[key]
    except (KeyError, TypeError):
        return None


class StripePaymentBridge(PaymentBridge):
    """Thin adapter over the ``stripe`` SDK."""

    def __init__(self, *, secret_key: Optional[str], webhook_secret: Optional[str]) -> None:
        self._secret_key = secret_key
        self._webhook_secret = webhook_secret

    def _require_key(self) -> str:
        if not self._secret_key:
            raise ExternalServiceError("Payment processing is not configured")
        return self._secret_key

    def create_intent(self, *, amount: float, currency: str, metadata: Dict[str, str]) -> PaymentIntent:
        api_key = self._require_key()
        try:
            intent = stripe.PaymentIntent.create(
                amount=to_minor_units(amount),
                currency=currency,
                metadata=metadata,
                automatic_payment_methods={"enabled": True},
                api_key=api_key,
            )
        except stripe.StripeError as exc:
            LOGGER.exception("stripe_intent_create_failed", extra={"metadata": metadata})
            raise ExternalServiceError(exc.user_message or "Payment processor error") from exc

        LOGGER.info("stripe_intent_created", extra={"intent_id": intent.id, "amount": amount})
        return PaymentIntent(
            id=intent.id,
            client_secret=intent.client_secret,
            status=intent.status,
            latest_charge=_field(intent, "latest_charge"),
        )

    def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        api_key = self._require_key()
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id, api_key=api_key)
        except stripe.StripeError as exc:
            LOGGER.exception("stripe_intent_retrieve_failed", extra={"intent_id": intent_id})
            raise ExternalServiceError(exc.user_message or "Payment processor error") from exc
        return PaymentIntent(
            id=intent.id,
            client_secret=intent.client_secret,
            status=intent.status,
            latest_charge=_field(intent, "latest_charge"),
        )

    def refund(self, intent_id: str, *, idempotency_key: Optional[str] = None) -> Optional[str]:
        """Refund a captured intent. A charge that is already refunded counts as done."""

        api_key = self._require_key()
        try:
            refund = stripe.Refund.create(
                payment_intent=intent_id,
                api_key=api_key,
                idempotency_key=idempotency_key,
            )
        except stripe.InvalidRequestError as exc:
            if exc.code != ALREADY_REFUNDED:
                LOGGER.exception("stripe_refund_failed", extra={"intent_id": intent_id})
                raise ExternalServiceError(exc.user_message or "Payment processor error") from exc
            LOGGER.info("stripe_refund_already_applied", extra={"intent_id": intent_id})
            return None
        except stripe.StripeError as exc:
            LOGGER.exception("stripe_refund_failed", extra={"intent_id": intent_id})
            raise ExternalServiceError(exc.user_message or "Payment processor error") from exc
        LOGGER.info("stripe_refund_created", extra={"intent_id": intent_id, "refund_id": refund.id})
        return refund.id

    def verify_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        if not self._webhook_secret:
            raise WebhookSignatureError("Webhook secret is not configured")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as exc:
            LOGGER.warning("stripe_webhook_rejected", extra={"error": str(exc)})
            raise WebhookSignatureError("Invalid webhook signature") from exc

        obj = event["data"]["object"]
        last_error = _field(obj, "last_payment_error")
        return WebhookEvent(
            id=event["id"],
            type=event["type"],
            intent_id=_field(obj, "id"),
            latest_charge=_field(obj, "latest_charge"),
            failure_message=_field(last_error, "message") if last_error else None,
        )


_bridge: Optional[PaymentBridge] = None


def get_payment_bridge() -> PaymentBridge:
    """Return the process-wide payment bridge, building it from settings on first use."""

    global _bridge
    if _bridge is None:
        settings = get_settings()
        _bridge = StripePaymentBridge(
            secret_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret,
        )
    return _bridge


def set_payment_bridge(bridge: Optional[PaymentBridge]) -> None:
    """Override the bridge (tests) or reset it with ``None``."""

    global _bridge
    _bridge = bridge
