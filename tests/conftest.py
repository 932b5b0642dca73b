import json
import os
import sys
import tempfile
import warnings
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("ESH_ENVIRONMENT", "test")
os.environ.setdefault("ESH_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ESH_JWT_SECRET", "test-secret-key-with-enough-entropy")
os.environ.setdefault("ESH_BCRYPT_ROUNDS", "4")
os.environ.setdefault("ESH_UPLOAD_DIR", tempfile.mkdtemp(prefix="estateshare-uploads-"))
os.environ.setdefault("ESH_ADMIN_EMAIL", "admin@estateshare.io")
os.environ.setdefault("ESH_ADMIN_PASSWORD", "AdminPass1")
os.environ.setdefault("ESH_NOTIFICATION_TOPIC_ARN", "")
os.environ.setdefault("ESH_LOG_JSON", "false")

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from estateshare.core.config import get_settings

get_settings.cache_clear()

from estateshare.core.database import engine  # noqa: E402
from estateshare.main import create_app  # noqa: E402
from estateshare.models import Base  # noqa: E402
from estateshare.services.errors import ExternalServiceError, WebhookSignatureError  # noqa: E402
from estateshare.services.notifications import set_notification_publisher  # noqa: E402
from estateshare.services.payment_bridge import PaymentIntent, WebhookEvent, set_payment_bridge  # noqa: E402

ADMIN_EMAIL = "admin@estateshare.io"
ADMIN_PASSWORD = "AdminPass1"
USER_PASSWORD = "Investor123"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class FakePaymentBridge:
    """In-memory stand-in for Stripe; webhooks are plain JSON signed with ``SIGNATURE``."""

    SIGNATURE = "t=1,v1=test-signature"

    def __init__(self) -> None:
        self.intents: Dict[str, PaymentIntent] = {}
        self.metadata: Dict[str, Dict[str, str]] = {}
        self.refunds: List[str] = []
        self.refund_keys: Dict[str, str] = {}
        # intents whose next refund attempt fails
        self.refund_failures: List[str] = []

    def create_intent(self, *, amount: float, currency: str, metadata: Dict[str, str]) -> PaymentIntent:
        intent_id = f"pi_{uuid4().hex[:24]}"
        intent = PaymentIntent(id=intent_id, client_secret=f"{intent_id}_secret", status="requires_payment_method")
        self.intents[intent_id] = intent
        self.metadata[intent_id] = dict(metadata, amount=str(amount), currency=currency)
        return intent

    def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        try:
            return self.intents[intent_id]
        except KeyError as exc:
            raise ExternalServiceError(f"No such payment_intent: {intent_id}") from exc

    def succeed(self, intent_id: str, charge_id: str = "ch_test") -> None:
        self.intents[intent_id] = replace(self.intents[intent_id], status="succeeded", latest_charge=charge_id)

    def refund(self, intent_id: str, *, idempotency_key: Optional[str] = None) -> Optional[str]:
        if idempotency_key in self.refund_keys:
            return self.refund_keys[idempotency_key]
        if intent_id in self.refund_failures:
            self.refund_failures.remove(intent_id)
            raise ExternalServiceError("Refund could not be processed")
        refund_id = f"re_{intent_id}"
        self.refunds.append(intent_id)
        if idempotency_key:
            self.refund_keys[idempotency_key] = refund_id
        return refund_id

    def verify_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        if signature != self.SIGNATURE:
            raise WebhookSignatureError("Invalid webhook signature")
        event = json.loads(payload)
        obj = event["data"]["object"]
        return WebhookEvent(
            id=event["id"],
            type=event["type"],
            intent_id=obj.get("id"),
            latest_charge=obj.get("latest_charge"),
            failure_message=(obj.get("last_payment_error") or {}).get("message"),
        )


class RecordingNotifier:
    def __init__(self) -> None:
        self.resets: List[Dict[str, str]] = []

    def publish_password_reset(self, *, email: str, name: str, reset_url: str) -> None:
        self.resets.append({"email": email, "name": name, "reset_url": reset_url})


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def payment_bridge() -> FakePaymentBridge:
    bridge = FakePaymentBridge()
    set_payment_bridge(bridge)
    yield bridge
    set_payment_bridge(None)


@pytest.fixture(autouse=True)
def notifier() -> RecordingNotifier:
    recorder = RecordingNotifier()
    set_notification_publisher(recorder)
    yield recorder
    set_notification_publisher(None)


@pytest.fixture()
def client() -> TestClient:  # noqa: ANN001
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin_headers(client: TestClient) -> Dict[str, str]:
    response = client.post("/api/auth/admin/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    response.raise_for_status()
    client.cookies.clear()
    return bearer(response.json()["token"])


@pytest.fixture()
def register_user(client: TestClient):
    """Register an investor and return ``(headers, user_json)``."""

    def _register(email: str = "investor@estateshare.io", name: str = "Ivy Investor", date_of_birth: str = "1990-05-17"):
        response = client.post(
            "/api/auth/register",
            json={"name": name, "email": email, "password": USER_PASSWORD, "date_of_birth": date_of_birth},
        )
        response.raise_for_status()
        client.cookies.clear()
        body = response.json()
        return bearer(body["token"]), body["user"]

    return _register


def send_webhook(client: TestClient, event_type: str, intent_id: str, signature: str = FakePaymentBridge.SIGNATURE, **fields):
    event = {
        "id": f"evt_{uuid4().hex[:16]}",
        "type": event_type,
        "data": {"object": dict({"id": intent_id, "object": "payment_intent"}, **fields)},
    }
    return client.post(
        "/api/payments/webhook",
        content=json.dumps(event).encode("utf-8"),
        headers={"stripe-signature": signature, "content-type": "application/json"},
    )


def property_form(**overrides) -> Dict[str, str]:
    form = {
        "name": "Harbour View Flats",
        "description": "Twelve renovated flats overlooking the harbour.",
        "location": json.dumps(
            {
                "address": "1 Quay Street",
                "city": "Bristol",
                "state": "England",
                "country": "UK",
                "zip_code": "BS1 4DJ",
            }
        ),
        "total_value": "1000",
        "total_tokens": "1000",
    }
    form.update(overrides)
    return form


@pytest.fixture()
def create_property(client: TestClient, admin_headers: Dict[str, str]):
    def _create(**overrides) -> Dict:
        response = client.post(
            "/api/properties",
            data=property_form(**overrides),
            files=[("images", ("front.png", PNG_BYTES, "image/png"))],
            headers=admin_headers,
        )
        response.raise_for_status()
        return response.json()

    return _create


@pytest.fixture()
def start_funding(client: TestClient, admin_headers: Dict[str, str]):
    def _start(property_id: str, days: int = 30) -> Dict:
        end_date = datetime.now(timezone.utc) + timedelta(days=days)
        response = client.post(
            f"/api/crowdfunding/{property_id}/start",
            json={"end_date": end_date.isoformat(), "description": "Opening round"},
            headers=admin_headers,
        )
        response.raise_for_status()
        return response.json()

    return _start


warnings.filterwarnings("ignore", category=PendingDeprecationWarning, module="starlette.formparsers")
