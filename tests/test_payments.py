"""Tests for payment intents, webhook reconciliation and direct purchases."""

from __future__ import annotations

from fastapi.testclient import TestClient

from conftest import send_webhook


def open_investment(client: TestClient, create_property, start_funding, headers, tokens: int = 100) -> str:
    prop = create_property()
    start_funding(prop["id"])
    response = client.post(f"/api/crowdfunding/{prop['id']}/invest", json={"tokens": tokens}, headers=headers)
    response.raise_for_status()
    return response.json()["transaction_id"]


def create_intent(client: TestClient, headers, transaction_id: str):
    return client.post("/api/payments/create-payment-intent", json={"transaction_id": transaction_id}, headers=headers)


def test_create_payment_intent(client: TestClient, create_property, start_funding, register_user, payment_bridge) -> None:
    """Test creating an intent for a pending investment."""
    headers, user = register_user()
    transaction_id = open_investment(client, create_property, start_funding, headers, tokens=250)

    response = create_intent(client, headers, transaction_id)
    assert response.status_code == 200
    body = response.json()
    assert body["transaction_id"] == transaction_id
    assert body["client_secret"].startswith(body["payment_intent_id"])

    metadata = payment_bridge.metadata[body["payment_intent_id"]]
    assert metadata["transaction_id"] == transaction_id
    assert metadata["user_id"] == user["id"]
    assert metadata["amount"] == "250.0"

    again = create_intent(client, headers, transaction_id).json()
    assert again["payment_intent_id"] == body["payment_intent_id"]
    assert len(payment_bridge.intents) == 1

    transaction = client.get(f"/api/payments/transactions/{transaction_id}", headers=headers).json()
    assert transaction["stripe_payment_id"] == body["payment_intent_id"]


def test_create_payment_intent_requires_owner(
    client: TestClient, create_property, start_funding, register_user, admin_headers
) -> None:
    owner, _ = register_user(email="owner@estateshare.io")
    other, _ = register_user(email="other@estateshare.io")
    transaction_id = open_investment(client, create_property, start_funding, owner)

    assert create_intent(client, other, transaction_id).status_code == 403
    assert create_intent(client, admin_headers, transaction_id).status_code == 403
    assert client.get(f"/api/payments/transactions/{transaction_id}", headers=other).status_code == 403
    assert client.get(f"/api/payments/transactions/{transaction_id}", headers=admin_headers).status_code == 200


def test_webhook_success_is_idempotent(client: TestClient, create_property, start_funding, register_user) -> None:
    headers, _ = register_user()
    transaction_id = open_investment(client, create_property, start_funding, headers)
    intent_id = create_intent(client, headers, transaction_id).json()["payment_intent_id"]

    first = send_webhook(client, "payment_intent.succeeded", intent_id, latest_charge="ch_123")
    assert first.status_code == 200
    assert first.json() == {"received": True, "handled": True}

    transaction = client.get(f"/api/payments/transactions/{transaction_id}", headers=headers).json()
    assert transaction["status"] == "completed"
    assert transaction["stripe_charge_id"] == "ch_123"
    assert transaction["completed_at"] is not None
    assert transaction["refundable"] is True
    completed_at = transaction["completed_at"]

    replay = send_webhook(client, "payment_intent.succeeded", intent_id, latest_charge="ch_456")
    assert replay.status_code == 200
    transaction = client.get(f"/api/payments/transactions/{transaction_id}", headers=headers).json()
    assert transaction["stripe_charge_id"] == "ch_123"
    assert transaction["completed_at"] == completed_at


def test_webhook_payment_failed_records_reason(client: TestClient, create_property, start_funding, register_user) -> None:
    headers, _ = register_user()
    transaction_id = open_investment(client, create_property, start_funding, headers)
    intent_id = create_intent(client, headers, transaction_id).json()["payment_intent_id"]

    response = send_webhook(
        client,
        "payment_intent.payment_failed",
        intent_id,
        last_payment_error={"message": "Your card was declined."},
    )
    assert response.status_code == 200

    transaction = client.get(f"/api/payments/transactions/{transaction_id}", headers=headers).json()
    assert transaction["status"] == "failed"
    assert transaction["failure_reason"] == "Your card was declined."
    assert transaction["failed_at"] is not None
    assert transaction["refundable"] is False


def test_success_after_failure_completes_while_investment_stands(
    client: TestClient, create_property, start_funding, register_user
) -> None:
    headers, _ = register_user()
    transaction_id = open_investment(client, create_property, start_funding, headers)
    intent_id = create_intent(client, headers, transaction_id).json()["payment_intent_id"]

    send_webhook(client, "payment_intent.payment_failed", intent_id).raise_for_status()
    send_webhook(client, "payment_intent.succeeded", intent_id, latest_charge="ch_retry").raise_for_status()

    transaction = client.get(f"/api/payments/transactions/{transaction_id}", headers=headers).json()
    assert transaction["status"] == "completed"
    assert transaction["failure_reason"] is None
    assert transaction["stripe_charge_id"] == "ch_retry"


def test_late_success_after_unfunded_end_is_refunded(
    client: TestClient, create_property, start_funding, register_user, admin_headers, payment_bridge
) -> None:
    headers, _ = register_user()
    prop = create_property()
    start_funding(prop["id"])
    transaction_id = client.post(
        f"/api/crowdfunding/{prop['id']}/invest", json={"tokens": 100}, headers=headers
    ).json()["transaction_id"]
    intent_id = create_intent(client, headers, transaction_id).json()["payment_intent_id"]
    client.post(f"/api/crowdfunding/{prop['id']}/end", headers=admin_headers).raise_for_status()

    late = send_webhook(client, "payment_intent.succeeded", intent_id, latest_charge="ch_late")
    assert late.status_code == 200
    assert late.json() == {"received": True, "handled": True}

    transaction = client.get(f"/api/payments/transactions/{transaction_id}", headers=headers).json()
    assert transaction["status"] == "refunded"
    assert transaction["completed_at"] is None
    assert transaction["stripe_charge_id"] == "ch_late"
    assert payment_bridge.refunds == [intent_id]

    current = client.get(f"/api/properties/{prop['id']}").json()
    assert current["status"] == "listed"
    assert current["tokens_sold"] == 0
    assert client.get("/api/crowdfunding/user/investments", headers=headers).json() == []

    replay = send_webhook(client, "payment_intent.succeeded", intent_id, latest_charge="ch_late")
    assert replay.status_code == 200
    assert payment_bridge.refunds == [intent_id]


def test_webhook_rejects_bad_signature(client: TestClient, create_property, start_funding, register_user) -> None:
    headers, _ = register_user()
    transaction_id = open_investment(client, create_property, start_funding, headers)
    intent_id = create_intent(client, headers, transaction_id).json()["payment_intent_id"]

    response = send_webhook(client, "payment_intent.succeeded", intent_id, signature="t=1,v1=forged")
    assert response.status_code == 400

    transaction = client.get(f"/api/payments/transactions/{transaction_id}", headers=headers).json()
    assert transaction["status"] == "pending"


def test_webhook_unknown_intent_and_ignored_types(client: TestClient) -> None:
    missing = send_webhook(client, "payment_intent.succeeded", "pi_unknown")
    assert missing.status_code == 404

    ignored = send_webhook(client, "charge.refunded", "pi_unknown")
    assert ignored.status_code == 200
    assert ignored.json()["handled"] is False


def test_completed_payment_cannot_get_new_intent(
    client: TestClient, create_property, start_funding, register_user
) -> None:
    headers, _ = register_user()
    transaction_id = open_investment(client, create_property, start_funding, headers)
    intent_id = create_intent(client, headers, transaction_id).json()["payment_intent_id"]
    send_webhook(client, "payment_intent.succeeded", intent_id).raise_for_status()

    assert create_intent(client, headers, transaction_id).status_code == 400


def test_list_transactions_scoped_to_caller(
    client: TestClient, create_property, start_funding, register_user, admin_headers
) -> None:
    alice, _ = register_user(email="alice@estateshare.io")
    bob, _ = register_user(email="bob@estateshare.io")
    open_investment(client, create_property, start_funding, alice)
    open_investment(client, create_property, start_funding, bob)

    assert len(client.get("/api/payments/transactions", headers=alice).json()) == 1
    assert len(client.get("/api/payments/transactions", headers=admin_headers).json()) == 2


def test_buy_and_confirm_property(client: TestClient, create_property, register_user, payment_bridge) -> None:
    """Test a direct purchase from intent to sold property."""
    prop = create_property(total_value="420000")
    buyer, _ = register_user(email="buyer@estateshare.io")

    purchase = client.post("/api/payments/buy-property", json={"property_id": prop["id"]}, headers=buyer)
    assert purchase.status_code == 200
    intent_id = purchase.json()["payment_intent_id"]
    assert purchase.json()["amount"] == 420000.0

    confirm_payload = {"property_id": prop["id"], "payment_intent_id": intent_id}
    early = client.post("/api/payments/confirm-payment", json=confirm_payload, headers=buyer)
    assert early.status_code == 400
    assert early.json()["detail"] == "Payment has not been completed"

    payment_bridge.succeed(intent_id, charge_id="ch_purchase")
    confirmed = client.post("/api/payments/confirm-payment", json=confirm_payload, headers=buyer)
    assert confirmed.status_code == 200
    assert confirmed.json()["property_status"] == "sold"
    assert confirmed.json()["transaction"]["status"] == "completed"
    assert confirmed.json()["transaction"]["stripe_charge_id"] == "ch_purchase"

    replay = client.post("/api/payments/confirm-payment", json=confirm_payload, headers=buyer)
    assert replay.status_code == 200
    assert replay.json()["property_status"] == "sold"

    assert client.get(f"/api/properties/{prop['id']}").json()["status"] == "sold"


def test_second_buyer_cannot_complete_sold_property(
    client: TestClient, create_property, register_user, payment_bridge
) -> None:
    prop = create_property()
    first, _ = register_user(email="first@estateshare.io")
    second, _ = register_user(email="second@estateshare.io")

    first_intent = client.post(f"/api/properties/{prop['id']}/purchase", headers=first).json()["payment_intent_id"]
    second_intent = client.post(f"/api/properties/{prop['id']}/purchase", headers=second).json()["payment_intent_id"]
    payment_bridge.succeed(first_intent)
    payment_bridge.succeed(second_intent)

    won = client.post(
        "/api/payments/confirm-payment",
        json={"property_id": prop["id"], "payment_intent_id": first_intent},
        headers=first,
    )
    assert won.status_code == 200

    lost = client.post(
        "/api/payments/confirm-payment",
        json={"property_id": prop["id"], "payment_intent_id": second_intent},
        headers=second,
    )
    assert lost.status_code == 400
    assert lost.json()["detail"] == "Property is no longer available for purchase"

    assert client.post(f"/api/properties/{prop['id']}/purchase", headers=second).status_code == 400


def test_confirm_unknown_purchase(client: TestClient, create_property, register_user, payment_bridge) -> None:
    prop = create_property()
    buyer, _ = register_user()
    intent = payment_bridge.create_intent(amount=1.0, currency="usd", metadata={})
    payment_bridge.succeed(intent.id)

    response = client.post(
        "/api/payments/confirm-payment",
        json={"property_id": prop["id"], "payment_intent_id": intent.id},
        headers=buyer,
    )
    assert response.status_code == 404
