"""Tests for profiles and the admin dashboard."""

from __future__ import annotations

from fastapi.testclient import TestClient

from conftest import send_webhook


def test_my_profile_aggregates_activity(client: TestClient, create_property, start_funding, register_user) -> None:
    headers, user = register_user()
    prop = create_property(name="Profile Gardens")
    start_funding(prop["id"])
    client.post(f"/api/crowdfunding/{prop['id']}/invest", json={"tokens": 150}, headers=headers).raise_for_status()

    response = client.get("/api/profile/me", headers=headers)
    assert response.status_code == 200
    profile = response.json()
    assert profile["user"]["id"] == user["id"]
    assert profile["investments"][0]["property_name"] == "Profile Gardens"
    assert profile["investments"][0]["tokens"] == 150
    assert len(profile["recent_transactions"]) == 1
    assert profile["recent_votes"] == []


def test_profile_visibility(client: TestClient, register_user, admin_headers) -> None:
    alice, alice_user = register_user(email="alice@estateshare.io")
    bob, _ = register_user(email="bob@estateshare.io")

    assert client.get(f"/api/profile/user/{alice_user['id']}", headers=bob).status_code == 403
    assert client.get(f"/api/profile/user/{alice_user['id']}", headers=alice).status_code == 200
    assert client.get(f"/api/profile/user/{alice_user['id']}", headers=admin_headers).status_code == 200
    assert client.get("/api/profile/user/00000000-0000-0000-0000-000000000000", headers=admin_headers).status_code == 404


def test_update_profile(client: TestClient, register_user) -> None:
    headers, _ = register_user(email="alice@estateshare.io")
    register_user(email="bob@estateshare.io")

    renamed = client.put("/api/profile/me", json={"name": "Alice Liddell"}, headers=headers)
    assert renamed.status_code == 200
    assert renamed.json()["name"] == "Alice Liddell"
    assert renamed.json()["email"] == "alice@estateshare.io"

    taken = client.put("/api/profile/me", json={"email": "BOB@estateshare.io"}, headers=headers)
    assert taken.status_code == 409

    minor = client.put("/api/profile/me", json={"date_of_birth": "2020-01-01"}, headers=headers)
    assert minor.status_code == 400


def test_users_cannot_edit_others_and_admins_are_protected(client: TestClient, register_user, admin_headers) -> None:
    alice, _ = register_user(email="alice@estateshare.io")
    _, bob_user = register_user(email="bob@estateshare.io")
    admin_id = client.get("/api/auth/me", headers=admin_headers).json()["id"]

    assert client.put(f"/api/profile/user/{bob_user['id']}", json={"name": "Mallory"}, headers=alice).status_code == 403
    assert client.put(f"/api/profile/user/{admin_id}", json={"name": "Mallory"}, headers=alice).status_code == 403

    edited = client.put(f"/api/profile/user/{bob_user['id']}", json={"name": "Robert"}, headers=admin_headers)
    assert edited.status_code == 200
    assert edited.json()["name"] == "Robert"


def test_user_transactions_totals(client: TestClient, create_property, start_funding, register_user) -> None:
    headers, _ = register_user()
    prop = create_property()
    start_funding(prop["id"])
    paid = client.post(f"/api/crowdfunding/{prop['id']}/invest", json={"tokens": 120}, headers=headers).json()
    client.post(f"/api/crowdfunding/{prop['id']}/invest", json={"tokens": 30}, headers=headers).raise_for_status()

    intent = client.post(
        "/api/payments/create-payment-intent", json={"transaction_id": paid["transaction_id"]}, headers=headers
    ).json()
    send_webhook(client, "payment_intent.succeeded", intent["payment_intent_id"]).raise_for_status()

    body = client.get("/api/profile/user/transactions", headers=headers).json()
    assert body["totals"]["count"] == 2
    assert body["totals"]["total_amount"] == 150.0
    assert body["totals"]["tokens_owned"] == 120


def test_admin_dashboard(client: TestClient, create_property, start_funding, register_user, admin_headers) -> None:
    headers, _ = register_user()
    listed = create_property(name="Still Listed")
    campaign = create_property(name="Open Campaign")
    start_funding(campaign["id"])
    client.post(f"/api/crowdfunding/{campaign['id']}/invest", json={"tokens": 10}, headers=headers).raise_for_status()

    overview = client.get("/api/profile/admin", headers=admin_headers)
    assert overview.status_code == 200
    body = overview.json()
    assert body["user"]["role"] == "admin"
    assert {prop["id"] for prop in body["properties"]} == {listed["id"], campaign["id"]}
    assert body["property_counts"]["listed"] == 1
    assert body["property_counts"]["crowdfunding"] == 1
    assert body["property_counts"]["sold"] == 0
    assert len(body["recent_transactions"]) == 1

    stats = client.get("/api/profile/admin/statistics", headers=admin_headers).json()
    assert stats["total_users"] == 2
    assert stats["properties"]["listed"]["count"] == 1
    assert stats["properties"]["crowdfunding"]["total"] == 1000.0
    assert stats["transactions"]["pending"] == {"count": 1, "total": 10.0}
    assert stats["transactions"]["completed"]["count"] == 0
    assert stats["votings"]["active"] == 0

    users = client.get("/api/profile/admin/users", headers=admin_headers).json()
    assert len(users) == 2

    assert client.get("/api/profile/admin", headers=headers).status_code == 403
    assert client.get("/api/profile/admin/statistics", headers=headers).status_code == 403
    assert client.get("/api/profile/admin/users", headers=headers).status_code == 403
