"""Tests for the administrator provisioning script."""

from __future__ import annotations

from estateshare.core.database import session_scope
from estateshare.core.security import verify_password
from estateshare.models.user import UserRole
from estateshare.services.users import UserService
from scripts.create_admin import main


def test_create_admin_provisions_account() -> None:
    exit_code = main(["--email", "Ops@EstateShare.io", "--name", "Ops", "--password", "OpsPass123"])
    assert exit_code == 0

    with session_scope() as session:
        admin = UserService(session).find_by_email("ops@estateshare.io")
        assert admin is not None
        assert admin.role == UserRole.ADMIN
        assert verify_password("OpsPass123", admin.password_hash)


def test_create_admin_promotes_existing_user(client, register_user) -> None:
    _, user = register_user(email="promote@estateshare.io")

    assert main(["--email", "promote@estateshare.io", "--password", "Promoted123"]) == 0
    response = client.post("/api/auth/admin/login", json={"email": "promote@estateshare.io", "password": "Promoted123"})
    assert response.status_code == 200
    assert response.json()["user"]["id"] == user["id"]


def test_create_admin_rejects_weak_password() -> None:
    assert main(["--email", "weak@estateshare.io", "--password", "short"]) == 2
