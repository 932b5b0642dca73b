"""Tests for the capability policy and credential helpers."""

from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

import pytest

from estateshare.core.security import (
    TokenDecodeError,
    create_access_token,
    decode_access_token,
    generate_reset_token,
    hash_password,
    hash_reset_token,
    verify_password,
)
from estateshare.models.user import UserRole
from estateshare.services.access import AccessPolicy, Actor, Capability, ResourceContext
from estateshare.services.errors import ForbiddenError

policy = AccessPolicy()
admin = Actor(user_id=uuid4(), role=UserRole.ADMIN)
investor = Actor(user_id=uuid4(), role=UserRole.USER)


@pytest.mark.parametrize(
    "capability",
    [
        Capability.PROPERTY_MANAGE,
        Capability.CROWDFUNDING_MANAGE,
        Capability.VOTING_MANAGE,
        Capability.PLATFORM_STATS,
    ],
)
def test_admin_only_capabilities(capability: Capability) -> None:
    assert policy.authorize(admin, capability)
    assert not policy.authorize(investor, capability)


def test_investing_is_for_investor_accounts() -> None:
    assert policy.authorize(investor, Capability.CROWDFUNDING_INVEST)
    assert not policy.authorize(admin, Capability.CROWDFUNDING_INVEST)
    with pytest.raises(ForbiddenError, match="Only investor accounts can invest"):
        policy.require(admin, Capability.CROWDFUNDING_INVEST)


def test_transaction_ownership() -> None:
    own = ResourceContext(owner_id=investor.user_id)
    foreign = ResourceContext(owner_id=uuid4())

    assert policy.authorize(investor, Capability.TRANSACTION_VIEW, own)
    assert not policy.authorize(investor, Capability.TRANSACTION_VIEW, foreign)
    assert policy.authorize(admin, Capability.TRANSACTION_VIEW, foreign)
    assert policy.authorize(investor, Capability.TRANSACTION_PAY, own)
    assert not policy.authorize(admin, Capability.TRANSACTION_PAY, foreign)


def test_voting_needs_a_token_balance() -> None:
    assert not policy.authorize(investor, Capability.VOTING_CAST, ResourceContext(token_balance=0))
    assert policy.authorize(investor, Capability.VOTING_CAST, ResourceContext(token_balance=1))
    assert policy.authorize(admin, Capability.VOTING_VIEW)
    assert not policy.authorize(investor, Capability.VOTING_VIEW)


def test_admin_profiles_are_not_editable() -> None:
    target = ResourceContext(owner_id=uuid4(), target_is_admin=True)
    assert not policy.authorize(admin, Capability.PROFILE_UPDATE, target)
    assert policy.authorize(admin, Capability.PROFILE_UPDATE, ResourceContext(owner_id=investor.user_id))
    assert policy.authorize(investor, Capability.PROFILE_UPDATE, ResourceContext(owner_id=investor.user_id))


def test_require_defaults_to_admin_message() -> None:
    with pytest.raises(ForbiddenError, match="Admin privileges required"):
        policy.require(investor, Capability.PROPERTY_MANAGE)


def test_password_hashing() -> None:
    stored = hash_password("Investor123")
    assert stored.startswith("$2b$04$")
    assert verify_password("Investor123", stored)
    assert not verify_password("investor123", stored)
    assert not verify_password("Investor123", "malformed")
    assert not verify_password("Investor123", "$2b$04$truncated")
    assert hash_password("Investor123") != stored


def test_reset_token_is_stored_hashed() -> None:
    raw, hashed = generate_reset_token()
    assert raw != hashed
    assert hash_reset_token(raw) == hashed


def test_access_token_round_trip_and_expiry() -> None:
    user_id = uuid4()
    claims = decode_access_token(create_access_token(user_id, "user"))
    assert claims["sub"] == str(user_id)
    assert claims["role"] == "user"

    expired = create_access_token(user_id, "user", expires_in=timedelta(seconds=-5))
    with pytest.raises(TokenDecodeError):
        decode_access_token(expired)
