"""Dependency injection helpers for FastAPI routes."""

from __future__ import annotations

from typing import Callable, Iterator, Optional
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from estateshare.core.database import get_session
from estateshare.core.security import TokenDecodeError, decode_access_token
from estateshare.models.user import User
from estateshare.services.access import AccessPolicy, Actor, Capability
from estateshare.services.dashboard import DashboardService
from estateshare.services.errors import UnauthenticatedError
from estateshare.services.funding import FundingService
from estateshare.services.notifications import get_notification_publisher
from estateshare.services.payment_bridge import PaymentBridge, get_payment_bridge
from estateshare.services.payments import PaymentService
from estateshare.services.properties import PropertyService
from estateshare.services.users import UserService
from estateshare.services.voting import VotingService

TOKEN_COOKIE = "token"

bearer_scheme = HTTPBearer(auto_error=False)


def get_db_session() -> Iterator[Session]:
    yield from get_session()


def get_bridge() -> PaymentBridge:
    return get_payment_bridge()


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: Session = Depends(get_db_session),
) -> User:
    """Resolve the bearer token (header first, then the ``token`` cookie) to a user."""

    token = credentials.credentials if credentials else request.cookies.get(TOKEN_COOKIE)
    if not token:
        raise UnauthenticatedError("Authentication required")
    try:
        claims = decode_access_token(token)
        user_id = UUID(str(claims["sub"]))
    except (TokenDecodeError, ValueError) as exc:
        raise UnauthenticatedError("Invalid or expired token") from exc

    user = session.get(User, user_id)
    if not user:
        raise UnauthenticatedError("User no longer exists")
    return user


def get_actor(user: User = Depends(get_current_user)) -> Actor:
    return Actor.from_user(user)


def require_capability(capability: Capability) -> Callable[..., Actor]:
    """Route dependency that rejects actors without ``capability``."""

    def dependency(actor: Actor = Depends(get_actor)) -> Actor:
        AccessPolicy().require(actor, capability)
        return actor

    return dependency


def get_user_service(session: Session = Depends(get_db_session)) -> UserService:
    return UserService(session, notifier=get_notification_publisher())


def get_property_service(session: Session = Depends(get_db_session)) -> PropertyService:
    return PropertyService(session)


def get_funding_service(
    session: Session = Depends(get_db_session),
    bridge: PaymentBridge = Depends(get_bridge),
) -> FundingService:
    return FundingService(session, bridge=bridge)


def get_payment_service(
    session: Session = Depends(get_db_session),
    bridge: PaymentBridge = Depends(get_bridge),
) -> PaymentService:
    return PaymentService(session, bridge=bridge)


def get_voting_service(session: Session = Depends(get_db_session)) -> VotingService:
    return VotingService(session)


def get_dashboard_service(
    session: Session = Depends(get_db_session),
    funding: FundingService = Depends(get_funding_service),
    payments: PaymentService = Depends(get_payment_service),
    voting: VotingService = Depends(get_voting_service),
) -> DashboardService:
    return DashboardService(session, funding=funding, payments=payments, voting=voting)
