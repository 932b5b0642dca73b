"""Identity, credential and profile service."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from estateshare.core.config import AppSettings, get_settings
from estateshare.core.security import (
    create_access_token,
    generate_reset_token,
    hash_password,
    hash_reset_token,
    verify_password,
)
from estateshare.models.user import User, UserRole
from estateshare.schemas.auth import RegisterRequest
from estateshare.schemas.profile import ProfileUpdate
from estateshare.services import calculations
from estateshare.services.access import AccessPolicy, Actor, Capability, ResourceContext
from estateshare.services.audit import AuditService
from estateshare.services.errors import (
    ConflictError,
    NotFoundError,
    UnauthenticatedError,
    ValidationFailedError,
)
from estateshare.services.notifications import NotificationPublisher, get_notification_publisher

logger = logging.getLogger("estateshare.services.users")

INVALID_CREDENTIALS = "Invalid email or password"


def _today() -> date:
    return datetime.now(timezone.utc).date()


class UserService:
    """Registration, authentication, password recovery and profile edits."""

    def __init__(
        self,
        session: Session,
        audit_service: Optional[AuditService] = None,
        notifier: Optional[NotificationPublisher] = None,
        policy: Optional[AccessPolicy] = None,
        settings: Optional[AppSettings] = None,
    ) -> None:
        self._session = session
        self._audit = audit_service or AuditService(session)
        self._notifier = notifier or get_notification_publisher()
        self._policy = policy or AccessPolicy()
        self._settings = settings or get_settings()

    def get_user(self, user_id: UUID) -> User:
        user = self._session.get(User, user_id)
        if not user:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def find_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(User.email == email.strip().lower())
        return self._session.scalar(stmt)

    def list_users(self) -> List[User]:
        stmt = select(User).order_by(User.created_at.desc())
        return list(self._session.scalars(stmt))

    def issue_token(self, user: User) -> str:
        return create_access_token(user.id, user.role.value, settings=self._settings)

    def register(self, payload: RegisterRequest) -> User:
        if not calculations.is_adult(payload.date_of_birth, _today()):
            raise ValidationFailedError("You must be at least 18 years old to register")
        if self.find_by_email(payload.email):
            raise ConflictError("Email is already registered")

        user = User(
            email=payload.email,
            password_hash=hash_password(payload.password),
            name=payload.name,
            date_of_birth=payload.date_of_birth,
            role=UserRole.USER,
        )
        self._session.add(user)
        try:
            self._session.flush()
        except IntegrityError as exc:
            raise ConflictError("Email is already registered") from exc

        self._audit.record(
            action="user.register",
            actor_id=user.id,
            entity_id=user.id,
            entity_type="user",
            details={"email": user.email},
        )
        logger.info("user_registered", extra={"user_id": str(user.id)})
        return user

    def authenticate(self, email: str, password: str, *, require_admin: bool = False) -> User:
        user = self.find_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            logger.info("login_failed", extra={"email": email.strip().lower()})
            raise UnauthenticatedError(INVALID_CREDENTIALS)
        if require_admin and not user.is_admin:
            logger.info("admin_login_rejected", extra={"user_id": str(user.id)})
            raise UnauthenticatedError("Invalid admin credentials")
        return user

    def ensure_admin(self, *, email: str, password: str, name: str) -> User:
        """Create or promote the configured administrator account."""

        user = self.find_by_email(email)
        if user is None:
            user = User(
                email=email.strip().lower(),
                password_hash=hash_password(password),
                name=name,
                date_of_birth=date(1970, 1, 1),
                role=UserRole.ADMIN,
            )
            self._session.add(user)
            self._session.flush()
            logger.info("admin_provisioned", extra={"user_id": str(user.id)})
            return user

        if user.role != UserRole.ADMIN:
            user.role = UserRole.ADMIN
            logger.info("admin_promoted", extra={"user_id": str(user.id)})
        if not verify_password(password, user.password_hash):
            user.password_hash = hash_password(password)
        self._session.flush()
        return user

    def _issue_reset_token(self, user: User, ttl_minutes: int) -> Tuple[str, datetime]:
        raw_token, token_hash = generate_reset_token()
        expires_at = datetime.now(timezone.utc) + timedelta(minutes=ttl_minutes)
        user.reset_password_token_hash = token_hash
        user.reset_password_expires = expires_at
        self._session.flush()
        return raw_token, expires_at

    def forgot_password(self, email: str) -> None:
        user = self.find_by_email(email)
        if not user:
            raise NotFoundError("No account found with that email")

        raw_token, _ = self._issue_reset_token(user, self._settings.reset_token_ttl_minutes)
        reset_url = f"{self._settings.frontend_url.rstrip('/')}/reset-password/{raw_token}"
        self._notifier.publish_password_reset(email=user.email, name=user.name, reset_url=reset_url)
        logger.info("password_reset_requested", extra={"user_id": str(user.id)})

    def verify_date_of_birth(self, email: str, date_of_birth: date) -> Tuple[str, datetime]:
        user = self.find_by_email(email)
        if not user or user.date_of_birth != date_of_birth:
            raise UnauthenticatedError("Email and date of birth do not match")
        return self._issue_reset_token(user, self._settings.dob_reset_token_ttl_minutes)

    def reset_password(self, reset_token: str, new_password: str) -> User:
        stmt = select(User).where(User.reset_password_token_hash == hash_reset_token(reset_token))
        user = self._session.scalar(stmt)
        now = datetime.now(timezone.utc)
        if not user or not user.reset_password_expires or user.reset_password_expires < now:
            raise ValidationFailedError("Invalid or expired reset token")

        user.password_hash = hash_password(new_password)
        user.reset_password_token_hash = None
        user.reset_password_expires = None
        self._session.flush()

        self._audit.record(
            action="user.password_reset",
            actor_id=user.id,
            entity_id=user.id,
            entity_type="user",
        )
        return user

    def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user.password_hash):
            raise UnauthenticatedError("Current password is incorrect")
        user.password_hash = hash_password(new_password)
        self._session.flush()

        self._audit.record(
            action="user.password_change",
            actor_id=user.id,
            entity_id=user.id,
            entity_type="user",
        )

    def update_profile(self, actor: Actor, user_id: UUID, payload: ProfileUpdate) -> User:
        user = self.get_user(user_id)
        self._policy.require(
            actor,
            Capability.PROFILE_UPDATE,
            ResourceContext(owner_id=user.id, target_is_admin=user.is_admin),
        )

        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        if "email" in changes and changes["email"] != user.email:
            if self.find_by_email(changes["email"]):
                raise ConflictError("Email is already registered")
        if "date_of_birth" in changes and not calculations.is_adult(changes["date_of_birth"], _today()):
            raise ValidationFailedError("You must be at least 18 years old")

        for field, value in changes.items():
            setattr(user, field, value)
        try:
            self._session.flush()
        except IntegrityError as exc:
            raise ConflictError("Email is already registered") from exc

        self._audit.record(
            action="user.profile_update",
            actor_id=actor.user_id,
            entity_id=user.id,
            entity_type="user",
            details={"fields": sorted(changes)},
        )
        return user
