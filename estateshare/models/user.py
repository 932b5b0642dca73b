"""User accounts for investors and administrators."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Date, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from estateshare.models.base import Base, TimestampMixin
from estateshare.models.types import GUID, StringEnum, UTCDateTime


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class User(TimestampMixin, Base):
    """Identity record; email is stored lower-cased and unique."""

    __tablename__ = "users"
    __table_args__ = (
        Index("ix_users_email", "email", unique=True),
        Index("ix_users_reset_token", "reset_password_token_hash"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(length=320), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(length=255), nullable=False)
    name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    role: Mapped[UserRole] = mapped_column(
        StringEnum(UserRole, "user_role"),
        default=UserRole.USER,
        nullable=False,
    )
    reset_password_token_hash: Mapped[Optional[str]] = mapped_column(String(length=128), nullable=True)
    reset_password_expires: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
