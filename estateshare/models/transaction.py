"""Ledger of money movements between users and properties."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from estateshare.models.base import Base, TimestampMixin
from estateshare.models.types import GUID, JSONType, StringEnum, UTCDateTime


class TransactionType(str, Enum):
    INVESTMENT = "investment"
    REFUND = "refund"
    DIVIDEND = "dividend"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class Transaction(TimestampMixin, Base):
    """A single payment tied to a user and a property.

    ``stripe_payment_id`` is unique when present; NULLs do not collide, so a
    pending investment may exist before its payment intent is created.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_user_created", "user_id", "created_at"),
        Index("ix_transactions_property_created", "property_id", "created_at"),
        UniqueConstraint("stripe_payment_id", name="uq_transactions_stripe_payment_id"),
        CheckConstraint("amount >= 0", name="ck_transactions_amount_non_negative"),
        CheckConstraint(
            "type != 'investment' OR (tokens IS NOT NULL AND tokens >= 1)",
            name="ck_transactions_investment_tokens",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("users.id"), nullable=False)
    property_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("properties.id"), nullable=False)
    type: Mapped[TransactionType] = mapped_column(StringEnum(TransactionType, "transaction_type"), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    tokens: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    status: Mapped[TransactionStatus] = mapped_column(
        StringEnum(TransactionStatus, "transaction_status"),
        default=TransactionStatus.PENDING,
        nullable=False,
    )
    stripe_payment_id: Mapped[Optional[str]] = mapped_column(String(length=255), nullable=True)
    stripe_charge_id: Mapped[Optional[str]] = mapped_column(String(length=255), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    payment_metadata: Mapped[dict] = mapped_column("metadata", JSONType, default=dict, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    failed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    user: Mapped["User"] = relationship("User")
    property: Mapped["Property"] = relationship("Property")
