"""Property listings and their crowdfunding investor entries."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import CheckConstraint, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from estateshare.models.base import Base, TimestampMixin, utcnow
from estateshare.models.types import GUID, JSONType, StringEnum, UTCDateTime


class PropertyStatus(str, Enum):
    LISTED = "listed"
    CROWDFUNDING = "crowdfunding"
    FUNDED = "funded"
    SOLD = "sold"


class Property(TimestampMixin, Base):
    """A listed property.

    The ``crowdfunding_*`` columns, ``current_amount``, ``tokens_sold`` and the
    ``investors`` rows form the crowdfunding sub-record. They are only
    meaningful while the status is crowdfunding or funded and are reset when an
    unfunded campaign reverts to listed.
    """

    __tablename__ = "properties"
    __table_args__ = (
        Index("ix_properties_status", "status"),
        Index("ix_properties_created_by", "created_by_id"),
        CheckConstraint("total_value > 0", name="ck_properties_total_value_positive"),
        CheckConstraint("total_tokens >= 1", name="ck_properties_total_tokens_min"),
        CheckConstraint("tokens_sold <= total_tokens", name="ck_properties_tokens_sold_cap"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[dict] = mapped_column(JSONType, nullable=False)
    total_value: Mapped[float] = mapped_column(Float, nullable=False)
    total_tokens: Mapped[int] = mapped_column(Integer, nullable=False)
    token_price: Mapped[float] = mapped_column(Float, nullable=False)
    images: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    status: Mapped[PropertyStatus] = mapped_column(
        StringEnum(PropertyStatus, "property_status"),
        default=PropertyStatus.LISTED,
        nullable=False,
    )
    created_by_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("users.id"), nullable=False)

    crowdfunding_start_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    crowdfunding_end_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    crowdfunding_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    current_amount: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    tokens_sold: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_by: Mapped["User"] = relationship("User")
    investors: Mapped[List["PropertyInvestor"]] = relationship(
        "PropertyInvestor",
        back_populates="property",
        cascade="all, delete-orphan",
        order_by="PropertyInvestor.invested_at",
    )

    @property
    def has_crowdfunding(self) -> bool:
        return self.status in (PropertyStatus.CROWDFUNDING, PropertyStatus.FUNDED)


class PropertyInvestor(Base):
    """One investment's token allocation within a crowdfunding campaign."""

    __tablename__ = "property_investors"
    __table_args__ = (
        Index("ix_property_investors_property", "property_id"),
        Index("ix_property_investors_user", "user_id"),
        CheckConstraint("tokens >= 1", name="ck_property_investors_tokens_min"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    property_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("users.id"), nullable=False)
    transaction_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(),
        ForeignKey("transactions.id", ondelete="SET NULL"),
        nullable=True,
    )
    tokens: Mapped[int] = mapped_column(Integer, nullable=False)
    invested_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)

    property: Mapped[Property] = relationship("Property", back_populates="investors")
    user: Mapped["User"] = relationship("User")
