"""Shareholder votings on funded properties."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import List

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from estateshare.models.base import Base, TimestampMixin, utcnow
from estateshare.models.types import GUID, StringEnum, UTCDateTime


class VotingStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class VoteChoice(str, Enum):
    YES = "yes"
    NO = "no"


class Voting(TimestampMixin, Base):
    """A proposal put to the token holders of one property."""

    __tablename__ = "votings"
    __table_args__ = (
        Index("ix_votings_property", "property_id"),
        Index("ix_votings_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    property_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("properties.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(length=255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    start_date: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)
    end_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    status: Mapped[VotingStatus] = mapped_column(
        StringEnum(VotingStatus, "voting_status"),
        default=VotingStatus.ACTIVE,
        nullable=False,
    )
    created_by_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("users.id"), nullable=False)

    property: Mapped["Property"] = relationship("Property")
    created_by: Mapped["User"] = relationship("User")
    votes: Mapped[List["Vote"]] = relationship(
        "Vote",
        back_populates="voting",
        cascade="all, delete-orphan",
        order_by="Vote.voted_at",
    )


class Vote(Base):
    """A token-weighted ballot; one per user per voting."""

    __tablename__ = "votes"
    __table_args__ = (
        UniqueConstraint("voting_id", "user_id", name="uq_votes_voting_user"),
        Index("ix_votes_user", "user_id"),
        CheckConstraint("tokens >= 1", name="ck_votes_tokens_min"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    voting_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        ForeignKey("votings.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("users.id"), nullable=False)
    choice: Mapped[VoteChoice] = mapped_column(StringEnum(VoteChoice, "vote_choice"), nullable=False)
    tokens: Mapped[int] = mapped_column(Integer, nullable=False)
    voted_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)

    voting: Mapped[Voting] = relationship("Voting", back_populates="votes")
    user: Mapped["User"] = relationship("User")
