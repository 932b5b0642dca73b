"""Shareholder voting service."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from estateshare.models.property import Property, PropertyStatus
from estateshare.models.voting import Vote, VoteChoice, Voting, VotingStatus
from estateshare.schemas.voting import VotingCreate
from estateshare.services.access import AccessPolicy, Actor, Capability, ResourceContext
from estateshare.services.audit import AuditService
from estateshare.services.errors import (
    AlreadyVotedError,
    InvalidStateError,
    NotFoundError,
    ValidationFailedError,
)
from estateshare.services.funding import token_balance

logger = logging.getLogger("estateshare.services.voting")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VotingService:
    """Creates votings on funded properties and records token-weighted votes."""

    def __init__(
        self,
        session: Session,
        audit_service: Optional[AuditService] = None,
        policy: Optional[AccessPolicy] = None,
    ) -> None:
        self._session = session
        self._audit = audit_service or AuditService(session)
        self._policy = policy or AccessPolicy()

    def _get(self, voting_id: UUID) -> Voting:
        voting = self._session.get(Voting, voting_id)
        if not voting:
            raise NotFoundError(f"Voting {voting_id} not found")
        return voting

    def _reload(self, voting: Voting) -> Voting:
        self._session.expire(voting)
        self._session.refresh(voting)
        return voting

    def _view_context(self, actor: Actor, voting: Voting) -> ResourceContext:
        if actor.is_admin:
            return ResourceContext()
        return ResourceContext(token_balance=token_balance(self._session, voting.property_id, actor.user_id))

    def create_voting(self, actor: Actor, payload: VotingCreate) -> Voting:
        self._policy.require(actor, Capability.VOTING_MANAGE)
        prop = self._session.get(Property, payload.property_id)
        if not prop:
            raise NotFoundError(f"Property {payload.property_id} not found")
        if prop.status != PropertyStatus.FUNDED:
            raise InvalidStateError("Voting can only be created for fully funded properties")
        now = _utcnow()
        if payload.end_date <= now:
            raise ValidationFailedError("End date must be in the future")

        voting = Voting(
            property_id=prop.id,
            title=payload.title,
            description=payload.description,
            start_date=now,
            end_date=payload.end_date,
            status=VotingStatus.ACTIVE,
            created_by_id=actor.user_id,
        )
        self._session.add(voting)
        self._session.flush()

        self._audit.record(
            action="voting.create",
            actor_id=actor.user_id,
            entity_id=voting.id,
            entity_type="voting",
            details={"property_id": str(prop.id), "title": voting.title},
        )
        logger.info("voting_created", extra={"voting_id": str(voting.id), "property_id": str(prop.id)})
        return voting

    def get_voting(self, actor: Actor, voting_id: UUID) -> Voting:
        voting = self._get(voting_id)
        self._policy.require(actor, Capability.VOTING_VIEW, self._view_context(actor, voting))
        return voting

    def list_active(self, actor: Actor) -> List[Voting]:
        """Active votings on properties the actor may see, soonest deadline first."""

        stmt = select(Voting).where(Voting.status == VotingStatus.ACTIVE).order_by(Voting.end_date.asc())
        return [
            voting
            for voting in self._session.scalars(stmt)
            if self._policy.authorize(actor, Capability.VOTING_VIEW, self._view_context(actor, voting))
        ]

    def cast_vote(self, actor: Actor, voting_id: UUID, choice: VoteChoice) -> Voting:
        """
        Record the actor's vote, weighted by their current token holding.

        Completes the voting once the cast weight reaches the property's total tokens.

        Raises:
            InvalidStateError: Voting is not active or has ended
            AlreadyVotedError: The actor already voted
            ForbiddenError: The actor holds no tokens in the property
        """
        voting = self._get(voting_id)
        if voting.status != VotingStatus.ACTIVE:
            raise InvalidStateError("Voting is not active")
        if _utcnow() > voting.end_date:
            raise InvalidStateError("Voting has ended")

        existing = self._session.scalar(
            select(Vote.id).where(Vote.voting_id == voting.id, Vote.user_id == actor.user_id)
        )
        if existing:
            raise AlreadyVotedError("You have already voted")

        balance = token_balance(self._session, voting.property_id, actor.user_id)
        self._policy.require(actor, Capability.VOTING_CAST, ResourceContext(token_balance=balance))

        self._session.add(Vote(voting_id=voting.id, user_id=actor.user_id, choice=choice, tokens=balance))
        try:
            self._session.flush()
        except IntegrityError as exc:
            raise AlreadyVotedError("You have already voted") from exc

        cast_weight = self._session.scalar(
            select(func.coalesce(func.sum(Vote.tokens), 0)).where(Vote.voting_id == voting.id)
        )
        total_tokens = self._session.scalar(select(Property.total_tokens).where(Property.id == voting.property_id))
        completed = False
        if cast_weight >= total_tokens:
            completed = self._complete(voting.id)
        self._reload(voting)

        self._audit.record(
            action="voting.vote",
            actor_id=actor.user_id,
            entity_id=voting.id,
            entity_type="voting",
            details={"choice": choice.value, "tokens": balance, "completed": completed},
        )
        logger.info(
            "vote_cast",
            extra={"voting_id": str(voting.id), "user_id": str(actor.user_id), "tokens": balance},
        )
        return voting

    def end_voting(self, actor: Actor, voting_id: UUID) -> Voting:
        self._policy.require(actor, Capability.VOTING_MANAGE)
        voting = self._get(voting_id)
        if not self._complete(voting.id):
            self._reload(voting)
            raise InvalidStateError(f"Voting is {voting.status.value}")
        self._reload(voting)

        self._audit.record(
            action="voting.end",
            actor_id=actor.user_id,
            entity_id=voting.id,
            entity_type="voting",
        )
        return voting

    def _complete(self, voting_id: UUID) -> bool:
        stmt = (
            update(Voting)
            .where(Voting.id == voting_id, Voting.status == VotingStatus.ACTIVE)
            .values(status=VotingStatus.COMPLETED)
            .execution_options(synchronize_session=False)
        )
        completed = self._session.execute(stmt).rowcount == 1
        if completed:
            logger.info("voting_completed", extra={"voting_id": str(voting_id)})
        return completed

    def completed_results(self, actor: Actor) -> List[Voting]:
        self._policy.require(actor, Capability.VOTING_MANAGE)
        stmt = select(Voting).where(Voting.status == VotingStatus.COMPLETED).order_by(Voting.end_date.desc())
        return list(self._session.scalars(stmt))

    def list_by_status(self, status: VotingStatus) -> List[Voting]:
        stmt = select(Voting).where(Voting.status == status).order_by(Voting.end_date.asc())
        return list(self._session.scalars(stmt))

    def history(self, user_id: UUID, *, limit: Optional[int] = None) -> List[Tuple[Voting, Vote]]:
        """Votings the user took part in with their own ballot, most recent first."""

        stmt = (
            select(Voting, Vote)
            .join(Vote, Vote.voting_id == Voting.id)
            .where(Vote.user_id == user_id)
            .order_by(Vote.voted_at.desc())
        )
        if limit:
            stmt = stmt.limit(limit)
        return [(voting, vote) for voting, vote in self._session.execute(stmt).all()]
