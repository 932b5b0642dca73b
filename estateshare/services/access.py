"""Capability-based access policy."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional
from uuid import UUID

from estateshare.models.user import User, UserRole
from estateshare.services.errors import ForbiddenError


class Capability(str, Enum):
    PROPERTY_MANAGE = "property:manage"
    PROPERTY_PURCHASE = "property:purchase"
    CROWDFUNDING_MANAGE = "crowdfunding:manage"
    CROWDFUNDING_INVEST = "crowdfunding:invest"
    TRANSACTION_VIEW = "transaction:view"
    TRANSACTION_PAY = "transaction:pay"
    VOTING_MANAGE = "voting:manage"
    VOTING_VIEW = "voting:view"
    VOTING_CAST = "voting:cast"
    PROFILE_VIEW = "profile:view"
    PROFILE_UPDATE = "profile:update"
    PLATFORM_STATS = "platform:stats"


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of an operation."""

    user_id: UUID
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(user_id=user.id, role=user.role)


@dataclass(frozen=True)
class ResourceContext:
    """Facts about the target resource that capability rules depend on.

    ``owner_id`` is the owning user (transaction owner or profile subject),
    ``token_balance`` the actor's holding in the property concerned.
    """

    owner_id: Optional[UUID] = None
    target_is_admin: bool = False
    token_balance: int = 0


_Rule = Callable[[Actor, ResourceContext], bool]


def _admin(actor: Actor, resource: ResourceContext) -> bool:
    return actor.is_admin


def _user(actor: Actor, resource: ResourceContext) -> bool:
    return actor.role == UserRole.USER


def _owner(actor: Actor, resource: ResourceContext) -> bool:
    return resource.owner_id is not None and resource.owner_id == actor.user_id


def _owner_or_admin(actor: Actor, resource: ResourceContext) -> bool:
    return actor.is_admin or _owner(actor, resource)


def _holder(actor: Actor, resource: ResourceContext) -> bool:
    return resource.token_balance > 0


def _holder_or_admin(actor: Actor, resource: ResourceContext) -> bool:
    return actor.is_admin or _holder(actor, resource)


def _profile_editor(actor: Actor, resource: ResourceContext) -> bool:
    return _owner_or_admin(actor, resource) and not resource.target_is_admin


_RULES: Dict[Capability, _Rule] = {
    Capability.PROPERTY_MANAGE: _admin,
    Capability.CROWDFUNDING_MANAGE: _admin,
    Capability.VOTING_MANAGE: _admin,
    Capability.PLATFORM_STATS: _admin,
    Capability.CROWDFUNDING_INVEST: _user,
    Capability.PROPERTY_PURCHASE: _user,
    Capability.TRANSACTION_VIEW: _owner_or_admin,
    Capability.TRANSACTION_PAY: _owner,
    Capability.VOTING_VIEW: _holder_or_admin,
    Capability.VOTING_CAST: _holder,
    Capability.PROFILE_VIEW: _owner_or_admin,
    Capability.PROFILE_UPDATE: _profile_editor,
}

_DENIAL_MESSAGES: Dict[Capability, str] = {
    Capability.CROWDFUNDING_INVEST: "Only investor accounts can invest",
    Capability.PROPERTY_PURCHASE: "Only investor accounts can purchase properties",
    Capability.TRANSACTION_VIEW: "Not authorized to view this transaction",
    Capability.TRANSACTION_PAY: "Not authorized to pay for this transaction",
    Capability.VOTING_VIEW: "Only token holders can view this voting",
    Capability.VOTING_CAST: "Only token holders can vote",
    Capability.PROFILE_VIEW: "Not authorized to view this profile",
    Capability.PROFILE_UPDATE: "Not authorized to update this profile",
}


class AccessPolicy:
    """Evaluates ``(actor, capability, resource)`` triples."""

    def __init__(self) -> None:
        self._logger = logging.getLogger("estateshare.services.access")

    def authorize(
        self,
        actor: Actor,
        capability: Capability,
        resource: Optional[ResourceContext] = None,
    ) -> bool:
        rule = _RULES[capability]
        return rule(actor, resource or ResourceContext())

    def require(
        self,
        actor: Actor,
        capability: Capability,
        resource: Optional[ResourceContext] = None,
    ) -> None:
        if self.authorize(actor, capability, resource):
            return
        self._logger.info(
            "access_denied",
            extra={"actor_id": str(actor.user_id), "capability": capability.value},
        )
        raise ForbiddenError(_DENIAL_MESSAGES.get(capability, "Admin privileges required"))
