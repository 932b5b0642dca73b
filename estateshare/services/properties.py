"""Property registry service."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from estateshare.models.property import Property, PropertyStatus
from estateshare.models.transaction import Transaction
from estateshare.models.voting import Voting
from estateshare.schemas.property import PropertyCreate, PropertyUpdate
from estateshare.services import calculations
from estateshare.services.access import AccessPolicy, Actor, Capability
from estateshare.services.audit import AuditService
from estateshare.services.errors import InvalidStateError, NotFoundError, ValidationFailedError
from estateshare.services.images import ImageStore, ImageUpload

logger = logging.getLogger("estateshare.services.properties")


class PropertyService:
    """Service for property listing operations."""

    def __init__(
        self,
        session: Session,
        audit_service: Optional[AuditService] = None,
        image_store: Optional[ImageStore] = None,
        policy: Optional[AccessPolicy] = None,
    ) -> None:
        self._session = session
        self._audit = audit_service or AuditService(session)
        self._images = image_store or ImageStore()
        self._policy = policy or AccessPolicy()

    def get_property(self, property_id: UUID) -> Property:
        """
        Get property by ID.

        Raises:
            NotFoundError: If property not found
        """
        prop = self._session.get(Property, property_id)
        if not prop:
            raise NotFoundError(f"Property {property_id} not found")
        return prop

    def list_properties(
        self,
        *,
        status: Optional[PropertyStatus] = None,
        created_by_id: Optional[UUID] = None,
    ) -> List[Property]:
        """List properties newest first, optionally filtered by status or creator."""

        stmt = select(Property)
        if status is not None:
            stmt = stmt.where(Property.status == status)
        if created_by_id is not None:
            stmt = stmt.where(Property.created_by_id == created_by_id)
        stmt = stmt.order_by(Property.created_at.desc())
        return list(self._session.scalars(stmt))

    def create_property(
        self,
        actor: Actor,
        payload: PropertyCreate,
        images: Sequence[ImageUpload],
    ) -> Property:
        self._policy.require(actor, Capability.PROPERTY_MANAGE)
        if not images:
            raise ValidationFailedError("At least one property image is required")

        references = self._images.save_all(images)
        prop = Property(
            name=payload.name,
            description=payload.description,
            location=payload.location.model_dump(),
            total_value=payload.total_value,
            total_tokens=payload.total_tokens,
            token_price=calculations.token_price(payload.total_value, payload.total_tokens),
            images=references,
            status=PropertyStatus.LISTED,
            created_by_id=actor.user_id,
        )
        self._session.add(prop)
        self._session.flush()

        self._audit.record(
            action="property.create",
            actor_id=actor.user_id,
            entity_id=prop.id,
            entity_type="property",
            details={"name": prop.name, "total_value": prop.total_value, "total_tokens": prop.total_tokens},
        )
        logger.info(
            "property_created",
            extra={"property_id": str(prop.id), "actor_id": str(actor.user_id), "images": len(references)},
        )
        return prop

    def update_property(
        self,
        actor: Actor,
        property_id: UUID,
        payload: PropertyUpdate,
        images: Sequence[ImageUpload] = (),
    ) -> Property:
        self._policy.require(actor, Capability.PROPERTY_MANAGE)
        prop = self.get_property(property_id)
        self._require_listed(prop, "updated")

        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        for field, value in changes.items():
            setattr(prop, field, value)
        if "total_value" in changes or "total_tokens" in changes:
            prop.token_price = calculations.token_price(prop.total_value, prop.total_tokens)
        if images:
            prop.images = list(prop.images or []) + self._images.save_all(images)
        self._session.flush()

        self._audit.record(
            action="property.update",
            actor_id=actor.user_id,
            entity_id=prop.id,
            entity_type="property",
            details={"fields": sorted(changes), "images_added": len(images)},
        )
        logger.info("property_updated", extra={"property_id": str(prop.id), "fields": sorted(changes)})
        return prop

    def delete_property(self, actor: Actor, property_id: UUID) -> None:
        self._policy.require(actor, Capability.PROPERTY_MANAGE)
        prop = self.get_property(property_id)
        self._require_listed(prop, "deleted")

        dependants = self._session.scalar(
            select(func.count()).select_from(Transaction).where(Transaction.property_id == prop.id)
        ) + self._session.scalar(
            select(func.count()).select_from(Voting).where(Voting.property_id == prop.id)
        )
        if dependants:
            raise InvalidStateError("Property has transactions or votings and cannot be deleted")

        references = list(prop.images or [])
        self._session.delete(prop)
        self._session.flush()
        for reference in references:
            self._images.delete(reference)

        self._audit.record(
            action="property.delete",
            actor_id=actor.user_id,
            entity_id=property_id,
            entity_type="property",
            details={"name": prop.name},
        )
        logger.info("property_deleted", extra={"property_id": str(property_id)})

    def remove_image(self, actor: Actor, property_id: UUID, index: int) -> Property:
        self._policy.require(actor, Capability.PROPERTY_MANAGE)
        prop = self.get_property(property_id)
        self._require_listed(prop, "updated")

        images = list(prop.images or [])
        if index < 0 or index >= len(images):
            raise ValidationFailedError("Invalid image index")
        if len(images) == 1:
            raise ValidationFailedError("A property must keep at least one image")

        removed = images.pop(index)
        prop.images = images
        self._session.flush()
        self._images.delete(removed)

        self._audit.record(
            action="property.image_remove",
            actor_id=actor.user_id,
            entity_id=prop.id,
            entity_type="property",
            details={"index": index, "image": removed},
        )
        return prop

    @staticmethod
    def _require_listed(prop: Property, verb: str) -> None:
        if prop.status != PropertyStatus.LISTED:
            raise InvalidStateError(f"Only listed properties can be {verb}; property is {prop.status.value}")
