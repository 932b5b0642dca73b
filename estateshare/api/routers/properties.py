"""Property registry endpoints."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Type, TypeVar
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError

from estateshare.api.dependencies import (
    get_actor,
    get_payment_service,
    get_property_service,
    require_capability,
)
from estateshare.models.property import PropertyStatus
from estateshare.schemas.auth import MessageResponse
from estateshare.schemas.property import PropertyCreate, PropertyResponse, PropertyUpdate, PurchaseResponse
from estateshare.services.access import Actor, Capability
from estateshare.services.images import ImageUpload
from estateshare.services.payments import PaymentService
from estateshare.services.properties import PropertyService

router = APIRouter()

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def validate_form(schema: Type[SchemaT], fields: Dict[str, Any]) -> SchemaT:
    """Validate multipart form fields with the same schema the JSON API would use."""

    try:
        return schema.model_validate({key: value for key, value in fields.items() if value is not None})
    except ValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False, include_context=False)) from exc


def read_uploads(files: Optional[List[UploadFile]]) -> List[ImageUpload]:
    return [
        ImageUpload(filename=upload.filename, content=upload.file.read(), content_type=upload.content_type)
        for upload in files or []
        if upload.filename
    ]


@router.get("", response_model=List[PropertyResponse])
def list_properties(service: PropertyService = Depends(get_property_service)) -> List[PropertyResponse]:
    return [PropertyResponse.from_model(prop) for prop in service.list_properties()]


@router.get("/admin/properties", response_model=List[PropertyResponse])
def list_admin_properties(
    actor: Actor = Depends(require_capability(Capability.PROPERTY_MANAGE)),
    service: PropertyService = Depends(get_property_service),
) -> List[PropertyResponse]:
    """Properties created by the calling admin."""
    return [PropertyResponse.from_model(prop) for prop in service.list_properties(created_by_id=actor.user_id)]


@router.get("/status/{property_status}", response_model=List[PropertyResponse])
def list_properties_by_status(
    property_status: PropertyStatus,
    service: PropertyService = Depends(get_property_service),
) -> List[PropertyResponse]:
    return [PropertyResponse.from_model(prop) for prop in service.list_properties(status=property_status)]


@router.get("/{property_id}", response_model=PropertyResponse)
def get_property(
    property_id: UUID,
    service: PropertyService = Depends(get_property_service),
) -> PropertyResponse:
    return PropertyResponse.from_model(service.get_property(property_id))


@router.post("", response_model=PropertyResponse, status_code=status.HTTP_201_CREATED)
def create_property(
    name: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    location: Optional[str] = Form(default=None, description="JSON object"),
    total_value: Optional[str] = Form(default=None),
    total_tokens: Optional[str] = Form(default=None),
    images: Optional[List[UploadFile]] = File(default=None),
    actor: Actor = Depends(require_capability(Capability.PROPERTY_MANAGE)),
    service: PropertyService = Depends(get_property_service),
) -> PropertyResponse:
    payload = validate_form(
        PropertyCreate,
        {
            "name": name,
            "description": description,
            "location": location,
            "total_value": total_value,
            "total_tokens": total_tokens,
        },
    )
    prop = service.create_property(actor, payload, read_uploads(images))
    return PropertyResponse.from_model(prop)


@router.put("/{property_id}", response_model=PropertyResponse)
def update_property(
    property_id: UUID,
    name: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    location: Optional[str] = Form(default=None, description="JSON object"),
    total_value: Optional[str] = Form(default=None),
    total_tokens: Optional[str] = Form(default=None),
    images: Optional[List[UploadFile]] = File(default=None),
    actor: Actor = Depends(require_capability(Capability.PROPERTY_MANAGE)),
    service: PropertyService = Depends(get_property_service),
) -> PropertyResponse:
    """Update a listed property; uploaded images are appended."""
    payload = validate_form(
        PropertyUpdate,
        {
            "name": name,
            "description": description,
            "location": location,
            "total_value": total_value,
            "total_tokens": total_tokens,
        },
    )
    prop = service.update_property(actor, property_id, payload, read_uploads(images))
    return PropertyResponse.from_model(prop)


@router.delete("/{property_id}", response_model=MessageResponse)
def delete_property(
    property_id: UUID,
    actor: Actor = Depends(get_actor),
    service: PropertyService = Depends(get_property_service),
) -> MessageResponse:
    service.delete_property(actor, property_id)
    return MessageResponse(message="Property deleted")


@router.delete("/{property_id}/images/{image_index}", response_model=PropertyResponse)
def remove_property_image(
    property_id: UUID,
    image_index: int,
    actor: Actor = Depends(get_actor),
    service: PropertyService = Depends(get_property_service),
) -> PropertyResponse:
    return PropertyResponse.from_model(service.remove_image(actor, property_id, image_index))


@router.post("/{property_id}/purchase", response_model=PurchaseResponse)
def purchase_property(
    property_id: UUID,
    actor: Actor = Depends(get_actor),
    service: PaymentService = Depends(get_payment_service),
) -> PurchaseResponse:
    intent, transaction = service.buy_property(actor, property_id)
    return PurchaseResponse(
        client_secret=intent.client_secret,
        transaction_id=transaction.id,
        payment_intent_id=intent.id,
        amount=transaction.amount,
    )
