"""Property API schemas."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from estateshare.models.property import Property, PropertyStatus
from estateshare.services import calculations


class Location(BaseModel):
    """Postal location; every part is required and non-blank."""

    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)

    @field_validator("address", "city", "state", "country", "zip_code")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Please provide complete location details")
        return value


def _parse_location(value: Any) -> Any:
    # multipart forms carry the location as a JSON string
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError as exc:
            raise ValueError("Location must be a JSON object") from exc
    return value


class PropertyCreate(BaseModel):
    """Schema for creating a new property."""

    name: str = Field(..., min_length=3, max_length=255, description="Property name")
    description: str = Field(..., min_length=10, description="Property description")
    location: Location
    total_value: float = Field(..., gt=0, description="Property valuation in USD")
    total_tokens: int = Field(..., ge=1, description="Number of fractional tokens")

    @field_validator("location", mode="before")
    @classmethod
    def parse_location(cls, value: Any) -> Any:
        return _parse_location(value)


class PropertyUpdate(BaseModel):
    """Schema for updating property details; status is not editable here."""

    name: Optional[str] = Field(default=None, min_length=3, max_length=255)
    description: Optional[str] = Field(default=None, min_length=10)
    location: Optional[Location] = None
    total_value: Optional[float] = Field(default=None, gt=0)
    total_tokens: Optional[int] = Field(default=None, ge=1)

    model_config = ConfigDict(extra="forbid")

    @field_validator("location", mode="before")
    @classmethod
    def parse_location(cls, value: Any) -> Any:
        return _parse_location(value)


class InvestorResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    tokens: int
    invested_at: datetime
    transaction_id: Optional[UUID] = None


class CrowdfundingState(BaseModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    description: Optional[str] = None
    current_amount: float
    tokens_sold: int
    available_tokens: int
    funding_progress: float
    investors: List[InvestorResponse] = Field(default_factory=list)


class PropertyResponse(BaseModel):
    """Schema for property response."""

    id: UUID
    name: str
    description: str
    location: Location
    total_value: float
    total_tokens: int
    token_price: float
    images: List[str]
    status: PropertyStatus
    created_by_id: UUID
    crowdfunding: Optional[CrowdfundingState] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, prop: Property) -> "PropertyResponse":
        crowdfunding = None
        if prop.has_crowdfunding:
            crowdfunding = CrowdfundingState(
                start_date=prop.crowdfunding_start_date,
                end_date=prop.crowdfunding_end_date,
                description=prop.crowdfunding_description,
                current_amount=prop.current_amount,
                tokens_sold=prop.tokens_sold,
                available_tokens=calculations.available_tokens(prop.total_tokens, prop.tokens_sold),
                funding_progress=calculations.funding_progress(prop.current_amount, prop.total_value),
                investors=[InvestorResponse.model_validate(entry) for entry in prop.investors],
            )
        return cls(
            id=prop.id,
            name=prop.name,
            description=prop.description,
            location=Location.model_validate(prop.location),
            total_value=prop.total_value,
            total_tokens=prop.total_tokens,
            token_price=prop.token_price,
            images=list(prop.images or []),
            status=prop.status,
            created_by_id=prop.created_by_id,
            crowdfunding=crowdfunding,
            created_at=prop.created_at,
            updated_at=prop.updated_at,
        )


class PurchaseResponse(BaseModel):
    client_secret: Optional[str]
    transaction_id: UUID
    payment_intent_id: str
    amount: float
