"""Authentication API schemas."""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Annotated
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, field_validator

from estateshare.models.user import UserRole

PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)[a-zA-Z\d]{8,72}$")
PASSWORD_RULE_MESSAGE = (
    "Password must be 8 to 72 characters long and contain at least one uppercase letter, "
    "one lowercase letter, and one number"
)


def check_password_strength(value: str) -> str:
    if not PASSWORD_PATTERN.match(value):
        raise ValueError(PASSWORD_RULE_MESSAGE)
    return value


def normalize_email(value: str) -> str:
    return value.strip().lower()


Email = Annotated[EmailStr, AfterValidator(normalize_email)]
Password = Annotated[str, AfterValidator(check_password_strength)]


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: Email
    password: Password
    date_of_birth: date

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        return value


class LoginRequest(BaseModel):
    email: Email
    password: str = Field(..., min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: Email


class VerifyDateOfBirthRequest(BaseModel):
    email: Email
    date_of_birth: date


class ResetPasswordRequest(BaseModel):
    reset_token: str = Field(..., min_length=1)
    new_password: Password


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: Password


class UserResponse(BaseModel):
    """User summary without credentials."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    name: str
    date_of_birth: date
    role: UserRole
    created_at: datetime


class AuthResponse(BaseModel):
    token: str
    user: UserResponse


class ResetTokenResponse(BaseModel):
    reset_token: str
    expires_at: datetime


class MessageResponse(BaseModel):
    message: str
