"""Authentication endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from estateshare.api.dependencies import TOKEN_COOKIE, get_current_user, get_user_service
from estateshare.core.config import get_settings
from estateshare.models.user import User
from estateshare.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    ResetTokenResponse,
    UserResponse,
    VerifyDateOfBirthRequest,
)
from estateshare.services.users import UserService

router = APIRouter()


def _issue(response: Response, service: UserService, user: User) -> AuthResponse:
    settings = get_settings()
    token = service.issue_token(user)
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        httponly=True,
        samesite="lax",
        secure=settings.environment == "production",
        max_age=settings.jwt_expires_minutes * 60,
    )
    return AuthResponse(token=token, user=UserResponse.model_validate(user))


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    response: Response,
    service: UserService = Depends(get_user_service),
) -> AuthResponse:
    user = service.register(payload)
    return _issue(response, service, user)


@router.post("/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    response: Response,
    service: UserService = Depends(get_user_service),
) -> AuthResponse:
    user = service.authenticate(payload.email, payload.password)
    return _issue(response, service, user)


@router.post("/admin/login", response_model=AuthResponse)
def admin_login(
    payload: LoginRequest,
    response: Response,
    service: UserService = Depends(get_user_service),
) -> AuthResponse:
    user = service.authenticate(payload.email, payload.password, require_admin=True)
    return _issue(response, service, user)


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    payload: ForgotPasswordRequest,
    service: UserService = Depends(get_user_service),
) -> MessageResponse:
    service.forgot_password(payload.email)
    return MessageResponse(message="Password reset instructions have been sent")


@router.post("/verify-dob", response_model=ResetTokenResponse)
def verify_date_of_birth(
    payload: VerifyDateOfBirthRequest,
    service: UserService = Depends(get_user_service),
) -> ResetTokenResponse:
    reset_token, expires_at = service.verify_date_of_birth(payload.email, payload.date_of_birth)
    return ResetTokenResponse(reset_token=reset_token, expires_at=expires_at)


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    payload: ResetPasswordRequest,
    service: UserService = Depends(get_user_service),
) -> MessageResponse:
    service.reset_password(payload.reset_token, payload.new_password)
    return MessageResponse(message="Password has been reset")


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    payload: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> MessageResponse:
    service.change_password(user, payload.current_password, payload.new_password)
    return MessageResponse(message="Password updated")


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(user)


@router.get("/profile", response_model=UserResponse)
def profile(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(user)
