"""Authentication routes"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import Optional

from authcore.core.database import get_db
from authcore.schemas.auth import (
    RegisterRequest,
    LoginRequest,
    RefreshTokenRequest,
    LogoutRequest,
    VerifyEmailRequest,
    EmailRequest,
    ResetPasswordRequest,
    AuthResponse,
    RefreshResponse,
    MessageResponse,
)
from authcore.schemas.user import UserResponse
from authcore.services.auth_service import AuthService
from authcore.api.deps import get_auth_service, get_client_meta, get_current_user
from authcore.models.user import User

router = APIRouter()


@router.post("/register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    """Register a new local user (no tokens until login)"""
    return service.register(db, body.email, body.password, body.first_name, body.last_name)


@router.post("/login", response_model=AuthResponse, status_code=status.HTTP_200_OK)
def login(
    credentials: LoginRequest,
    client: dict = Depends(get_client_meta),
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    """Login with email and password; returns access and refresh tokens"""
    return service.login(db, credentials.email, credentials.password, **client)


@router.post("/refresh", response_model=RefreshResponse)
def refresh_token(
    req: RefreshTokenRequest,
    client: dict = Depends(get_client_meta),
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    """Rotate a refresh token into a new access/refresh pair"""
    return service.refresh(db, req.refresh_token, **client)


@router.post("/logout", response_model=MessageResponse)
def logout(
    body: Optional[LogoutRequest] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    """End all sessions of the current user and revoke the given refresh token"""
    return service.logout(db, current_user.id, body.refresh_token if body else None)


@router.post("/verify-email", response_model=MessageResponse)
def verify_email(
    body: VerifyEmailRequest,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    return service.verify_email(db, body.token)


@router.post("/resend-verification", response_model=MessageResponse)
def resend_verification(
    body: EmailRequest,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    return service.resend_verification(db, body.email)


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    body: EmailRequest,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    """Always answers with the same message"""
    return service.forgot_password(db, body.email)


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    body: ResetPasswordRequest,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    return service.reset_password(db, body.token, body.new_password)


@router.get("/me", response_model=UserResponse)
def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """Get current user information"""
    return UserResponse.model_validate(current_user)
