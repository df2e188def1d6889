"""Pydantic schemas for request/response validation"""

from authcore.schemas.user import UserResponse, ProfileUpdate, SessionResponse
from authcore.schemas.auth import (
    RegisterRequest,
    LoginRequest,
    RefreshTokenRequest,
    LogoutRequest,
    VerifyEmailRequest,
    EmailRequest,
    ResetPasswordRequest,
    ExternalIdentity,
    AuthResponse,
    RefreshResponse,
    MessageResponse,
)

__all__ = [
    "UserResponse", "ProfileUpdate", "SessionResponse",
    "RegisterRequest", "LoginRequest", "RefreshTokenRequest", "LogoutRequest",
    "VerifyEmailRequest", "EmailRequest", "ResetPasswordRequest", "ExternalIdentity",
    "AuthResponse", "RefreshResponse", "MessageResponse",
]
