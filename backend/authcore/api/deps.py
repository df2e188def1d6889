"""API dependencies - authentication and service wiring"""

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from authcore.core.database import get_db
from authcore.models.user import User
from authcore.services.auth_service import AuthService, auth_service

# HTTP Bearer token scheme
security = HTTPBearer()


def get_auth_service() -> AuthService:
    """Orchestrator used by the routes (overridable in tests)"""
    return auth_service


def get_client_meta(request: Request) -> dict:
    """User-Agent and client IP captured at issuance"""
    return {
        "user_agent": request.headers.get("user-agent"),
        "ip_address": request.client.host if request.client else None,
    }


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
) -> User:
    """
    Get current authenticated user from the bearer access token

    Raises:
        UnauthorizedError: If token is invalid, user not found or deactivated
    """
    return service.authenticate_access_token(db, credentials.credentials)

