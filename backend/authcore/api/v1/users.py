"""User profile and session management routes"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from authcore.core.database import get_db
from authcore.schemas.auth import MessageResponse
from authcore.schemas.user import UserResponse, ProfileUpdate, SessionResponse
from authcore.services.auth_service import AuthService
from authcore.api.deps import get_auth_service, get_current_user
from authcore.models.user import User

router = APIRouter()


@router.get("/profile", response_model=UserResponse)
def get_profile(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    return service.get_profile(db, current_user.id)


@router.patch("/profile", response_model=UserResponse)
def update_profile(
    body: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    return service.update_profile(
        db, current_user.id, body.first_name, body.last_name, body.avatar_url
    )


@router.get("/sessions", response_model=List[SessionResponse])
def list_sessions(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    """Active sessions, most recently used first"""
    return service.list_sessions(db, current_user.id)


@router.delete("/sessions/{session_id}", response_model=MessageResponse)
def revoke_session(
    session_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    return service.revoke_session(db, current_user.id, session_id)


@router.delete("/sessions", response_model=MessageResponse)
def revoke_all_sessions(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    """Sign out everywhere: ends all sessions and revokes all refresh tokens"""
    return service.revoke_all_sessions(db, current_user.id)


@router.post("/deactivate", response_model=MessageResponse)
def deactivate_account(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    return service.deactivate_account(db, current_user.id)
