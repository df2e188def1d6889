"""Session store - one record per login on a device/browser"""

from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from authcore.config import Settings, settings as default_settings
from authcore.core.security import utcnow
from authcore.models.session import UserSession
from authcore.models.user import User

logger = logging.getLogger(__name__)


def parse_user_agent(user_agent: Optional[str]) -> Dict[str, str]:
    """
    Classify device, browser and OS from a User-Agent header.

    Best-effort substring matching, informational only.
    """
    if not user_agent:
        return {"device": "Unknown", "browser": "Unknown", "os": "Unknown"}

    device = "Desktop"
    browser = "Unknown"
    os_name = "Unknown"

    if "Windows" in user_agent:
        os_name = "Windows"
    elif "Android" in user_agent:
        os_name = "Android"
    elif "iPhone" in user_agent or "iPad" in user_agent:
        os_name = "iOS"
    elif "Mac OS X" in user_agent:
        os_name = "macOS"
    elif "Linux" in user_agent:
        os_name = "Linux"

    if "Mobile" in user_agent or "Android" in user_agent or "iPhone" in user_agent:
        device = "Mobile"
    elif "Tablet" in user_agent or "iPad" in user_agent:
        device = "Tablet"

    if "Chrome" in user_agent:
        browser = "Chrome"
    elif "Firefox" in user_agent:
        browser = "Firefox"
    elif "Safari" in user_agent:
        browser = "Safari"
    elif "Edge" in user_agent:
        browser = "Edge"
    elif "MSIE" in user_agent or "Trident" in user_agent:
        browser = "Internet Explorer"

    return {"device": device, "browser": browser, "os": os_name}


class SessionService:
    """Persistence operations for login sessions."""

    def __init__(self, config: Optional[Settings] = None) -> None:
        self.config = config or default_settings

    def create(
        self,
        db: Session,
        user: User,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> UserSession:
        now = utcnow()
        record = UserSession(
            session_id=str(uuid.uuid4()),
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address,
            expires_at=now + timedelta(days=self.config.SESSION_EXPIRE_DAYS),
            is_active=True,
            last_activity_at=now,
            created_at=now,
            **parse_user_agent(user_agent),
        )
        db.add(record)
        db.flush()
        return record

    @staticmethod
    def get(db: Session, session_id: str) -> Optional[UserSession]:
        if not session_id:
            return None
        return db.query(UserSession).filter(UserSession.session_id == session_id).first()

    @staticmethod
    def list_active_by_user(db: Session, user_id: int) -> List[UserSession]:
        """Active, unexpired sessions, most recent activity first"""
        return (
            db.query(UserSession)
            .filter(
                UserSession.user_id == user_id,
                UserSession.is_active == True,  # noqa: E712
                UserSession.expires_at > utcnow(),
            )
            .order_by(UserSession.last_activity_at.desc())
            .all()
        )

    @staticmethod
    def deactivate_one(db: Session, session_id: str) -> bool:
        updated = (
            db.query(UserSession)
            .filter(UserSession.session_id == session_id, UserSession.is_active == True)  # noqa: E712
            .update({UserSession.is_active: False}, synchronize_session=False)
        )
        db.flush()
        return updated == 1

    @staticmethod
    def deactivate_all_for_user(db: Session, user_id: int) -> int:
        updated = (
            db.query(UserSession)
            .filter(UserSession.user_id == user_id, UserSession.is_active == True)  # noqa: E712
            .update({UserSession.is_active: False}, synchronize_session=False)
        )
        db.flush()
        return updated

    @staticmethod
    def touch_activity(db: Session, session_id: str) -> None:
        db.query(UserSession).filter(
            UserSession.session_id == session_id,
            UserSession.is_active == True,  # noqa: E712
        ).update({UserSession.last_activity_at: utcnow()}, synchronize_session=False)
        db.flush()

    @staticmethod
    def deactivate_expired(db: Session) -> int:
        """Deactivate sessions past their expiry. Maintenance only."""
        updated = (
            db.query(UserSession)
            .filter(UserSession.is_active == True, UserSession.expires_at <= utcnow())  # noqa: E712
            .update({UserSession.is_active: False}, synchronize_session=False)
        )
        db.commit()
        if updated:
            logger.info("Deactivated %s expired sessions", updated)
        return updated


session_service = SessionService()
