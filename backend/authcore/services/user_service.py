"""User service - credential store for identities and their one-time tokens"""

from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime
from authcore.models.user import User, AuthProvider
from authcore.core.security import utcnow
import logging

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class UserService:
    """Persistence operations for user identities.

    Methods flush but never commit; the calling orchestrator owns the transaction.
    """

    @staticmethod
    def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
        """Get user by ID"""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        """Get user by (normalized) email"""
        return db.query(User).filter(User.email == normalize_email(email)).first()

    @staticmethod
    def find_by_email_or_provider(
        db: Session,
        email: str,
        provider: str,
        provider_id: str,
    ) -> Optional[User]:
        """Find a user matching the email, or the provider and external id pair"""
        return (
            db.query(User)
            .filter(
                or_(
                    User.email == normalize_email(email),
                    (User.provider == provider) & (User.provider_id == provider_id),
                )
            )
            .order_by(User.id.asc())
            .first()
        )

    @staticmethod
    def create_user(
        db: Session,
        *,
        email: str,
        password_hash: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
        provider: str = AuthProvider.LOCAL,
        provider_id: Optional[str] = None,
        is_email_verified: bool = False,
    ) -> User:
        """
        Create new user record

        Args:
            db: Database session
            email: Email address (normalized before storing)
            password_hash: Already hashed password, None for federated users

        Returns:
            Created user (flushed, id assigned)
        """
        user = User(
            email=normalize_email(email),
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            avatar_url=avatar_url,
            provider=provider,
            provider_id=provider_id,
            is_email_verified=is_email_verified,
        )
        db.add(user)
        db.flush()
        return user

    @staticmethod
    def set_verification_token(db: Session, user: User, token: str, expires_at: datetime) -> None:
        user.email_verification_token = token
        user.email_verification_expires = expires_at
        db.flush()

    @staticmethod
    def find_by_verification_token(db: Session, token: str) -> Optional[User]:
        if not token:
            return None
        return db.query(User).filter(User.email_verification_token == token).first()

    @staticmethod
    def mark_email_verified(db: Session, user: User) -> None:
        """Mark verified and consume the verification token"""
        user.is_email_verified = True
        user.email_verification_token = None
        user.email_verification_expires = None
        db.flush()

    @staticmethod
    def set_reset_token(db: Session, user: User, token: str, expires_at: datetime) -> None:
        user.password_reset_token = token
        user.password_reset_expires = expires_at
        db.flush()

    @staticmethod
    def find_by_reset_token(db: Session, token: str) -> Optional[User]:
        if not token:
            return None
        return db.query(User).filter(User.password_reset_token == token).first()

    @staticmethod
    def update_password(db: Session, user: User, password_hash: str) -> None:
        """Store a new password hash and consume any pending reset token"""
        user.password_hash = password_hash
        user.password_reset_token = None
        user.password_reset_expires = None
        db.flush()

    @staticmethod
    def touch_last_login(db: Session, user: User) -> None:
        user.last_login_at = utcnow()
        db.flush()

    @staticmethod
    def merge_external_profile(
        db: Session,
        user: User,
        *,
        provider: str,
        avatar_url: Optional[str] = None,
    ) -> None:
        """Fill missing profile fields from a federated login"""
        if not user.avatar_url and avatar_url:
            user.avatar_url = avatar_url
        if not user.is_email_verified and provider != AuthProvider.LOCAL:
            user.is_email_verified = True
        db.flush()

    @staticmethod
    def update_profile(
        db: Session,
        user: User,
        *,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> User:
        if first_name is not None:
            user.first_name = first_name
        if last_name is not None:
            user.last_name = last_name
        if avatar_url is not None:
            user.avatar_url = avatar_url
        db.flush()
        return user

    @staticmethod
    def deactivate(db: Session, user: User) -> None:
        user.is_active = False
        db.flush()
        logger.info(f"Deactivated user: {user.email}")


# Singleton instance
user_service = UserService()
