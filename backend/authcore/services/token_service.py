"""Token issuer: signed access tokens and persisted opaque refresh tokens."""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from authcore.config import Settings, settings as default_settings
from authcore.core.security import (
    create_access_token,
    decode_access_token,
    generate_refresh_secret,
    parse_duration,
    utcnow,
)
from authcore.models.security import RefreshToken
from authcore.models.user import User
from authcore.services.refresh_token_service import refresh_token_service


class TokenService:
    """Mint access and refresh tokens from the configured TTLs and signing key."""

    def __init__(self, config: Optional[Settings] = None) -> None:
        self.config = config or default_settings

    @property
    def expires_in(self) -> int:
        """Access token lifetime in seconds."""
        return parse_duration(self.config.ACCESS_TOKEN_EXPIRE)

    @property
    def refresh_expires_in(self) -> int:
        return parse_duration(self.config.REFRESH_TOKEN_EXPIRE)

    def issue_access_token(self, user: User, session_id: Optional[str] = None) -> str:
        claims = {"sub": str(user.id), "email": user.email}
        if session_id:
            claims["sid"] = session_id
        return create_access_token(
            claims,
            expires_delta=timedelta(seconds=self.expires_in),
            secret_key=self.config.JWT_SECRET,
            algorithm=self.config.JWT_ALGORITHM,
        )

    def decode_access_token(self, token: str) -> Optional[dict]:
        return decode_access_token(
            token,
            secret_key=self.config.JWT_SECRET,
            algorithm=self.config.JWT_ALGORITHM,
        )

    def build_refresh_token(
        self,
        user: User,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> RefreshToken:
        now = utcnow()
        return RefreshToken(
            token=generate_refresh_secret(),
            user_id=user.id,
            session_id=session_id,
            expires_at=now + timedelta(seconds=self.refresh_expires_in),
            revoked=False,
            user_agent=user_agent,
            ip_address=ip_address,
            created_at=now,
        )

    def issue_refresh_token(
        self,
        db: Session,
        user: User,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> RefreshToken:
        """Generate and persist (flush) a new refresh token record."""
        record = self.build_refresh_token(user, user_agent, ip_address, session_id)
        return refresh_token_service.insert(db, record)
