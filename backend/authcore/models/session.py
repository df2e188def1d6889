"""Login session model"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from authcore.core.database import Base
from authcore.core.security import naive_utc, utcnow


class UserSession(Base):
    """One record per login on a device/browser, independent of token rotation"""

    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(36), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    user_agent = Column(String(512))
    ip_address = Column(String(64))
    device = Column(String(20))
    browser = Column(String(40))
    os = Column(String(40))
    expires_at = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_activity_at = Column(DateTime, default=utcnow, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="sessions")

    __table_args__ = (
        Index('idx_sessions_user_active', 'user_id', 'is_active'),
    )

    @property
    def is_expired(self) -> bool:
        return utcnow() >= naive_utc(self.expires_at)

    def __repr__(self):
        return f"<UserSession(session_id='{self.session_id}', user_id={self.user_id}, active={self.is_active})>"
