"""Database models"""

from authcore.models.user import User, AuthProvider
from authcore.models.security import RefreshToken
from authcore.models.session import UserSession

__all__ = ["User", "AuthProvider", "RefreshToken", "UserSession"]
