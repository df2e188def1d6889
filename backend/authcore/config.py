"""Application configuration management"""

import re
from functools import lru_cache
from pathlib import Path
from typing import Optional
from urllib.parse import quote_plus

from pydantic import field_validator
from pydantic_settings import BaseSettings

# Base directory: backend/
_BASE_DIR = Path(__file__).resolve().parent.parent

DURATION_PATTERN = re.compile(r"^\s*(\d+)\s*([dhms])\s*$")


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application
    APP_NAME: str = "AuthCore"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # Database (PostgreSQL)
    DATABASE_URL: str = ""
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "authcore_db"
    POSTGRES_USER: str = "authcore"
    POSTGRES_PASSWORD: str = "authcore"
    DATABASE_POOL_SIZE: int = 30
    DATABASE_MAX_OVERFLOW: int = 20

    # Token signing
    JWT_SECRET: str = "dev-secret-key-change-in-production-use-openssl-rand-hex-32"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE: str = "15m"
    REFRESH_TOKEN_EXPIRE: str = "7d"

    # Password hashing
    BCRYPT_ROUNDS: int = 10

    # Sessions and one-time tokens
    SESSION_EXPIRE_DAYS: int = 7
    EMAIL_VERIFICATION_EXPIRE_HOURS: int = 24
    PASSWORD_RESET_EXPIRE_HOURS: int = 1

    # Revocation policy
    REFRESH_TOKEN_REUSE_DETECTION: bool = True
    LOGOUT_REVOKES_ALL_TOKENS: bool = False

    # Notifications
    FRONTEND_URL: str = "http://localhost:3000"
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    EMAIL_FROM: Optional[str] = None
    EMAIL_FROM_NAME: str = "AuthCore"

    # Maintenance worker
    RUN_EMBEDDED_WORKER: bool = True
    MAINTENANCE_INTERVAL_SECONDS: float = 3600.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # Database initialization discipline
    DB_INIT_MODE: str = "migrate"  # migrate | create_all | off
    DB_REQUIRE_HEAD: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True
        frozen = True

    @field_validator("ACCESS_TOKEN_EXPIRE", "REFRESH_TOKEN_EXPIRE")
    @classmethod
    def _validate_duration(cls, value: str) -> str:
        """
        Reject TTL strings that the token issuer cannot parse.

        Accepted: an integer followed by one unit of d, h, m or s ("15m", "7d").
        """
        if not DURATION_PATTERN.match(value or ""):
            raise ValueError(f"Invalid duration '{value}'. Use <number><d|h|m|s>, e.g. 15m or 7d.")
        return value.strip()

    @field_validator("BCRYPT_ROUNDS")
    @classmethod
    def _validate_bcrypt_rounds(cls, value: int) -> int:
        if value < 10 or value > 15:
            raise ValueError("BCRYPT_ROUNDS must be between 10 and 15")
        return value

    def get_log_file(self) -> str:
        p = self.LOG_FILE
        if not p or p.startswith(".."):
            return str(_BASE_DIR.parent / "logs" / "app.log")
        return p

    def get_database_url(self) -> str:
        """
        Resolve database URL.

        Priority:
          1) Explicit DATABASE_URL
          2) Construct from POSTGRES_* parts with safe URL encoding
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL

        user = quote_plus(self.POSTGRES_USER)
        password = quote_plus(self.POSTGRES_PASSWORD)
        return (
            f"postgresql://{user}:{password}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    def validate_security_settings(self) -> None:
        """
        Validate runtime security defaults in production.

        Raises:
            ValueError: If insecure defaults are detected.
        """
        if self.ENVIRONMENT.lower() != "production":
            return

        insecure_secret_markers = {
            "",
            "dev-secret-key-change-in-production-use-openssl-rand-hex-32",
            "change-me",
        }

        if self.JWT_SECRET in insecure_secret_markers or len(self.JWT_SECRET) < 32:
            raise ValueError(
                "Insecure JWT_SECRET for production. Use a strong key (e.g. `openssl rand -hex 32`)."
            )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
