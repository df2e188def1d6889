"""Security utilities - JWT, password hashing, opaque token secrets"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
import bcrypt
from authcore.config import settings, DURATION_PATTERN
import secrets

DEFAULT_DURATION_SECONDS = 900

_UNIT_SECONDS = {
    "d": 24 * 60 * 60,
    "h": 60 * 60,
    "m": 60,
    "s": 1,
}


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_duration(value: Optional[str], default: int = DEFAULT_DURATION_SECONDS) -> int:
    """
    Convert a duration string such as "15m" or "7d" to seconds.

    Args:
        value: Duration with a single unit suffix (d, h, m, s)
        default: Seconds returned when the value cannot be parsed

    Returns:
        int: Duration in seconds
    """
    match = DURATION_PATTERN.match(value or "")
    if not match:
        return default
    amount, unit = match.groups()
    return int(amount) * _UNIT_SECONDS[unit]


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """
    Verify a password against its hash

    Args:
        plain_password: Plain text password
        hashed_password: Hashed password (federated users have none)

    Returns:
        bool: True if password matches
    """
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        return False


def get_password_hash(password: str, rounds: Optional[int] = None) -> str:
    """
    Hash a password using bcrypt

    Args:
        password: Plain text password
        rounds: bcrypt work factor (defaults to BCRYPT_ROUNDS)

    Returns:
        str: Hashed password
    """
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    ).decode('utf-8')


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None,
    *,
    secret_key: Optional[str] = None,
    algorithm: Optional[str] = None,
) -> str:
    """
    Create JWT access token

    Args:
        data: Claims to encode in token
        expires_delta: Token lifetime (defaults to ACCESS_TOKEN_EXPIRE)
        secret_key: Signing key (defaults to JWT_SECRET)
        algorithm: Signing algorithm (defaults to JWT_ALGORITHM)

    Returns:
        str: Encoded JWT token
    """
    to_encode = data.copy()
    now = datetime.now(timezone.utc)

    if expires_delta is None:
        expires_delta = timedelta(seconds=parse_duration(settings.ACCESS_TOKEN_EXPIRE))

    to_encode.update({
        "exp": now + expires_delta,
        "iat": now,
        "typ": "access",
    })

    return jwt.encode(
        to_encode,
        secret_key or settings.JWT_SECRET,
        algorithm=algorithm or settings.JWT_ALGORITHM,
    )


def decode_access_token(
    token: str,
    *,
    secret_key: Optional[str] = None,
    algorithm: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Decode and verify JWT access token

    Args:
        token: JWT token string

    Returns:
        Optional[Dict]: Decoded claims or None if invalid, expired or not an access token
    """
    try:
        payload = jwt.decode(
            token,
            secret_key or settings.JWT_SECRET,
            algorithms=[algorithm or settings.JWT_ALGORITHM],
        )
    except JWTError:
        return None
    if payload.get("typ") != "access":
        return None
    return payload


def generate_refresh_secret() -> str:
    """Opaque refresh token secret (512 bits, hex encoded)."""
    return secrets.token_hex(64)


def generate_one_time_token() -> str:
    """Single-use token for email verification and password reset."""
    return secrets.token_hex(32)
