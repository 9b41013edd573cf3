"""
Authentication utilities: Password hashing and JWT token management
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from passlib.context import CryptContext

from config.settings import settings

# Password hashing context
pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto"
)

# JWT configuration
ALGORITHM = "HS256"
TOKEN_LIFETIME = timedelta(days=7)
MIN_PASSWORD_LENGTH = 8

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


def validate_email(email: str) -> bool:
    return EMAIL_PATTERN.match(email or "") is not None


def validate_password_strength(password: str) -> None:
    """
    Enforce the minimum password policy: at least 8 characters with both a
    letter and a digit.

    Raises:
        ValueError: with a user-facing message when the password is too weak
    """
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not re.search(r'[A-Za-z]', password):
        raise ValueError("Password must contain at least one letter")
    if not re.search(r'\d', password):
        raise ValueError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """Hash a password using argon2"""
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash"""
    return pwd_context.verify(password, password_hash)


def _encode(user_id: str, expires_at: datetime) -> str:
    if not settings.jwt_secret_key:
        raise ValueError("JWT_SECRET_KEY is not set. Cannot create JWT token.")
    payload = {"sub": str(user_id), "exp": expires_at}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=ALGORITHM)


def create_jwt(user_id: str) -> str:
    """Create a JWT token for a user"""
    return _encode(user_id, datetime.now(timezone.utc) + TOKEN_LIFETIME)


def create_expired_jwt(user_id: str, expired_seconds_ago: int = 1) -> str:
    """Create an already-expired JWT token, for exercising token rejection."""
    return _encode(user_id, datetime.now(timezone.utc) - timedelta(seconds=expired_seconds_ago))


def decode_jwt(token: str) -> Optional[dict]:
    """Decode a JWT token. Returns None if invalid or expired."""
    if not settings.jwt_secret_key:
        raise ValueError("JWT_SECRET_KEY is not set. Cannot decode JWT token.")

    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None
