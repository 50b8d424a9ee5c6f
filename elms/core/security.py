from datetime import datetime, timedelta, timezone
from typing import Optional, Any
import uuid

from jose import JWTError, jwt
from passlib.context import CryptContext

from elms.config import Settings


# Password hashing context
# - argon2 is the default for new hashes
# - bcrypt hashes are still verified and flagged for upgrade
pwd_context = CryptContext(
    schemes=["argon2", "bcrypt"],
    default="argon2",
    deprecated=["bcrypt"],
)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against a hashed password.

    Passlib detects the algorithm from the hash format; an unknown or
    malformed hash counts as a mismatch.
    """
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False


def get_password_hash(password: str) -> str:
    """Hash a password with the default scheme (argon2id)."""
    return pwd_context.hash(password)


def verify_and_check_needs_rehash(plain_password: str, hashed_password: str) -> tuple[bool, bool]:
    """
    Verify password and check if the hash should be upgraded.

    Returns:
        Tuple of (is_valid, needs_rehash); needs_rehash is True for
        hashes made with a deprecated scheme (bcrypt)
    """
    try:
        if pwd_context.verify(plain_password, hashed_password):
            return (True, pwd_context.needs_update(hashed_password))
        return (False, False)
    except (ValueError, TypeError):
        return (False, False)


def create_access_token(
    settings: Settings,
    subject: str | uuid.UUID,
    expires_delta: Optional[timedelta] = None,
    additional_claims: Optional[dict[str, Any]] = None
) -> str:
    """
    Create a JWT access token.

    Args:
        settings: Application settings holding the signing key and lifetime
        subject: The subject of the token (the user ID)
        expires_delta: Optional custom expiration time
        additional_claims: Optional additional claims to include

    Returns:
        Encoded JWT token string
    """
    now = datetime.now(timezone.utc)
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {
        "sub": str(subject),
        "exp": expire,
        "iat": now,
        "type": "access"
    }

    if additional_claims:
        to_encode.update(additional_claims)

    return jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )


def create_user_token(settings: Settings, user) -> str:
    """Issue an access token carrying the user's identity claims."""
    return create_access_token(
        settings,
        user.id,
        additional_claims={
            "email": user.email,
            "role": user.role,
            "team_id": str(user.team_id) if user.team_id else None,
        },
    )


def decode_token(settings: Settings, token: str) -> Optional[dict[str, Any]]:
    """
    Decode and validate a JWT token.

    Returns:
        Decoded token payload or None if invalid or expired
    """
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        return None


def verify_access_token(settings: Settings, token: str) -> Optional[str]:
    """
    Verify an access token and return the subject (user ID).
    """
    payload = decode_token(settings, token)
    if payload is None:
        return None

    if payload.get("type") != "access":
        return None

    return payload.get("sub")
