"""
Password hashing (Argon2id) and JWT bearer tokens.

Tokens carry the user id in ``sub`` and the login email in ``email``; they are
signed with HS256 by default and expire after ACCESS_TOKEN_EXPIRE_MINUTES.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from jose import JWTError, jwt

from civic_admin.core.config import settings
from civic_admin.core.logging_config import get_logger

logger = get_logger(__name__)

ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
    type=Type.ID,
)

# Verified against when the email is unknown so both failure paths cost the same.
DUMMY_PASSWORD_HASH = ph.hash("civic-admin-timing-guard")


def hash_password(password: str) -> str:
    """Hash a password using Argon2id."""
    return ph.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash using constant-time comparison.

    Returns False for a mismatch or for a hash that is not a valid Argon2 string.
    """
    try:
        ph.verify(hashed_password, plain_password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False

    if ph.check_needs_rehash(hashed_password):
        logger.info("Password hash needs rehashing with updated parameters")
    return True


def create_access_token(
    user_id: int, email: str, expires_delta: timedelta | None = None
) -> str:
    """Create a signed JWT for the given user."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    now = datetime.now(UTC)
    to_encode = {
        "sub": str(user_id),
        "email": email,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and verify a JWT. Returns None if it is malformed, forged or expired."""
    try:
        return jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError:
        return None
