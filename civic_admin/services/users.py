"""User service functions."""

from typing import Any

from civic_admin.core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    RateLimitedError,
    ValidationError,
)
from civic_admin.core.logging_config import get_logger, security_logger
from civic_admin.core.rate_limiting import LoginRateLimiter
from civic_admin.core.repository import USERS, Repository
from civic_admin.core.security import (
    DUMMY_PASSWORD_HASH,
    create_access_token,
    hash_password,
    verify_password,
)

logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 8


def public_user(user: dict[str, Any]) -> dict[str, Any]:
    """Strip the password hash from a user record."""
    return {k: v for k, v in user.items() if k != "password_hash"}


async def get_user_by_email(repo: Repository, email: str) -> dict[str, Any] | None:
    return await repo.find_first(USERS, {"email": email})


async def register_user(
    repo: Repository, email: str | None, password: str | None
) -> dict[str, Any]:
    """Create a login. Emails are unique."""
    if not email or not password:
        raise ValidationError("Email and password required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            {"password": "too short"},
        )

    if await get_user_by_email(repo, email) is not None:
        raise ConflictError("User already exists")

    user = await repo.create(
        USERS, {"email": email, "password_hash": hash_password(password)}
    )
    security_logger.log_user_registration(email)
    return public_user(user)


async def authenticate_user(
    repo: Repository,
    email: str | None,
    password: str | None,
    client_ip: str,
    rate_limiter: LoginRateLimiter,
) -> dict[str, Any]:
    """
    Check credentials and issue an access token.

    Failed attempts are counted per client IP; once the limit is reached every
    login from that IP is refused until the window passes, even with a correct
    password. A successful login clears the IP's failures.

    Returns:
        ``{"access_token", "token_type", "user"}``
    """
    if not email or not password:
        raise ValidationError("Email and password required")

    allowed, retry_after = rate_limiter.check_login_allowed(client_ip)
    if not allowed:
        security_logger.log_login_attempt(
            email, success=False, ip_address=client_ip, reason="rate_limited"
        )
        raise RateLimitedError("Too many login attempts", retry_after=retry_after)

    user = await get_user_by_email(repo, email)

    # Verify against a dummy hash for unknown emails so timing does not leak existence
    password_hash = user["password_hash"] if user else DUMMY_PASSWORD_HASH
    password_valid = verify_password(password, password_hash)

    if user is None or not password_valid:
        rate_limiter.record_failed_attempt(client_ip)
        reason = "unknown_email" if user is None else "invalid_password"
        security_logger.log_login_attempt(
            email, success=False, ip_address=client_ip, reason=reason
        )
        raise AuthenticationError("Invalid credentials")

    rate_limiter.record_successful_login(client_ip)
    security_logger.log_login_attempt(email, success=True, ip_address=client_ip)

    token = create_access_token(user["id"], user["email"])
    security_logger.log_token_creation(user["id"])
    return {"access_token": token, "token_type": "bearer", "user": public_user(user)}


async def refresh_token(repo: Repository, user_id: int) -> dict[str, Any]:
    """Issue a fresh token for a user that still exists."""
    user = await repo.find_by_id(USERS, user_id)
    if user is None:
        raise AuthenticationError("User not found")

    token = create_access_token(user["id"], user["email"])
    security_logger.log_token_creation(user["id"], "refresh")
    return {"access_token": token, "token_type": "bearer"}


async def change_password(
    repo: Repository,
    user_id: int,
    current_password: str | None,
    new_password: str | None,
) -> None:
    if not current_password or not new_password:
        raise ValidationError("Current password and new password required")
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"New password must be at least {MIN_PASSWORD_LENGTH} characters",
            {"new_password": "too short"},
        )

    user = await repo.find_by_id(USERS, user_id)
    if user is None:
        raise NotFoundError("User")

    if not verify_password(current_password, user["password_hash"]):
        raise AuthenticationError("Current password is incorrect")

    await repo.update(USERS, user_id, {"password_hash": hash_password(new_password)})
    security_logger.log_password_change(user_id)
