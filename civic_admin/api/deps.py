"""API dependencies for authentication."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from civic_admin.core.database import get_repository
from civic_admin.core.repository import USERS, Repository
from civic_admin.core.security import decode_access_token

security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    repo: Annotated[Repository, Depends(get_repository)],
) -> dict:
    """
    Dependency to get the current authenticated user.

    Validates the bearer JWT and returns the user record without its password hash.
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Invalid authentication credentials")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise _unauthorized("Invalid authentication credentials") from None

    user = await repo.find_by_id(USERS, user_id)
    if user is None:
        raise _unauthorized("User not found")

    user.pop("password_hash", None)
    return user


def get_client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"
