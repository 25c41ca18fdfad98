"""Authentication routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field

from civic_admin.api.deps import get_client_ip, get_current_user
from civic_admin.core.database import get_repository
from civic_admin.core.logging_config import get_logger
from civic_admin.core.rate_limiting import LoginRateLimiter, get_login_rate_limiter
from civic_admin.core.repository import Repository
from civic_admin.core.responses import success_response
from civic_admin.services import users as user_service

router = APIRouter(tags=["Authentication"])
logger = get_logger(__name__)


class RegisterRequest(BaseModel):
    email: str | None = Field(None, max_length=255)
    password: str | None = Field(None, max_length=128)


class LoginRequest(BaseModel):
    email: str | None = Field(None, max_length=255)
    password: str | None = Field(None, max_length=128)


class ChangePasswordRequest(BaseModel):
    current_password: str | None = Field(None, max_length=128)
    new_password: str | None = Field(None, max_length=128)


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    repo: Annotated[Repository, Depends(get_repository)],
):
    """
    Register a new login.

    **Request Body:**
    ```json
    {"email": "director@example.org", "password": "correct horse"}
    ```
    """
    user = await user_service.register_user(repo, request.email, request.password)
    logger.info(f"User registered: {user['email']}")
    return success_response(data=user, message="User created")


@router.post("/login")
async def login(
    request: LoginRequest,
    http_request: Request,
    repo: Annotated[Repository, Depends(get_repository)],
    rate_limiter: Annotated[LoginRateLimiter, Depends(get_login_rate_limiter)],
):
    """
    Authenticate and return a JWT.

    Failed attempts are limited per client IP (5 per 15 minutes by default);
    a limited client receives 429 with a ``Retry-After`` header.
    """
    client_ip = get_client_ip(http_request)
    logger.info(f"Login attempt for user: {request.email} from IP: {client_ip}")

    result = await user_service.authenticate_user(
        repo, request.email, request.password, client_ip, rate_limiter
    )
    return success_response(data=result)


@router.post("/refresh")
async def refresh(
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    """Issue a new token for the authenticated user."""
    result = await user_service.refresh_token(repo, current_user["id"])
    return success_response(data=result)


@router.put("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    await user_service.change_password(
        repo, current_user["id"], request.current_password, request.new_password
    )
    return success_response(message="Password changed successfully")
