"""Program and program membership routes."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from civic_admin.api.deps import get_current_user
from civic_admin.core.config import Settings, get_settings
from civic_admin.core.database import get_repository
from civic_admin.core.repository import Repository
from civic_admin.core.responses import success_response
from civic_admin.services import programs as program_service
from civic_admin.services.authorization import get_user_programs

router = APIRouter(tags=["Programs"])


# ============================================
# PYDANTIC MODELS
# ============================================


class ProgramCreate(BaseModel):
    name: str | None = Field(None, max_length=255)
    year: int | None = None
    config: dict[str, Any] | None = None


class ProgramUserAssign(BaseModel):
    user_id: int | None = None
    role: str | None = Field(None, max_length=50)


# ============================================
# ENDPOINTS
# ============================================


@router.post("/programs", status_code=status.HTTP_201_CREATED)
async def create_program(
    request: ProgramCreate,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    """Create a program; the caller becomes its admin."""
    program = await program_service.create_program(
        repo, current_user["id"], request.name, request.year, request.config
    )
    return success_response(data=program, message="Program created")


@router.post("/programs/{program_id}/users", status_code=status.HTTP_201_CREATED)
async def assign_program_user(
    program_id: str,
    request: ProgramUserAssign,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    assignment = await program_service.assign_user_to_program(
        repo, current_user["id"], program_id, request.user_id, request.role
    )
    return success_response(data=assignment)


@router.get("/programs/{program_id}/users")
async def list_program_users(
    program_id: str,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    users = await program_service.list_program_users(repo, current_user["id"], program_id)
    return success_response(data=users)


@router.get("/user-programs/{username}")
async def list_user_programs(
    username: str,
    repo: Annotated[Repository, Depends(get_repository)],
    settings: Annotated[Settings, Depends(get_settings)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    """
    Programs visible to a user, with their role in each.

    Members of the developer program see every program; the response's
    ``listing`` field is ``developer_override`` in that case and ``normal`` otherwise.
    """
    listing = await get_user_programs(repo, username, settings)
    return success_response(data=listing.to_dict())
