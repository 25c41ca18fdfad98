"""Permission catalog and program role routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from civic_admin.api.deps import get_current_user
from civic_admin.core.database import get_repository
from civic_admin.core.repository import Repository
from civic_admin.core.responses import success_response
from civic_admin.services import roles as role_service
from civic_admin.services.authorization import get_my_permissions
from civic_admin.services.permissions import ALL_PERMISSIONS, PERMISSION_GROUPS

router = APIRouter(tags=["Roles"])


# ============================================
# PYDANTIC MODELS
# ============================================


class RoleCreate(BaseModel):
    name: str | None = Field(None, max_length=100)
    description: str | None = None
    permissions: list[str] | None = None


class RoleUpdate(BaseModel):
    name: str | None = Field(None, max_length=100)
    description: str | None = None
    permissions: list[str] | None = None
    is_active: bool | None = None
    display_order: int | None = None


class RoleAssign(BaseModel):
    role_id: int | None = None


# ============================================
# PERMISSIONS
# ============================================


@router.get("/permissions")
async def list_permissions(
    current_user: Annotated[dict, Depends(get_current_user)],
):
    """The permission catalog, flat and grouped for display."""
    return success_response(
        data={
            "permissions": sorted(p.value for p in ALL_PERMISSIONS),
            "groups": PERMISSION_GROUPS,
        }
    )


@router.get("/programs/{program_id}/my-permissions")
async def my_permissions(
    program_id: str,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    result = await get_my_permissions(repo, current_user["id"], program_id)
    return success_response(data=result)


# ============================================
# ROLES
# ============================================


@router.get("/programs/{program_id}/roles")
async def list_roles(
    program_id: str,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    roles = await role_service.list_roles(repo, current_user["id"], program_id)
    return success_response(data=roles)


@router.post("/programs/{program_id}/roles", status_code=status.HTTP_201_CREATED)
async def create_role(
    program_id: str,
    request: RoleCreate,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    role = await role_service.create_role(
        repo,
        current_user["id"],
        program_id,
        name=request.name,
        description=request.description,
        permissions=request.permissions,
    )
    return success_response(data=role, message="Role created")


@router.put("/programs/{program_id}/roles/{role_id}")
async def update_role(
    program_id: str,
    role_id: int,
    request: RoleUpdate,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    role = await role_service.update_role(
        repo,
        current_user["id"],
        program_id,
        role_id,
        request.model_dump(exclude_unset=True),
    )
    return success_response(data=role)


@router.delete("/programs/{program_id}/roles/{role_id}")
async def delete_role(
    program_id: str,
    role_id: int,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    result = await role_service.delete_role(repo, current_user["id"], program_id, role_id)
    return success_response(data=result, message="Role deleted")


@router.put("/programs/{program_id}/users/{user_id}/role")
async def assign_role(
    program_id: str,
    user_id: int,
    request: RoleAssign,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    """Attach a role to a member's assignment; ``role_id: null`` detaches it."""
    result = await role_service.assign_role_to_user(
        repo, current_user["id"], program_id, user_id, request.role_id
    )
    return success_response(data=result)
