"""Grouping API routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from civic_admin.api.deps import get_current_user
from civic_admin.core.database import get_repository
from civic_admin.core.repository import Repository
from civic_admin.core.responses import success_response
from civic_admin.services import groupings as grouping_service

router = APIRouter(tags=["Groupings"])


class GroupingFields(BaseModel):
    """Grouping create/update body; only the fields sent are forwarded."""

    grouping_type_id: int | None = None
    parent_grouping_id: int | None = None
    name: str | None = Field(None, max_length=255)
    display_order: int | None = None
    notes: str | None = None
    status: str | None = None


@router.post("/programs/{program_id}/groupings", status_code=status.HTTP_201_CREATED)
async def create_grouping(
    program_id: str,
    request: GroupingFields,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    grouping = await grouping_service.create_grouping(
        repo, current_user["id"], program_id, request.model_dump(exclude_unset=True)
    )
    return success_response(data=grouping, message="Grouping created")


@router.get("/programs/{program_id}/groupings")
async def list_groupings(
    program_id: str,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
    status: str | None = Query(None, description="Filter by status"),
):
    groupings = await grouping_service.list_groupings(
        repo, current_user["id"], program_id, status=status
    )
    return success_response(data=groupings)


@router.get("/groupings/{grouping_id}")
async def get_grouping(
    grouping_id: int,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    grouping = await grouping_service.get_grouping(repo, current_user["id"], grouping_id)
    return success_response(data=grouping)


@router.put("/groupings/{grouping_id}")
async def update_grouping(
    grouping_id: int,
    request: GroupingFields,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    grouping = await grouping_service.update_grouping(
        repo, current_user["id"], grouping_id, request.model_dump(exclude_unset=True)
    )
    return success_response(data=grouping)


@router.delete("/groupings/{grouping_id}")
async def retire_grouping(
    grouping_id: int,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    """Soft delete: the grouping is kept with status ``retired``."""
    grouping = await grouping_service.retire_grouping(repo, current_user["id"], grouping_id)
    return success_response(data=grouping)
