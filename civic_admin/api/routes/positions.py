"""Position API routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from civic_admin.api.deps import get_current_user
from civic_admin.core.database import get_repository
from civic_admin.core.repository import Repository
from civic_admin.core.responses import success_response
from civic_admin.services import positions as position_service

router = APIRouter(tags=["Positions"])


class PositionFields(BaseModel):
    """
    Position create/update body.

    Only the fields actually sent are forwarded, so an update can tell an omitted
    field from an explicit null.
    """

    name: str | None = Field(None, max_length=255)
    description: str | None = None
    display_order: int | None = None
    status: str | None = None
    grouping_type_id: int | None = None
    is_elected: bool | None = None
    ballot_grouping_type_id: int | None = None
    is_non_partisan: bool | None = None
    seat_count: int | None = None
    requires_declaration: bool | None = None
    requires_petition: bool | None = None
    petition_signatures: int | None = None
    election_method: str | None = None


@router.post("/programs/{program_id}/positions", status_code=status.HTTP_201_CREATED)
async def create_position(
    program_id: str,
    request: PositionFields,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    position = await position_service.create_position(
        repo, current_user["id"], program_id, request.model_dump(exclude_unset=True)
    )
    return success_response(data=position)


@router.get("/programs/{program_id}/positions")
async def list_positions(
    program_id: str,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    positions = await position_service.list_positions(repo, current_user["id"], program_id)
    return success_response(data=positions)


@router.get("/positions/{position_id}")
async def get_position(
    position_id: int,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    position = await position_service.get_position(repo, current_user["id"], position_id)
    return success_response(data=position)


@router.put("/positions/{position_id}")
async def update_position(
    position_id: int,
    request: PositionFields,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    position = await position_service.update_position(
        repo, current_user["id"], position_id, request.model_dump(exclude_unset=True)
    )
    return success_response(data=position)


@router.delete("/positions/{position_id}")
async def retire_position(
    position_id: int,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    """Soft delete: the position is kept with status ``retired``."""
    position = await position_service.retire_position(repo, current_user["id"], position_id)
    return success_response(data=position)
