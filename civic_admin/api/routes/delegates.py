"""Delegate API routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from civic_admin.api.deps import get_current_user
from civic_admin.core.database import get_repository
from civic_admin.core.repository import Repository
from civic_admin.core.responses import success_response
from civic_admin.services import delegates as delegate_service

router = APIRouter(tags=["Delegates"])


class DelegateFields(BaseModel):
    """
    Delegate create/update body.

    Missing required fields are reported by the service as 400, so every field
    is optional here.
    """

    first_name: str | None = Field(None, max_length=255)
    last_name: str | None = Field(None, max_length=255)
    email: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=50)
    user_id: int | None = None
    grouping_id: int | None = None
    party_id: int | None = None
    status: str | None = None


@router.post(
    "/program-years/{program_year_id}/delegates", status_code=status.HTTP_201_CREATED
)
async def create_delegate(
    program_year_id: int,
    request: DelegateFields,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    delegate = await delegate_service.create_delegate(
        repo, current_user["id"], program_year_id, request.model_dump(exclude_unset=True)
    )
    return success_response(data=delegate, message="Delegate created")


@router.get("/program-years/{program_year_id}/delegates")
async def list_delegates(
    program_year_id: int,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
    grouping_id: int | None = Query(None, description="Filter by grouping"),
    status: str | None = Query(None, description="Filter by status"),
):
    delegates = await delegate_service.list_delegates(
        repo, current_user["id"], program_year_id, grouping_id=grouping_id, status=status
    )
    return success_response(data=delegates)


@router.get("/delegates/{delegate_id}")
async def get_delegate(
    delegate_id: int,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    delegate = await delegate_service.get_delegate(repo, current_user["id"], delegate_id)
    return success_response(data=delegate)


@router.put("/delegates/{delegate_id}")
async def update_delegate(
    delegate_id: int,
    request: DelegateFields,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    delegate = await delegate_service.update_delegate(
        repo, current_user["id"], delegate_id, request.model_dump(exclude_unset=True)
    )
    return success_response(data=delegate)


@router.delete("/delegates/{delegate_id}")
async def withdraw_delegate(
    delegate_id: int,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    """Soft delete: the delegate is kept with status ``withdrawn``."""
    delegate = await delegate_service.withdraw_delegate(repo, current_user["id"], delegate_id)
    return success_response(data=delegate)
