"""Elections API routes."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from civic_admin.api.deps import get_current_user
from civic_admin.core.database import get_repository
from civic_admin.core.repository import Repository
from civic_admin.core.responses import success_response
from civic_admin.services import elections as election_service
from civic_admin.services import voting as voting_service

router = APIRouter(tags=["Elections"])


# ============================================
# PYDANTIC MODELS
# ============================================


class ElectionCreate(BaseModel):
    """Create election request model. Missing fields are reported as 400."""

    position_id: int | None = None
    grouping_id: int | None = None
    method: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None


class ElectionUpdate(BaseModel):
    status: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None


class VoteCreate(BaseModel):
    candidate_id: int | None = None
    voter_id: int | None = None
    rank: int | None = Field(None, description="Preference rank, required on ranked ballots")


# ============================================
# ELECTION ENDPOINTS
# ============================================


@router.post(
    "/program-years/{program_year_id}/elections", status_code=status.HTTP_201_CREATED
)
async def create_election(
    program_year_id: int,
    request: ElectionCreate,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    """Schedule an election (program admins)."""
    election = await election_service.create_election(
        repo,
        current_user["id"],
        program_year_id,
        position_id=request.position_id,
        grouping_id=request.grouping_id,
        method=request.method,
        start_time=request.start_time,
        end_time=request.end_time,
    )
    return success_response(data=election, message="Election created")


@router.get("/program-years/{program_year_id}/elections")
async def list_elections(
    program_year_id: int,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    elections = await election_service.list_elections(
        repo, current_user["id"], program_year_id
    )
    return success_response(data=elections)


@router.get("/elections/{election_id}")
async def get_election(
    election_id: int,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    election = await election_service.get_election(repo, current_user["id"], election_id)
    return success_response(data=election)


@router.put("/elections/{election_id}")
async def update_election(
    election_id: int,
    request: ElectionUpdate,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    election = await election_service.update_election(
        repo,
        current_user["id"],
        election_id,
        status=request.status,
        start_time=request.start_time,
        end_time=request.end_time,
    )
    return success_response(data=election)


@router.delete("/elections/{election_id}")
async def archive_election(
    election_id: int,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    """Archive (soft delete) an election."""
    election = await election_service.archive_election(
        repo, current_user["id"], election_id
    )
    return success_response(data=election)


# ============================================
# VOTING ENDPOINTS
# ============================================


@router.post("/elections/{election_id}/vote", status_code=status.HTTP_201_CREATED)
async def cast_vote(
    election_id: int,
    request: VoteCreate,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    vote = await voting_service.cast_vote(
        repo,
        current_user["id"],
        election_id,
        candidate_id=request.candidate_id,
        voter_id=request.voter_id,
        rank=request.rank,
    )
    return success_response(data=vote, message="Vote recorded")


@router.get("/elections/{election_id}/results")
async def get_results(
    election_id: int,
    repo: Annotated[Repository, Depends(get_repository)],
    current_user: Annotated[dict, Depends(get_current_user)],
):
    """Vote counts per candidate and the winners under the election's method."""
    results = await voting_service.get_election_results(
        repo, current_user["id"], election_id
    )
    return success_response(data=results)
