"""Voting service functions."""

from datetime import UTC, datetime

from civic_admin.core.exceptions import ConflictError, NotFoundError, ValidationError
from civic_admin.core.logging_config import program_logger
from civic_admin.core.repository import DELEGATES, ELECTION_VOTES, POSITIONS, Repository
from civic_admin.services.authorization import require_program_member
from civic_admin.services.elections import get_election_scope
from civic_admin.services.tally import count_votes, determine_outcome

VOTING_CLOSED_STATUSES = ("closed", "archived")


# ============================================
# VOTE CASTING
# ============================================


def check_can_vote(election: dict, now: datetime | None = None) -> None:
    """Raise ValidationError if the election is not accepting votes at ``now``."""
    if election["status"] in VOTING_CLOSED_STATUSES:
        raise ValidationError(
            f"Election is {election['status']}, not accepting votes",
            {"status": election["status"]},
        )

    now = now or datetime.now(UTC)
    start_time = election.get("start_time")
    end_time = election.get("end_time")
    if start_time is not None and now < start_time:
        raise ValidationError("Election has not started yet")
    if end_time is not None and now > end_time:
        raise ValidationError("Election has ended")


async def _get_delegate_in_year(
    repo: Repository, delegate_id: int, program_year_id: int, label: str
) -> dict:
    delegate = await repo.find_by_id(DELEGATES, delegate_id)
    if delegate is None or delegate["program_year_id"] != program_year_id:
        raise NotFoundError(label)
    return delegate


async def cast_vote(
    repo: Repository,
    user_id: int,
    election_id: int,
    candidate_id: int | None = None,
    voter_id: int | None = None,
    rank: int | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Record one vote by delegate ``voter_id`` for delegate ``candidate_id``.

    Any member of the owning program may submit a vote. Each voter votes once
    per election; on ranked ballots each voter submits one row per rank and may
    neither reuse a rank nor rank the same candidate twice.

    Raises:
        NotFoundError: election, program year or either delegate is missing.
        ForbiddenError: the caller is not a program member.
        ValidationError: missing ids, bad rank, or the election is not open for votes.
        ConflictError: the vote would break the one-vote-per-voter rule.
    """
    election, program_year = await get_election_scope(repo, election_id)
    program_id = program_year["program_id"]
    await require_program_member(repo, user_id, program_id, "votes")

    missing = [
        name
        for name, value in (("candidate_id", candidate_id), ("voter_id", voter_id))
        if not value
    ]
    if missing:
        raise ValidationError(
            "candidate_id and voter_id required", {name: "required" for name in missing}
        )

    ranked = election["method"] == "ranked"
    if rank is not None and rank < 1:
        raise ValidationError("rank must be a positive integer", {"rank": rank})
    if ranked and rank is None:
        raise ValidationError("rank required for ranked elections", {"rank": "required"})

    check_can_vote(election, now)

    await _get_delegate_in_year(repo, candidate_id, program_year["id"], "Candidate delegate")
    await _get_delegate_in_year(repo, voter_id, program_year["id"], "Voter delegate")

    previous = await repo.find_many(
        ELECTION_VOTES, {"election_id": election["id"], "voter_delegate_id": voter_id}
    )
    if previous and not ranked:
        raise ConflictError("Voter has already voted in this election")
    if any(v["vote_rank"] == rank for v in previous):
        raise ConflictError(f"Voter has already used rank {rank} in this election")
    if any(v["candidate_delegate_id"] == candidate_id for v in previous):
        raise ConflictError("Voter has already ranked this candidate")

    vote = await repo.create(
        ELECTION_VOTES,
        {
            "election_id": election["id"],
            "candidate_delegate_id": candidate_id,
            "voter_delegate_id": voter_id,
            "vote_rank": rank,
        },
    )
    program_logger.info(program_id, f"Vote {vote['id']} recorded")
    return vote


# ============================================
# RESULTS
# ============================================


async def tally_results(repo: Repository, election_id: int) -> list[dict]:
    """Vote count per candidate for one election (no authorization check)."""
    votes = await repo.find_many(ELECTION_VOTES, {"election_id": election_id})
    return count_votes(votes)


async def get_election_results(
    repo: Repository, user_id: int, election_id: int
) -> dict:
    """Raw per-candidate counts plus the winners under the election's method (members)."""
    election, program_year = await get_election_scope(repo, election_id)
    await require_program_member(repo, user_id, program_year["program_id"], "results")

    votes = await repo.find_many(
        ELECTION_VOTES, {"election_id": election["id"]}, order_by=["id"]
    )
    position = await repo.find_by_id(POSITIONS, election["position_id"])
    seat_count = (position or {}).get("seat_count") or 1

    return {
        "election_id": election["id"],
        "results": count_votes(votes),
        "total_votes": len(votes),
        "outcome": determine_outcome(election["method"], votes, seat_count),
    }
