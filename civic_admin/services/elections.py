"""Elections service functions."""

from datetime import UTC, datetime
from typing import Any

from civic_admin.core.exceptions import NotFoundError, ValidationError
from civic_admin.core.logging_config import program_logger
from civic_admin.core.repository import (
    ELECTIONS,
    GROUPINGS,
    POSITIONS,
    PROGRAM_YEARS,
    Repository,
)
from civic_admin.services.authorization import (
    require_program_admin,
    require_program_member,
)
from civic_admin.services.positions import ELECTION_METHODS

ELECTION_STATUSES = ("scheduled", "open", "closed", "archived")
ARCHIVED = "archived"


# ============================================
# HELPERS
# ============================================


def parse_timestamp(value: datetime | str | None, field: str) -> datetime | None:
    """Accept a datetime or an ISO-8601 string; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            raise ValidationError(
                f"{field} must be an ISO-8601 timestamp", {field: value}
            ) from None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value


def _check_window(start_time: datetime | None, end_time: datetime | None) -> None:
    if start_time is not None and end_time is not None and start_time >= end_time:
        raise ValidationError(
            "start_time must be before end_time",
            {"start_time": start_time.isoformat(), "end_time": end_time.isoformat()},
        )


async def get_program_year_or_404(repo: Repository, program_year_id: int) -> dict:
    program_year = await repo.find_by_id(PROGRAM_YEARS, program_year_id)
    if program_year is None:
        raise NotFoundError("Program year")
    return program_year


async def get_election_scope(repo: Repository, election_id: int) -> tuple[dict, dict]:
    """Resolve an election and the program year that owns it."""
    election = await repo.find_by_id(ELECTIONS, election_id)
    if election is None:
        raise NotFoundError("Election")
    program_year = await repo.find_by_id(PROGRAM_YEARS, election["program_year_id"])
    if program_year is None:
        raise NotFoundError("Program year")
    return election, program_year


# ============================================
# ELECTION LIFECYCLE
# ============================================


async def create_election(
    repo: Repository,
    user_id: int,
    program_year_id: int,
    position_id: int | None = None,
    grouping_id: int | None = None,
    method: str | None = None,
    start_time: datetime | str | None = None,
    end_time: datetime | str | None = None,
) -> dict:
    """
    Schedule an election for one elected position within one grouping.

    Only admins of the program that owns the program year may create elections.
    The election starts in status ``scheduled``.
    """
    program_year = await get_program_year_or_404(repo, program_year_id)
    program_id = program_year["program_id"]
    await require_program_admin(repo, user_id, program_id, "elections")

    missing = [
        name
        for name, value in (
            ("position_id", position_id),
            ("grouping_id", grouping_id),
            ("method", method),
        )
        if not value
    ]
    if missing:
        raise ValidationError(
            "position_id, grouping_id and method required",
            {name: "required" for name in missing},
        )

    if method not in ELECTION_METHODS:
        raise ValidationError(
            "Invalid method. Must be plurality, majority, or ranked.", {"method": method}
        )

    start = parse_timestamp(start_time, "start_time")
    end = parse_timestamp(end_time, "end_time")
    _check_window(start, end)

    position = await repo.find_by_id(POSITIONS, position_id)
    if position is None or position["program_id"] != program_id:
        raise NotFoundError("Position")
    if not position.get("is_elected"):
        raise ValidationError(
            "Elections can only be held for elected positions",
            {"position_id": position_id},
        )
    if position.get("status") == "retired":
        raise ValidationError("Position is retired", {"position_id": position_id})

    grouping = await repo.find_by_id(GROUPINGS, grouping_id)
    if grouping is None or grouping["program_id"] != program_id:
        raise NotFoundError("Grouping")
    if grouping.get("status") == "retired":
        raise ValidationError("Grouping is retired", {"grouping_id": grouping_id})

    election = await repo.create(
        ELECTIONS,
        {
            "program_year_id": program_year["id"],
            "position_id": position_id,
            "grouping_id": grouping_id,
            "method": method,
            "start_time": start,
            "end_time": end,
            "status": "scheduled",
        },
    )
    program_logger.info(program_id, f"Election {election['id']} created")
    return election


async def list_elections(
    repo: Repository, user_id: int, program_year_id: int
) -> list[dict]:
    """List every election of a program year, archived ones included (members)."""
    program_year = await get_program_year_or_404(repo, program_year_id)
    await require_program_member(repo, user_id, program_year["program_id"], "elections")
    return await repo.find_many(
        ELECTIONS, {"program_year_id": program_year["id"]}, order_by=["id"]
    )


async def get_election(repo: Repository, user_id: int, election_id: int) -> dict:
    election, program_year = await get_election_scope(repo, election_id)
    await require_program_member(repo, user_id, program_year["program_id"], "elections")
    return election


async def update_election(
    repo: Repository,
    user_id: int,
    election_id: int,
    status: str | None = None,
    start_time: datetime | str | None = None,
    end_time: datetime | str | None = None,
) -> dict:
    """Change an election's status and/or schedule. Omitted fields are left as they are."""
    election, program_year = await get_election_scope(repo, election_id)
    program_id = program_year["program_id"]
    await require_program_admin(repo, user_id, program_id, "elections")

    updates: dict[str, Any] = {}
    if status is not None:
        if status not in ELECTION_STATUSES:
            raise ValidationError(
                f"Invalid status. Must be one of: {', '.join(ELECTION_STATUSES)}",
                {"status": status},
            )
        updates["status"] = status

    start = parse_timestamp(start_time, "start_time")
    end = parse_timestamp(end_time, "end_time")
    if start is not None:
        updates["start_time"] = start
    if end is not None:
        updates["end_time"] = end
    _check_window(
        start if start is not None else election.get("start_time"),
        end if end is not None else election.get("end_time"),
    )

    updated = await repo.update(ELECTIONS, election["id"], updates)
    if updated is None:
        raise NotFoundError("Election")
    program_logger.info(program_id, f"Election {election['id']} updated")
    return updated


async def archive_election(repo: Repository, user_id: int, election_id: int) -> dict:
    """
    Soft delete an election by setting its status to ``archived``.

    Archiving an archived election succeeds and returns it unchanged in status.
    """
    election, program_year = await get_election_scope(repo, election_id)
    program_id = program_year["program_id"]
    await require_program_admin(repo, user_id, program_id, "elections")

    updated = await repo.update(ELECTIONS, election["id"], {"status": ARCHIVED})
    if updated is None:
        raise NotFoundError("Election")
    program_logger.info(program_id, f"Election {election['id']} archived")
    return updated
