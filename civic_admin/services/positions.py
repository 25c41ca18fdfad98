"""Position service functions."""

from collections.abc import Mapping
from typing import Any

from civic_admin.core.exceptions import NotFoundError, ValidationError
from civic_admin.core.logging_config import program_logger
from civic_admin.core.repository import POSITIONS, Repository
from civic_admin.services.authorization import (
    get_program_or_404,
    require_program_admin,
    require_program_member,
)

ELECTION_METHODS = ("plurality", "majority", "ranked")
POSITION_STATUSES = ("active", "retired")

# Fields a caller may set on a position
POSITION_FIELDS = frozenset(
    {
        "name",
        "description",
        "display_order",
        "status",
        "grouping_type_id",
        "is_elected",
        "ballot_grouping_type_id",
        "is_non_partisan",
        "seat_count",
        "requires_declaration",
        "requires_petition",
        "petition_signatures",
        "election_method",
    }
)

# Inert values forced onto every appointed (not elected) position
APPOINTED_DEFAULTS: dict[str, Any] = {
    "ballot_grouping_type_id": None,
    "is_non_partisan": False,
    "requires_declaration": False,
    "requires_petition": False,
    "petition_signatures": None,
    "election_method": None,
}


# ============================================
# FIELD VALIDATION
# ============================================


def validate_position_fields(
    data: Mapping[str, Any], prior: Mapping[str, Any] | None = None
) -> dict[str, Any]:
    """
    Normalize a position payload so election-only settings never contradict ``is_elected``.

    ``data`` holds only the fields the caller actually sent. ``prior`` is the
    persisted position when updating and ``None`` when creating; its values stand
    in for every field the caller left out.

    Rules:
        - ``election_method``, when given and not null, must be one of ELECTION_METHODS.
        - ``is_elected`` defaults to False on create and to the persisted value on update.
        - An appointed position gets APPOINTED_DEFAULTS whatever the caller sent.
        - An elected position's ballot grouping type falls back to its grouping
          type; ``petition_signatures`` survives only while a petition is required.
        - ``seat_count`` defaults to 1.

    Returns the full field set to persist.

    Raises:
        ValidationError: before anything is written.
    """
    unknown = set(data) - POSITION_FIELDS
    if unknown:
        raise ValidationError(
            f"Unknown position field(s): {', '.join(sorted(unknown))}",
            {field: "unknown field" for field in sorted(unknown)},
        )

    data = dict(data)
    if data.get("election_method") == "":
        data["election_method"] = None

    method = data.get("election_method")
    if method is not None and method not in ELECTION_METHODS:
        raise ValidationError(
            "Invalid election_method. Must be plurality, majority, or ranked.",
            {"election_method": method},
        )

    creating = prior is None
    prior = dict(prior or {})

    if creating or "name" in data:
        name = data.get("name")
        if name is None or not str(name).strip():
            raise ValidationError("name required", {"name": "required"})

    if "status" in data and data["status"] not in POSITION_STATUSES:
        raise ValidationError(
            f"Invalid status. Must be one of: {', '.join(POSITION_STATUSES)}",
            {"status": data["status"]},
        )

    merged = {key: prior[key] for key in POSITION_FIELDS if key in prior}
    merged.update(data)

    seat_count = merged.get("seat_count")
    if seat_count is None:
        seat_count = 1
    if seat_count < 1:
        raise ValidationError("seat_count must be at least 1", {"seat_count": seat_count})
    merged["seat_count"] = seat_count

    if data.get("is_elected") is not None:
        is_elected = bool(data["is_elected"])
    else:
        is_elected = bool(prior.get("is_elected", False))
    merged["is_elected"] = is_elected

    if not is_elected:
        merged.update(APPOINTED_DEFAULTS)
        return merged

    ballot_grouping_type_id = merged.get("ballot_grouping_type_id")
    if ballot_grouping_type_id is None:
        ballot_grouping_type_id = merged.get("grouping_type_id")
    merged["ballot_grouping_type_id"] = ballot_grouping_type_id

    merged["is_non_partisan"] = bool(merged.get("is_non_partisan") or False)
    merged["requires_declaration"] = bool(merged.get("requires_declaration") or False)
    merged["requires_petition"] = bool(merged.get("requires_petition") or False)
    if not merged["requires_petition"]:
        merged["petition_signatures"] = None
    signatures = merged.get("petition_signatures")
    if signatures is not None and signatures < 0:
        raise ValidationError(
            "petition_signatures cannot be negative",
            {"petition_signatures": signatures},
        )
    merged["election_method"] = merged.get("election_method")

    return merged


# ============================================
# POSITION OPERATIONS
# ============================================


async def get_position_or_404(repo: Repository, position_id: int) -> dict:
    position = await repo.find_by_id(POSITIONS, position_id)
    if position is None:
        raise NotFoundError("Position")
    return position


async def create_position(
    repo: Repository, user_id: int, program_id: str, data: Mapping[str, Any]
) -> dict:
    """Create a position in a program (program admins only)."""
    await get_program_or_404(repo, program_id)
    await require_program_admin(repo, user_id, program_id, "positions")

    fields = validate_position_fields(data)
    fields.setdefault("display_order", 0)
    fields["status"] = "active"
    fields["program_id"] = program_id

    position = await repo.create(POSITIONS, fields)
    program_logger.info(
        program_id, f'Created position "{position["name"]}" (id: {position["id"]})'
    )
    return position


async def list_positions(repo: Repository, user_id: int, program_id: str) -> list[dict]:
    """List a program's positions in display order (program members)."""
    await get_program_or_404(repo, program_id)
    await require_program_member(repo, user_id, program_id, "positions")
    return await repo.find_many(
        POSITIONS, {"program_id": program_id}, order_by=["display_order", "id"]
    )


async def get_position(repo: Repository, user_id: int, position_id: int) -> dict:
    position = await get_position_or_404(repo, position_id)
    await require_program_member(repo, user_id, position["program_id"], "positions")
    return position


async def update_position(
    repo: Repository, user_id: int, position_id: int, data: Mapping[str, Any]
) -> dict:
    """
    Update a position (program admins only).

    Omitted fields keep their persisted values, ``is_elected`` included. Turning
    a position into an appointed one clears every election-only setting.
    """
    position = await get_position_or_404(repo, position_id)
    program_id = position["program_id"]
    await require_program_admin(repo, user_id, program_id, "positions")

    fields = validate_position_fields(data, prior=position)

    updated = await repo.update(POSITIONS, position_id, fields)
    if updated is None:
        raise NotFoundError("Position")
    program_logger.info(
        program_id, f'Updated position "{updated["name"]}" (id: {position_id})'
    )
    return updated


async def retire_position(repo: Repository, user_id: int, position_id: int) -> dict:
    """Soft delete: the position stays readable with status ``retired``."""
    position = await get_position_or_404(repo, position_id)
    program_id = position["program_id"]
    await require_program_admin(repo, user_id, program_id, "positions")

    updated = await repo.update(POSITIONS, position_id, {"status": "retired"})
    if updated is None:
        raise NotFoundError("Position")
    program_logger.info(
        program_id, f'Retired position "{position["name"]}" (id: {position_id})'
    )
    return updated
