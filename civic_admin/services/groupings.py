"""Grouping service functions.

Groupings are the program's geographic units, such as cities and counties,
nested through ``parent_grouping_id``. Elections are held within one grouping
and delegates may belong to one.
"""

from collections.abc import Mapping
from typing import Any

from civic_admin.core.exceptions import NotFoundError, ValidationError
from civic_admin.core.logging_config import program_logger
from civic_admin.core.repository import GROUPINGS, Repository
from civic_admin.services.authorization import (
    get_program_or_404,
    require_program_admin,
    require_program_member,
)

GROUPING_STATUSES = ("active", "retired")
GROUPING_FIELDS = frozenset(
    {"grouping_type_id", "parent_grouping_id", "name", "display_order", "notes", "status"}
)


async def get_grouping_or_404(repo: Repository, grouping_id: int) -> dict:
    grouping = await repo.find_by_id(GROUPINGS, grouping_id)
    if grouping is None:
        raise NotFoundError("Grouping")
    return grouping


async def _check_parent(
    repo: Repository, program_id: str, parent_id: int | None, grouping_id: int | None = None
) -> None:
    if parent_id is None:
        return
    if parent_id == grouping_id:
        raise ValidationError(
            "A grouping cannot be its own parent", {"parent_grouping_id": parent_id}
        )
    parent = await repo.find_by_id(GROUPINGS, parent_id)
    if parent is None or parent["program_id"] != program_id:
        raise NotFoundError("Parent grouping")


def _check_fields(data: Mapping[str, Any]) -> None:
    unknown = set(data) - GROUPING_FIELDS
    if unknown:
        raise ValidationError(
            f"Unknown grouping field(s): {', '.join(sorted(unknown))}",
            {field: "unknown field" for field in sorted(unknown)},
        )
    if "status" in data and data["status"] not in GROUPING_STATUSES:
        raise ValidationError(
            f"Invalid status. Must be one of: {', '.join(GROUPING_STATUSES)}",
            {"status": data["status"]},
        )


async def create_grouping(
    repo: Repository, user_id: int, program_id: str, data: Mapping[str, Any]
) -> dict:
    """Create a grouping in a program (program admins only)."""
    await get_program_or_404(repo, program_id)
    await require_program_admin(repo, user_id, program_id, "groupings")

    _check_fields(data)
    missing = [
        name for name in ("grouping_type_id", "name") if not data.get(name)
    ]
    if missing:
        raise ValidationError(
            "grouping_type_id and name required", {name: "required" for name in missing}
        )
    await _check_parent(repo, program_id, data.get("parent_grouping_id"))

    fields = dict(data)
    if fields.get("display_order") is None:
        fields["display_order"] = 0
    fields["status"] = "active"
    fields["program_id"] = program_id

    grouping = await repo.create(GROUPINGS, fields)
    program_logger.info(program_id, f"Grouping {grouping['id']} created")
    return grouping


async def list_groupings(
    repo: Repository, user_id: int, program_id: str, status: str | None = None
) -> list[dict]:
    """List a program's groupings in display order, optionally by status (members)."""
    await get_program_or_404(repo, program_id)
    await require_program_member(repo, user_id, program_id, "groupings")

    filters: dict[str, Any] = {"program_id": program_id}
    if status is not None:
        filters["status"] = status
    return await repo.find_many(GROUPINGS, filters, order_by=["display_order", "id"])


async def get_grouping(repo: Repository, user_id: int, grouping_id: int) -> dict:
    grouping = await get_grouping_or_404(repo, grouping_id)
    await require_program_member(repo, user_id, grouping["program_id"], "groupings")
    return grouping


async def update_grouping(
    repo: Repository, user_id: int, grouping_id: int, data: Mapping[str, Any]
) -> dict:
    """Update a grouping (program admins only). Omitted fields are left alone."""
    grouping = await get_grouping_or_404(repo, grouping_id)
    program_id = grouping["program_id"]
    await require_program_admin(repo, user_id, program_id, "groupings")

    _check_fields(data)
    for name in ("name", "grouping_type_id"):
        if name in data and not data[name]:
            raise ValidationError(f"{name} cannot be empty", {name: "required"})
    if "parent_grouping_id" in data:
        await _check_parent(repo, program_id, data["parent_grouping_id"], grouping["id"])

    updates = dict(data)
    if "display_order" in updates and updates["display_order"] is None:
        del updates["display_order"]

    updated = await repo.update(GROUPINGS, grouping["id"], updates)
    if updated is None:
        raise NotFoundError("Grouping")
    program_logger.info(program_id, f"Grouping {grouping['id']} updated")
    return updated


async def retire_grouping(repo: Repository, user_id: int, grouping_id: int) -> dict:
    """Soft delete: the grouping stays readable with status ``retired``."""
    grouping = await get_grouping_or_404(repo, grouping_id)
    program_id = grouping["program_id"]
    await require_program_admin(repo, user_id, program_id, "groupings")

    updated = await repo.update(GROUPINGS, grouping["id"], {"status": "retired"})
    if updated is None:
        raise NotFoundError("Grouping")
    program_logger.info(program_id, f"Grouping {grouping['id']} retired")
    return updated
