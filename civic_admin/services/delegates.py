"""Delegate service functions."""

from collections.abc import Mapping
from typing import Any

from civic_admin.core.exceptions import NotFoundError, ValidationError
from civic_admin.core.logging_config import program_logger
from civic_admin.core.repository import DELEGATES, GROUPINGS, USERS, Repository
from civic_admin.services.authorization import require_program_admin, require_program_member
from civic_admin.services.elections import get_program_year_or_404

DELEGATE_STATUSES = ("active", "withdrawn")
DELEGATE_FIELDS = frozenset(
    {
        "first_name",
        "last_name",
        "email",
        "phone",
        "user_id",
        "grouping_id",
        "party_id",
        "status",
    }
)
REQUIRED_FIELDS = ("first_name", "last_name", "email")


async def get_delegate_scope(repo: Repository, delegate_id: int) -> tuple[dict, dict]:
    """Resolve a delegate and the program year it belongs to."""
    delegate = await repo.find_by_id(DELEGATES, delegate_id)
    if delegate is None:
        raise NotFoundError("Delegate")
    program_year = await get_program_year_or_404(repo, delegate["program_year_id"])
    return delegate, program_year


async def _check_references(
    repo: Repository, program_id: str, data: Mapping[str, Any]
) -> None:
    grouping_id = data.get("grouping_id")
    if grouping_id is not None:
        grouping = await repo.find_by_id(GROUPINGS, grouping_id)
        if grouping is None or grouping["program_id"] != program_id:
            raise NotFoundError("Grouping")

    user_id = data.get("user_id")
    if user_id is not None and await repo.find_by_id(USERS, user_id) is None:
        raise NotFoundError("User")


def _check_fields(data: Mapping[str, Any]) -> None:
    unknown = set(data) - DELEGATE_FIELDS
    if unknown:
        raise ValidationError(
            f"Unknown delegate field(s): {', '.join(sorted(unknown))}",
            {field: "unknown field" for field in sorted(unknown)},
        )
    if "status" in data and data["status"] not in DELEGATE_STATUSES:
        raise ValidationError(
            f"Invalid status. Must be one of: {', '.join(DELEGATE_STATUSES)}",
            {"status": data["status"]},
        )


async def create_delegate(
    repo: Repository, user_id: int, program_year_id: int, data: Mapping[str, Any]
) -> dict:
    """
    Register a delegate for a program year (program admins only).

    ``first_name``, ``last_name`` and ``email`` are required. A ``grouping_id``
    must name a grouping of the same program.
    """
    program_year = await get_program_year_or_404(repo, program_year_id)
    program_id = program_year["program_id"]
    await require_program_admin(repo, user_id, program_id, "delegates")

    _check_fields(data)
    missing = [name for name in REQUIRED_FIELDS if not data.get(name)]
    if missing:
        raise ValidationError(
            "first_name, last_name and email required", {name: "required" for name in missing}
        )
    await _check_references(repo, program_id, data)

    fields = dict(data)
    fields["program_year_id"] = program_year["id"]
    fields["status"] = "active"

    delegate = await repo.create(DELEGATES, fields)
    program_logger.info(program_id, f"Delegate {delegate['id']} created")
    return delegate


async def list_delegates(
    repo: Repository,
    user_id: int,
    program_year_id: int,
    grouping_id: int | None = None,
    status: str | None = None,
) -> list[dict]:
    """List a program year's delegates by name (members)."""
    program_year = await get_program_year_or_404(repo, program_year_id)
    await require_program_member(repo, user_id, program_year["program_id"], "delegates")

    filters: dict[str, Any] = {"program_year_id": program_year["id"]}
    if grouping_id is not None:
        filters["grouping_id"] = grouping_id
    if status is not None:
        filters["status"] = status
    return await repo.find_many(
        DELEGATES, filters, order_by=["last_name", "first_name", "id"]
    )


async def get_delegate(repo: Repository, user_id: int, delegate_id: int) -> dict:
    delegate, program_year = await get_delegate_scope(repo, delegate_id)
    await require_program_member(repo, user_id, program_year["program_id"], "delegates")
    return delegate


async def update_delegate(
    repo: Repository, user_id: int, delegate_id: int, data: Mapping[str, Any]
) -> dict:
    """Update a delegate (program admins only). Omitted fields are left alone."""
    delegate, program_year = await get_delegate_scope(repo, delegate_id)
    program_id = program_year["program_id"]
    await require_program_admin(repo, user_id, program_id, "delegates")

    _check_fields(data)
    for name in REQUIRED_FIELDS:
        if name in data and not data[name]:
            raise ValidationError(f"{name} cannot be empty", {name: "required"})
    await _check_references(repo, program_id, data)

    updated = await repo.update(DELEGATES, delegate["id"], data)
    if updated is None:
        raise NotFoundError("Delegate")
    program_logger.info(program_id, f"Delegate {delegate['id']} updated")
    return updated


async def withdraw_delegate(repo: Repository, user_id: int, delegate_id: int) -> dict:
    """Soft delete: the delegate stays on record with status ``withdrawn``."""
    delegate, program_year = await get_delegate_scope(repo, delegate_id)
    program_id = program_year["program_id"]
    await require_program_admin(repo, user_id, program_id, "delegates")

    updated = await repo.update(DELEGATES, delegate["id"], {"status": "withdrawn"})
    if updated is None:
        raise NotFoundError("Delegate")
    program_logger.info(program_id, f"Delegate {delegate['id']} withdrawn")
    return updated
