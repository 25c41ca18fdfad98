"""Program service functions."""

from typing import Any
from uuid import uuid4

from civic_admin.core.exceptions import ConflictError, NotFoundError, ValidationError
from civic_admin.core.logging_config import program_logger
from civic_admin.core.repository import PROGRAM_ASSIGNMENTS, PROGRAMS, USERS, Repository
from civic_admin.services.authorization import (
    ADMIN_ROLE,
    get_program_or_404,
    require_program_admin,
)
from civic_admin.services.roles import seed_default_roles


async def create_program(
    repo: Repository,
    user_id: int,
    name: str | None = None,
    year: int | None = None,
    config: dict[str, Any] | None = None,
) -> dict:
    """
    Create a program owned by the caller.

    The caller becomes the program's admin and the default roles are seeded.
    """
    if not name or not year:
        raise ValidationError("name and year required")

    program = await repo.create(
        PROGRAMS,
        {
            "id": uuid4().hex,
            "name": name,
            "year": year,
            "config": config,
            "status": "active",
            "created_by": user_id,
        },
    )
    await repo.create(
        PROGRAM_ASSIGNMENTS,
        {"user_id": user_id, "program_id": program["id"], "role": ADMIN_ROLE},
    )
    await seed_default_roles(repo, program["id"])

    program_logger.info(program["id"], f"Program created by user {user_id}")
    return {
        "id": program["id"],
        "name": program["name"],
        "year": program["year"],
        "created_by": user_id,
        "role_assigned": ADMIN_ROLE,
    }


async def assign_user_to_program(
    repo: Repository,
    user_id: int,
    program_id: str,
    target_user_id: int | None = None,
    role: str | None = None,
) -> dict:
    """Give a user their (single) assignment to a program. Program admins only."""
    await get_program_or_404(repo, program_id)
    await require_program_admin(repo, user_id, program_id, "program users")

    if not target_user_id or not role:
        raise ValidationError("user_id and role required")

    if await repo.find_by_id(USERS, target_user_id) is None:
        raise NotFoundError("User")

    existing = await repo.find_first(
        PROGRAM_ASSIGNMENTS, {"user_id": target_user_id, "program_id": program_id}
    )
    if existing is not None:
        raise ConflictError("User is already assigned to this program")

    await repo.create(
        PROGRAM_ASSIGNMENTS,
        {"user_id": target_user_id, "program_id": program_id, "role": role},
    )
    program_logger.info(program_id, f"User {target_user_id} assigned role {role}")
    return {
        "program_id": program_id,
        "user_id": target_user_id,
        "role": role,
        "status": "assigned",
    }


async def list_program_users(repo: Repository, user_id: int, program_id: str) -> list[dict]:
    await get_program_or_404(repo, program_id)
    await require_program_admin(repo, user_id, program_id, "program users")

    assignments = await repo.find_many(
        PROGRAM_ASSIGNMENTS, {"program_id": program_id}, order_by=["id"]
    )
    program_logger.info(program_id, "Listed users for program")
    return [
        {
            "user_id": a["user_id"],
            "role": a["role"],
            "program_role_id": a.get("program_role_id"),
        }
        for a in assignments
    ]
