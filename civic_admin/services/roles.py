"""Program role service functions."""

from collections.abc import Iterable, Mapping
from typing import Any

from civic_admin.core.exceptions import ConflictError, NotFoundError, ValidationError
from civic_admin.core.logging_config import program_logger
from civic_admin.core.repository import (
    PROGRAM_ASSIGNMENTS,
    PROGRAM_ROLE_PERMISSIONS,
    PROGRAM_ROLES,
    USERS,
    Repository,
)
from civic_admin.services.authorization import (
    ADMIN_ROLE,
    get_program_or_404,
    require_permission,
)
from civic_admin.services.permissions import (
    DEFAULT_ROLES,
    Permission,
    parse_permissions,
)

ROLE_UPDATE_FIELDS = frozenset(
    {"name", "description", "permissions", "is_active", "display_order"}
)


# ============================================
# HELPERS
# ============================================


async def _role_permissions(repo: Repository, role_id: int) -> list[str]:
    rows = await repo.find_many(PROGRAM_ROLE_PERMISSIONS, {"role_id": role_id})
    return sorted(row["permission"] for row in rows)


async def _replace_permissions(
    repo: Repository, role_id: int, permissions: Iterable[Permission]
) -> None:
    await repo.delete_where(PROGRAM_ROLE_PERMISSIONS, {"role_id": role_id})
    for permission in sorted(permissions, key=lambda p: p.value):
        await repo.create(
            PROGRAM_ROLE_PERMISSIONS, {"role_id": role_id, "permission": permission.value}
        )


def _role_to_dict(role: dict, permissions: list[str]) -> dict[str, Any]:
    return {
        "id": role["id"],
        "name": role["name"],
        "description": role.get("description"),
        "is_default": role.get("is_default", False),
        "is_active": role.get("is_active", True),
        "display_order": role.get("display_order", 0),
        "permissions": permissions,
    }


async def _get_role_in_program(repo: Repository, program_id: str, role_id: int) -> dict:
    role = await repo.find_first(PROGRAM_ROLES, {"id": role_id, "program_id": program_id})
    if role is None:
        raise NotFoundError("Role")
    return role


async def _check_name_free(repo: Repository, program_id: str, name: str) -> None:
    if await repo.find_first(PROGRAM_ROLES, {"program_id": program_id, "name": name}):
        raise ConflictError("Role with this name already exists")


async def seed_default_roles(repo: Repository, program_id: str) -> list[dict]:
    """Create the DEFAULT_ROLES for a new program."""
    created = []
    for template in DEFAULT_ROLES:
        role = await repo.create(
            PROGRAM_ROLES,
            {
                "program_id": program_id,
                "name": template["name"],
                "description": template["description"],
                "is_default": True,
                "is_active": True,
                "display_order": template["display_order"],
            },
        )
        await _replace_permissions(repo, role["id"], template["permissions"])
        created.append(role)
    return created


# ============================================
# ROLE MANAGEMENT
# ============================================


async def list_roles(repo: Repository, user_id: int, program_id: str) -> list[dict]:
    await get_program_or_404(repo, program_id)
    await require_permission(repo, user_id, program_id, Permission.PROGRAM_CONFIG_ROLES)

    roles = await repo.find_many(
        PROGRAM_ROLES, {"program_id": program_id}, order_by=["display_order", "id"]
    )
    result = []
    for role in roles:
        entry = _role_to_dict(role, await _role_permissions(repo, role["id"]))
        entry["assigned_count"] = await repo.count(
            PROGRAM_ASSIGNMENTS, {"program_role_id": role["id"]}
        )
        result.append(entry)

    program_logger.info(program_id, f"Listed {len(roles)} roles")
    return result


async def create_role(
    repo: Repository,
    user_id: int,
    program_id: str,
    name: str | None = None,
    description: str | None = None,
    permissions: list[str] | None = None,
) -> dict:
    """Create a custom role, placed after every existing role."""
    await get_program_or_404(repo, program_id)
    await require_permission(repo, user_id, program_id, Permission.PROGRAM_CONFIG_ROLES)

    if not name:
        raise ValidationError("name required", {"name": "required"})
    granted = parse_permissions(permissions or [])
    await _check_name_free(repo, program_id, name)

    existing = await repo.find_many(PROGRAM_ROLES, {"program_id": program_id})
    display_order = max((r.get("display_order") or 0 for r in existing), default=0) + 1

    role = await repo.create(
        PROGRAM_ROLES,
        {
            "program_id": program_id,
            "name": name,
            "description": description or None,
            "is_default": False,
            "is_active": True,
            "display_order": display_order,
        },
    )
    await _replace_permissions(repo, role["id"], granted)

    program_logger.info(program_id, f'Created role "{name}"')
    return _role_to_dict(role, sorted(p.value for p in granted))


async def update_role(
    repo: Repository,
    user_id: int,
    program_id: str,
    role_id: int,
    data: Mapping[str, Any],
) -> dict:
    """
    Update a role. Omitted fields are left alone; a ``permissions`` list replaces
    the role's whole permission set.
    """
    await get_program_or_404(repo, program_id)
    await require_permission(repo, user_id, program_id, Permission.PROGRAM_CONFIG_ROLES)
    role = await _get_role_in_program(repo, program_id, role_id)

    unknown = set(data) - ROLE_UPDATE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown role field(s): {', '.join(sorted(unknown))}")

    granted = None
    if data.get("permissions") is not None:
        granted = parse_permissions(data["permissions"])

    name = data.get("name")
    if "name" in data and not name:
        raise ValidationError("name cannot be empty", {"name": "required"})
    if name and name != role["name"]:
        await _check_name_free(repo, program_id, name)

    updates = {
        key: data[key]
        for key in ("name", "description", "is_active", "display_order")
        if key in data and (data[key] is not None or key == "description")
    }
    updated = await repo.update(PROGRAM_ROLES, role["id"], updates)
    if updated is None:
        raise NotFoundError("Role")
    if granted is not None:
        await _replace_permissions(repo, role["id"], granted)

    program_logger.info(program_id, f'Updated role "{updated["name"]}"')
    return _role_to_dict(updated, await _role_permissions(repo, role["id"]))


async def delete_role(
    repo: Repository, user_id: int, program_id: str, role_id: int
) -> dict:
    """Delete a role nobody holds. Assigned roles must be reassigned first."""
    await get_program_or_404(repo, program_id)
    await require_permission(repo, user_id, program_id, Permission.PROGRAM_CONFIG_ROLES)
    role = await _get_role_in_program(repo, program_id, role_id)

    assigned = await repo.count(PROGRAM_ASSIGNMENTS, {"program_role_id": role["id"]})
    if assigned:
        raise ConflictError(
            f"Cannot delete role with {assigned} assigned user(s). Reassign them first.",
            {"assigned_count": assigned},
        )

    await repo.delete_where(PROGRAM_ROLE_PERMISSIONS, {"role_id": role["id"]})
    await repo.delete_where(PROGRAM_ROLES, {"id": role["id"]})

    program_logger.info(program_id, f'Deleted role "{role["name"]}"')
    return {"deleted_role": role["name"]}


async def assign_role_to_user(
    repo: Repository,
    user_id: int,
    program_id: str,
    target_user_id: int,
    role_id: int | None,
) -> dict:
    """
    Attach a program role to a user's assignment, or detach it with ``role_id=None``.

    Admin assignments hold every permission already and cannot be changed here.
    """
    await get_program_or_404(repo, program_id)
    await require_permission(repo, user_id, program_id, Permission.PROGRAM_CONFIG_ROLES)

    assignment = await repo.find_first(
        PROGRAM_ASSIGNMENTS, {"user_id": target_user_id, "program_id": program_id}
    )
    if assignment is None:
        raise NotFoundError("Assignment", "User is not assigned to this program")
    if assignment["role"] == ADMIN_ROLE:
        raise ValidationError("Cannot change role for admin users")

    role = None
    if role_id:
        role = await _get_role_in_program(repo, program_id, role_id)

    updated = await repo.update(
        PROGRAM_ASSIGNMENTS, assignment["id"], {"program_role_id": role["id"] if role else None}
    )
    if updated is None:
        raise NotFoundError("Assignment")

    target = await repo.find_by_id(USERS, target_user_id)
    role_name = role["name"] if role else None
    program_logger.info(
        program_id,
        f'Assigned role "{role_name or "None"}" to user {target["email"] if target else target_user_id}',
    )
    return {
        "user_id": target_user_id,
        "program_id": program_id,
        "role_id": updated["program_role_id"],
        "role_name": role_name,
    }
