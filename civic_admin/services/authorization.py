"""
Program-scoped authorization.

A user's standing in a program comes from their single ProgramAssignment:

- role ``"admin"`` (exact, case-sensitive) makes them a program admin holding
  every permission;
- any other assignment makes them a member, holding exactly the permissions of
  the ProgramRole attached to the assignment (none if no role is attached or the
  role is inactive);
- no assignment means no access.

The boolean lookups never raise for missing data; they answer "no access".
The ``require_*`` guards turn a negative answer into ``ForbiddenError``.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar

from civic_admin.core.config import Settings, get_settings
from civic_admin.core.exceptions import ForbiddenError, NotFoundError
from civic_admin.core.logging_config import get_logger, program_logger, security_logger
from civic_admin.core.repository import (
    PROGRAM_ASSIGNMENTS,
    PROGRAM_ROLE_PERMISSIONS,
    PROGRAM_ROLES,
    PROGRAMS,
    USERS,
    Repository,
)
from civic_admin.services.permissions import (
    ALL_PERMISSIONS,
    Permission,
    is_valid_permission,
)

logger = get_logger(__name__)

ADMIN_ROLE = "admin"
DEVELOPER_ROLE = "developer"


class PermissionChecker:
    """Answers admin/member/permission questions for one repository."""

    def __init__(self, repo: Repository):
        self.repo = repo

    async def get_assignment(self, user_id: int, program_id: str) -> dict | None:
        """Return the user's assignment to the program, if any."""
        return await self.repo.find_first(
            PROGRAM_ASSIGNMENTS, {"user_id": user_id, "program_id": program_id}
        )

    async def is_program_admin(self, user_id: int, program_id: str) -> bool:
        assignment = await self.get_assignment(user_id, program_id)
        return assignment is not None and assignment["role"] == ADMIN_ROLE

    async def is_program_member(self, user_id: int, program_id: str) -> bool:
        return await self.get_assignment(user_id, program_id) is not None

    async def get_user_permissions(
        self, user_id: int, program_id: str
    ) -> frozenset[Permission]:
        assignment = await self.get_assignment(user_id, program_id)
        if assignment is None:
            return frozenset()

        if assignment["role"] == ADMIN_ROLE:
            return ALL_PERMISSIONS

        role_id = assignment.get("program_role_id")
        if role_id is None:
            return frozenset()

        role = await self.repo.find_by_id(PROGRAM_ROLES, role_id)
        if role is None or role["program_id"] != program_id or not role.get("is_active", True):
            return frozenset()

        rows = await self.repo.find_many(PROGRAM_ROLE_PERMISSIONS, {"role_id": role_id})
        granted = set()
        for row in rows:
            if is_valid_permission(row["permission"]):
                granted.add(Permission(row["permission"]))
            else:
                logger.warning(
                    f"Ignoring unknown permission {row['permission']!r} on role {role_id}"
                )
        return frozenset(granted)

    async def has_permission(
        self, user_id: int, program_id: str, permission: Permission | str
    ) -> bool:
        if not isinstance(permission, Permission):
            if not is_valid_permission(permission):
                return False
            permission = Permission(permission)
        return permission in await self.get_user_permissions(user_id, program_id)


async def get_program_or_404(repo: Repository, program_id: str) -> dict:
    program = await repo.find_by_id(PROGRAMS, program_id)
    if program is None:
        raise NotFoundError("Program")
    return program


async def require_program_admin(
    repo: Repository, user_id: int, program_id: str, resource: str = "program"
) -> None:
    """Raise ForbiddenError unless the user is an admin of the program."""
    if not await PermissionChecker(repo).is_program_admin(user_id, program_id):
        security_logger.log_unauthorized_access(
            resource, user_id=user_id, program_id=program_id, reason="admin_required"
        )
        raise ForbiddenError()


async def require_program_member(
    repo: Repository, user_id: int, program_id: str, resource: str = "program"
) -> None:
    """Raise ForbiddenError unless the user holds any assignment to the program."""
    if not await PermissionChecker(repo).is_program_member(user_id, program_id):
        security_logger.log_unauthorized_access(
            resource, user_id=user_id, program_id=program_id, reason="member_required"
        )
        raise ForbiddenError()


async def require_permission(
    repo: Repository, user_id: int, program_id: str, permission: Permission
) -> None:
    if not await PermissionChecker(repo).has_permission(user_id, program_id, permission):
        security_logger.log_unauthorized_access(
            str(permission), user_id=user_id, program_id=program_id, reason="permission_required"
        )
        raise ForbiddenError(f"Insufficient permissions: {permission} required")


async def get_my_permissions(repo: Repository, user_id: int, program_id: str) -> dict:
    """Effective permissions of the caller in one program, for the console UI."""
    await require_program_member(repo, user_id, program_id, "my-permissions")

    checker = PermissionChecker(repo)
    assignment = await checker.get_assignment(user_id, program_id)
    permissions = await checker.get_user_permissions(user_id, program_id)
    is_admin = assignment["role"] == ADMIN_ROLE

    role_name = None
    if is_admin:
        role_name = "Admin"
    elif assignment.get("program_role_id") is not None:
        role = await repo.find_by_id(PROGRAM_ROLES, assignment["program_role_id"])
        role_name = role["name"] if role else None

    return {
        "permissions": sorted(p.value for p in permissions),
        "is_admin": is_admin,
        "role_name": role_name,
        "role_id": assignment.get("program_role_id"),
    }


# ============================================
# PROGRAM LISTING
# ============================================


@dataclass(frozen=True)
class ProgramEntry:
    program_id: str
    program_name: str
    role: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "program_id": self.program_id,
            "program_name": self.program_name,
            "role": self.role,
        }


@dataclass(frozen=True)
class NormalListing:
    """The programs the user is assigned to, with their assigned roles."""

    kind: ClassVar[str] = "normal"

    username: str
    programs: list[ProgramEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "listing": self.kind,
            "programs": [p.to_dict() for p in self.programs],
        }


@dataclass(frozen=True)
class DeveloperOverrideListing(NormalListing):
    """
    Every program in the system, granted because the user belongs to the
    developer program. Programs the user is not assigned to carry the role
    ``"developer"``; this is a listing escalation only and grants no admin or
    member standing in those programs.
    """

    kind: ClassVar[str] = "developer_override"


ProgramListing = NormalListing | DeveloperOverrideListing


async def get_user_programs(
    repo: Repository, username: str, settings: Settings | None = None
) -> ProgramListing:
    """
    List the programs visible to the user identified by ``username`` (their email).

    Raises:
        NotFoundError: no user has that email.
    """
    settings = settings or get_settings()

    user = await repo.find_first(USERS, {"email": username})
    if user is None:
        raise NotFoundError("User")

    assignments = await repo.find_many(
        PROGRAM_ASSIGNMENTS, {"user_id": user["id"]}, order_by=["id"]
    )
    assigned_ids = [a["program_id"] for a in assignments]
    programs = (
        await repo.find_many(PROGRAMS, {"id": assigned_ids}) if assigned_ids else []
    )
    programs_by_id = {p["id"]: p for p in programs}
    role_by_program = {a["program_id"]: a["role"] for a in assignments}

    has_developer_program = settings.DEVELOPER_OVERRIDE_ENABLED and any(
        p["name"] == settings.DEVELOPER_PROGRAM_NAME for p in programs
    )

    listing: ProgramListing
    if has_developer_program:
        all_programs = await repo.find_many(PROGRAMS, order_by=["created_at", "id"])
        listing = DeveloperOverrideListing(
            username=user["email"],
            programs=[
                ProgramEntry(
                    program_id=p["id"],
                    program_name=p["name"],
                    role=role_by_program.get(p["id"], DEVELOPER_ROLE),
                )
                for p in all_programs
            ],
        )
        logger.info(f"Developer program listing granted to {user['email']}")
    else:
        listing = NormalListing(
            username=user["email"],
            programs=[
                ProgramEntry(
                    program_id=a["program_id"],
                    program_name=programs_by_id[a["program_id"]]["name"],
                    role=a["role"],
                )
                for a in assignments
                if a["program_id"] in programs_by_id
            ],
        )

    for entry in listing.programs:
        program_logger.info(entry.program_id, f"Program lookup for {user['email']}")

    return listing
