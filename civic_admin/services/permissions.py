"""Permission catalog and the default program roles."""

from collections.abc import Iterable
from enum import Enum

from civic_admin.core.exceptions import ValidationError


class Permission(str, Enum):
    """Every capability a program role can grant. The set is closed."""

    # Console page cards
    CONSOLE_USER_MANAGEMENT = "console.user_management"
    CONSOLE_PROGRAM_CREATE = "console.program_create"
    CONSOLE_PROGRAM_CONFIG = "console.program_config"
    CONSOLE_CONTENT_MANAGEMENT = "console.content_management"
    CONSOLE_ELECTIONS = "console.elections"
    CONSOLE_AUDIT_LOGS = "console.audit_logs"

    # User management page cards
    USER_MANAGEMENT_APPLICATION_REVIEW = "user_management.application_review"
    USER_MANAGEMENT_DELEGATES = "user_management.delegates"
    USER_MANAGEMENT_STAFF = "user_management.staff"
    USER_MANAGEMENT_PARENTS = "user_management.parents"
    USER_MANAGEMENT_BULK_OPERATIONS = "user_management.bulk_operations"

    # Program config page cards
    PROGRAM_CONFIG_BRANDING = "program_config.branding"
    PROGRAM_CONFIG_APPLICATION = "program_config.application"
    PROGRAM_CONFIG_GROUPINGS = "program_config.groupings"
    PROGRAM_CONFIG_PARTIES = "program_config.parties"
    PROGRAM_CONFIG_POSITIONS = "program_config.positions"
    PROGRAM_CONFIG_EMAIL_SERVER = "program_config.email_server"
    PROGRAM_CONFIG_EMAIL_TEMPLATES = "program_config.email_templates"
    PROGRAM_CONFIG_YEARS = "program_config.years"
    PROGRAM_CONFIG_ELECTION_SETTINGS = "program_config.election_settings"
    PROGRAM_CONFIG_ROLES = "program_config.roles"

    def __str__(self) -> str:
        return self.value


ALL_PERMISSIONS: frozenset[Permission] = frozenset(Permission)

# console.user_management and console.program_config are navigation cards whose
# visibility follows from holding any child permission, so they are not listed.
PERMISSION_GROUPS: dict[str, dict] = {
    "console": {
        "label": "Console Access",
        "description": "Direct access to console features",
        "permissions": [
            {"key": Permission.CONSOLE_PROGRAM_CREATE, "label": "Register New Program"},
            {"key": Permission.CONSOLE_CONTENT_MANAGEMENT, "label": "Content Management"},
            {"key": Permission.CONSOLE_ELECTIONS, "label": "Elections"},
            {"key": Permission.CONSOLE_AUDIT_LOGS, "label": "Audit Logs"},
        ],
    },
    "user_management": {
        "label": "User Management",
        "description": "Access to user management features",
        "permissions": [
            {"key": Permission.USER_MANAGEMENT_APPLICATION_REVIEW, "label": "Application Review"},
            {"key": Permission.USER_MANAGEMENT_DELEGATES, "label": "Delegates"},
            {"key": Permission.USER_MANAGEMENT_STAFF, "label": "Staff"},
            {"key": Permission.USER_MANAGEMENT_PARENTS, "label": "Parents"},
            {"key": Permission.USER_MANAGEMENT_BULK_OPERATIONS, "label": "Bulk Operations"},
        ],
    },
    "program_config": {
        "label": "Program Configuration",
        "description": "Access to program configuration features",
        "permissions": [
            {"key": Permission.PROGRAM_CONFIG_BRANDING, "label": "Branding & Contact"},
            {"key": Permission.PROGRAM_CONFIG_APPLICATION, "label": "Application Configuration"},
            {"key": Permission.PROGRAM_CONFIG_GROUPINGS, "label": "Groupings"},
            {"key": Permission.PROGRAM_CONFIG_PARTIES, "label": "Parties"},
            {"key": Permission.PROGRAM_CONFIG_POSITIONS, "label": "Positions"},
            {"key": Permission.PROGRAM_CONFIG_EMAIL_SERVER, "label": "Email Server"},
            {"key": Permission.PROGRAM_CONFIG_EMAIL_TEMPLATES, "label": "Email Templates"},
            {"key": Permission.PROGRAM_CONFIG_YEARS, "label": "Program Years"},
            {"key": Permission.PROGRAM_CONFIG_ELECTION_SETTINGS, "label": "Election Settings"},
            {"key": Permission.PROGRAM_CONFIG_ROLES, "label": "Roles & Permissions"},
        ],
    },
}

DEFAULT_ROLES: list[dict] = [
    {
        "name": "Admin",
        "description": "Full access to all features",
        "permissions": sorted(ALL_PERMISSIONS, key=lambda p: p.value),
        "display_order": 1,
    },
    {
        "name": "Program Director",
        "description": "Manage program configuration and users",
        "permissions": [
            Permission.CONSOLE_ELECTIONS,
            Permission.CONSOLE_AUDIT_LOGS,
            Permission.USER_MANAGEMENT_APPLICATION_REVIEW,
            Permission.USER_MANAGEMENT_DELEGATES,
            Permission.USER_MANAGEMENT_STAFF,
            Permission.USER_MANAGEMENT_PARENTS,
            Permission.USER_MANAGEMENT_BULK_OPERATIONS,
            Permission.PROGRAM_CONFIG_BRANDING,
            Permission.PROGRAM_CONFIG_APPLICATION,
            Permission.PROGRAM_CONFIG_GROUPINGS,
            Permission.PROGRAM_CONFIG_PARTIES,
            Permission.PROGRAM_CONFIG_POSITIONS,
            Permission.PROGRAM_CONFIG_YEARS,
            Permission.PROGRAM_CONFIG_ELECTION_SETTINGS,
        ],
        "display_order": 2,
    },
    {
        "name": "Counselor",
        "description": "View and manage delegates in assigned grouping",
        "permissions": [Permission.USER_MANAGEMENT_DELEGATES],
        "display_order": 3,
    },
    {
        "name": "Registration Staff",
        "description": "Review applications and manage registrations",
        "permissions": [
            Permission.USER_MANAGEMENT_APPLICATION_REVIEW,
            Permission.USER_MANAGEMENT_DELEGATES,
            Permission.USER_MANAGEMENT_BULK_OPERATIONS,
        ],
        "display_order": 4,
    },
]


def is_valid_permission(key: str) -> bool:
    return key in Permission._value2member_map_


def get_invalid_permissions(keys: Iterable[str]) -> list[str]:
    return [key for key in keys if not is_valid_permission(key)]


def parse_permissions(keys: Iterable[str]) -> frozenset[Permission]:
    """Convert permission keys to members, rejecting the whole batch if any is unknown."""
    keys = list(keys)
    invalid = get_invalid_permissions(keys)
    if invalid:
        raise ValidationError(
            f"Invalid permissions: {', '.join(invalid)}",
            {"permissions": invalid},
        )
    return frozenset(Permission(key) for key in keys)
