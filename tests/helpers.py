"""Helpers shared by the test modules."""

from datetime import UTC, datetime, timedelta
from typing import Any

from civic_admin.core.repository import POSITIONS, USERS
from civic_admin.core.security import create_access_token, hash_password

TEST_PASSWORD = "testpass123"


def auth_headers(user: dict[str, Any]) -> dict[str, str]:
    """Bearer headers for a user record."""
    token = create_access_token(user["id"], user["email"])
    return {"Authorization": f"Bearer {token}"}


def hours_from_now(hours: float) -> datetime:
    return datetime.now(UTC) + timedelta(hours=hours)


async def create_test_user(repo, email: str, password: str = TEST_PASSWORD) -> dict[str, Any]:
    user = await repo.create(USERS, {"email": email, "password_hash": hash_password(password)})
    return {**user, "password": password}


async def create_test_position(repo, program_id: str, **overrides) -> dict[str, Any]:
    fields = {
        "program_id": program_id,
        "name": "Mayor",
        "display_order": 1,
        "status": "active",
        "grouping_type_id": 1,
        "is_elected": True,
        "ballot_grouping_type_id": 1,
        "is_non_partisan": False,
        "seat_count": 1,
        "requires_declaration": False,
        "requires_petition": False,
        "petition_signatures": None,
        "election_method": "plurality",
    }
    fields.update(overrides)
    return await repo.create(POSITIONS, fields)
