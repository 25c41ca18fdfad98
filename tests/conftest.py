"""
Pytest configuration and fixtures for the civic admin backend tests.

This module provides:
- An in-memory repository wired into the FastAPI app via dependency overrides
- An async HTTP client over ASGITransport
- Users, a program with its year, grouping, positions and delegates
- An election factory
"""

from collections.abc import Callable
import os
from typing import Any

os.environ["ENVIRONMENT"] = "test"

import pytest
from httpx import ASGITransport, AsyncClient

from civic_admin.core.config import settings
from civic_admin.core.database import get_repository
from civic_admin.core.rate_limiting import LoginRateLimiter, get_login_rate_limiter
from civic_admin.core.repository import (
    DELEGATES,
    ELECTIONS,
    GROUPINGS,
    PROGRAM_ASSIGNMENTS,
    PROGRAM_YEARS,
    PROGRAMS,
)
from tests.fakes import InMemoryRepository
from tests.helpers import create_test_position, create_test_user


@pytest.fixture(autouse=True)
def test_env(tmp_path, monkeypatch):
    """Point settings at test values; program logs go to a temporary directory."""
    monkeypatch.setattr(settings, "ENVIRONMENT", "test")
    monkeypatch.setattr(settings, "SECRET_KEY", "test_secret_key_for_testing_only")
    monkeypatch.setattr(settings, "PROGRAM_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setattr(settings, "DEVELOPER_OVERRIDE_ENABLED", True)
    monkeypatch.setattr(settings, "DEVELOPER_PROGRAM_NAME", "DEVELOPMENT")
    return settings


@pytest.fixture
def repo() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def rate_limiter() -> LoginRateLimiter:
    return LoginRateLimiter(max_attempts=5, window_seconds=900)


@pytest.fixture
async def async_client(repo, rate_limiter):
    """FastAPI async test client bound to the in-memory repository."""
    from civic_admin.main import app

    async def override_repository():
        yield repo

    app.dependency_overrides[get_repository] = override_repository
    app.dependency_overrides[get_login_rate_limiter] = lambda: rate_limiter

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client

    app.dependency_overrides.clear()


# ============================================
# USERS
# ============================================


@pytest.fixture
async def admin_user(repo) -> dict[str, Any]:
    """Admin of the test program."""
    return await create_test_user(repo, "director@example.org")


@pytest.fixture
async def member_user(repo) -> dict[str, Any]:
    """Non-admin member of the test program."""
    return await create_test_user(repo, "counselor@example.org")


@pytest.fixture
async def outsider_user(repo) -> dict[str, Any]:
    """A user with no assignment to the test program."""
    return await create_test_user(repo, "outsider@example.org")


# ============================================
# PROGRAM STRUCTURE
# ============================================


@pytest.fixture
async def program(repo, admin_user, member_user) -> dict[str, Any]:
    program = await repo.create(
        PROGRAMS,
        {
            "id": "prog-boys-state",
            "name": "Boys State",
            "year": 2026,
            "status": "active",
            "created_by": admin_user["id"],
        },
    )
    await repo.create(
        PROGRAM_ASSIGNMENTS,
        {"user_id": admin_user["id"], "program_id": program["id"], "role": "admin"},
    )
    await repo.create(
        PROGRAM_ASSIGNMENTS,
        {"user_id": member_user["id"], "program_id": program["id"], "role": "counselor"},
    )
    return program


@pytest.fixture
async def other_program(repo, outsider_user) -> dict[str, Any]:
    """A second program, administered by the outsider."""
    program = await repo.create(
        PROGRAMS,
        {"id": "prog-girls-state", "name": "Girls State", "year": 2026, "status": "active"},
    )
    await repo.create(
        PROGRAM_ASSIGNMENTS,
        {"user_id": outsider_user["id"], "program_id": program["id"], "role": "admin"},
    )
    return program


@pytest.fixture
async def program_year(repo, program) -> dict[str, Any]:
    return await repo.create(
        PROGRAM_YEARS, {"program_id": program["id"], "year": 2026, "status": "active"}
    )


@pytest.fixture
async def grouping(repo, program) -> dict[str, Any]:
    return await repo.create(
        GROUPINGS,
        {
            "program_id": program["id"],
            "grouping_type_id": 1,
            "name": "Federalist City",
            "status": "active",
        },
    )


@pytest.fixture
async def elected_position(repo, program) -> dict[str, Any]:
    return await create_test_position(repo, program["id"])


@pytest.fixture
async def delegates(repo, program_year, grouping) -> list[dict[str, Any]]:
    """Four delegates in the test program year."""
    names = [("Ada", "Lovelace"), ("Alan", "Turing"), ("Grace", "Hopper"), ("Edsger", "Dijkstra")]
    return [
        await repo.create(
            DELEGATES,
            {
                "program_year_id": program_year["id"],
                "first_name": first,
                "last_name": last,
                "grouping_id": grouping["id"],
                "status": "active",
            },
        )
        for first, last in names
    ]


@pytest.fixture
def make_election(repo, program_year, elected_position, grouping) -> Callable:
    """Factory inserting an election directly, open by default and without a time window."""

    async def _make(method: str = "plurality", status: str = "open", **overrides):
        fields = {
            "program_year_id": program_year["id"],
            "position_id": elected_position["id"],
            "grouping_id": grouping["id"],
            "method": method,
            "status": status,
            "start_time": None,
            "end_time": None,
        }
        fields.update(overrides)
        return await repo.create(ELECTIONS, fields)

    return _make
