"""
Integration tests for programs, program users and the per-user program listing.
"""

from civic_admin.core.repository import PROGRAM_ASSIGNMENTS, PROGRAMS
from tests.helpers import auth_headers


class TestProgramsAPI:
    async def test_create_program(self, async_client, outsider_user):
        """The creator is made admin and can read the program's roles."""
        response = await async_client.post(
            "/programs",
            headers=auth_headers(outsider_user),
            json={"name": "Keystone State", "year": 2026},
        )

        assert response.status_code == 201
        program = response.json()["data"]
        assert program["role_assigned"] == "admin"

        roles = await async_client.get(
            f"/programs/{program['id']}/roles", headers=auth_headers(outsider_user)
        )
        assert roles.status_code == 200
        assert len(roles.json()["data"]) == 4

    async def test_create_program_requires_name(self, async_client, outsider_user):
        response = await async_client.post(
            "/programs", headers=auth_headers(outsider_user), json={"year": 2026}
        )
        assert response.status_code == 400

    async def test_create_program_requires_auth(self, async_client):
        response = await async_client.post("/programs", json={"name": "X", "year": 2026})
        assert response.status_code == 401


class TestProgramUsersAPI:
    async def test_assign_and_list(self, async_client, program, admin_user, outsider_user):
        response = await async_client.post(
            f"/programs/{program['id']}/users",
            headers=auth_headers(admin_user),
            json={"user_id": outsider_user["id"], "role": "staff"},
        )
        assert response.status_code == 201
        assert response.json()["data"]["status"] == "assigned"

        listing = await async_client.get(
            f"/programs/{program['id']}/users", headers=auth_headers(admin_user)
        )
        roles = {row["user_id"]: row["role"] for row in listing.json()["data"]}
        assert roles[outsider_user["id"]] == "staff"

    async def test_assign_duplicate(self, async_client, program, admin_user, member_user):
        response = await async_client.post(
            f"/programs/{program['id']}/users",
            headers=auth_headers(admin_user),
            json={"user_id": member_user["id"], "role": "staff"},
        )
        assert response.status_code == 409

    async def test_member_cannot_list_users(self, async_client, program, member_user):
        response = await async_client.get(
            f"/programs/{program['id']}/users", headers=auth_headers(member_user)
        )
        assert response.status_code == 403

    async def test_unknown_program(self, async_client, admin_user):
        response = await async_client.get("/programs/missing/users", headers=auth_headers(admin_user))
        assert response.status_code == 404


class TestUserProgramsAPI:
    async def test_normal_listing(self, async_client, program, other_program, member_user):
        response = await async_client.get(
            f"/user-programs/{member_user['email']}", headers=auth_headers(member_user)
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["listing"] == "normal"
        assert data["programs"] == [
            {"program_id": "prog-boys-state", "program_name": "Boys State", "role": "counselor"}
        ]

    async def test_developer_listing(
        self, async_client, repo, program, other_program, member_user
    ):
        """A member of the developer program sees every program."""
        dev = await repo.create(PROGRAMS, {"id": "prog-dev", "name": "DEVELOPMENT", "year": 2026})
        await repo.create(
            PROGRAM_ASSIGNMENTS,
            {"user_id": member_user["id"], "program_id": dev["id"], "role": "member"},
        )

        response = await async_client.get(
            f"/v1/user-programs/{member_user['email']}", headers=auth_headers(member_user)
        )

        data = response.json()["data"]
        assert data["listing"] == "developer_override"
        assert {p["program_id"] for p in data["programs"]} == {
            "prog-boys-state",
            "prog-girls-state",
            "prog-dev",
        }

        # The listing grants no access to the other program
        positions = await async_client.get(
            f"/programs/{other_program['id']}/positions", headers=auth_headers(member_user)
        )
        assert positions.status_code == 403

    async def test_unknown_user(self, async_client, member_user):
        response = await async_client.get(
            "/user-programs/ghost@example.org", headers=auth_headers(member_user)
        )
        assert response.status_code == 404
