"""
Integration tests for the permission catalog and program roles.
"""

from civic_admin.core.repository import PROGRAM_ASSIGNMENTS, PROGRAM_ROLE_PERMISSIONS, PROGRAM_ROLES
from tests.helpers import auth_headers


async def give_role(repo, program_id, user_id, permissions):
    role = await repo.create(PROGRAM_ROLES, {"program_id": program_id, "name": "Role Keeper"})
    for permission in permissions:
        await repo.create(PROGRAM_ROLE_PERMISSIONS, {"role_id": role["id"], "permission": permission})
    assignment = await repo.find_first(
        PROGRAM_ASSIGNMENTS, {"user_id": user_id, "program_id": program_id}
    )
    await repo.update(PROGRAM_ASSIGNMENTS, assignment["id"], {"program_role_id": role["id"]})
    return role


class TestPermissionsAPI:
    async def test_catalog(self, async_client, member_user):
        response = await async_client.get("/permissions", headers=auth_headers(member_user))

        data = response.json()["data"]
        assert len(data["permissions"]) == 21
        assert set(data["groups"]) == {"console", "user_management", "program_config"}

    async def test_my_permissions_as_admin(self, async_client, program, admin_user):
        response = await async_client.get(
            f"/programs/{program['id']}/my-permissions", headers=auth_headers(admin_user)
        )

        data = response.json()["data"]
        assert data["is_admin"] is True
        assert len(data["permissions"]) == 21

    async def test_my_permissions_as_outsider(self, async_client, program, outsider_user):
        response = await async_client.get(
            f"/programs/{program['id']}/my-permissions", headers=auth_headers(outsider_user)
        )
        assert response.status_code == 403


class TestRolesAPI:
    async def test_crud(self, async_client, program, admin_user):
        headers = auth_headers(admin_user)
        base = f"/programs/{program['id']}/roles"

        created = await async_client.post(
            base, headers=headers, json={"name": "Judge", "permissions": ["console.elections"]}
        )
        assert created.status_code == 201
        role_id = created.json()["data"]["id"]

        updated = await async_client.put(
            f"{base}/{role_id}", headers=headers, json={"description": "Runs polling"}
        )
        assert updated.json()["data"]["description"] == "Runs polling"
        assert updated.json()["data"]["permissions"] == ["console.elections"]

        deleted = await async_client.delete(f"{base}/{role_id}", headers=headers)
        assert deleted.json()["data"] == {"deleted_role": "Judge"}

        listing = await async_client.get(base, headers=headers)
        assert listing.json()["data"] == []

    async def test_invalid_permission(self, async_client, program, admin_user):
        response = await async_client.post(
            f"/programs/{program['id']}/roles",
            headers=auth_headers(admin_user),
            json={"name": "Judge", "permissions": ["console.everything"]},
        )

        assert response.status_code == 400
        assert response.json()["errors"] == {"permissions": ["console.everything"]}

    async def test_member_needs_roles_permission(self, async_client, repo, program, member_user):
        headers = auth_headers(member_user)
        denied = await async_client.get(f"/programs/{program['id']}/roles", headers=headers)
        assert denied.status_code == 403

        await give_role(repo, program["id"], member_user["id"], ["program_config.roles"])
        allowed = await async_client.get(f"/programs/{program['id']}/roles", headers=headers)
        assert allowed.status_code == 200

    async def test_delete_assigned_role(self, async_client, program, admin_user, member_user):
        headers = auth_headers(admin_user)
        created = await async_client.post(
            f"/programs/{program['id']}/roles", headers=headers, json={"name": "Judge"}
        )
        role_id = created.json()["data"]["id"]

        assigned = await async_client.put(
            f"/programs/{program['id']}/users/{member_user['id']}/role",
            headers=headers,
            json={"role_id": role_id},
        )
        assert assigned.json()["data"]["role_name"] == "Judge"

        response = await async_client.delete(
            f"/programs/{program['id']}/roles/{role_id}", headers=headers
        )
        assert response.status_code == 409

    async def test_cannot_change_admin_role(self, async_client, program, admin_user):
        response = await async_client.put(
            f"/programs/{program['id']}/users/{admin_user['id']}/role",
            headers=auth_headers(admin_user),
            json={"role_id": None},
        )
        assert response.status_code == 400
