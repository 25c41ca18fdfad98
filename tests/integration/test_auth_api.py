"""
Integration tests for authentication endpoints.
"""

from tests.helpers import TEST_PASSWORD, auth_headers


class TestAuthAPI:
    """Test authentication API endpoints."""

    async def test_health_check(self, async_client):
        """Health check answers without a database pool."""
        response = await async_client.get("/health")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "healthy"
        assert data["database_pool"] == "not initialized"

    async def test_security_headers(self, async_client):
        response = await async_client.get("/health")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"

    async def test_register(self, async_client):
        """Registering returns the user without its password hash."""
        response = await async_client.post(
            "/register", json={"email": "new@example.org", "password": "a-long-password"}
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["email"] == "new@example.org"
        assert "password_hash" not in body["data"]

    async def test_register_duplicate(self, async_client, member_user):
        response = await async_client.post(
            "/register", json={"email": member_user["email"], "password": "whatever-pass"}
        )

        assert response.status_code == 409
        assert response.json()["message"] == "User already exists"

    async def test_register_missing_password(self, async_client):
        response = await async_client.post("/register", json={"email": "new@example.org"})

        assert response.status_code == 400
        assert response.json()["success"] is False

    async def test_register_short_password(self, async_client):
        response = await async_client.post(
            "/register", json={"email": "new@example.org", "password": "short"}
        )

        assert response.status_code == 400
        assert response.json()["errors"] == {"password": "too short"}

    async def test_login_success(self, async_client, member_user):
        """Test successful login."""
        response = await async_client.post(
            "/login", json={"email": member_user["email"], "password": TEST_PASSWORD}
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["token_type"] == "bearer"
        assert data["user"]["email"] == member_user["email"]

        me = await async_client.post(
            "/refresh", headers={"Authorization": f"Bearer {data['access_token']}"}
        )
        assert me.status_code == 200

    async def test_login_wrong_password(self, async_client, member_user):
        """Test login with wrong password."""
        response = await async_client.post(
            "/login", json={"email": member_user["email"], "password": "wrongpassword"}
        )

        assert response.status_code == 401
        data = response.json()
        assert data["success"] is False
        assert "Invalid credentials" in data["message"]

    async def test_login_nonexistent_user(self, async_client):
        response = await async_client.post(
            "/login", json={"email": "ghost@example.org", "password": "whatever"}
        )

        assert response.status_code == 401
        assert "Invalid credentials" in response.json()["message"]

    async def test_login_rate_limited(self, async_client, member_user, rate_limiter):
        """After five failures the client gets 429 with Retry-After, even with the right password."""
        for _ in range(5):
            response = await async_client.post(
                "/login", json={"email": member_user["email"], "password": "wrongpassword"}
            )
            assert response.status_code == 401

        response = await async_client.post(
            "/login", json={"email": member_user["email"], "password": TEST_PASSWORD}
        )

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) > 0
        assert response.json()["success"] is False

    async def test_versioned_login(self, async_client, member_user):
        response = await async_client.post(
            "/v1/login", json={"email": member_user["email"], "password": TEST_PASSWORD}
        )
        assert response.status_code == 200

    async def test_refresh_requires_token(self, async_client):
        response = await async_client.post("/refresh")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["success"] is False

    async def test_invalid_token(self, async_client):
        response = await async_client.post(
            "/refresh", headers={"Authorization": "Bearer not-a-token"}
        )
        assert response.status_code == 401

    async def test_token_for_deleted_user(self, async_client):
        response = await async_client.post(
            "/refresh", headers=auth_headers({"id": 999, "email": "gone@example.org"})
        )
        assert response.status_code == 401


class TestChangePasswordAPI:
    async def test_change_password(self, async_client, member_user):
        response = await async_client.put(
            "/change-password",
            headers=auth_headers(member_user),
            json={"current_password": TEST_PASSWORD, "new_password": "even-better-pass"},
        )
        assert response.status_code == 200

        login = await async_client.post(
            "/login", json={"email": member_user["email"], "password": "even-better-pass"}
        )
        assert login.status_code == 200

    async def test_wrong_current_password(self, async_client, member_user):
        response = await async_client.put(
            "/change-password",
            headers=auth_headers(member_user),
            json={"current_password": "nope", "new_password": "even-better-pass"},
        )
        assert response.status_code == 401

    async def test_short_new_password(self, async_client, member_user):
        response = await async_client.put(
            "/change-password",
            headers=auth_headers(member_user),
            json={"current_password": TEST_PASSWORD, "new_password": "short"},
        )
        assert response.status_code == 400
        assert response.json()["errors"] == {"new_password": "too short"}
