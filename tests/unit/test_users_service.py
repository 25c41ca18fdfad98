"""Unit tests for registration, login and password changes."""

import pytest

from civic_admin.core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    RateLimitedError,
    ValidationError,
)
from civic_admin.core.repository import USERS
from civic_admin.core.security import decode_access_token, verify_password
from civic_admin.services import users as users_service
from tests.helpers import TEST_PASSWORD, create_test_user

CLIENT_IP = "198.51.100.7"


class TestRegister:
    async def test_register(self, repo):
        user = await users_service.register_user(repo, "delegate@example.org", "s3cret-pass")

        assert user["email"] == "delegate@example.org"
        assert "password_hash" not in user
        stored = await repo.find_by_id(USERS, user["id"])
        assert verify_password("s3cret-pass", stored["password_hash"])

    async def test_duplicate_email(self, repo, member_user):
        with pytest.raises(ConflictError):
            await users_service.register_user(repo, member_user["email"], "another-pass")

    @pytest.mark.parametrize("email,password", [("", "pw"), ("a@example.org", None)])
    async def test_missing_fields(self, repo, email, password):
        with pytest.raises(ValidationError):
            await users_service.register_user(repo, email, password)

    async def test_short_password(self, repo):
        with pytest.raises(ValidationError) as exc_info:
            await users_service.register_user(repo, "a@example.org", "short")
        assert exc_info.value.errors == {"password": "too short"}
        assert await repo.count(USERS) == 0


class TestAuthenticate:
    async def test_success(self, repo, member_user, rate_limiter):
        result = await users_service.authenticate_user(
            repo, member_user["email"], TEST_PASSWORD, CLIENT_IP, rate_limiter
        )

        assert result["token_type"] == "bearer"
        assert result["user"]["id"] == member_user["id"]
        assert "password_hash" not in result["user"]
        assert decode_access_token(result["access_token"])["sub"] == str(member_user["id"])

    async def test_wrong_password(self, repo, member_user, rate_limiter):
        with pytest.raises(AuthenticationError, match="Invalid credentials"):
            await users_service.authenticate_user(
                repo, member_user["email"], "wrong", CLIENT_IP, rate_limiter
            )

    async def test_unknown_email_same_message(self, repo, rate_limiter):
        with pytest.raises(AuthenticationError, match="Invalid credentials"):
            await users_service.authenticate_user(
                repo, "ghost@example.org", "whatever", CLIENT_IP, rate_limiter
            )

    async def test_lockout_after_failures(self, repo, member_user, rate_limiter):
        for _ in range(rate_limiter.max_attempts):
            with pytest.raises(AuthenticationError):
                await users_service.authenticate_user(
                    repo, member_user["email"], "wrong", CLIENT_IP, rate_limiter
                )

        with pytest.raises(RateLimitedError) as exc_info:
            await users_service.authenticate_user(
                repo, member_user["email"], TEST_PASSWORD, CLIENT_IP, rate_limiter
            )
        assert exc_info.value.retry_after > 0

    async def test_lockout_is_per_ip(self, repo, member_user, rate_limiter):
        for _ in range(rate_limiter.max_attempts):
            rate_limiter.record_failed_attempt(CLIENT_IP)

        result = await users_service.authenticate_user(
            repo, member_user["email"], TEST_PASSWORD, "192.0.2.1", rate_limiter
        )
        assert result["access_token"]

    async def test_success_resets_failures(self, repo, member_user, rate_limiter):
        for _ in range(rate_limiter.max_attempts - 1):
            rate_limiter.record_failed_attempt(CLIENT_IP)

        await users_service.authenticate_user(
            repo, member_user["email"], TEST_PASSWORD, CLIENT_IP, rate_limiter
        )

        assert rate_limiter.check_login_allowed(CLIENT_IP) == (True, None)


class TestRefreshAndPassword:
    async def test_refresh_token(self, repo, member_user):
        result = await users_service.refresh_token(repo, member_user["id"])
        assert decode_access_token(result["access_token"])["email"] == member_user["email"]

    async def test_refresh_for_deleted_user(self, repo):
        with pytest.raises(AuthenticationError):
            await users_service.refresh_token(repo, 404)

    async def test_change_password(self, repo):
        user = await create_test_user(repo, "changer@example.org")

        await users_service.change_password(repo, user["id"], TEST_PASSWORD, "brand-new-pass")

        stored = await repo.find_by_id(USERS, user["id"])
        assert verify_password("brand-new-pass", stored["password_hash"])
        assert not verify_password(TEST_PASSWORD, stored["password_hash"])

    async def test_wrong_current_password(self, repo, member_user):
        with pytest.raises(AuthenticationError, match="Current password is incorrect"):
            await users_service.change_password(
                repo, member_user["id"], "not-it", "brand-new-pass"
            )

    async def test_short_new_password(self, repo, member_user):
        with pytest.raises(ValidationError):
            await users_service.change_password(repo, member_user["id"], TEST_PASSWORD, "short")

    async def test_missing_user(self, repo):
        with pytest.raises(NotFoundError):
            await users_service.change_password(repo, 404, TEST_PASSWORD, "brand-new-pass")
