# tests/test_auth.py — Authentication & authorization tests
import pytest
from httpx import AsyncClient

import auth
from tests.conftest import get_auth_headers


@pytest.mark.asyncio
class TestRegistration:
    async def test_register_success(self, client: AsyncClient):
        res = await client.post("/api/v1/auth/register", json={
            "email": "newuser@test.com",
            "password": "SecurePass123!",
            "first_name": "New",
        })
        assert res.status_code == 201
        data = res.json()
        assert "access_token" in data
        assert "refresh_token" in data
        assert data["user"]["email"] == "newuser@test.com"
        assert data["user"]["role"] == "member"
        assert data["user"]["points"] == 0
        assert data["user"]["level"] == 1

    async def test_register_weak_password(self, client: AsyncClient):
        res = await client.post("/api/v1/auth/register", json={
            "email": "weak@test.com",
            "password": "short",
        })
        assert res.status_code == 422

    async def test_register_password_needs_digit(self, client: AsyncClient):
        res = await client.post("/api/v1/auth/register", json={
            "email": "nodigit@test.com",
            "password": "NoDigitsInHere!",
        })
        assert res.status_code == 422

    async def test_register_duplicate_email(self, client: AsyncClient):
        await client.post("/api/v1/auth/register", json={
            "email": "dupe@test.com",
            "password": "SecurePass123!",
        })
        res = await client.post("/api/v1/auth/register", json={
            "email": "dupe@test.com",
            "password": "SecurePass123!",
        })
        assert res.status_code == 409

    async def test_register_invalid_email(self, client: AsyncClient):
        res = await client.post("/api/v1/auth/register", json={
            "email": "not-an-email",
            "password": "SecurePass123!",
        })
        assert res.status_code == 422


@pytest.mark.asyncio
class TestLogin:
    async def test_login_success(self, client: AsyncClient, test_user):
        res = await client.post("/api/v1/auth/login", json={
            "email": test_user.email,
            "password": "TestPassword123!",
        })
        assert res.status_code == 200
        data = res.json()
        assert "access_token" in data
        assert data["user"]["id"] == test_user.id

    async def test_login_wrong_password(self, client: AsyncClient, test_user):
        res = await client.post("/api/v1/auth/login", json={
            "email": test_user.email,
            "password": "WrongPassword123!",
        })
        assert res.status_code == 401

    async def test_login_nonexistent_user(self, client: AsyncClient):
        res = await client.post("/api/v1/auth/login", json={
            "email": "nobody@test.com",
            "password": "SomePassword123!",
        })
        assert res.status_code == 401

    async def test_repeated_failures_are_throttled(self, client: AsyncClient, test_user):
        bad = {"email": test_user.email, "password": "WrongPassword123!"}
        for _ in range(5):
            res = await client.post("/api/v1/auth/login", json=bad)
            assert res.status_code == 401

        # Locked out even with the right password
        res = await client.post("/api/v1/auth/login", json={**bad, "password": "TestPassword123!"})
        assert res.status_code == 429


@pytest.mark.asyncio
class TestTokens:
    async def test_access_protected_route(self, client: AsyncClient, test_user):
        res = await client.get("/api/v1/auth/me", headers=get_auth_headers(test_user))
        assert res.status_code == 200
        assert res.json()["email"] == test_user.email

    async def test_access_without_token(self, client: AsyncClient):
        res = await client.get("/api/v1/auth/me")
        assert res.status_code == 401

    async def test_access_with_invalid_token(self, client: AsyncClient):
        res = await client.get("/api/v1/auth/me", headers={
            "Authorization": "Bearer invalid.token.here"
        })
        assert res.status_code == 401

    async def test_refresh_token_rotates(self, client: AsyncClient):
        reg_res = await client.post("/api/v1/auth/register", json={
            "email": "refresh@test.com",
            "password": "SecurePass123!",
        })
        refresh_token = reg_res.json()["refresh_token"]

        res = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
        assert res.status_code == 200
        assert "access_token" in res.json()

        # The used refresh token is revoked
        res = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
        assert res.status_code == 401

    async def test_access_token_rejected_for_refresh(self, client: AsyncClient):
        reg_res = await client.post("/api/v1/auth/register", json={
            "email": "wrongtype@test.com",
            "password": "SecurePass123!",
        })
        res = await client.post("/api/v1/auth/refresh", json={
            "refresh_token": reg_res.json()["access_token"],
        })
        assert res.status_code == 401

    async def test_logout_revokes_token(self, client: AsyncClient, test_user):
        headers = get_auth_headers(test_user)
        res = await client.post("/api/v1/auth/logout", headers=headers)
        assert res.status_code == 200

        res = await client.get("/api/v1/auth/me", headers=headers)
        assert res.status_code == 401


@pytest.mark.asyncio
class TestDevMode:
    async def test_dev_user_is_provisioned(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(auth, "AUTH_MODE", "dev")
        res = await client.get("/api/v1/auth/me")
        assert res.status_code == 200
        assert res.json()["id"] == auth.DEV_USER_ID

        # Second request reuses the same user
        res = await client.get("/api/v1/auth/me")
        assert res.json()["id"] == auth.DEV_USER_ID


@pytest.mark.asyncio
class TestRBAC:
    async def test_admin_can_list_users(self, client: AsyncClient, admin_user, test_user):
        res = await client.get("/api/v1/admin/users", headers=get_auth_headers(admin_user))
        assert res.status_code == 200
        ids = {u["id"] for u in res.json()}
        assert {admin_user.id, test_user.id} <= ids

    async def test_member_cannot_list_users(self, client: AsyncClient, test_user):
        res = await client.get("/api/v1/admin/users", headers=get_auth_headers(test_user))
        assert res.status_code == 403

    async def test_user_cannot_change_roles(self, client: AsyncClient, test_user, admin_user):
        res = await client.patch(
            f"/api/v1/admin/users/{admin_user.id}/role",
            headers=get_auth_headers(test_user),
            json={"role": "super_admin"},
        )
        assert res.status_code == 403

    async def test_admin_cannot_grant_super_admin(self, client: AsyncClient, test_user, admin_user):
        res = await client.patch(
            f"/api/v1/admin/users/{test_user.id}/role",
            headers=get_auth_headers(admin_user),
            json={"role": "super_admin"},
        )
        assert res.status_code == 403

    async def test_super_admin_can_grant_super_admin(self, client: AsyncClient, test_user, super_admin):
        res = await client.patch(
            f"/api/v1/admin/users/{test_user.id}/role",
            headers=get_auth_headers(super_admin),
            json={"role": "super_admin"},
        )
        assert res.status_code == 200
        assert res.json() == {"user_id": test_user.id, "old_role": "member", "new_role": "super_admin"}

    async def test_guest_is_read_only(self, client: AsyncClient, guest_user):
        headers = get_auth_headers(guest_user)
        res = await client.get("/api/v1/projects", headers=headers)
        assert res.status_code == 200

        res = await client.post("/api/v1/projects", json={"name": "Nope"}, headers=headers)
        assert res.status_code == 403
