# tests/test_users.py — User profile and admin router tests
import pytest
from httpx import AsyncClient

from tests.conftest import get_auth_headers


@pytest.mark.asyncio
async def test_get_my_profile(client: AsyncClient, test_user):
    resp = await client.get("/api/v1/users/me", headers=get_auth_headers(test_user))
    assert resp.status_code == 200
    data = resp.json()
    assert data["id"] == test_user.id
    assert data["display_name"] == "Member Tester"
    assert data["points"] == 0
    assert data["level"] == 1
    assert data["sdg_alignment"] == []


@pytest.mark.asyncio
async def test_update_my_profile(client: AsyncClient, test_user):
    headers = get_auth_headers(test_user)
    resp = await client.patch("/api/v1/users/me", headers=headers, json={
        "bio": "Reforestation volunteer",
        "country": "Kenya",
        "sdg_alignment": [15, "13", 15],
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["bio"] == "Reforestation volunteer"
    assert data["country"] == "Kenya"
    assert data["sdg_alignment"] == ["15", "13"]
    # Untouched fields survive a partial update
    assert data["first_name"] == "Member"


@pytest.mark.asyncio
async def test_profile_rejects_unknown_sdg(client: AsyncClient, test_user):
    resp = await client.patch(
        "/api/v1/users/me", headers=get_auth_headers(test_user), json={"sdg_alignment": [18]},
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_guest_cannot_edit_profile(client: AsyncClient, guest_user):
    resp = await client.patch("/api/v1/users/me", headers=get_auth_headers(guest_user), json={"bio": "hi"})
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_get_user_by_id(client: AsyncClient, test_user, other_user):
    resp = await client.get(f"/api/v1/users/{other_user.id}", headers=get_auth_headers(test_user))
    assert resp.status_code == 200
    assert resp.json()["email"] == other_user.email


@pytest.mark.asyncio
async def test_get_nonexistent_user(client: AsyncClient, test_user):
    resp = await client.get("/api/v1/users/nonexistent-id", headers=get_auth_headers(test_user))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_admin_sets_points(client: AsyncClient, admin_user, test_user):
    resp = await client.patch(
        f"/api/v1/admin/users/{test_user.id}/points", headers=get_auth_headers(admin_user), json={"points": 345},
    )
    assert resp.status_code == 200
    assert resp.json()["points"] == 345
    assert resp.json()["level"] == 4


@pytest.mark.asyncio
async def test_points_cannot_be_negative(client: AsyncClient, admin_user, test_user):
    resp = await client.patch(
        f"/api/v1/admin/users/{test_user.id}/points", headers=get_auth_headers(admin_user), json={"points": -5},
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_member_cannot_set_points(client: AsyncClient, test_user):
    resp = await client.patch(
        f"/api/v1/admin/users/{test_user.id}/points", headers=get_auth_headers(test_user), json={"points": 9999},
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_set_points_unknown_user(client: AsyncClient, admin_user):
    resp = await client.patch(
        "/api/v1/admin/users/ghost/points", headers=get_auth_headers(admin_user), json={"points": 10},
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_admin_changes_role(client: AsyncClient, admin_user, test_user):
    resp = await client.patch(
        f"/api/v1/admin/users/{test_user.id}/role",
        headers=get_auth_headers(admin_user),
        json={"role": "project_manager"},
    )
    assert resp.status_code == 200
    assert resp.json()["new_role"] == "project_manager"

    resp = await client.get(f"/api/v1/users/{test_user.id}", headers=get_auth_headers(admin_user))
    assert resp.json()["role"] == "project_manager"


@pytest.mark.asyncio
async def test_invalid_role_rejected(client: AsyncClient, admin_user, test_user):
    resp = await client.patch(
        f"/api/v1/admin/users/{test_user.id}/role",
        headers=get_auth_headers(admin_user),
        json={"role": "overlord"},
    )
    assert resp.status_code == 422
