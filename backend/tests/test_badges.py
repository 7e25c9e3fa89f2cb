# tests/test_badges.py — Badge catalogue and awards
import pytest
from httpx import AsyncClient

import gamification
from errors import BadgeInactiveError, ReferentialIntegrityError
from models import Badge, UserBadge
from tests.conftest import get_auth_headers


async def _create_badge(client: AsyncClient, admin, **overrides) -> dict:
    payload = {
        "name": "Tree Hugger",
        "description": "Planted a forest",
        "icon": "tree",
        "criteria": {"tasks_completed": 10, "sdg": "15"},
        "points_required": 500,
    }
    payload.update(overrides)
    res = await client.post("/api/v1/badges", json=payload, headers=get_auth_headers(admin))
    assert res.status_code == 201, res.text
    return res.json()


@pytest.mark.asyncio
class TestBadgeCatalogue:
    async def test_admin_creates_badge(self, client: AsyncClient, admin_user):
        badge = await _create_badge(client, admin_user)
        assert badge["is_active"] is True
        assert badge["criteria"] == {"tasks_completed": 10, "sdg": "15"}

    async def test_member_cannot_create_badge(self, client: AsyncClient, test_user):
        res = await client.post("/api/v1/badges", json={"name": "Self-awarded"}, headers=get_auth_headers(test_user))
        assert res.status_code == 403

    async def test_list_is_sorted_and_active_only(self, client: AsyncClient, admin_user, test_user):
        await _create_badge(client, admin_user, name="Water Warrior")
        retired = await _create_badge(client, admin_user, name="Early Adopter")
        await _create_badge(client, admin_user, name="Climate Champion")
        await client.delete(f"/api/v1/badges/{retired['id']}", headers=get_auth_headers(admin_user))

        res = await client.get("/api/v1/badges", headers=get_auth_headers(test_user))
        assert [b["name"] for b in res.json()] == ["Climate Champion", "Water Warrior"]

    async def test_update_badge(self, client: AsyncClient, admin_user):
        badge = await _create_badge(client, admin_user)
        res = await client.patch(
            f"/api/v1/badges/{badge['id']}", json={"points_required": 750}, headers=get_auth_headers(admin_user),
        )
        assert res.status_code == 200
        assert res.json()["points_required"] == 750
        assert res.json()["name"] == "Tree Hugger"

    async def test_update_missing_badge(self, client: AsyncClient, admin_user):
        res = await client.patch("/api/v1/badges/nope", json={"name": "x"}, headers=get_auth_headers(admin_user))
        assert res.status_code == 404


@pytest.mark.asyncio
class TestDeactivation:
    async def test_delete_deactivates_and_keeps_awards(self, client: AsyncClient, db_session, admin_user, other_user):
        badge = await _create_badge(client, admin_user)
        admin = get_auth_headers(admin_user)
        res = await client.post(f"/api/v1/users/{other_user.id}/badges/{badge['id']}", headers=admin)
        assert res.status_code == 201

        res = await client.delete(f"/api/v1/badges/{badge['id']}", headers=admin)
        assert res.status_code == 200
        assert res.json()["is_active"] is False

        assert (await client.get("/api/v1/badges", headers=admin)).json() == []
        stored = await db_session.get(Badge, badge["id"])
        assert stored is not None
        assert stored.is_active is False

        res = await client.get(f"/api/v1/users/{other_user.id}/badges", headers=admin)
        awards = res.json()
        assert len(awards) == 1
        assert awards[0]["badge"]["id"] == badge["id"]
        assert awards[0]["badge"]["is_active"] is False

    async def test_inactive_badge_cannot_be_awarded(self, client: AsyncClient, admin_user, other_user):
        badge = await _create_badge(client, admin_user)
        admin = get_auth_headers(admin_user)
        await client.delete(f"/api/v1/badges/{badge['id']}", headers=admin)

        res = await client.post(f"/api/v1/users/{other_user.id}/badges/{badge['id']}", headers=admin)
        assert res.status_code == 409
        assert res.json()["code"] == "SDG-BADGE-001"

    async def test_reactivate(self, client: AsyncClient, admin_user):
        badge = await _create_badge(client, admin_user)
        admin = get_auth_headers(admin_user)
        await client.delete(f"/api/v1/badges/{badge['id']}", headers=admin)
        res = await client.patch(f"/api/v1/badges/{badge['id']}", json={"is_active": True}, headers=admin)
        assert res.json()["is_active"] is True
        assert len((await client.get("/api/v1/badges", headers=admin)).json()) == 1


@pytest.mark.asyncio
class TestAwards:
    async def test_award_records_activity(self, client: AsyncClient, admin_user, other_user):
        badge = await _create_badge(client, admin_user)
        res = await client.post(
            f"/api/v1/users/{other_user.id}/badges/{badge['id']}", headers=get_auth_headers(admin_user),
        )
        assert res.json()["user_id"] == other_user.id
        assert res.json()["badge"]["name"] == "Tree Hugger"

        res = await client.get("/api/v1/activities", headers=get_auth_headers(other_user))
        earned = [a for a in res.json() if a["type"] == "badge_earned"]
        assert len(earned) == 1
        assert earned[0]["user_id"] == other_user.id
        assert earned[0]["metadata"] == {"badge_id": badge["id"], "badge_name": "Tree Hugger"}

    async def test_member_cannot_award(self, client: AsyncClient, admin_user, test_user):
        badge = await _create_badge(client, admin_user)
        res = await client.post(
            f"/api/v1/users/{test_user.id}/badges/{badge['id']}", headers=get_auth_headers(test_user),
        )
        assert res.status_code == 403

    async def test_award_to_unknown_user(self, client: AsyncClient, admin_user):
        badge = await _create_badge(client, admin_user)
        res = await client.post(f"/api/v1/users/ghost/badges/{badge['id']}", headers=get_auth_headers(admin_user))
        assert res.status_code == 422

    async def test_badges_of_unknown_user(self, client: AsyncClient, test_user):
        res = await client.get("/api/v1/users/ghost/badges", headers=get_auth_headers(test_user))
        assert res.status_code == 404

    async def test_core_award_errors(self, db_session, other_user):
        with pytest.raises(ReferentialIntegrityError):
            await gamification.award_badge(db_session, other_user.id, "missing-badge")

        badge = await gamification.create_badge(db_session, {"name": "Retired"})
        await gamification.delete_badge(db_session, badge.id)
        with pytest.raises(BadgeInactiveError):
            await gamification.award_badge(db_session, other_user.id, badge.id)

    async def test_repeat_awards_are_kept(self, db_session, other_user):
        badge = await gamification.create_badge(db_session, {"name": "Volunteer"})
        first = await gamification.award_badge(db_session, other_user.id, badge.id)
        second = await gamification.award_badge(db_session, other_user.id, badge.id)
        assert first.id != second.id

        awards = await gamification.get_user_badges(db_session, other_user.id)
        assert len(awards) == 2
        assert all(isinstance(ub, UserBadge) and b.id == badge.id for ub, b in awards)
