# tests/test_visibility.py — Private projects stay hidden behind their tasks
import pytest
from httpx import AsyncClient

from tests.conftest import get_auth_headers, create_project, create_task


async def _hidden_task(client: AsyncClient, owner):
    project = await create_project(client, owner, name="Secret Reef", visibility="private")
    board_id = project["default_board"]["id"]
    task = await create_task(client, owner, board_id, title="Hidden plan", description="coral nursery")
    res = await client.post(
        f"/api/v1/tasks/{task['id']}/comments", json={"content": "Owner note"}, headers=get_auth_headers(owner),
    )
    return project, board_id, task, res.json()


@pytest.mark.asyncio
class TestPrivateProjectTasks:
    async def test_board_tasks_hidden_from_outsider(self, client: AsyncClient, test_user, other_user):
        _, board_id, _, _ = await _hidden_task(client, test_user)
        outsider = get_auth_headers(other_user)

        res = await client.get(f"/api/v1/boards/{board_id}/tasks", headers=outsider)
        assert res.status_code == 404
        res = await client.post(f"/api/v1/boards/{board_id}/tasks", json={"title": "Sneaky"}, headers=outsider)
        assert res.status_code == 404

        res = await client.get(f"/api/v1/boards/{board_id}/tasks", headers=get_auth_headers(test_user))
        assert [t["title"] for t in res.json()] == ["Hidden plan"]

    async def test_search_skips_hidden_projects(self, client: AsyncClient, test_user, other_user):
        project, _, _, _ = await _hidden_task(client, test_user)
        outsider = get_auth_headers(other_user)

        res = await client.get("/api/v1/tasks/search", params={"project_id": project["id"]}, headers=outsider)
        assert res.status_code == 200
        assert res.json() == []
        res = await client.get("/api/v1/tasks/search", params={"query": "coral"}, headers=outsider)
        assert res.json() == []

        res = await client.get("/api/v1/tasks/search", params={"query": "coral"}, headers=get_auth_headers(test_user))
        assert [t["title"] for t in res.json()] == ["Hidden plan"]

    async def test_task_routes_hidden_from_outsider(self, client: AsyncClient, test_user, other_user):
        _, _, task, _ = await _hidden_task(client, test_user)
        outsider = get_auth_headers(other_user)
        base = f"/api/v1/tasks/{task['id']}"

        reads = ["", "/comments", "/time-logs", "/dependencies", "/activities"]
        for suffix in reads:
            res = await client.get(base + suffix, headers=outsider)
            assert res.status_code == 404, suffix

        writes = [
            client.patch(base, json={"title": "Mine now"}, headers=outsider),
            client.post(f"{base}/transition", json={"status": "done"}, headers=outsider),
            client.patch(f"{base}/assign", json={"assignee_id": other_user.id}, headers=outsider),
            client.put(f"{base}/labels", json={"labels": ["x"]}, headers=outsider),
            client.post(f"{base}/comments", json={"content": "hi"}, headers=outsider),
            client.post(f"{base}/time-logs", json={"time_spent": 1}, headers=outsider),
            client.post(f"{base}/dependencies", json={"depends_on_task_id": task["id"]}, headers=outsider),
            client.delete(base, headers=outsider),
        ]
        for call in writes:
            res = await call
            assert res.status_code == 404

        res = await client.get(base, headers=get_auth_headers(test_user))
        assert res.json()["title"] == "Hidden plan"
        assert res.json()["status"] == "todo"

    async def test_member_and_admin_see_tasks(self, client: AsyncClient, test_user, other_user, admin_user):
        project, board_id, task, _ = await _hidden_task(client, test_user)
        await client.post(
            f"/api/v1/projects/{project['id']}/members", json={"user_id": other_user.id},
            headers=get_auth_headers(test_user),
        )

        for viewer in (other_user, admin_user):
            headers = get_auth_headers(viewer)
            assert (await client.get(f"/api/v1/tasks/{task['id']}", headers=headers)).status_code == 200
            res = await client.get("/api/v1/tasks/search", params={"project_id": project["id"]}, headers=headers)
            assert [t["id"] for t in res.json()] == [task["id"]]

        res = await client.post(
            f"/api/v1/boards/{board_id}/tasks", json={"title": "Member task"}, headers=get_auth_headers(other_user),
        )
        assert res.status_code == 201

    async def test_comment_edit_hidden_after_removal(self, client: AsyncClient, test_user, other_user):
        project, _, task, _ = await _hidden_task(client, test_user)
        owner = get_auth_headers(test_user)
        await client.post(f"/api/v1/projects/{project['id']}/members", json={"user_id": other_user.id}, headers=owner)
        res = await client.post(
            f"/api/v1/tasks/{task['id']}/comments", json={"content": "Member note"},
            headers=get_auth_headers(other_user),
        )
        comment_id = res.json()["id"]

        await client.delete(f"/api/v1/projects/{project['id']}/members/{other_user.id}", headers=owner)
        res = await client.patch(
            f"/api/v1/comments/{comment_id}", json={"content": "edited"}, headers=get_auth_headers(other_user),
        )
        assert res.status_code == 404


@pytest.mark.asyncio
class TestPrivateProjectFeeds:
    async def test_activity_feed_hides_private_projects(self, client: AsyncClient, test_user, other_user, admin_user):
        project, _, _, _ = await _hidden_task(client, test_user)
        await create_project(client, other_user, name="Open Garden")

        res = await client.get("/api/v1/activities", headers=get_auth_headers(other_user))
        assert [a["metadata"].get("project_name") for a in res.json()] == ["Open Garden"]
        res = await client.get(
            "/api/v1/activities", params={"project_id": project["id"]}, headers=get_auth_headers(other_user),
        )
        assert res.json() == []

        res = await client.get(
            "/api/v1/activities", params={"project_id": project["id"]}, headers=get_auth_headers(admin_user),
        )
        assert {a["type"] for a in res.json()} == {"project_created", "task_created", "comment_added"}

    async def test_leaderboard_hides_private_project(self, client: AsyncClient, test_user, other_user):
        project, _, _, _ = await _hidden_task(client, test_user)

        res = await client.get(
            "/api/v1/leaderboard", params={"project_id": project["id"]}, headers=get_auth_headers(other_user),
        )
        assert res.status_code == 200
        assert res.json() == []

        res = await client.get(
            "/api/v1/leaderboard", params={"project_id": project["id"]}, headers=get_auth_headers(test_user),
        )
        assert [e["user_id"] for e in res.json()] == [test_user.id]
