# tests/test_search.py — Task search and per-user queries
import pytest
from httpx import AsyncClient

import lifecycle
import storage
from models import TaskPriority, TaskStatus
from search import TaskSearchParams, search_tasks, get_tasks_by_user
from tests.conftest import get_auth_headers, create_project, create_task


async def _search(client: AsyncClient, user, **params) -> list:
    res = await client.get("/api/v1/tasks/search", params=params, headers=get_auth_headers(user))
    assert res.status_code == 200, res.text
    return res.json()


@pytest.mark.asyncio
class TestSearchTasks:
    async def test_project_filter_spans_boards(self, client: AsyncClient, test_user):
        water = await create_project(client, test_user, name="Clean Water")
        energy = await create_project(client, test_user, name="Clean Energy")
        res = await client.post(
            f"/api/v1/projects/{water['id']}/boards", json={"name": "Wells"}, headers=get_auth_headers(test_user),
        )
        wells_board = res.json()["id"]

        a = await create_task(client, test_user, water["default_board"]["id"], title="Map villages")
        b = await create_task(client, test_user, wells_board, title="Drill well")
        await create_task(client, test_user, energy["default_board"]["id"], title="Install panels")

        found = await _search(client, test_user, project_id=water["id"])
        assert {t["id"] for t in found} == {a["id"], b["id"]}

    async def test_text_match_is_case_insensitive(self, client: AsyncClient, test_user):
        project = await create_project(client, test_user)
        board_id = project["default_board"]["id"]
        title_hit = await create_task(client, test_user, board_id, title="Plant MANGROVES")
        desc_hit = await create_task(client, test_user, board_id, title="Coastline", description="restore mangroves")
        await create_task(client, test_user, board_id, title="Solar pumps")

        found = await _search(client, test_user, query="Mangroves")
        assert {t["id"] for t in found} == {title_hit["id"], desc_hit["id"]}

    async def test_like_wildcards_are_literal(self, client: AsyncClient, test_user):
        project = await create_project(client, test_user)
        board_id = project["default_board"]["id"]
        hit = await create_task(client, test_user, board_id, title="Cut emissions 50%")
        await create_task(client, test_user, board_id, title="Cut emissions by half")

        found = await _search(client, test_user, query="50%")
        assert [t["id"] for t in found] == [hit["id"]]

    async def test_filters_are_anded(self, client: AsyncClient, test_user, other_user):
        project = await create_project(client, test_user)
        board_id = project["default_board"]["id"]
        match = await create_task(
            client, test_user, board_id, title="Urgent audit", priority="urgent", assignee_id=other_user.id,
        )
        await create_task(client, test_user, board_id, title="Urgent but unassigned", priority="urgent")
        await create_task(client, test_user, board_id, title="Assigned but low", priority="low", assignee_id=other_user.id)

        found = await _search(client, test_user, priority="urgent", assignee_id=other_user.id)
        assert [t["id"] for t in found] == [match["id"]]

        found = await _search(client, test_user, priority="urgent", assignee_id=other_user.id, status="done")
        assert found == []

    async def test_type_and_reporter_filters(self, client: AsyncClient, test_user, other_user):
        project = await create_project(client, test_user)
        await client.post(
            f"/api/v1/projects/{project['id']}/members", json={"user_id": other_user.id},
            headers=get_auth_headers(test_user),
        )
        board_id = project["default_board"]["id"]
        bug = await create_task(client, test_user, board_id, title="Sensor glitch", type="bug")
        challenge = await create_task(client, other_user, board_id, title="Zero waste week", type="challenge")

        assert [t["id"] for t in await _search(client, test_user, type="bug")] == [bug["id"]]
        assert [t["id"] for t in await _search(client, test_user, reporter_id=other_user.id)] == [challenge["id"]]

    async def test_pagination(self, client: AsyncClient, test_user):
        project = await create_project(client, test_user)
        board_id = project["default_board"]["id"]
        for i in range(5):
            await create_task(client, test_user, board_id, title=f"Batch {i}")

        page1 = await _search(client, test_user, limit=2, offset=0)
        page2 = await _search(client, test_user, limit=2, offset=2)
        page3 = await _search(client, test_user, limit=2, offset=4)
        ids = [t["id"] for t in page1 + page2 + page3]
        assert len(page1) == 2 and len(page2) == 2 and len(page3) == 1
        assert len(set(ids)) == 5

    async def test_limit_bounds(self, client: AsyncClient, test_user):
        res = await client.get("/api/v1/tasks/search", params={"limit": 0}, headers=get_auth_headers(test_user))
        assert res.status_code == 422
        res = await client.get("/api/v1/tasks/search", params={"limit": 201}, headers=get_auth_headers(test_user))
        assert res.status_code == 422

    async def test_invalid_status_filter(self, client: AsyncClient, test_user):
        res = await client.get("/api/v1/tasks/search", params={"status": "archived"}, headers=get_auth_headers(test_user))
        assert res.status_code == 422

    async def test_core_search_orders_by_recent_update(self, db_session, test_user):
        _, board = await storage.create_project(db_session, {"name": "Ordering"}, owner_id=test_user.id)
        old = await lifecycle.create_task(db_session, board.id, {"title": "Old"}, reporter_id=test_user.id)
        new = await lifecycle.create_task(db_session, board.id, {"title": "New"}, reporter_id=test_user.id)

        found = await search_tasks(db_session, TaskSearchParams())
        assert [t.id for t in found] == [new.id, old.id]

        await lifecycle.update_task(db_session, old.id, {"priority": TaskPriority.HIGH}, actor_id=test_user.id)
        found = await search_tasks(db_session, TaskSearchParams(priority=TaskPriority.HIGH))
        assert [t.id for t in found] == [old.id]
        found = await search_tasks(db_session, TaskSearchParams(status=TaskStatus.TODO))
        assert [t.id for t in found] == [old.id, new.id]


@pytest.mark.asyncio
class TestTasksByUser:
    async def test_my_tasks(self, client: AsyncClient, test_user, other_user):
        project = await create_project(client, test_user)
        board_id = project["default_board"]["id"]
        mine = await create_task(client, test_user, board_id, title="Mine", assignee_id=other_user.id)
        await create_task(client, test_user, board_id, title="Unassigned")

        res = await client.get("/api/v1/tasks/my-tasks", headers=get_auth_headers(other_user))
        assert res.status_code == 200
        assert [t["id"] for t in res.json()] == [mine["id"]]

        res = await client.get("/api/v1/tasks/my-tasks", headers=get_auth_headers(test_user))
        assert res.json() == []

    async def test_newest_first(self, db_session, test_user, other_user):
        _, board = await storage.create_project(db_session, {"name": "Mine"}, owner_id=test_user.id)
        first = await lifecycle.create_task(
            db_session, board.id, {"title": "First", "assignee_id": other_user.id}, reporter_id=test_user.id,
        )
        second = await lifecycle.create_task(
            db_session, board.id, {"title": "Second", "assignee_id": other_user.id}, reporter_id=test_user.id,
        )
        tasks = await get_tasks_by_user(db_session, other_user.id)
        assert [t.id for t in tasks] == [second.id, first.id]
