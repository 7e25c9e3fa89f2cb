# tests/test_health.py — Service endpoints, middleware and error envelopes
import pytest
from httpx import AsyncClient

from errors import ERROR_CATALOGUE, DomainError
from tests.conftest import get_auth_headers


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["database"] == "connected"
    assert data["environment"] == "test"


@pytest.mark.asyncio
async def test_root(client: AsyncClient):
    resp = await client.get("/")
    assert resp.status_code == 200
    assert resp.json()["name"] == "SDG Taskboard"


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient):
    resp = await client.get("/", headers={"X-Request-ID": "req-123"})
    assert resp.headers["X-Request-ID"] == "req-123"
    assert resp.headers["X-Correlation-ID"] == "req-123"
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


@pytest.mark.asyncio
async def test_domain_error_envelope(client: AsyncClient, test_user):
    created = await client.post("/api/v1/projects", json={"name": "Envelope"}, headers=get_auth_headers(test_user))
    project_id = created.json()["id"]
    resp = await client.post(
        f"/api/v1/projects/{project_id}/members",
        json={"user_id": "ghost"},
        headers={**get_auth_headers(test_user), "X-Request-ID": "trace-me"},
    )
    assert resp.status_code == 422
    assert resp.json() == {
        "detail": "User 'ghost' does not exist",
        "code": "SDG-DB-002",
        "entity": "User",
        "entity_id": "ghost",
        "request_id": "trace-me",
    }


@pytest.mark.asyncio
async def test_validation_error_envelope(client: AsyncClient, test_user):
    resp = await client.post(
        "/api/v1/projects", json={"visibility": "secret"},
        headers={**get_auth_headers(test_user), "X-Request-ID": "trace-me"},
    )
    assert resp.status_code == 422
    body = resp.json()
    assert body["code"] == "SDG-SYS-004"
    assert body["request_id"] == "trace-me"
    locs = [tuple(e["loc"]) for e in body["detail"]]
    assert ("body", "name") in locs


def test_every_catalogue_code_is_raised():
    raised = {cls.code for cls in DomainError.__subclasses__()}
    # Emitted by the validation and unhandled-exception handlers
    handlers = {"SDG-SYS-004", "SDG-SYS-001"}
    assert raised | handlers == set(ERROR_CATALOGUE)
    assert all(ERROR_CATALOGUE[code]["http_status"] == 409 for code in ("SDG-TASK-002", "SDG-DB-003"))
