# tests/conftest.py — Shared test fixtures
import os
import uuid

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Use SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///./test.db"
os.environ["DATABASE_URL"] = TEST_DB_URL
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-unit-tests-only-min-32-chars"
os.environ["ENVIRONMENT"] = "test"
os.environ["AUTH_MODE"] = "local"
os.environ.setdefault("TASK_TRANSITION_POLICY", "free")

from models import Base, User, UserRole
from auth import AuthService, login_throttle
from database import get_db_session
from main import app


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(session_factory):
    """HTTP test client with overridden DB dependency"""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    login_throttle.clear()
    app.dependency_overrides[get_db_session] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def make_user(db_session, role: UserRole, first_name: str, points: int = 0) -> User:
    user = User(
        id=str(uuid.uuid4()),
        email=f"{first_name.lower()}-{uuid.uuid4().hex[:6]}@sdg-taskboard.dev",
        first_name=first_name,
        last_name="Tester",
        password_hash=AuthService.hash_password("TestPassword123!"),
        role=role,
        points=points,
        level=points // 100 + 1,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def test_user(db_session):
    """A regular member"""
    return await make_user(db_session, UserRole.MEMBER, "Member")


@pytest_asyncio.fixture
async def other_user(db_session):
    """A second member, used as assignee"""
    return await make_user(db_session, UserRole.MEMBER, "Assignee")


@pytest_asyncio.fixture
async def guest_user(db_session):
    return await make_user(db_session, UserRole.GUEST, "Guest")


@pytest_asyncio.fixture
async def admin_user(db_session):
    return await make_user(db_session, UserRole.ADMIN, "Admin")


@pytest_asyncio.fixture
async def super_admin(db_session):
    return await make_user(db_session, UserRole.SUPER_ADMIN, "Super")


def get_auth_headers(user: User) -> dict:
    """Generate auth headers for a user"""
    token = AuthService.create_access_token({
        "sub": user.id,
        "role": user.role.value if isinstance(user.role, UserRole) else user.role,
    })
    return {"Authorization": f"Bearer {token}"}


async def create_project(client: AsyncClient, user: User, **overrides) -> dict:
    """Create a project over HTTP and return the response body"""
    payload = {"name": "Climate Action", "visibility": "public", "sdg_tags": [13]}
    payload.update(overrides)
    resp = await client.post("/api/v1/projects", json=payload, headers=get_auth_headers(user))
    assert resp.status_code == 201, resp.text
    return resp.json()


async def create_task(client: AsyncClient, user: User, board_id: str, **overrides) -> dict:
    payload = {"title": "Plant trees"}
    payload.update(overrides)
    resp = await client.post(
        f"/api/v1/boards/{board_id}/tasks", json=payload, headers=get_auth_headers(user),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()
