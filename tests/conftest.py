# Set environment variables before the application modules read their settings
import os

os.environ["TESTING"] = "True"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["COOKIE_SECURE"] = "false"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["TIMEZONE"] = "UTC"
os.environ["REVISION_INTERVALS"] = "[1, 3, 7, 15, 30]"

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel

from revision_planner.business.services import (
    StoreRegistry,
    create_access_token,
    generate_password_hash,
    get_store_registry,
    store_registry,
)
from revision_planner.config import logger
from revision_planner.data.repositories import async_session_maker, get_redis_client
from revision_planner.data.repositories.database import async_engine
from revision_planner.data.schemas import Problem, User
from revision_planner.main import app


class FakeRedis:
    """In-memory stand-in for RedisClient in tests."""

    def __init__(self):
        self.data = {}
        self.expiry = {}

    async def get(self, name):
        return self.data.get(name)

    async def set(self, name, value, ex=None):
        self.data[name] = value
        if ex:
            self.expiry[name] = ex

    async def exists(self, name):
        return name in self.data

    async def incr(self, name):
        self.data[name] = int(self.data.get(name, 0)) + 1
        return self.data[name]

    async def expire(self, name, seconds):
        self.expiry[name] = seconds

    async def hit(self, name, window):
        count = await self.incr(name)
        if count == 1:
            await self.expire(name, window)
        return count

    async def add_jti_to_blocklist(self, jti, expiry=None):
        await self.set(f"jti:{jti}", "revoked", ex=expiry)

    async def token_in_blocklist(self, jti):
        return await self.exists(f"jti:{jti}")

    async def close(self):
        pass


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


async def _create_tables():
    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def _drop_tables():
    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)


async def insert_problem(owner_id, **fields):
    now = datetime.now(timezone.utc)
    values = {
        "owner_id": owner_id,
        "problem_text": "Two Sum",
        "last_solved_at": now,
        "created_at": now,
        "solve_count": 1,
        "is_revision": False,
    }
    values.update(fields)
    problem = Problem(**values)
    async with async_session_maker() as session:
        session.add(problem)
        await session.commit()
        await session.refresh(problem)
    return problem


# Create test database and tables
@pytest.fixture(scope="function")
def test_db():
    asyncio.run(_create_tables())
    try:
        yield async_session_maker
    finally:
        # Drop tables after test
        asyncio.run(_drop_tables())


# Create a test user
@pytest.fixture
def test_user(test_db):
    async def create():
        user = User(
            email="coder@example.com",
            display_name="Coder",
            password_hash=generate_password_hash("password123"),
        )
        async with test_db() as session:
            session.add(user)
            await session.commit()
            await session.refresh(user)
        return user

    return asyncio.run(create())


@pytest.fixture
def seed_problem(test_user):
    """Inserts a problem row for the test user from synchronous tests."""

    def seed(**fields):
        owner_id = fields.pop("owner_id", test_user.id)
        return asyncio.run(insert_problem(owner_id, **fields))

    return seed


@pytest.fixture
def problem_factory(test_user):
    """Inserts a problem row for the test user from async tests."""

    def factory(**fields):
        return insert_problem(test_user.id, **fields)

    return factory


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc))


@pytest.fixture(autouse=True)
def reset_store_registry():
    store_registry.clear()
    yield
    store_registry.clear()


# Create test client
@pytest.fixture
def client(test_db, fake_redis):
    app.dependency_overrides[get_redis_client] = lambda: fake_redis

    with TestClient(app) as test_client:
        yield test_client

    # Remove the override after the test
    app.dependency_overrides.clear()


@pytest.fixture
def auth_client(client, test_user):
    access_token = create_access_token(
        {"id": str(test_user.id), "email": test_user.email}
    )
    client.cookies.set("access_token", access_token)
    return client


@pytest.fixture
def clocked_registry(clock):
    """Routes a test client's problem stores through the fake clock."""
    registry = StoreRegistry(session_factory=async_session_maker, clock=clock)
    app.dependency_overrides[get_store_registry] = lambda: registry
    yield registry
    registry.clear()


@pytest.fixture
def other_owner_id():
    return uuid.uuid4()


# Disable logging during tests
@pytest.fixture(autouse=True)
def disable_logging():
    logger.disabled = True
    yield
    logger.disabled = False
