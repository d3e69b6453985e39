"""
Centralized Test Configuration.
"""

import pytest
from datetime import datetime, timedelta, timezone
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from accountability.app.main import app
from accountability.app.db.session import get_db, Base
from accountability.app.services.notification_service import get_notification_sink

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class RecordingSink:
    """Notification sink that keeps events in memory instead of emailing."""

    def __init__(self):
        self.events = []

    def emit(self, event):
        self.events.append(event)

    def of_type(self, event_type):
        return [e for e in self.events if isinstance(e, event_type)]

    def clear(self):
        self.events = []


recording_sink = RecordingSink()


@pytest.fixture(scope="session", autouse=True)
def apply_overrides():
    """Apply overrides once for the session."""

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    def override_get_notification_sink():
        return recording_sink

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_sink] = override_get_notification_sink
    yield

    app.dependency_overrides = {}


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    recording_sink.clear()

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def sink():
    return recording_sink


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def in_days(days: float) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


@pytest.fixture
async def pair(client):
    """Register both users; return their ids, emails and auth headers."""
    users = {}
    for key, name in (("alice", "Alice"), ("bob", "Bob")):
        response = await client.post("/v1/auth/register", json={
            "email": f"{key}@example.com",
            "name": name,
            "password": "password123"
        })
        assert response.status_code == 201, response.text
        body = response.json()
        users[key] = {
            "id": body["user"]["id"],
            "email": body["user"]["email"],
            "headers": auth(body["access_token"])
        }
    return users


@pytest.fixture
def propose(client):
    """Create a proposal over HTTP and return its JSON."""

    async def _propose(creator, title="Go to the gym", penalty=25, deadline=None, description=None):
        payload = {
            "title": title,
            "deadline": deadline or in_days(1),
            "penalty_amount": penalty
        }
        if description is not None:
            payload["description"] = description
        response = await client.post("/v1/proposals", json=payload, headers=creator["headers"])
        assert response.status_code == 201, response.text
        return response.json()["proposal"]

    return _propose


@pytest.fixture
def act(client):
    """Run a transition endpoint and return the response."""

    async def _act(user, proposal_id, action):
        return await client.post(f"/v1/proposals/{proposal_id}/{action}", headers=user["headers"])

    return _act


@pytest.fixture
def session_factory():
    return TestingSessionLocal
