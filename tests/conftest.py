"""
Pytest configuration and fixtures for testing.
"""
import json
import os

# Settings are read at import time; point them at throwaway backends first.
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("EVENT_BUS_ENABLED", "false")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")

import pytest
import pytest_asyncio
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, List
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from eventease.main import app
from eventease.db.session import Base, get_session
from eventease.core.security import create_access_token
from eventease.db.models.user import User, RoleEnum
from eventease.db.models.event import Event, EventCategory, EventStatus
from eventease.db.models.rsvp import RSVP, RSVPResponse
from eventease.websocket.manager import ConnectionManager


# In-memory SQLite by default; set TEST_DATABASE_URL to run against PostgreSQL
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite://")


def _make_engine():
    if TEST_DATABASE_URL.startswith("sqlite"):
        # One shared connection so every session sees the same in-memory database
        return create_async_engine(
            TEST_DATABASE_URL,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)


def upcoming(days: int = 7):
    return (datetime.now(timezone.utc) + timedelta(days=days)).date()


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Session factory bound to a freshly created schema."""
    engine = _make_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def rooms(monkeypatch) -> ConnectionManager:
    """A fresh room registry installed on the app for this test."""
    manager = ConnectionManager()
    monkeypatch.setattr(app.state, "rooms", manager)
    return manager


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, rooms) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client for testing API endpoints.
    Overrides the database session dependency.
    """
    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_session] = override_get_session

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _add_user(session: AsyncSession, email: str, name: str) -> User:
    from eventease.core.security import hash_password

    user = User(email=email, name=name, hashed_password=hash_password("Test123!@#"), role=RoleEnum.user)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest_asyncio.fixture
async def owner(db_session: AsyncSession) -> User:
    """Account that creates events."""
    return await _add_user(db_session, "alice@example.com", "Alice Host")


@pytest_asyncio.fixture
async def guest(db_session: AsyncSession) -> User:
    return await _add_user(db_session, "bob@example.com", "Bob Guest")


@pytest_asyncio.fixture
async def other_guest(db_session: AsyncSession) -> User:
    return await _add_user(db_session, "carol@example.com", "Carol Guest")


def token_for(user: User) -> str:
    return create_access_token({"sub": str(user.id), "role": user.role.value})


@pytest.fixture
def owner_token(owner: User) -> str:
    return token_for(owner)


@pytest.fixture
def guest_token(guest: User) -> str:
    return token_for(guest)


@pytest.fixture
def other_guest_token(other_guest: User) -> str:
    return token_for(other_guest)


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def _add_event(session: AsyncSession, creator: User, **overrides) -> Event:
    fields = dict(
        title="Summer Garden Party",
        description="Drinks and snacks in the back garden",
        date=upcoming(),
        time="18:00",
        location="12 Elm Street",
        created_by=creator.id,
        category=EventCategory.party,
        status=EventStatus.active,
        is_public=True,
    )
    fields.update(overrides)
    event = Event(**fields)
    session.add(event)
    await session.commit()
    await session.refresh(event)
    return event


@pytest_asyncio.fixture
async def event(db_session: AsyncSession, owner: User) -> Event:
    return await _add_event(db_session, owner)


@pytest_asyncio.fixture
async def private_event(db_session: AsyncSession, owner: User) -> Event:
    return await _add_event(
        db_session, owner,
        title="Secret Planning Meeting",
        description="Invite-only planning session",
        category=EventCategory.meeting,
        is_public=False,
    )


@pytest_asyncio.fixture
async def events(db_session: AsyncSession, owner: User) -> List[Event]:
    """Five public events on consecutive days."""
    created = []
    for i in range(5):
        created.append(await _add_event(
            db_session, owner,
            title=f"Meetup number {i + 1}",
            description=f"Monthly community meetup edition {i + 1}",
            location=f"Hall {i + 1}",
            date=upcoming(i + 1),
            category=EventCategory.meeting,
        ))
    return created


@pytest_asyncio.fixture
async def rsvp(db_session: AsyncSession, event: Event, guest: User) -> RSVP:
    """Bob answered Yes with a message and one guest."""
    row = RSVP(
        event_id=event.id,
        user_id=guest.id,
        response=RSVPResponse.Yes,
        message="Wouldn't miss it",
        plus_ones=1,
    )
    db_session.add(row)
    await db_session.commit()
    await db_session.refresh(row)
    return row


class RecordingSocket:
    """Stands in for a WebSocket; keeps every JSON message it is sent."""

    def __init__(self, fail: bool = False):
        self.messages = []
        self.fail = fail

    async def accept(self):
        pass

    async def send_text(self, text: str):
        if self.fail:
            raise RuntimeError("socket closed")
        self.messages.append(json.loads(text))


@pytest.fixture(autouse=True)
def mock_password_hashing(monkeypatch):
    """
    Mock bcrypt password hashing for testing environments where bcrypt cannot be installed.
    This fixture is autouse, so it applies to all tests automatically.
    """
    class MockPasswordContext:
        """Mock password context that doesn't require bcrypt."""
        def hash(self, password: str) -> str:
            return f"$2b$12$mockedhash{password}"

        def verify(self, plain: str, hashed: str) -> bool:
            return hashed == f"$2b$12$mockedhash{plain}"

    from eventease.core import security
    monkeypatch.setattr(security, "pwd_context", MockPasswordContext())


@pytest.fixture(autouse=True)
def disable_rate_limiting(monkeypatch):
    """Disable rate limiting for all tests."""
    import eventease.api.v1.routes.auth as auth_routes
    monkeypatch.setattr(auth_routes.limiter, "enabled", False)


@pytest.fixture
def published(monkeypatch) -> list:
    """Record event-bus publications instead of talking to RabbitMQ."""
    calls = []

    async def record_publish(routing_key, payload):
        calls.append((routing_key, payload))
        return True

    from eventease.events import publisher
    monkeypatch.setattr(publisher, "publish_event", record_publish)
    return calls


@pytest.fixture
def make_socket():
    """Factory for ``RecordingSocket`` stand-ins."""
    return RecordingSocket


@pytest.fixture
def owner_headers(owner_token) -> dict:
    return auth_header(owner_token)


@pytest.fixture
def guest_headers(guest_token) -> dict:
    return auth_header(guest_token)


@pytest.fixture
def other_guest_headers(other_guest_token) -> dict:
    return auth_header(other_guest_token)
