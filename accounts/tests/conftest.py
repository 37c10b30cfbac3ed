"""Test fixtures for the account service.

Uses SQLite in-memory for tests, no Postgres needed. Object storage and the
verification publisher are replaced with in-memory fakes.
"""

import base64
import functools
import os
from typing import AsyncGenerator

# Set test configuration before any app imports
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from accounts.app.core.database import Base, get_db, ping_db
from accounts.app.core.health import HealthMonitor
from accounts.app.main import app
from accounts.app.services.notifier import VerificationMessage, VerificationPublisher, get_publisher
from accounts.app.services.storage import ObjectStore, StorageError, StoredObject, get_object_store

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

TEST_EMAIL = "test@example.com"
TEST_PASSWORD = "testpassword123"


class RecordingPublisher(VerificationPublisher):
    """Captures verification messages instead of sending them."""

    def __init__(self, deliver: bool = True) -> None:
        self.messages: list[VerificationMessage] = []
        self.deliver = deliver

    async def publish(self, message: VerificationMessage) -> bool:
        self.messages.append(message)
        return self.deliver


class InMemoryObjectStore(ObjectStore):
    """Dict-backed object store that records every call."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_delete = False

    async def upload(self, key: str, data: bytes, content_type: str) -> StoredObject:
        self.calls.append(("upload", key))
        self.objects[key] = data
        return StoredObject(
            key=key,
            url=f"https://storage.googleapis.com/test-bucket/{key}",
            size_bytes=len(data),
        )

    async def delete(self, key: str) -> None:
        self.calls.append(("delete", key))
        if self.fail_delete:
            raise StorageError(f"delete failed for {key}")
        self.objects.pop(key, None)


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh in-memory database per test, bound to the test's event loop."""
    engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            yield session

    previous_health = app.state.health
    app.dependency_overrides[get_db] = override_get_db
    app.state.health = HealthMonitor(functools.partial(ping_db, engine))
    await app.state.health.check()
    yield factory

    app.dependency_overrides.pop(get_db, None)
    app.state.health = previous_health
    await engine.dispose()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest_asyncio.fixture
async def client(
    session_factory, publisher: RecordingPublisher, store: InMemoryObjectStore
) -> AsyncGenerator[AsyncClient, None]:
    """Async test client for the FastAPI app."""
    app.dependency_overrides[get_publisher] = lambda: publisher
    app.dependency_overrides[get_object_store] = lambda: store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.pop(get_publisher, None)
    app.dependency_overrides.pop(get_object_store, None)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Yield a DB session for direct model manipulation in tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def basic_auth():
    """Build Basic-Auth headers for an email/password pair."""
    def _build(email: str, password: str) -> dict:
        encoded = base64.b64encode(f"{email}:{password}".encode()).decode()
        return {"Authorization": f"Basic {encoded}"}

    return _build


@pytest_asyncio.fixture
async def registered_user(client: AsyncClient) -> dict:
    """Register the default test user and return the created projection."""
    resp = await client.post("/users", json={
        "first_name": "Test",
        "last_name": "User",
        "email": TEST_EMAIL,
        "password": TEST_PASSWORD,
    })
    assert resp.status_code == 201
    return resp.json()


@pytest_asyncio.fixture
async def auth_headers(registered_user: dict, basic_auth) -> dict:
    """Auth headers for the registered (still unverified) test user."""
    return basic_auth(TEST_EMAIL, TEST_PASSWORD)


@pytest_asyncio.fixture
async def verified_headers(
    client: AsyncClient, registered_user: dict, publisher: RecordingPublisher, basic_auth
) -> dict:
    """Auth headers for the test user after completing email verification."""
    message = publisher.messages[-1]
    resp = await client.get("/users/verify", params={"user": message.user_id, "token": message.token})
    assert resp.status_code == 200
    return basic_auth(TEST_EMAIL, TEST_PASSWORD)
