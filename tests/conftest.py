import os

# configuration is read at import time
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import random
from datetime import date

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from pantry_api import notifier
from pantry_api.celery_app import celery_app
from pantry_api.database import Base, get_db
from pantry_api.main import app
from pantry_api.routers.deps import get_rng, get_today

SQLALCHEMY_TEST_URL = "sqlite+aiosqlite:///:memory:"
TODAY = date(2024, 6, 15)


@pytest_asyncio.fixture
async def engine():
    test_engine = create_async_engine(
        SQLALCHEMY_TEST_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def published(monkeypatch):
    """Pantry events the routes tried to publish, in order."""
    events = []

    async def _publish(user_id, event, **data):
        events.append({"user_id": user_id, "event": event, **data})

    monkeypatch.setattr(notifier, "publish_pantry_event", _publish)
    return events


class DummyTask:
    def __init__(self, id):
        self.id = id


class DummyResult:
    def __init__(self, result, ready=True, failed=False):
        self._result = result
        self._ready = ready
        self._failed = failed
        self.state = "FAILURE" if failed else ("SUCCESS" if ready else "PENDING")

    def ready(self):
        return self._ready

    def failed(self):
        return self._failed

    def get(self, propagate=True):
        return self._result


@pytest.fixture
def celery_calls(monkeypatch):
    """Records ``send_task`` calls; set ``results[task_id]`` to control ``AsyncResult``."""
    calls = {"sent": [], "results": {}}

    def _send_task(name, *args, **kwargs):
        calls["sent"].append({"name": name, "args": args, "kwargs": kwargs.get("kwargs", {})})
        return DummyTask(id="task-123")

    def _async_result(task_id):
        return calls["results"].get(task_id, DummyResult(None, ready=False))

    monkeypatch.setattr(celery_app, "send_task", _send_task)
    monkeypatch.setattr(celery_app, "AsyncResult", _async_result)
    return calls


@pytest_asyncio.fixture
async def client(session_factory, published, celery_calls):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_today] = lambda: TODAY
    app.dependency_overrides[get_rng] = lambda: random.Random(42)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def register(client: AsyncClient, email: str, name: str, password: str = "secret123") -> dict:
    r = await client.post(
        "/api/auth/register",
        json={"email": email, "password": password, "name": name},
    )
    assert r.status_code == 201, r.text
    body = r.json()
    return {
        "id": body["user"]["id"],
        "token": body["access_token"],
        "headers": {"Authorization": f"Bearer {body['access_token']}"},
    }


@pytest_asyncio.fixture
async def alice(client):
    return await register(client, "alice@pantry.io", "Alice")


@pytest_asyncio.fixture
async def bob(client):
    return await register(client, "bob@pantry.io", "Bob")


@pytest_asyncio.fixture
async def carol(client):
    return await register(client, "carol@pantry.io", "Carol")
