import os

# Point the app at SQLite before anything imports the settings module
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

import httpx
import pytest
import pytest_asyncio
from fastapi import BackgroundTasks
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from myspace_api import common
from myspace_api.common import get_notification_publisher
from myspace_api.database import Base
from myspace_api.init_db import get_db
from myspace_api.main import app
from myspace_api.models import User
from myspace_api.services.notification_service import NotificationPublisher


class RecordingPublisher:
    """Collects published notifications instead of delivering them."""

    def __init__(self):
        self.events = []

    def publish(self, event):
        self.events.append(event)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def users(session_factory):
    """Seed alice, bob and carol and return their ids."""
    async with session_factory() as session:
        session.add_all([
            User(id="alice", username="alice", display_name="Alice", top8=[]),
            User(id="bob", username="bob", display_name="Bob", top8=[]),
            User(id="carol", username="carol", display_name="carol", top8=[]),
        ])
        await session.commit()
    return {"alice": "alice", "bob": "bob", "carol": "carol"}


@pytest.fixture
def publisher():
    return RecordingPublisher()


def fake_verify_id_token(token):
    # Tokens look like "token-<uid>"
    if not token.startswith("token-"):
        raise ValueError("Token could not be verified")
    return {"uid": token[len("token-"):]}


@pytest.fixture
def verified_tokens(monkeypatch):
    monkeypatch.setattr(common.auth, "verify_id_token", fake_verify_id_token)


@pytest_asyncio.fixture
async def client(session_factory, verified_tokens):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    def override_publisher(background_tasks: BackgroundTasks):
        return NotificationPublisher(background_tasks, session_factory)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_publisher] = override_publisher

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()
