"""Shared fixtures: in-memory database, fake MQTT transport, fake live channel."""

import json
import os
import tempfile
from pathlib import Path

# Must be set before airsense.config is imported
os.environ.setdefault("DATABASE_PATH", str(Path(tempfile.gettempdir()) / "airsense-test.db"))
os.environ.setdefault("MQTT_ENABLED", "false")
os.environ["QUIET_HOURS_TIMEZONE"] = "UTC"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import airsense.models  # noqa: F401 - registers tables on Base.metadata
from airsense.database import Base, get_db
from airsense.dependencies import get_broadcaster, get_transport
from airsense.errors import TransportUnavailableError
from airsense.main import app

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeTransport:
    """Records published commands instead of talking to a broker."""

    def __init__(self, connected: bool = True):
        self.connected = connected
        self.fail_publish = False
        self.published: list[tuple[str, dict]] = []

    @property
    def is_connected(self) -> bool:
        return self.connected

    def publish(self, topic: str, payload: bytes) -> None:
        if not self.connected or self.fail_publish:
            raise TransportUnavailableError("broker unreachable")
        self.published.append((topic, json.loads(payload)))

    def status(self) -> dict:
        return {"connected": self.connected, "broker": "fake:1883", "subscription": "air-quality/#"}


class FakeBroadcaster:
    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def publish(self, event: str, data: dict) -> None:
        self.events.append((event, data))

    def of_type(self, event: str) -> list[dict]:
        return [data for name, data in self.events if name == event]


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def broadcaster():
    return FakeBroadcaster()


@pytest.fixture
async def client(session_factory, transport, broadcaster):
    """Test client wired to the in-memory database and fakes."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_transport] = lambda: transport
    app.dependency_overrides[get_broadcaster] = lambda: broadcaster

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()
