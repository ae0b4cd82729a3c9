from types import SimpleNamespace

import pytest

from feedline.categories.registry import CategoryRegistry
from feedline.database.database import DatabaseRegistry
from feedline.database.tables import Base
from feedline.main.config import Settings, reset_settings


class FakeForwarder:
    """Records forwarded messages instead of pushing them to Redis."""

    def __init__(self, fail_on: int | None = None):
        self.messages = []
        self.fail_on = fail_on

    async def forward(self, queue, body, *, message_type=None, headers=None):
        if self.fail_on is not None and len(self.messages) == self.fail_on:
            raise ConnectionError("broker unavailable")
        self.messages.append(
            SimpleNamespace(queue=queue, body=body, type=message_type, headers=headers or {})
        )

    def to(self, queue):
        return [message for message in self.messages if message.queue == queue]


class FakePublisher:
    def __init__(self):
        self.events = []

    async def publish(self, topic, event):
        self.events.append((topic, event))


@pytest.fixture
def sqlite_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'feedline.db'}"


@pytest.fixture
def test_settings(sqlite_url) -> Settings:
    """Create test settings with explicit values for unit tests.

    Every category points at the same SQLite file; nothing reads ``.env``.
    """
    return Settings(
        # Minimal database settings (not used in unit tests)
        postgres_user="unit_test_user",
        postgres_host="localhost",
        postgres_password="unit_test_password",
        postgres_port=5432,
        postgres_db="unit_test_db",
        regular_database_url=sqlite_url,
        brawl_database_url=sqlite_url,
        tournament_database_url=sqlite_url,

        # Redis settings (not used in unit tests)
        redis_host="localhost",
        redis_port=6379,

        # Regions kept short for readable assertions
        regions="na,eu",
        tournament_regions="tournament-na,tournament-eu",

        job_isolation_level=None,
        shovel_size=3,

        # Testing mode
        testing=True,
        dev=True,
    )


@pytest.fixture
def categories(test_settings) -> CategoryRegistry:
    return CategoryRegistry.from_settings(test_settings)


@pytest.fixture
async def databases(sqlite_url):
    registry = DatabaseRegistry()
    registry.init([sqlite_url])
    async with registry.get(sqlite_url).engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)

    yield registry

    await registry.close()


@pytest.fixture
def forwarder() -> FakeForwarder:
    return FakeForwarder()


@pytest.fixture
def publisher() -> FakePublisher:
    return FakePublisher()


@pytest.fixture(autouse=True)
def reset_settings_after_test():
    """Reset settings after each test to prevent state leakage."""
    yield
    reset_settings()
