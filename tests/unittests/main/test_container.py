from unittest.mock import AsyncMock

from dependency_injector import providers

from feedline.database.database import DatabaseRegistry
from feedline.main.aiohttp_client import AioHttpClient
from feedline.main.container import Container
from feedline.shovel.lock import SweepLock
from feedline.shovel.scanner import BatchScanner


def make_container(test_settings):
    return Container(
        settings=providers.Object(test_settings),
        redis_client=providers.Object(AsyncMock()),
        databases=providers.Object(DatabaseRegistry()),
        aiohttp_client=providers.Object(AioHttpClient()),
        job_manager=providers.Object(AsyncMock()),
    )


def test_workflows_share_singletons(test_settings):
    container = make_container(test_settings)

    assert container.grab_workflows() is container.grab_workflows()
    assert container.enqueuer() is container.enqueuer()
    assert container.categories().names() == ("regular", "brawl", "tournament")


def test_every_sweep_gets_a_fresh_scanner(test_settings):
    container = make_container(test_settings)

    first, second = container.scanner(), container.scanner()

    assert isinstance(first, BatchScanner)
    assert first is not second


def test_sweep_locks_are_built_per_pair(test_settings):
    container = make_container(test_settings)

    lock = container.sweep_lock("brawl", "analyze_global")

    assert isinstance(lock, SweepLock)
    assert lock.key == "sweep:brawl:analyze_global:lock"
