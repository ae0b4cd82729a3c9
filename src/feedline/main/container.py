"""Dependency wiring for the API process and the worker.

Long-lived resources (settings, Redis, database engines, the HTTP session,
the arq pool) are created once by ``create_container`` and injected as
dependencies; everything else is derived from them.
"""

from __future__ import annotations

from datetime import timedelta

from dependency_injector import containers, providers

from feedline.categories.registry import CategoryRegistry
from feedline.database.database import DatabaseRegistry
from feedline.jobs.enqueuer import JobEnqueuer
from feedline.jobs.job_manager import JobManager
from feedline.main.aiohttp_client import AioHttpClient
from feedline.main.config import Settings, get_settings
from feedline.main.logging import get_logger
from feedline.notifications.correlator import NotificationCorrelator
from feedline.notifications.relay import JobLifecycleRelay
from feedline.queues.broker import QueueBroker
from feedline.redis.connection import create_redis_client
from feedline.shovel.lock import SweepLock
from feedline.shovel.scanner import BatchScanner
from feedline.upstream.client import UpstreamClient
from feedline.workflows.analyze import AnalyzeWorkflows
from feedline.workflows.crunch import CrunchWorkflows
from feedline.workflows.dispatch import TaskSubmitter
from feedline.workflows.grab import GrabWorkflows
from feedline.workflows.lookup import SubjectLookup
from feedline.workflows.telemetry import TelemetryWorkflows

logger = get_logger(__name__)


class Container(containers.DeclarativeContainer):
    settings = providers.Dependency(instance_of=Settings)
    redis_client = providers.Dependency()
    databases = providers.Dependency(instance_of=DatabaseRegistry)
    aiohttp_client = providers.Dependency(instance_of=AioHttpClient)
    job_manager = providers.Dependency()

    # Capabilities
    categories = providers.Singleton(CategoryRegistry.from_settings, settings)
    broker = providers.Singleton(QueueBroker, redis_client)
    correlator = providers.Singleton(
        NotificationCorrelator, redis_client, exchange=settings.provided.notify_exchange
    )
    upstream = providers.Singleton(UpstreamClient.from_settings, aiohttp_client, settings)
    submitter = providers.Singleton(TaskSubmitter, correlator)

    # Jobs
    enqueuer = providers.Singleton(
        JobEnqueuer.from_settings, settings, categories, databases, broker, job_manager
    )
    relay = providers.Singleton(JobLifecycleRelay, categories, databases, correlator)

    # Shovel
    sweep_lock = providers.Factory(
        SweepLock, redis_client, ttl_seconds=settings.provided.sweep_lock_ttl_seconds
    )
    scanner = providers.Factory(
        BatchScanner,
        databases,
        broker,
        sweep_lock.provider,
        page_size=settings.provided.shovel_size,
        key_type=settings.provided.cursor_key_type,
    )

    # Workflows
    lookup = providers.Singleton(SubjectLookup, categories, databases, upstream)
    min_update_interval = providers.Callable(
        lambda minutes: timedelta(minutes=minutes), settings.provided.min_update_interval_minutes
    )
    grab_workflows = providers.Singleton(
        GrabWorkflows,
        categories,
        databases,
        upstream,
        enqueuer,
        broker,
        correlator,
        min_update_interval=min_update_interval,
    )
    crunch_workflows = providers.Singleton(
        CrunchWorkflows, categories, databases, broker, correlator, scanner.provider
    )
    analyze_workflows = providers.Singleton(
        AnalyzeWorkflows, categories, databases, broker, scanner.provider
    )
    telemetry_workflows = providers.Singleton(TelemetryWorkflows, categories, databases, broker)


async def create_container(settings: Settings | None = None) -> Container:
    """Open every long-lived resource and wire a container around them."""
    settings = settings or get_settings()

    registry = CategoryRegistry.from_settings(settings)
    databases = DatabaseRegistry()
    databases.init({registry.resolve(name).database_url for name in registry.names()})

    http = AioHttpClient(total_timeout=settings.upstream_request_timeout)
    http.start()

    job_manager = JobManager()
    await job_manager.init(settings)

    container = Container(
        settings=providers.Object(settings),
        redis_client=providers.Object(create_redis_client(settings)),
        databases=providers.Object(databases),
        aiohttp_client=providers.Object(http),
        job_manager=providers.Object(job_manager),
    )
    logger.debug("Container created", extra={"categories": list(registry.names())})
    return container


async def close_container(container: Container) -> None:
    await container.submitter().drain()
    await container.databases().close()
    await container.aiohttp_client().stop()
    await container.job_manager().close()
    await container.redis_client().aclose()
