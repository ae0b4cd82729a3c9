"""Idempotent construction and forwarding of grab jobs.

A fetch request becomes one job row (identified by its fingerprint) and one
grab payload per time-window chunk. Payloads are forwarded to every grab
target of the category only when the row is new; a repeated request while
the job is still queued or running only raises the job's priority.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from sqlalchemy.exc import DBAPIError, IntegrityError
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_random_exponential,
)

from feedline.categories.category import Category
from feedline.database.database import DatabaseRegistry
from feedline.jobs.fingerprint import fingerprint
from feedline.jobs.job_manager import JobManager
from feedline.jobs.job_models import EnqueueResult, Job, JobInDb
from feedline.jobs.job_repo import JobRepository
from feedline.jobs.window import split_window
from feedline.main.capabilities import CategoryResolver, Forwarder
from feedline.main.config import Settings
from feedline.main.exceptions import JobAlreadyQueued, StorageSerializationConflict
from feedline.main.logging import get_logger
from feedline.main.models import GrabParams, GrabPayload, JobType, QueueKind, Status, SubjectRef
from feedline.notifications.correlator import subject_topic

logger = get_logger(__name__)

SERIALIZATION_FAILURE = "40001"


def is_serialization_failure(exc: BaseException) -> bool:
    if not isinstance(exc, DBAPIError):
        return False

    for candidate in (exc.orig, getattr(exc.orig, "__cause__", None)):
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code == SERIALIZATION_FAILURE:
            return True
    return False


class JobEnqueuer:
    def __init__(
        self,
        categories: CategoryResolver,
        databases: DatabaseRegistry,
        forwarder: Forwarder,
        job_manager: JobManager | None,
        *,
        max_window_span: timedelta = timedelta(days=28),
        clock_skew: timedelta = timedelta(seconds=60),
        isolation_level: str | None = "SERIALIZABLE",
        serialization_max_attempts: int = 5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._categories = categories
        self._databases = databases
        self._forwarder = forwarder
        self._job_manager = job_manager
        self._max_window_span = max_window_span
        self._clock_skew = clock_skew
        self._isolation_level = isolation_level
        self._serialization_max_attempts = serialization_max_attempts
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        categories: CategoryResolver,
        databases: DatabaseRegistry,
        forwarder: Forwarder,
        job_manager: JobManager | None,
    ) -> "JobEnqueuer":
        return cls(
            categories,
            databases,
            forwarder,
            job_manager if settings.job_wakeup_enabled else None,
            max_window_span=timedelta(days=settings.max_window_span_days),
            clock_skew=timedelta(seconds=settings.clock_skew_seconds),
            isolation_level=settings.job_isolation_level,
            serialization_max_attempts=settings.serialization_max_attempts,
        )

    async def _insert_unless_active(self, database_url: str, job: Job) -> tuple[JobInDb, bool]:
        async with self._databases.session(database_url) as session:
            async with session.begin():
                if self._isolation_level:
                    await session.connection(
                        execution_options={"isolation_level": self._isolation_level}
                    )
                repo = JobRepository(session)

                existing = await repo.find_active(job.fingerprint)
                if existing is not None:
                    bumped = await repo.bump_priority(existing.id)
                    return bumped or existing, False

                try:
                    return await repo.add_job(job), True
                except IntegrityError as exc:
                    # Another request inserted the same fingerprint since our read
                    raise JobAlreadyQueued(job.fingerprint) from exc

    async def _bump_active(self, database_url: str, job_fingerprint: str) -> JobInDb | None:
        async with self._databases.session(database_url) as session:
            async with session.begin():
                repo = JobRepository(session)
                existing = await repo.find_active(job_fingerprint)
                if existing is None:
                    return None
                return await repo.bump_priority(existing.id)

    async def _upsert_once(self, database_url: str, job: Job) -> tuple[JobInDb, bool]:
        try:
            return await self._insert_unless_active(database_url, job)
        except JobAlreadyQueued:
            logger.debug(
                "Lost insert race, bumping existing job",
                extra={"fingerprint": job.fingerprint},
            )

        bumped = await self._bump_active(database_url, job.fingerprint)
        if bumped is None:
            # The winning job already reached a terminal status
            return await self._insert_unless_active(database_url, job)
        return bumped, False

    async def upsert_job(self, category: Category, job: Job) -> tuple[JobInDb, bool]:
        """Insert ``job`` or bump the priority of its live duplicate.

        Serialization failures restart the whole transaction with a random
        exponential backoff, at most ``serialization_max_attempts`` times.

        Returns:
            The job row and whether it was newly created.

        Raises:
            StorageSerializationConflict: the attempt bound was reached.
        """
        retrying = AsyncRetrying(
            retry=retry_if_exception(is_serialization_failure),
            wait=wait_random_exponential(multiplier=0.05, max=2),
            stop=stop_after_attempt(self._serialization_max_attempts),
            sleep=self._sleep,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    return await self._upsert_once(category.database_url, job)
        except DBAPIError as exc:
            if not is_serialization_failure(exc):
                raise
            logger.error(
                "Job upsert kept conflicting",
                extra={
                    "fingerprint": job.fingerprint,
                    "category": category.name,
                    "attempts": self._serialization_max_attempts,
                },
            )
            raise StorageSerializationConflict(
                f"Could not store job {job.fingerprint} after "
                f"{self._serialization_max_attempts} attempts"
            ) from exc

    async def _mark_failed(self, database_url: str, job_id: int) -> None:
        async with self._databases.session(database_url) as session:
            async with session.begin():
                await JobRepository(session).mark_status(job_id, Status.FAILED)

    async def _enqueue(
        self,
        category: Category,
        region: str,
        subject_filter: str | None,
        subject: str | None,
        since: datetime,
        now: datetime | None,
        notify_topic: str | None,
    ) -> EnqueueResult:
        now = now or datetime.now(timezone.utc)
        end = now - self._clock_skew
        windows = split_window(since, end, self._max_window_span)
        log_extra = {"category": category.name, "region": region, "subject": subject}

        if not windows:
            logger.info("Nothing to fetch, window is empty", extra=log_extra)
            return EnqueueResult()

        payloads = [
            GrabPayload(
                region=region,
                params=GrabParams(
                    subject_filter=subject_filter,
                    window_start=window_start,
                    window_end=window_end,
                    game_mode_filter=category.game_mode_filter,
                ),
            )
            for window_start, window_end in windows
        ]

        job_fingerprint = fingerprint(
            JobType.GRAB, category.name, region, subject_filter, category.game_mode_filter
        )
        job = Job(
            type=JobType.GRAB,
            category=category.name,
            subject=subject,
            fingerprint=job_fingerprint,
            payload={
                "region": region,
                "subjectFilter": subject_filter,
                "windowStart": since.isoformat(),
                "windowEnd": end.isoformat(),
                "gameModeFilter": category.game_mode_filter,
                "chunks": len(payloads),
                "notify": notify_topic,
            },
        )

        stored, created = await self.upsert_job(category, job)
        if not created:
            logger.info(
                "Job already queued, priority bumped",
                extra={**log_extra, "job_id": stored.id, "priority": stored.priority},
            )
            return EnqueueResult(job_id=stored.id, created=False)

        headers = {"job_type": JobType.GRAB.value, "job_id": str(stored.id)}
        if notify_topic:
            headers["notify"] = notify_topic

        targets = category.targets_for(QueueKind.GRAB)
        try:
            for payload in payloads:
                for queue in targets:
                    await self._forwarder.forward(
                        queue,
                        payload.to_message(),
                        message_type=JobType.GRAB.value,
                        headers=headers,
                    )
        except Exception:
            # No live job may exist without its payloads
            await self._mark_failed(category.database_url, stored.id)
            raise

        logger.info(
            "Enqueued grab job",
            extra={
                **log_extra,
                "job_id": stored.id,
                "chunks": len(payloads),
                "targets": list(targets),
            },
        )

        if self._job_manager is not None:
            try:
                for queue in targets:
                    await self._job_manager.enqueue(JobType.GRAB.value, stored.id, queue=queue)
            except Exception as exc:
                # Best-effort, consumers drain their queues regardless
                logger.warning(
                    "Failed to wake consumers",
                    extra={**log_extra, "job_id": stored.id, "error": str(exc)},
                )

        return EnqueueResult(job_id=stored.id, created=True, payloads=payloads)

    async def enqueue_fetch(
        self,
        subject: SubjectRef,
        category: Category | str,
        since: datetime,
        *,
        now: datetime | None = None,
        notify_topic: str | None = None,
    ) -> EnqueueResult:
        """Enqueue the grab of one subject's history from ``since`` until now."""
        if isinstance(category, str):
            category = self._categories.resolve(category)

        return await self._enqueue(
            category,
            subject.region,
            subject.id,
            subject.id,
            since,
            now,
            notify_topic or subject_topic(subject.name),
        )

    async def enqueue_names(
        self,
        names: list[str],
        region: str,
        category: Category | str,
        since: datetime,
        *,
        now: datetime | None = None,
    ) -> EnqueueResult:
        """Enqueue one grab filtered to several subject names at once."""
        if isinstance(category, str):
            category = self._categories.resolve(category)

        subject_filter = ",".join(sorted(set(names)))
        return await self._enqueue(category, region, subject_filter, None, since, now, None)

    async def enqueue_region(
        self,
        region: str,
        category: Category | str,
        since: datetime,
        *,
        now: datetime | None = None,
    ) -> EnqueueResult:
        """Enqueue a region-wide grab without a subject filter."""
        if isinstance(category, str):
            category = self._categories.resolve(category)

        return await self._enqueue(category, region, None, None, since, now, None)
