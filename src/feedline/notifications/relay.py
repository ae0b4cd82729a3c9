from __future__ import annotations

from feedline.categories.registry import DEFAULT_CATEGORY
from feedline.database.database import DatabaseRegistry
from feedline.jobs.job_repo import JobRepository
from feedline.main.capabilities import CategoryResolver, Publisher
from feedline.main.logging import get_logger
from feedline.main.models import NotificationEvent, Status

logger = get_logger(__name__)


class JobLifecycleRelay:
    """Turns job status reports from downstream consumers into notifications.

    A failed job publishes ``failed`` right away. A finished job publishes
    ``done`` only once no other queued or running job remains for the same
    subject, so a caller waiting on a multi-job update is told once.
    """

    def __init__(
        self,
        categories: CategoryResolver,
        databases: DatabaseRegistry,
        publisher: Publisher,
    ):
        self._categories = categories
        self._databases = databases
        self._publisher = publisher

    async def handle(self, job_id: int, status: Status | str, category: str = DEFAULT_CATEGORY) -> bool:
        """Record ``status`` for the job and notify its subject.

        Returns:
            True if the job's status changed.
        """
        status = Status(status)
        resolved = self._categories.resolve(category)
        log_extra = {"job_id": job_id, "status": status.value, "category": category}

        async with self._databases.session(resolved.database_url) as session:
            async with session.begin():
                repo = JobRepository(session)
                job = await repo.get_job(job_id)
                if job is None:
                    logger.warning("Status reported for unknown job", extra=log_extra)
                    return False

                changed = await repo.mark_status(job_id, status)
                others_active = False
                if job.subject is not None:
                    others_active = await repo.any_active_for_subject(job.subject, exclude_id=job_id)

        if not changed:
            logger.debug("Job already terminal, ignoring report", extra=log_extra)
            return False

        topic = job.payload.get("notify")
        if not topic:
            return True

        if status is Status.FAILED:
            await self._publisher.publish(topic, NotificationEvent.FAILED)
        elif status is Status.FINISHED and not others_active:
            await self._publisher.publish(topic, NotificationEvent.DONE)

        logger.info("Job status recorded", extra={**log_extra, "topic": topic})
        return True
