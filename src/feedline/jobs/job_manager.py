from __future__ import annotations

from arq import create_pool
from arq.connections import ArqRedis

from feedline.main.config import Settings, get_settings
from feedline.main.exceptions import NotReadyException
from feedline.main.logging import get_logger
from feedline.redis.connection import build_arq_redis_settings

logger = get_logger(__name__)


class JobManager:
    """Wakes downstream consumers through arq once a job row exists."""

    def __init__(self, redis: ArqRedis | None = None, queue_prefix: str = "arq:"):
        self._redis = redis
        self._queue_prefix = queue_prefix

    async def init(self, settings: Settings | None = None):
        settings = settings or get_settings()
        self._queue_prefix = settings.wakeup_queue_prefix
        self._redis = await create_pool(build_arq_redis_settings(settings))

        logger.debug(
            f"Job manager connected to redis on host {settings.redis_host}"
            f" and port {settings.redis_port}"
        )

    async def close(self):
        if self._redis is None:
            return
        await self._redis.aclose()
        self._redis = None

    def queue_name(self, queue: str) -> str:
        return f"{self._queue_prefix}{queue}"

    async def enqueue(self, task: str, job_id: int, *, queue: str, **params) -> bool:
        """Enqueue a wake-up for ``job_id`` on the arq queue of the consumers of ``queue``.

        arq ignores a second job with the same ``_job_id`` while the first
        is pending, so duplicate wake-ups for one queue collapse.

        Returns:
            False if a wake-up for this job was already pending.
        """
        if self._redis is None:
            raise NotReadyException("Job manager is not initialized!")

        arq_job = await self._redis.enqueue_job(
            task,
            job_id,
            _job_id=f"{queue}:{job_id}",
            _queue_name=self.queue_name(queue),
            **params,
        )
        if arq_job is None:
            logger.debug(
                "Wake-up already pending",
                extra={"job_id": job_id, "task": task, "queue": queue},
            )
            return False
        return True
