from __future__ import annotations

from functools import wraps

from arq.cron import cron

from feedline.main.config import get_settings
from feedline.main.container import close_container, create_container
from feedline.main.logging import get_logger
from feedline.main.request_context import clear_request_context, set_request_context
from feedline.redis.connection import build_arq_redis_settings

logger = get_logger(__name__)


class Worker:
    """Collects arq functions and cron jobs and owns the worker's container.

    Every registered function receives the container as a ``container``
    keyword argument instead of the raw arq context.
    """

    def __init__(self):
        settings = get_settings()
        self.functions = []
        self.cron_jobs = []
        self.redis_settings = build_arq_redis_settings(settings)
        self.on_startup = self.startup
        self.on_shutdown = self.shutdown
        self.retry_jobs = False
        self.job_timeout = 60 * 60
        self.max_jobs = settings.worker_max_jobs
        self.queue_name = settings.worker_queue_name

    async def startup(self, ctx):
        ctx["container"] = await create_container(get_settings())
        logger.info("Worker started")

    async def shutdown(self, ctx):
        container = ctx.pop("container", None)
        if container is not None:
            await close_container(container)

    def function(self):
        def decorator(func):
            @wraps(func)
            async def wrapper(ctx, *args, **kwargs):
                logger.debug(f"Executing {func.__name__} with args {args} {kwargs}")
                set_request_context(workflow=func.__name__, arq_job_id=ctx.get("job_id"))
                try:
                    return await func(*args, container=ctx["container"], **kwargs)
                finally:
                    clear_request_context()

            self.functions.append(wrapper)
            return wrapper

        return decorator

    def cron_job(self, **decorator_kwargs):
        def decorator(func):
            @wraps(func)
            async def wrapper(ctx):
                logger.debug(f"Executing {func.__name__}")
                set_request_context(workflow=func.__name__)
                try:
                    return await func(container=ctx["container"])
                finally:
                    clear_request_context()

            self.cron_jobs.append(cron(wrapper, **decorator_kwargs))
            return wrapper

        return decorator
