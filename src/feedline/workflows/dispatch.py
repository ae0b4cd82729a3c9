"""Detached execution of background workflows.

Request handlers acknowledge immediately and hand the workflow to the
submitter. The workflow's only outputs are the log and, for workflows that
name a subject topic, the notification correlator.
"""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine

from feedline.main.capabilities import Publisher
from feedline.main.logging import get_logger
from feedline.main.models import NotificationEvent
from feedline.main.request_context import set_request_context

logger = get_logger(__name__)


class TaskSubmitter:
    def __init__(self, publisher: Publisher | None = None):
        self._publisher = publisher
        # The event loop only keeps weak references to tasks
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(
        self,
        coro: Coroutine[Any, Any, Any],
        *,
        name: str,
        topic: str | None = None,
    ) -> asyncio.Task:
        """Run ``coro`` as a detached task; the caller must not await it."""
        task = asyncio.create_task(self._run(coro, name, topic), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, coro: Coroutine[Any, Any, Any], name: str, topic: str | None) -> None:
        set_request_context(workflow=name)
        try:
            await coro
        except Exception:
            logger.exception("Background workflow failed", extra={"workflow": name, "topic": topic})
            if topic is not None and self._publisher is not None:
                await self._publisher.publish(topic, NotificationEvent.FAILED)
        else:
            logger.debug("Background workflow finished", extra={"workflow": name})

    async def drain(self) -> None:
        """Wait for every pending task; used on shutdown and in tests."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
