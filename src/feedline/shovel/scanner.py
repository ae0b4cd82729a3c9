"""Resumable, cursor-driven sweeps ("shovels").

A sweep reads its persisted cursor, then repeatedly fetches the next page of
rows whose key is above the cursor (ascending, bounded by the page size),
forwards one message per row to every target queue of the category and
persists the highest key of the page. A short page ends the sweep.

States per sweep::

    IDLE -> SCANNING -> (DRAINING -> IDLE | SCANNING)

Delivery is at-least-once: a crash after forwarding a page but before its
cursor is persisted forwards that page again on the next run.

Timestamp keys are not unique. When a full page ends on a key shared with
rows beyond the page, those rows are drained before the cursor moves past
the key, otherwise the next ``key > cursor`` page would skip them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from feedline.categories.category import Category
from feedline.database.database import DatabaseRegistry
from feedline.main.capabilities import CursorStore, Forwarder
from feedline.main.logging import get_logger
from feedline.main.models import QueueKind
from feedline.shovel.cursor import CursorKind
from feedline.shovel.cursor_repo import CursorRepository
from feedline.shovel.lock import SweepLock

logger = get_logger(__name__)


class ScannerState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    DRAINING = "draining"


@dataclass(frozen=True)
class SweepSpec:
    """What a sweep reads, how it keys rows and what it forwards.

    ``select_page(session, category, cursor, limit)`` returns rows with key
    strictly above ``cursor`` in ascending key order. ``select_ties`` is
    required for timestamp sweeps and returns every row with exactly the
    given key. ``has_aggregates`` and ``reset_aggregates`` describe the
    derived data a forced sweep recomputes.
    """

    operation: str
    kind: CursorKind
    target: QueueKind
    message_type: str
    select_page: Callable[[AsyncSession, Category, Any, int], Awaitable[Sequence[Any]]]
    key: Callable[[Any], Any]
    identity: Callable[[Any], Any]
    message: Callable[[Any], Any]
    select_ties: Optional[Callable[[AsyncSession, Category, Any], Awaitable[Sequence[Any]]]] = None
    has_aggregates: Optional[Callable[[AsyncSession, Category], Awaitable[bool]]] = None
    reset_aggregates: Optional[Callable[[AsyncSession, Category], Awaitable[None]]] = None


@dataclass
class SweepResult:
    forwarded: int = 0
    pages: int = 0
    cursor: Any = None
    reset: bool = False


class BatchScanner:
    def __init__(
        self,
        databases: DatabaseRegistry,
        forwarder: Forwarder,
        lock_factory: Callable[[str, str], SweepLock] | None = None,
        *,
        page_size: int = 1000,
        key_type: str = "crunch",
        cursor_store: Callable[[AsyncSession, str], CursorStore] = CursorRepository,
    ):
        self._databases = databases
        self._forwarder = forwarder
        self._lock_factory = lock_factory
        self._page_size = page_size
        self._key_type = key_type
        self._cursor_store = cursor_store
        self.state = ScannerState.IDLE

    def _cursors(self, session: AsyncSession) -> CursorStore:
        return self._cursor_store(session, self._key_type)

    async def _forward_rows(self, category: Category, spec: SweepSpec, rows: Sequence[Any]) -> int:
        targets = category.targets_for(spec.target)
        forwarded = 0
        for row in rows:
            body = spec.message(row)
            for queue in targets:
                await self._forwarder.forward(queue, body, message_type=spec.message_type)
                forwarded += 1
        return forwarded

    async def _force_reset(self, session: AsyncSession, category: Category, spec: SweepSpec) -> bool:
        """Clear derived data and zero the cursor in one transaction.

        Skipped when nothing was aggregated since the cursor last moved: the
        rows forwarded by the previous sweep have not been consumed yet, and
        sweeping them again would only duplicate queued messages.
        """
        async with session.begin():
            repo = self._cursors(session)
            current = await repo.get(category.name, spec.operation, spec.kind)

            if spec.has_aggregates is not None and current != spec.kind.zero:
                if not await spec.has_aggregates(session, category):
                    logger.info(
                        "Nothing aggregated since the last sweep, skipping reset",
                        extra={"category": category.name, "operation": spec.operation},
                    )
                    return False

            if spec.reset_aggregates is not None:
                await spec.reset_aggregates(session, category)
            await repo.reset(category.name, spec.operation, spec.kind)

        logger.info(
            "Force reset sweep",
            extra={"category": category.name, "operation": spec.operation},
        )
        return True

    async def _run(self, category: Category, spec: SweepSpec, force: bool, lock: SweepLock | None) -> SweepResult:
        result = SweepResult()
        log_extra = {"category": category.name, "operation": spec.operation}

        async with self._databases.session(category.database_url) as session:
            if force:
                result.reset = await self._force_reset(session, category, spec)

            async with session.begin():
                cursor = await self._cursors(session).get(
                    category.name, spec.operation, spec.kind
                )
            result.cursor = cursor

            self.state = ScannerState.SCANNING
            while self.state is ScannerState.SCANNING:
                async with session.begin():
                    rows = list(await spec.select_page(session, category, cursor, self._page_size))

                if len(rows) < self._page_size:
                    self.state = ScannerState.DRAINING

                if not rows:
                    break

                page_max = max(spec.kind.normalize(spec.key(row)) for row in rows)
                result.forwarded += await self._forward_rows(category, spec, rows)

                if self.state is ScannerState.SCANNING and spec.select_ties is not None:
                    seen = {spec.identity(row) for row in rows}
                    async with session.begin():
                        ties = await spec.select_ties(session, category, page_max)
                    remaining = [row for row in ties if spec.identity(row) not in seen]
                    if remaining:
                        logger.debug(
                            "Draining rows sharing the page's last key",
                            extra={**log_extra, "ties": len(remaining)},
                        )
                        result.forwarded += await self._forward_rows(category, spec, remaining)

                async with session.begin():
                    cursor = await self._cursors(session).advance(
                        category.name, spec.operation, spec.kind, page_max
                    )
                result.cursor = cursor
                result.pages += 1

                if lock is not None and self.state is ScannerState.SCANNING:
                    if not await lock.refresh():
                        logger.warning("Lost sweep lock, stopping", extra=log_extra)
                        break

        logger.info(
            "Sweep finished",
            extra={
                **log_extra,
                "forwarded": result.forwarded,
                "pages": result.pages,
                "cursor": spec.kind.encode(result.cursor),
            },
        )
        return result

    async def sweep(self, category: Category, spec: SweepSpec, *, force: bool = False) -> SweepResult:
        """Run one sweep of ``spec`` over ``category``.

        Raises:
            SweepAlreadyRunning: another process is sweeping the same pair.
        """
        if not category.targets_for(spec.target):
            logger.info(
                "Category has no target for sweep, skipping",
                extra={"category": category.name, "operation": spec.operation},
            )
            return SweepResult()

        try:
            if self._lock_factory is None:
                return await self._run(category, spec, force, None)

            lock = self._lock_factory(category.name, spec.operation)
            async with lock.hold():
                return await self._run(category, spec, force, lock)
        finally:
            self.state = ScannerState.IDLE
