from __future__ import annotations

from typing import Callable

import sqlalchemy as sa

from feedline.database.database import DatabaseRegistry
from feedline.database.tables import Participants
from feedline.main.capabilities import CategoryResolver, Forwarder
from feedline.main.logging import get_logger
from feedline.main.models import QueueKind
from feedline.shovel.scanner import BatchScanner, SweepResult
from feedline.shovel.sweeps import analyze_global

logger = get_logger(__name__)


class AnalyzeWorkflows:
    def __init__(
        self,
        categories: CategoryResolver,
        databases: DatabaseRegistry,
        forwarder: Forwarder,
        scanner_factory: Callable[[], BatchScanner],
    ):
        self._categories = categories
        self._databases = databases
        self._forwarder = forwarder
        self._scanner_factory = scanner_factory

    async def analyze_global(self, category: str, force: bool = False) -> SweepResult:
        """Forward unanalyzed matches; ``force`` clears every rating first."""
        resolved = self._categories.resolve(category)
        return await self._scanner_factory().sweep(resolved, analyze_global, force=force)

    async def analyze_subject(self, category: str, api_id: str) -> int:
        """Forward the subject's unanalyzed matches in creation order."""
        resolved = self._categories.resolve(category)

        stmt = (
            sa.select(Participants.match_api_id)
            .where(Participants.player_api_id == api_id)
            .where(Participants.trueskill_mu.is_(None))
            .order_by(Participants.created_at, Participants.id)
        )
        async with self._databases.session(resolved.database_url) as session:
            async with session.begin():
                matches = (await session.scalars(stmt)).all()

        logger.info(
            "Sending matches to analyzer",
            extra={"subject": api_id, "category": category, "length": len(matches)},
        )

        targets = resolved.targets_for(QueueKind.ANALYZE)
        for match_api_id in matches:
            for queue in targets:
                await self._forwarder.forward(queue, match_api_id, message_type="match")
        return len(matches)
