from __future__ import annotations

from typing import Callable

import sqlalchemy as sa

from feedline.categories.registry import DEFAULT_CATEGORY
from feedline.database.database import DatabaseRegistry
from feedline.database.tables import Participants, PlayerPoints, Teams
from feedline.main.capabilities import CategoryResolver, Forwarder, Publisher
from feedline.main.exceptions import NotFoundException
from feedline.main.logging import get_logger
from feedline.main.models import NotificationEvent, QueueKind
from feedline.notifications.correlator import subject_topic
from feedline.shovel.scanner import BatchScanner, SweepResult
from feedline.shovel.sweeps import crunch_global

logger = get_logger(__name__)


class CrunchWorkflows:
    """Feeds the crunch consumers that maintain player and global points.

    ``player`` jobs never count towards global points; otherwise every
    player refresh would inflate them.
    """

    def __init__(
        self,
        categories: CategoryResolver,
        databases: DatabaseRegistry,
        forwarder: Forwarder,
        publisher: Publisher,
        scanner_factory: Callable[[], BatchScanner],
    ):
        self._categories = categories
        self._databases = databases
        self._forwarder = forwarder
        self._publisher = publisher
        self._scanner_factory = scanner_factory

    async def crunch_global(self, category: str, force: bool = False) -> SweepResult:
        """Forward every participant not yet crunched.

        With ``force`` the global points are dropped and every participant
        is crunched again from the start.
        """
        resolved = self._categories.resolve(category)
        return await self._scanner_factory().sweep(resolved, crunch_global, force=force)

    async def crunch_subject(self, category: str, api_id: str, *, notify_name: str | None = None) -> int:
        """Forward the subject's participations newer than its last crunch."""
        resolved = self._categories.resolve(category)

        async with self._databases.session(resolved.database_url) as session:
            async with session.begin():
                last_crunch = await session.scalar(
                    sa.select(sa.func.max(PlayerPoints.updated_at)).where(
                        PlayerPoints.player_api_id == api_id
                    )
                )
                stmt = sa.select(Participants.api_id).where(Participants.player_api_id == api_id)
                if last_crunch is not None:
                    stmt = stmt.where(Participants.created_at > last_crunch)
                participations = (await session.scalars(stmt.order_by(Participants.id))).all()

        logger.info(
            "Sending participations to cruncher",
            extra={"subject": api_id, "category": category, "length": len(participations)},
        )

        targets = resolved.targets_for(QueueKind.CRUNCH)
        for participant_api_id in participations:
            for queue in targets:
                await self._forwarder.forward(queue, participant_api_id, message_type="player")

        if notify_name is not None and participations:
            await self._publisher.publish(subject_topic(notify_name), NotificationEvent.CRUNCH_PENDING)
        return len(participations)

    async def ensure_team(self, team_id: int) -> None:
        """Raises NotFoundException when the team is unknown."""
        resolved = self._categories.resolve(DEFAULT_CATEGORY)
        async with self._databases.session(resolved.database_url) as session:
            async with session.begin():
                found = await session.scalar(sa.select(Teams.id).where(Teams.id == team_id))

        if found is None:
            logger.error("Team not found in db, won't crunch", extra={"team_id": team_id})
            raise NotFoundException(f"Team {team_id} not found")

    async def crunch_team(self, team_id: int) -> None:
        resolved = self._categories.resolve(DEFAULT_CATEGORY)
        for queue in resolved.targets_for(QueueKind.CRUNCH):
            await self._forwarder.forward(queue, team_id, message_type="team")
        logger.info("Team sent to cruncher", extra={"team_id": team_id})
