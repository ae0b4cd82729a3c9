from __future__ import annotations

import sqlalchemy as sa

from feedline.database.database import DatabaseRegistry
from feedline.database.tables import Assets
from feedline.main.capabilities import CategoryResolver, Forwarder
from feedline.main.exceptions import AlreadyIngestedException, NotFoundException
from feedline.main.logging import get_logger
from feedline.main.models import QueueKind

logger = get_logger(__name__)


class TelemetryWorkflows:
    def __init__(self, categories: CategoryResolver, databases: DatabaseRegistry, forwarder: Forwarder):
        self._categories = categories
        self._databases = databases
        self._forwarder = forwarder

    async def request_telemetry(self, match_api_id: str, category: str) -> str:
        """Ask the sampler to download a match's telemetry asset.

        Raises:
            NotFoundException: the match has no asset.
            AlreadyIngestedException: the asset was already ingested.
        """
        resolved = self._categories.resolve(category)
        logger.info("Requesting telemetry download", extra={"match_api_id": match_api_id})

        async with self._databases.session(resolved.database_url) as session:
            async with session.begin():
                asset = await session.scalar(
                    sa.select(Assets).where(Assets.match_api_id == match_api_id).limit(1)
                )

        if asset is None:
            logger.error("Could not find any assets for match", extra={"match_api_id": match_api_id})
            raise NotFoundException(f"No telemetry asset for match {match_api_id}")

        if asset.ingested_at is not None:
            raise AlreadyIngestedException(f"Telemetry for match {match_api_id} already ingested")

        for queue in resolved.targets_for(QueueKind.SAMPLE):
            await self._forwarder.forward(queue, asset.url, headers={"match_api_id": match_api_id})
        return asset.url
