"""Subject search and update workflows.

Searching a subject sends the upstream record to every process target so
the subject lands in the database whether or not it has matches, then
enqueues the grab of its match history. Progress is reported on the
subject's topic: ``search_success``/``search_fail``, ``player_pending``
and finally ``done`` or ``failed`` from the job lifecycle relay.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import sqlalchemy as sa

from feedline.categories.category import Category
from feedline.database.database import DatabaseRegistry
from feedline.database.tables import Participants
from feedline.jobs.enqueuer import JobEnqueuer
from feedline.jobs.job_models import EnqueueResult
from feedline.main.capabilities import CategoryResolver, Forwarder, Publisher
from feedline.main.exceptions import NotFoundException
from feedline.main.logging import get_logger
from feedline.main.models import NotificationEvent, QueueKind, SubjectRecord, SubjectRef
from feedline.notifications.correlator import subject_topic
from feedline.upstream.client import UpstreamClient

logger = get_logger(__name__)

# createdAt filters are inclusive on both ends
ONE_SECOND = timedelta(seconds=1)


def _as_utc(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


class GrabWorkflows:
    def __init__(
        self,
        categories: CategoryResolver,
        databases: DatabaseRegistry,
        upstream: UpstreamClient,
        enqueuer: JobEnqueuer,
        forwarder: Forwarder,
        publisher: Publisher,
        *,
        min_update_interval: timedelta = timedelta(minutes=30),
        tournament_category: str = "tournament",
    ):
        self._categories = categories
        self._databases = databases
        self._upstream = upstream
        self._enqueuer = enqueuer
        self._forwarder = forwarder
        self._publisher = publisher
        self._min_update_interval = min_update_interval
        self._tournament_category = tournament_category

    async def search_in_region(
        self,
        region: str,
        category: Category,
        *,
        name: str | None = None,
        subject_id: str | None = None,
        notify_name: str | None = None,
    ) -> list[SubjectRecord]:
        """Search one region and hand every hit to the process targets."""
        records = await self._upstream.search(region, name=name, subject_id=subject_id)

        for record in records:
            await self._publisher.publish(
                subject_topic(notify_name or record.name), NotificationEvent.SEARCH_SUCCESS
            )

            topic = subject_topic(record.name)
            await self._publisher.publish(topic, NotificationEvent.PLAYER_PENDING)
            for queue in category.targets_for(QueueKind.PROCESS):
                await self._forwarder.forward(
                    queue, record.raw, message_type="player", headers={"notify": topic}
                )

        if not records:
            logger.warning(
                "Subject not found in region",
                extra={"region": region, "subject_name": name, "subject_id": subject_id},
            )
        return records

    async def _grab_records(
        self, records: list[SubjectRecord], category: Category, since: datetime
    ) -> list[EnqueueResult]:
        results = []
        for record in records:
            ref = SubjectRef(name=record.name, id=record.id, region=record.region, source="api")
            results.append(await self._enqueuer.enqueue_fetch(ref, category, since))
        return results

    async def search_subject(self, name: str, category: str) -> bool:
        """Search ``name`` in every region of the category and grab each hit.

        Returns:
            True if the subject was found in at least one region.
        """
        resolved = self._categories.resolve(category)
        logger.info("Searching subject", extra={"subject_name": name, "category": category})

        async def search_and_grab(region: str) -> bool:
            records = await self.search_in_region(region, resolved, name=name)
            await self._grab_records(records, resolved, resolved.default_start)
            return bool(records)

        found = await asyncio.gather(*(search_and_grab(region) for region in resolved.regions))

        if not any(found):
            logger.info("Search failed", extra={"subject_name": name, "category": category})
            await self._publisher.publish(subject_topic(name), NotificationEvent.SEARCH_FAIL)
            return False
        return True

    def update_start(self, ref: SubjectRef, category: Category) -> datetime:
        """First instant to grab for a known subject.

        A subject that was never updated needs its full history.
        """
        if ref.last_update is not None and ref.last_match_created_date is not None:
            return _as_utc(ref.last_match_created_date) + ONE_SECOND
        return category.default_start

    async def update_subject(
        self, ref: SubjectRef, category: str, *, now: datetime | None = None
    ) -> bool:
        """Refresh a known subject and grab its matches since the last one.

        The search goes by id, so a renamed subject is grabbed under its new
        name.

        Returns:
            False if the subject was updated too recently and was skipped.
        """
        resolved = self._categories.resolve(category)
        now = now or datetime.now(timezone.utc)

        if ref.last_update is not None and now - _as_utc(ref.last_update) < self._min_update_interval:
            logger.info(
                "Subject updated recently, skipping",
                extra={"subject": ref.id, "last_update": ref.last_update.isoformat()},
            )
            return False

        since = self.update_start(ref, resolved)
        logger.info(
            "Updating subject",
            extra={"subject": ref.id, "category": category, "since": since.isoformat()},
        )

        records = await self.search_in_region(
            ref.region, resolved, subject_id=ref.id, notify_name=ref.name
        )
        await self._grab_records(records, resolved, since)
        return True

    async def grab_subjects(
        self, names: list[str], region: str, since: datetime, category: str
    ) -> EnqueueResult:
        """Grab the matches of several subjects with one name-filtered job."""
        resolved = self._categories.resolve(category)
        logger.info(
            "Requesting multi-subject grab",
            extra={"names": names, "region": region, "category": category},
        )
        return await self._enqueuer.enqueue_names(names, region, resolved, since)

    def ensure_region(self, region: str) -> Category:
        """Only tournament regions are updated as a whole.

        Raises:
            NotFoundException: ``region`` is not a tournament region.
        """
        category = self._categories.resolve(self._tournament_category)
        if not category.has_region(region):
            logger.error("Called with unsupported region", extra={"region": region})
            raise NotFoundException(f"Region {region} can not be updated")
        return category

    async def update_region(self, region: str) -> EnqueueResult:
        """Grab every match of ``region`` newer than the newest one stored."""
        category = self.ensure_region(region)

        stmt = (
            sa.select(sa.func.max(Participants.created_at))
            .where(Participants.shard_id == region)
        )
        async with self._databases.session(category.database_url) as session:
            async with session.begin():
                newest = await session.scalar(stmt)

        since = _as_utc(newest) + ONE_SECOND if newest is not None else category.default_start
        logger.info("Requesting region update", extra={"region": region, "since": since.isoformat()})
        return await self._enqueuer.enqueue_region(region, category, since)
