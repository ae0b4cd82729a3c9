from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import sqlalchemy as sa

from feedline.categories.category import Category
from feedline.database.database import DatabaseRegistry
from feedline.database.tables import Players
from feedline.main.capabilities import CategoryResolver
from feedline.main.logging import get_logger
from feedline.main.models import SubjectRecord, SubjectRef
from feedline.upstream.client import UpstreamClient

logger = get_logger(__name__)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def _from_record(record: SubjectRecord) -> SubjectRef:
    return SubjectRef(
        name=record.name,
        id=record.id,
        region=record.region,
        source="api",
    )


def _from_row(row: Players) -> SubjectRef:
    return SubjectRef(
        name=row.name,
        id=row.api_id,
        region=row.shard_id,
        last_update=row.last_update,
        last_match_created_date=row.last_match_created_date,
        source="db",
    )


def _recency(ref: SubjectRef) -> datetime:
    moment = ref.last_update or ref.last_match_created_date or _OLDEST
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


class SubjectLookup:
    """Finds subjects in a category's database, falling back to the upstream."""

    def __init__(
        self,
        categories: CategoryResolver,
        databases: DatabaseRegistry,
        upstream: UpstreamClient,
    ):
        self._categories = categories
        self._databases = databases
        self._upstream = upstream

    async def in_database(
        self, category: Category | str, *, name: str | None = None, api_id: str | None = None
    ) -> list[SubjectRef]:
        if isinstance(category, str):
            category = self._categories.resolve(category)

        stmt = sa.select(Players)
        if name is not None:
            stmt = stmt.where(Players.name == name)
        if api_id is not None:
            stmt = stmt.where(Players.api_id == api_id)

        async with self._databases.session(category.database_url) as session:
            async with session.begin():
                rows = (await session.scalars(stmt)).all()

        refs = sorted((_from_row(row) for row in rows), key=_recency, reverse=True)
        return refs

    async def _upstream_search(
        self, category: Category, *, name: str | None = None, api_id: str | None = None
    ) -> list[SubjectRef]:
        found = await asyncio.gather(
            *(
                self._upstream.search(region, name=name, subject_id=api_id)
                for region in category.regions
            )
        )

        unique: dict[str, SubjectRef] = {}
        for records in found:
            for record in records:
                unique.setdefault(record.id, _from_record(record))
        return list(unique.values())

    async def _lookup(self, category: Category | str, **filters) -> list[SubjectRef]:
        if isinstance(category, str):
            category = self._categories.resolve(category)

        refs = await self.in_database(category, **filters)
        if refs:
            return refs

        logger.info(
            "Subject not in database, searching upstream",
            extra={"category": category.name, "filters": filters},
        )
        return await self._upstream_search(category, **filters)

    async def by_name(self, name: str, category: Category | str) -> list[SubjectRef]:
        """All subjects called ``name``, most recently updated first."""
        return await self._lookup(category, name=name)

    async def by_id(self, api_id: str, category: Category | str) -> SubjectRef | None:
        refs = await self._lookup(category, api_id=api_id)
        return refs[0] if refs else None
