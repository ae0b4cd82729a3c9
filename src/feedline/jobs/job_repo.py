from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from feedline.database.tables.job_table import Jobs
from feedline.jobs.job_models import Job, JobInDb
from feedline.main.models import Status


class JobRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add_job(self, job: Job) -> JobInDb:
        stmt = sa.insert(Jobs).values(**job.model_dump(mode="json")).returning(Jobs)
        record = await self.session.scalar(stmt)
        return JobInDb.model_validate(record)

    async def get_job(self, id: int) -> JobInDb | None:
        record = await self.session.scalar(sa.select(Jobs).where(Jobs.id == id))
        return JobInDb.model_validate(record) if record is not None else None

    async def find_active(self, fingerprint: str) -> JobInDb | None:
        stmt = (
            sa.select(Jobs)
            .where(Jobs.fingerprint == fingerprint)
            .where(Jobs.status.in_([status.value for status in Status.active()]))
            .order_by(Jobs.id)
            .limit(1)
        )
        record = await self.session.scalar(stmt)
        return JobInDb.model_validate(record) if record is not None else None

    async def bump_priority(self, id: int, by: int = 1) -> JobInDb | None:
        stmt = (
            sa.update(Jobs)
            .where(Jobs.id == id)
            .values(priority=Jobs.priority + by, updated_at=sa.func.now())
            .returning(Jobs)
        )
        record = await self.session.scalar(stmt)
        return JobInDb.model_validate(record) if record is not None else None

    async def mark_status(self, id: int, status: Status) -> bool:
        """Move a job to ``status`` unless it already reached a terminal one.

        Compare-and-swap on the current status: a late "running" report
        cannot resurrect a job that was already marked finished or failed.

        Returns:
            True if the row changed.
        """
        stmt = (
            sa.update(Jobs)
            .where(Jobs.id == id)
            .where(Jobs.status.in_([s.value for s in Status.active()]))
            .values(status=Status(status).value, updated_at=sa.func.now())
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def any_active_for_subject(self, subject: str, *, exclude_id: int | None = None) -> bool:
        stmt = (
            sa.select(Jobs.id)
            .where(Jobs.subject == subject)
            .where(Jobs.status.in_([s.value for s in Status.active()]))
        )
        if exclude_id is not None:
            stmt = stmt.where(Jobs.id != exclude_id)

        found = await self.session.scalar(stmt.limit(1))
        return found is not None
