"""The built-in sweeps.

``crunch_global`` walks participants by primary key and sends each
participant id to the crunch queue as a ``global`` job; the crunch consumer
aggregates them into ``global_point``. ``analyze_global`` walks matches of
the analyzed game modes by creation time and sends each unanalyzed match id
to the analyze queue; analysis fills ``match.trueskill_quality``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from feedline.categories.category import Category
from feedline.database.tables import GlobalPoints, Matches, Participants
from feedline.main.models import QueueKind
from feedline.shovel.cursor import CursorKind
from feedline.shovel.scanner import SweepSpec

CRUNCH_GLOBAL = "crunch_global"
ANALYZE_GLOBAL = "analyze_global"


async def _select_participants(
    session: AsyncSession, category: Category, cursor: int, limit: int
) -> list[Any]:
    stmt = (
        sa.select(Participants.id, Participants.api_id)
        .where(Participants.id > cursor)
        .order_by(Participants.id)
        .limit(limit)
    )
    return list((await session.execute(stmt)).all())


async def _has_global_points(session: AsyncSession, category: Category) -> bool:
    found = await session.scalar(sa.select(GlobalPoints.id).limit(1))
    return found is not None


async def _clear_global_points(session: AsyncSession, category: Category) -> None:
    await session.execute(sa.delete(GlobalPoints))


crunch_global = SweepSpec(
    operation=CRUNCH_GLOBAL,
    kind=CursorKind.INTEGER,
    target=QueueKind.CRUNCH,
    message_type="global",
    select_page=_select_participants,
    key=lambda row: row.id,
    identity=lambda row: row.id,
    message=lambda row: row.api_id,
    has_aggregates=_has_global_points,
    reset_aggregates=_clear_global_points,
)


def _analyzable(category: Category):
    conditions = [Matches.trueskill_quality.is_(None)]
    if category.analyze_modes:
        conditions.append(Matches.game_mode.in_(category.analyze_modes))
    return conditions


async def _select_matches(
    session: AsyncSession, category: Category, cursor: datetime, limit: int
) -> list[Any]:
    stmt = (
        sa.select(Matches.id, Matches.api_id, Matches.created_at)
        .where(Matches.created_at > cursor, *_analyzable(category))
        .order_by(Matches.created_at, Matches.id)
        .limit(limit)
    )
    return list((await session.execute(stmt)).all())


async def _select_match_ties(session: AsyncSession, category: Category, key: datetime) -> list[Any]:
    stmt = (
        sa.select(Matches.id, Matches.api_id, Matches.created_at)
        .where(Matches.created_at == key, *_analyzable(category))
        .order_by(Matches.id)
    )
    return list((await session.execute(stmt)).all())


async def _has_analyzed_matches(session: AsyncSession, category: Category) -> bool:
    found = await session.scalar(
        sa.select(Matches.id).where(Matches.trueskill_quality.is_not(None)).limit(1)
    )
    return found is not None


async def _clear_match_quality(session: AsyncSession, category: Category) -> None:
    await session.execute(sa.update(Matches).values(trueskill_quality=None))


analyze_global = SweepSpec(
    operation=ANALYZE_GLOBAL,
    kind=CursorKind.TIMESTAMP,
    target=QueueKind.ANALYZE,
    message_type="match",
    select_page=_select_matches,
    key=lambda row: row.created_at,
    identity=lambda row: row.id,
    message=lambda row: row.api_id,
    select_ties=_select_match_ties,
    has_aggregates=_has_analyzed_matches,
    reset_aggregates=_clear_match_quality,
)
