"""Tables filled by downstream consumers and read by the sweeps and lookups.

Only the columns this service reads or clears are mapped here.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from feedline.database.tables.base_class import BasePublic


class Players(BasePublic):
    __tablename__ = "player"

    api_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(String(64), index=True)
    shard_id: Mapped[str] = mapped_column(String(32))
    last_match_created_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_update: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class Participants(BasePublic):
    __tablename__ = "participant"

    api_id: Mapped[str] = mapped_column(String(64))
    match_api_id: Mapped[str] = mapped_column(String(64), index=True)
    player_api_id: Mapped[str] = mapped_column(String(64), index=True)
    shard_id: Mapped[str] = mapped_column(String(32), index=True)
    trueskill_mu: Mapped[Optional[float]] = mapped_column(Float, nullable=True)


class Matches(BasePublic):
    __tablename__ = "match"

    api_id: Mapped[str] = mapped_column(String(64), index=True)
    game_mode: Mapped[str] = mapped_column(String(64))
    trueskill_quality: Mapped[Optional[float]] = mapped_column(Float, nullable=True)


class Assets(BasePublic):
    __tablename__ = "asset"

    match_api_id: Mapped[str] = mapped_column(String(64), index=True)
    url: Mapped[str] = mapped_column(Text)
    ingested_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class Teams(BasePublic):
    __tablename__ = "team"

    name: Mapped[str] = mapped_column(String(128))


class PlayerPoints(BasePublic):
    """Per-player aggregates maintained by the crunch consumer."""

    __tablename__ = "player_point"

    player_api_id: Mapped[str] = mapped_column(String(64), index=True)


class GlobalPoints(BasePublic):
    """Global aggregates maintained by the crunch consumer."""

    __tablename__ = "global_point"

    dimension: Mapped[str] = mapped_column(String(64))
    value: Mapped[float] = mapped_column(Float, default=0.0)
