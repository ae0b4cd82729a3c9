from typing import Optional

from sqlalchemy import JSON, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from feedline.database.tables.base_class import BasePublic

_ACTIVE = "status IN ('queued', 'running')"


class Jobs(BasePublic):
    """Work requested from downstream consumers.

    At most one non-terminal row may exist per fingerprint; the partial
    unique index turns a lost check-then-insert race into an IntegrityError.
    """

    __tablename__ = "jobs"

    type: Mapped[str] = mapped_column(String(16), index=True)
    category: Mapped[str] = mapped_column(String(64))
    subject: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    fingerprint: Mapped[str] = mapped_column(String(64))
    payload: Mapped[dict] = mapped_column(JSON().with_variant(JSONB(), "postgresql"))
    priority: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"))
    status: Mapped[str] = mapped_column(
        String(16), default="queued", server_default=text("'queued'")
    )

    __table_args__ = (
        Index(
            "uq_jobs_active_fingerprint",
            "fingerprint",
            unique=True,
            postgresql_where=text(_ACTIVE),
            sqlite_where=text(_ACTIVE),
        ),
    )
