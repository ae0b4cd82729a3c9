from sqlalchemy import String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from feedline.database.tables.base_class import BasePublic


class Keys(BasePublic):
    """Persisted sweep cursors, one row per (key type, category-scoped key)."""

    __tablename__ = "keys"

    type: Mapped[str] = mapped_column(String(64))
    key: Mapped[str] = mapped_column(String(255))
    value: Mapped[str] = mapped_column(Text)

    __table_args__ = (UniqueConstraint("type", "key", name="uq_keys_type_key"),)
