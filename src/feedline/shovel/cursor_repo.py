from __future__ import annotations

from typing import Any

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from feedline.database.tables.keys_table import Keys
from feedline.main.logging import get_logger
from feedline.shovel.cursor import CursorKind

logger = get_logger(__name__)


def cursor_key(category: str, operation: str) -> str:
    return f"{category}:{operation}"


class CursorRepository:
    """Persisted sweep cursors.

    ``advance`` only ever moves a cursor forward; ``reset`` is the one way
    back to zero and belongs to force-reset sweeps.
    """

    def __init__(self, session: AsyncSession, key_type: str = "crunch"):
        self.session = session
        self._key_type = key_type

    async def _find(self, key: str) -> Keys | None:
        stmt = sa.select(Keys).where(Keys.type == self._key_type).where(Keys.key == key)
        return await self.session.scalar(stmt)

    async def get(self, category: str, operation: str, kind: CursorKind) -> Any:
        """Return the cursor, creating it at zero on first use."""
        key = cursor_key(category, operation)
        record = await self._find(key)
        if record is None:
            record = Keys(type=self._key_type, key=key, value=kind.encode(kind.zero))
            self.session.add(record)
            await self.session.flush()
            logger.debug("Created cursor", extra={"cursor_key": key})

        return kind.decode(record.value)

    async def advance(self, category: str, operation: str, kind: CursorKind, value: Any) -> Any:
        """Move the cursor to ``value`` if that is not a step back.

        Returns:
            The cursor value persisted after the call.
        """
        value = kind.normalize(value)
        current = await self.get(category, operation, kind)
        if value < current:
            logger.warning(
                "Refusing to move cursor backwards",
                extra={
                    "cursor_key": cursor_key(category, operation),
                    "current": kind.encode(current),
                    "requested": kind.encode(value),
                },
            )
            return current

        if value == current:
            return current

        stmt = (
            sa.update(Keys)
            .where(Keys.type == self._key_type)
            .where(Keys.key == cursor_key(category, operation))
            .values(value=kind.encode(value), updated_at=sa.func.now())
        )
        await self.session.execute(stmt)
        return value

    async def reset(self, category: str, operation: str, kind: CursorKind) -> Any:
        await self.get(category, operation, kind)

        stmt = (
            sa.update(Keys)
            .where(Keys.type == self._key_type)
            .where(Keys.key == cursor_key(category, operation))
            .values(value=kind.encode(kind.zero), updated_at=sa.func.now())
        )
        await self.session.execute(stmt)

        logger.info("Cursor reset", extra={"cursor_key": cursor_key(category, operation)})
        return kind.zero
