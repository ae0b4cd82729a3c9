from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from feedline.categories.registry import parse_timestamp

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class CursorKind(str, Enum):
    """How a sweep's high-water-mark is stored and compared.

    Values are persisted as text; ``INTEGER`` cursors hold a primary key,
    ``TIMESTAMP`` cursors an ISO-8601 instant.
    """

    INTEGER = "integer"
    TIMESTAMP = "timestamp"

    @property
    def zero(self) -> Any:
        return 0 if self is CursorKind.INTEGER else EPOCH

    def decode(self, value: str | None) -> Any:
        if value is None or value == "":
            return self.zero
        if self is CursorKind.INTEGER:
            return int(value)
        return parse_timestamp(value)

    def normalize(self, value: Any) -> Any:
        """Bring a row key into the comparable form of this kind."""
        if self is CursorKind.INTEGER:
            return int(value)
        if isinstance(value, str):
            return parse_timestamp(value)
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def encode(self, value: Any) -> str:
        if self is CursorKind.INTEGER:
            return str(int(value))
        return self.normalize(value).astimezone(timezone.utc).isoformat()
