"""Capability interfaces the workflows compose over.

Workflows receive concrete implementations of these through the container
instead of inheriting queue, database and notification helpers from a
shared base class.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

from feedline.categories.category import Category
from feedline.main.models import NotificationEvent

if TYPE_CHECKING:
    from feedline.shovel.cursor import CursorKind


class CategoryResolver(Protocol):
    def resolve(self, name: str) -> Category: ...


class Forwarder(Protocol):
    async def forward(
        self,
        queue: str,
        body: Any,
        *,
        message_type: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None: ...


class Publisher(Protocol):
    async def publish(self, topic: str, event: NotificationEvent) -> None: ...


class CursorStore(Protocol):
    async def get(self, category: str, operation: str, kind: CursorKind) -> Any: ...

    async def advance(self, category: str, operation: str, kind: CursorKind, value: Any) -> Any: ...

    async def reset(self, category: str, operation: str, kind: CursorKind) -> Any: ...
