"""Best-effort job lifecycle notifications.

Events are published on Redis pub/sub channels named
``<exchange>:<entity-kind>.<identity>``. A gateway subscribes per identity
and pushes events to browsers. With no subscriber the event is simply
dropped; nothing in the pipeline may depend on delivery.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from feedline.main.logging import get_logger
from feedline.main.models import NotificationEvent

if TYPE_CHECKING:
    import redis.asyncio as aioredis

logger = get_logger(__name__)

SUBJECT_KIND = "player"


def subject_topic(identity: str) -> str:
    """Topic for a subject, e.g. ``player.Shutter``."""
    return f"{SUBJECT_KIND}.{identity}"


class NotificationCorrelator:
    """Fire-and-forget publisher for job lifecycle events.

    Args:
        redis_client: Async Redis connection.
        exchange: Channel prefix shared with the gateway.
    """

    def __init__(self, redis_client: aioredis.Redis, exchange: str = "amq.topic") -> None:
        self._redis = redis_client
        self._exchange = exchange

    def channel(self, topic: str) -> str:
        return f"{self._exchange}:{topic}"

    async def publish(self, topic: str, event: NotificationEvent) -> None:
        try:
            receivers = await self._redis.publish(self.channel(topic), event.value)
            logger.debug(
                "Published notification",
                extra={"topic": topic, "event": event.value, "receivers": receivers},
            )
        except Exception as exc:
            logger.warning(
                "Failed to publish notification",
                extra={"topic": topic, "event": event.value, "error": str(exc)},
            )
