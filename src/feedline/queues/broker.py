"""Durable queue forwarding on top of Redis lists.

Each queue is a Redis list; producers ``RPUSH`` a JSON envelope carrying
the message body, an optional message type and transport headers, and
downstream consumers pop from the left (FIFO).
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from feedline.main.logging import get_logger
from feedline.main.models import QueueMessage

if TYPE_CHECKING:
    import redis.asyncio as aioredis

logger = get_logger(__name__)


def queue_key(queue: str) -> str:
    return f"queue:{queue}"


class QueueBroker:
    """Forwards messages to named queues.

    Args:
        redis_client: Async Redis connection.
    """

    def __init__(self, redis_client: aioredis.Redis) -> None:
        self._redis = redis_client

    @staticmethod
    def encode(
        body: Any,
        *,
        message_type: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> str:
        message = QueueMessage(body=body, type=message_type, headers=headers or {})
        # Sorted keys keep identical messages byte-identical
        return json.dumps(message.model_dump(mode="json"), default=str, sort_keys=True)

    async def forward(
        self,
        queue: str,
        body: Any,
        *,
        message_type: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Append a message to ``queue``.

        Errors propagate: losing a forwarded message silently would break
        the at-least-once delivery of the sweeps.
        """
        encoded = self.encode(body, message_type=message_type, headers=headers)
        await self._redis.rpush(queue_key(queue), encoded)

        logger.debug(
            "Forwarded message",
            extra={"queue": queue, "message_type": message_type, "headers": headers},
        )
