import json
from unittest.mock import AsyncMock

import pytest

from feedline.queues.broker import QueueBroker, queue_key


@pytest.fixture
def redis():
    return AsyncMock()


class TestQueueBroker:
    def test_encode_is_stable(self):
        first = QueueBroker.encode({"b": 1, "a": 2}, message_type="grab", headers={"job_id": "1"})
        second = QueueBroker.encode({"a": 2, "b": 1}, message_type="grab", headers={"job_id": "1"})

        assert first == second
        assert json.loads(first) == {
            "body": {"a": 2, "b": 1},
            "type": "grab",
            "headers": {"job_id": "1"},
        }

    @pytest.mark.asyncio
    async def test_forward_appends_to_the_queue_list(self, redis):
        await QueueBroker(redis).forward("crunch", "part-1", message_type="global")

        redis.rpush.assert_awaited_once()
        key, encoded = redis.rpush.await_args.args
        assert key == queue_key("crunch") == "queue:crunch"
        assert json.loads(encoded) == {"body": "part-1", "type": "global", "headers": {}}

    @pytest.mark.asyncio
    async def test_forward_errors_propagate(self, redis):
        redis.rpush.side_effect = ConnectionError("redis down")

        with pytest.raises(ConnectionError):
            await QueueBroker(redis).forward("crunch", "part-1")
