from feedline.queues.broker import QueueBroker, queue_key

__all__ = ["QueueBroker", "queue_key"]
