from src.core.events.bus import Event, EventBatcher, EventBus
from src.core.events.models import EventRecord, QueueMessage, QueueMessageStatus
from src.core.events.queues import QueueConsumer, QueueStats
from src.core.events.routing import (
    DetailType,
    EventSource,
    QueueConfig,
    QueueName,
    RetryPolicy,
    queue_config,
    route,
)
from src.core.events.worker import QueueWorker, WorkerRunResult

__all__ = [
    "Event",
    "EventBatcher",
    "EventBus",
    "EventRecord",
    "QueueMessage",
    "QueueMessageStatus",
    "QueueConsumer",
    "QueueStats",
    "DetailType",
    "EventSource",
    "QueueConfig",
    "QueueName",
    "RetryPolicy",
    "queue_config",
    "route",
    "QueueWorker",
    "WorkerRunResult",
]
