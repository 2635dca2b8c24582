"""Base class for queue workers."""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import settings
from src.core.events.bus import Event
from src.core.events.models import QueueMessage
from src.core.events.queues import QueueConsumer
from src.core.events.routing import QueueConfig, queue_config
from src.core.logging import LogContext, get_logger

logger = get_logger("events.worker")


@dataclass
class WorkerRunResult:
    received: int = 0
    succeeded: int = 0
    failed: int = 0
    dead_lettered: int = 0


class QueueWorker:
    """
    Pulls a batch from one queue and hands each event to `handle`.

    A handler's writes and the ack are separate commits: a crash in between
    replays the message, so handlers must be idempotent. Handler exceptions
    never escape run_once; they roll back the handler's writes and count as a
    failed receive.
    """

    queue_name: str = ""

    def __init__(self, db: AsyncSession, config: QueueConfig | None = None):
        self.db = db
        self.config = config or queue_config(self.queue_name)
        self.consumer = QueueConsumer(db, self.config)

    async def handle(self, event: Event) -> None:
        raise NotImplementedError

    async def run_once(self, max_messages: int | None = None) -> WorkerRunResult:
        messages = await self.consumer.receive(max_messages or settings.worker_batch_size)
        result = WorkerRunResult(received=len(messages))
        for message in messages:
            await self._process(message, result)
        return result

    async def _process(self, message: QueueMessage, result: WorkerRunResult) -> None:
        message_id = message.id
        receive_count = message.receive_count
        with LogContext.bind(queue=self.config.name, message_id=message_id):
            try:
                event = Event.from_envelope(message.body)
                await self.handle(event)
                await self.db.commit()
            except Exception as exc:
                # rollback expires loaded instances; only plain locals are safe below
                await self.db.rollback()
                logger.warning("handler raised", exc_info=True, extra={"receive_count": receive_count})
                reloaded = await self.db.get(QueueMessage, message_id)
                if await self.consumer.fail(reloaded, f"{type(exc).__name__}: {exc}"):
                    result.dead_lettered += 1
                result.failed += 1
                return

            await self.consumer.ack(message)
            result.succeeded += 1
