"""At-least-once queue consumption with visibility timeouts and dead-lettering."""

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.events.models import QueueMessage, QueueMessageStatus
from src.core.events.routing import QueueConfig
from src.core.logging import get_logger
from src.shared.utils.time import ensure_aware, utcnow

logger = get_logger("events.queues")


@dataclass
class QueueStats:
    queue: str
    visible: int
    in_flight: int
    oldest_age_seconds: int
    dead_letters: int
    age_alarm: bool
    depth_alarm: bool
    dead_letter_alarm: bool


class QueueConsumer:
    """
    Receives, acknowledges and fails messages of one queue.

    A message is claimed by a compare-and-swap on receive_count, so two
    consumers polling the same queue never both claim one delivery. A claimed
    message stays invisible for the queue's visibility timeout; if it is not
    acked by then it is delivered again. Once a message has been received
    max_receive_count times without success it moves to the dead-letter queue.
    """

    def __init__(self, db: AsyncSession, config: QueueConfig):
        self.db = db
        self.config = config

    async def receive(self, max_messages: int = 10, now: datetime | None = None) -> list[QueueMessage]:
        now = now or utcnow()
        result = await self.db.execute(
            select(QueueMessage)
            .where(
                QueueMessage.queue_name == self.config.name,
                QueueMessage.status == QueueMessageStatus.PENDING.value,
                QueueMessage.visible_at <= now,
            )
            .order_by(QueueMessage.visible_at, QueueMessage.id)
            .limit(max_messages)
        )
        candidates = list(result.scalars().all())

        claimed: list[QueueMessage] = []
        for message in candidates:
            if message.receive_count >= self.config.retry.max_receive_count:
                # Lapsed visibility on the final attempt (consumer crashed)
                self._dead_letter(message, message.last_error or "visibility timeout expired", now)
                continue

            claim = await self.db.execute(
                update(QueueMessage)
                .where(
                    QueueMessage.id == message.id,
                    QueueMessage.receive_count == message.receive_count,
                    QueueMessage.status == QueueMessageStatus.PENDING.value,
                )
                .values(
                    receive_count=QueueMessage.receive_count + 1,
                    visible_at=now + timedelta(seconds=self.config.visibility_timeout),
                    last_received_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if claim.rowcount == 1:
                await self.db.refresh(message)
                claimed.append(message)

        await self.db.commit()
        return claimed

    async def ack(self, message: QueueMessage, now: datetime | None = None) -> None:
        message.status = QueueMessageStatus.DONE.value
        message.completed_at = now or utcnow()
        await self.db.commit()

    async def fail(self, message: QueueMessage, error: str, now: datetime | None = None) -> bool:
        """
        Record a processing failure. Returns True when the message was dead-lettered.
        """
        now = now or utcnow()
        message.last_error = error[:2000]
        if message.receive_count >= self.config.retry.max_receive_count:
            self._dead_letter(message, error, now)
            await self.db.commit()
            return True

        delay = self.config.retry.delay_for(message.receive_count)
        message.visible_at = now + timedelta(seconds=delay)
        await self.db.commit()
        logger.warning(
            "message processing failed, will retry",
            extra={
                "queue": self.config.name,
                "message_id": message.id,
                "receive_count": message.receive_count,
                "retry_in_seconds": delay,
                "error": error[:500],
            },
        )
        return False

    def _dead_letter(self, message: QueueMessage, error: str, now: datetime) -> None:
        message.source_queue = message.queue_name
        message.queue_name = self.config.dlq_name
        message.status = QueueMessageStatus.DEAD.value
        message.dead_lettered_at = now
        message.last_error = error[:2000]
        logger.error(
            "message moved to dead-letter queue",
            extra={
                "queue": self.config.name,
                "dlq": self.config.dlq_name,
                "message_id": message.id,
                "event_id": message.event_id,
                "receive_count": message.receive_count,
                "error": error[:500],
            },
        )

    async def redrive(self, limit: int = 100, now: datetime | None = None) -> int:
        """Move dead letters back to the source queue with a fresh receive budget."""
        now = now or utcnow()
        result = await self.db.execute(
            select(QueueMessage)
            .where(
                QueueMessage.queue_name == self.config.dlq_name,
                QueueMessage.status == QueueMessageStatus.DEAD.value,
            )
            .order_by(QueueMessage.id)
            .limit(limit)
        )
        messages = list(result.scalars().all())
        for message in messages:
            message.queue_name = message.source_queue or self.config.name
            message.source_queue = None
            message.status = QueueMessageStatus.PENDING.value
            message.receive_count = 0
            message.visible_at = now
            message.dead_lettered_at = None
        await self.db.commit()
        if messages:
            logger.info("dead letters redriven", extra={"queue": self.config.name, "count": len(messages)})
        return len(messages)

    async def stats(self, age_alarm_seconds: int, depth_alarm: int, now: datetime | None = None) -> QueueStats:
        now = now or utcnow()
        pending = (
            QueueMessage.queue_name == self.config.name,
            QueueMessage.status == QueueMessageStatus.PENDING.value,
        )
        visible = await self.db.scalar(
            select(func.count()).select_from(QueueMessage).where(*pending, QueueMessage.visible_at <= now)
        ) or 0
        in_flight = await self.db.scalar(
            select(func.count()).select_from(QueueMessage).where(*pending, QueueMessage.visible_at > now)
        ) or 0
        oldest = ensure_aware(
            await self.db.scalar(select(func.min(QueueMessage.sent_at)).where(*pending))
        )
        dead = await self.db.scalar(
            select(func.count()).select_from(QueueMessage).where(
                QueueMessage.queue_name == self.config.dlq_name,
                QueueMessage.status == QueueMessageStatus.DEAD.value,
            )
        ) or 0
        oldest_age = int((now - oldest).total_seconds()) if oldest else 0
        return QueueStats(
            queue=self.config.name,
            visible=visible,
            in_flight=in_flight,
            oldest_age_seconds=max(oldest_age, 0),
            dead_letters=dead,
            age_alarm=oldest_age >= age_alarm_seconds,
            depth_alarm=visible >= depth_alarm,
            dead_letter_alarm=dead > 0,
        )
