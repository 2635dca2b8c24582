"""Operational surface: queue health, dead-letter redrive and scheduled scans."""

from dataclasses import asdict

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.service import AuditAction, AuditService
from src.core.config import settings
from src.core.events import DetailType, EventBus, EventSource, QueueConsumer, QueueName, QueueStats, queue_config
from src.core.exceptions import ValidationError
from src.core.logging import get_logger

logger = get_logger("ops")


def _config(queue: str):
    try:
        return queue_config(queue)
    except KeyError as exc:
        raise ValidationError(f"Unknown queue: {queue}", "queue") from exc


async def queue_stats(db: AsyncSession) -> list[QueueStats]:
    """Stats for every queue; queues are shared across tenants."""
    stats = []
    for name in QueueName:
        consumer = QueueConsumer(db, queue_config(name))
        stats.append(
            await consumer.stats(
                age_alarm_seconds=settings.queue_age_alarm_seconds,
                depth_alarm=settings.queue_depth_alarm,
            )
        )
    alarms = [s.queue for s in stats if s.age_alarm or s.depth_alarm or s.dead_letter_alarm]
    if alarms:
        logger.warning("queue alarms raised", extra={"queues": alarms})
    return stats


class OpsService:
    def __init__(self, db: AsyncSession, school_id: int):
        self.db = db
        self.school_id = school_id

    async def redrive_dead_letters(self, queue: str, user_id: str | None, limit: int = 100) -> int:
        count = await QueueConsumer(self.db, _config(queue)).redrive(limit=limit)
        if count:
            await AuditService(self.db).log_after_commit(
                school_id=self.school_id,
                action=AuditAction.DEAD_LETTERS_REDRIVEN,
                entity_type="Queue",
                entity_id=0,
                entity_identifier=queue,
                user_id=user_id,
                new_values={"redriven": count},
            )
        return count

    async def request_overdue_scan(self) -> str:
        event_id = await EventBus(self.db).publish(
            EventSource.SCHEDULER,
            DetailType.INVOICE_OVERDUE_SCAN,
            {"schoolId": self.school_id},
        )
        await self.db.commit()
        logger.info("overdue scan requested", extra={"event_id": event_id})
        return event_id


def stats_payload(stats: QueueStats) -> dict:
    return asdict(stats)
