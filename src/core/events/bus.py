"""Event bus: append to the event log and fan out to routed queues."""

import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from pydantic_core import to_jsonable_python
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import settings
from src.core.events.models import EventRecord, QueueMessage, QueueMessageStatus
from src.core.events.routing import ROUTING_RULES, RoutingRule, route
from src.core.exceptions import ValidationError
from src.core.logging import get_logger
from src.shared.utils.time import utcnow

logger = get_logger("events.bus")

MAX_ENTRIES_PER_PUT = 10


@dataclass
class Event:
    source: str
    detail_type: str
    detail: dict[str, Any]
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def envelope(self) -> dict[str, Any]:
        return {
            "id": self.event_id,
            "source": str(self.source),
            "detail-type": str(self.detail_type),
            "detail": to_jsonable_python(self.detail),
        }

    @classmethod
    def from_envelope(cls, body: dict[str, Any]) -> "Event":
        return cls(
            source=body["source"],
            detail_type=body["detail-type"],
            detail=body.get("detail") or {},
            event_id=body["id"],
        )


class EventBus:
    """
    Writes events into the caller's session (transactional outbox).

    Events become visible to consumers only when the caller commits, so a
    rolled-back operation never publishes.
    """

    def __init__(self, db: AsyncSession, rules: tuple[RoutingRule, ...] = ROUTING_RULES):
        self.db = db
        self.rules = rules

    async def put_events(self, events: Sequence[Event]) -> list[str]:
        if not events:
            return []
        if len(events) > MAX_ENTRIES_PER_PUT:
            raise ValidationError(
                f"At most {MAX_ENTRIES_PER_PUT} events per put, got {len(events)}"
            )

        now = utcnow()
        for event in events:
            envelope = event.envelope()
            school_id = envelope["detail"].get("schoolId")
            self.db.add(
                EventRecord(
                    event_id=event.event_id,
                    school_id=int(school_id) if school_id is not None else None,
                    source=envelope["source"],
                    detail_type=envelope["detail-type"],
                    detail=envelope["detail"],
                )
            )
            targets = route(event.detail_type, self.rules)
            for queue_name in targets:
                self.db.add(
                    QueueMessage(
                        queue_name=queue_name,
                        event_id=event.event_id,
                        body=envelope,
                        status=QueueMessageStatus.PENDING.value,
                        receive_count=0,
                        visible_at=now,
                        sent_at=now,
                    )
                )
            logger.debug(
                "event published",
                extra={"event_id": event.event_id, "detail_type": str(event.detail_type), "targets": targets},
            )

        await self.db.flush()
        return [e.event_id for e in events]

    async def publish(self, source: str, detail_type: str, detail: dict[str, Any]) -> str:
        ids = await self.put_events([Event(source=source, detail_type=detail_type, detail=detail)])
        return ids[0]


class EventBatcher:
    """Accumulates events and flushes them in batches of `batch_size`."""

    def __init__(self, bus: EventBus, batch_size: int | None = None):
        self.bus = bus
        self.batch_size = min(batch_size or settings.event_batch_size, MAX_ENTRIES_PER_PUT)
        self.pending: list[Event] = []
        self.flushes = 0

    async def add(self, event: Event) -> None:
        self.pending.append(event)
        if len(self.pending) >= self.batch_size:
            await self.flush()

    async def flush(self) -> None:
        if not self.pending:
            return
        batch, self.pending = self.pending, []
        await self.bus.put_events(batch)
        self.flushes += 1
