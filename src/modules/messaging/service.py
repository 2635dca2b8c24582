"""Service for Messaging module."""

from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.modules.academics.models import Student
from src.modules.messaging.models import OutboundMessage, OutboundMessageStatus


class MessagingService:
    def __init__(self, db: AsyncSession, school_id: int):
        self.db = db
        self.school_id = school_id

    async def find(self, dedupe_key: str) -> OutboundMessage | None:
        return await self.db.scalar(
            select(OutboundMessage).where(
                OutboundMessage.school_id == self.school_id,
                OutboundMessage.dedupe_key == dedupe_key,
            )
        )

    async def _guardian_of(self, student_id: int | None) -> str | None:
        if student_id is None:
            return None
        return await self.db.scalar(
            select(Student.guardian_user_id).where(
                Student.school_id == self.school_id, Student.id == student_id
            )
        )

    async def enqueue(
        self,
        template: str,
        dedupe_key: str,
        payload: dict[str, Any],
        *,
        student_id: int | None = None,
        invoice_id: int | None = None,
        source_event_id: str | None = None,
    ) -> tuple[OutboundMessage, bool]:
        """Queue a message once per dedupe key. Returns (message, created). Does not commit."""
        existing = await self.find(dedupe_key)
        if existing:
            return existing, False

        message = OutboundMessage(
            school_id=self.school_id,
            template=str(template),
            dedupe_key=dedupe_key,
            status=OutboundMessageStatus.QUEUED.value,
            student_id=student_id,
            invoice_id=invoice_id,
            recipient_user_id=await self._guardian_of(student_id),
            source_event_id=source_event_id,
            payload=payload,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(message)
                await self.db.flush()
        except IntegrityError:
            return await self.find(dedupe_key), False
        return message, True

    async def list_queued(self, limit: int = 100) -> list[OutboundMessage]:
        result = await self.db.execute(
            select(OutboundMessage)
            .where(
                OutboundMessage.school_id == self.school_id,
                OutboundMessage.status == OutboundMessageStatus.QUEUED.value,
            )
            .order_by(OutboundMessage.id)
            .limit(limit)
        )
        return list(result.scalars().all())
