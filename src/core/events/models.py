"""Event log and database-backed queue messages."""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import DateTime, Index, Integer, JSON, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, BigIntPK


class QueueMessageStatus(StrEnum):
    PENDING = "pending"
    DONE = "done"
    DEAD = "dead"


class EventRecord(Base):
    """Every event put on the bus, in arrival order."""

    __tablename__ = "event_log"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True)
    school_id: Mapped[int | None] = mapped_column(BigIntPK, nullable=True, index=True)
    source: Mapped[str] = mapped_column(String(50), nullable=False)
    detail_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    detail: Mapped[dict] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class QueueMessage(Base):
    """
    One delivery of an event to one queue.

    Dead-lettered messages keep their row: queue_name becomes the DLQ name
    and source_queue remembers where they came from.
    """

    __tablename__ = "queue_messages"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    queue_name: Mapped[str] = mapped_column(String(50), nullable=False)
    source_queue: Mapped[str | None] = mapped_column(String(50), nullable=True)

    event_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    body: Mapped[dict] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=False, default=dict
    )

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=QueueMessageStatus.PENDING.value
    )
    receive_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    visible_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_received_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    dead_lettered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_queue_messages_receive", "queue_name", "status", "visible_at"),
    )
