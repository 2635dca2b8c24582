"""OutboundMessage model."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import JSON, BigInteger, DateTime, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import TenantModel


class MessageTemplate(StrEnum):
    PAYMENT_RECEIPT = "PAYMENT_RECEIPT"
    INVOICE_ISSUED = "INVOICE_ISSUED"
    OVERDUE_NOTICE = "OVERDUE_NOTICE"
    RESULT_READY = "RESULT_READY"


class OutboundMessageStatus(StrEnum):
    QUEUED = "queued"
    SENT = "sent"
    FAILED = "failed"


class OutboundMessage(TenantModel):
    """
    A notification waiting for the external delivery provider.

    dedupe_key makes message creation idempotent under event replay.
    """

    __tablename__ = "outbound_messages"

    template: Mapped[str] = mapped_column(String(50), nullable=False)
    dedupe_key: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OutboundMessageStatus.QUEUED.value
    )
    student_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    invoice_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    recipient_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    source_event_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False
    )
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("school_id", "dedupe_key", name="uq_outbound_messages_dedupe"),
    )
