"""Payment gateway webhook deliveries, kept for audit and idempotency."""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import JSON, BigInteger, DateTime, ForeignKey, Index, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import BaseModel


class GatewayProvider(StrEnum):
    PAYSTACK = "paystack"
    FLUTTERWAVE = "flutterwave"


class WebhookEventStatus(StrEnum):
    VERIFIED = "verified"
    REJECTED = "rejected"
    PROCESSED = "processed"
    IGNORED = "ignored"
    ERROR = "error"


class PaymentWebhookEvent(BaseModel):
    """
    One delivery from a gateway. The tenant is unknown until the reference
    is resolved to a payment intent, so school_id is nullable here.
    """

    __tablename__ = "payment_webhook_events"

    school_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("schools.id"), nullable=True, index=True
    )
    provider: Mapped[str] = mapped_column(String(30), nullable=False)
    event_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    error_message: Mapped[str | None] = mapped_column(String(500), nullable=True)
    payment_txn_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("payment_transactions.id", ondelete="SET NULL"), nullable=True
    )
    raw_payload: Mapped[dict | None] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=True
    )
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (Index("ix_payment_webhook_events_reference", "provider", "reference"),)
