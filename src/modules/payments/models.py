"""PaymentIntent, PaymentTransaction and ManualPaymentProof models."""

from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import TenantModel


class PaymentIntentStatus(StrEnum):
    INITIATED = "initiated"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PaymentMethod(StrEnum):
    """Payment method options."""

    MANUAL = "manual"
    TRANSFER = "transfer"
    USSD = "ussd"
    CASH = "cash"
    CARD = "card"


class PaymentTransactionStatus(StrEnum):
    """PENDING -> CONFIRMED | REVERSED."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    REVERSED = "reversed"


class ManualProofStatus(StrEnum):
    """SUBMITTED -> APPROVED | REJECTED."""

    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


MANUAL_PROVIDER = "manual"


class PaymentIntent(TenantModel):
    """A payer's declared attempt to pay an invoice, validated before creation."""

    __tablename__ = "payment_intents"

    invoice_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("invoices.id"), nullable=False, index=True
    )
    payer_parent_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    provider: Mapped[str] = mapped_column(String(30), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentIntentStatus.INITIATED.value
    )
    external_reference: Mapped[str] = mapped_column(String(100), nullable=False)

    __table_args__ = (
        UniqueConstraint("school_id", "external_reference", name="uq_payment_intents_reference"),
    )


class PaymentTransaction(TenantModel):
    """
    Record of money moving against an invoice.

    receipt_no is assigned once, on confirmation, and never overwritten.
    """

    __tablename__ = "payment_transactions"

    invoice_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("invoices.id"), nullable=False, index=True
    )
    intent_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("payment_intents.id"), nullable=True
    )
    provider: Mapped[str] = mapped_column(String(30), nullable=False)
    method: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentTransactionStatus.PENDING.value, index=True
    )
    reference: Mapped[str] = mapped_column(String(100), nullable=False)

    # amount is what the invoice is credited with; gross/fee/net as reported by a gateway
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    gross_amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    fee_amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    net_amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    receipt_no: Mapped[str | None] = mapped_column(String(50), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reversed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    proof: Mapped["ManualPaymentProof | None"] = relationship(
        "ManualPaymentProof", back_populates="transaction", uselist=False
    )

    __table_args__ = (
        UniqueConstraint("school_id", "reference", name="uq_payment_transactions_reference"),
        UniqueConstraint("school_id", "receipt_no", name="uq_payment_transactions_receipt_no"),
        Index("ix_payment_transactions_invoice_status", "invoice_id", "status"),
    )

    @property
    def is_pending(self) -> bool:
        return self.status == PaymentTransactionStatus.PENDING.value


class ManualPaymentProof(TenantModel):
    """Uploaded evidence of a manual payment, reviewed by billing staff."""

    __tablename__ = "manual_payment_proofs"

    transaction_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("payment_transactions.id"), nullable=False, unique=True
    )
    invoice_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("invoices.id"), nullable=False, index=True
    )
    file_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    submitted_by_parent_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ManualProofStatus.SUBMITTED.value
    )
    reviewed_by_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    transaction: Mapped["PaymentTransaction"] = relationship(
        "PaymentTransaction", back_populates="proof"
    )
