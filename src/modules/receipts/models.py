"""Receipt model."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, DateTime, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import TenantModel


class Receipt(TenantModel):
    """
    Receipt for a confirmed payment, keyed by receipt_no.

    Written by the receipts worker; the rendered document location is
    attached later by the renderer.
    """

    __tablename__ = "receipts"

    receipt_no: Mapped[str] = mapped_column(String(50), nullable=False)
    invoice_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("invoices.id"), nullable=False, index=True
    )
    payment_txn_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("payment_transactions.id"), nullable=True
    )
    payment_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    receipt_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    receipt_bucket: Mapped[str | None] = mapped_column(String(200), nullable=True)
    receipt_key: Mapped[str | None] = mapped_column(String(500), nullable=True)

    __table_args__ = (
        UniqueConstraint("school_id", "receipt_no", name="uq_receipts_school_receipt_no"),
    )
