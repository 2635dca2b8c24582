"""Invoice, InvoiceLine, FeeAdjustment and installment models."""

from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import TenantModel


class InvoiceStatus(StrEnum):
    """Invoice status enumeration."""

    ISSUED = "issued"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    CANCELLED = "cancelled"


class AdjustmentType(StrEnum):
    DISCOUNT = "discount"
    WAIVER = "waiver"
    PENALTY = "penalty"


class InstallmentStatus(StrEnum):
    DUE = "due"
    PAID = "paid"
    OVERDUE = "overdue"


def generation_key(student_id: int, term_id: int, class_group_id: int, fee_schedule_id: int) -> str:
    """Derived natural key of an invoice; one invoice per tuple and school."""
    return f"{student_id}:{term_id}:{class_group_id}:{fee_schedule_id}"


class Invoice(TenantModel):
    """
    Term invoice for a student.

    Amounts:
        amount_due = max(required + optional - discount + penalty - paid, 0)
    """

    __tablename__ = "invoices"

    invoice_no: Mapped[str] = mapped_column(String(50), nullable=False)

    # Relations
    student_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("students.id"), nullable=False
    )
    term_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("terms.id"), nullable=False)
    session_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("academic_sessions.id"), nullable=True
    )
    class_group_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("class_groups.id"), nullable=False
    )
    fee_schedule_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("fee_schedules.id"), nullable=False
    )
    enrollment_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("enrollments.id"), nullable=True
    )
    generation_key: Mapped[str] = mapped_column(String(120), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InvoiceStatus.ISSUED.value, index=True
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="NGN")

    # Amounts (Decimal with 2 decimal places)
    required_subtotal: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )
    optional_subtotal: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )
    discount_total: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )
    penalty_total: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )
    amount_paid: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )
    amount_due: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )

    # Minimum first payment: overrides win over the school default
    min_first_amount_override: Mapped[Decimal | None] = mapped_column(
        Numeric(15, 2), nullable=True
    )
    min_first_percent: Mapped[int | None] = mapped_column(Integer, nullable=True)
    min_first_amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )
    below_min_first: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Dates
    due_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    issued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_by_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    lines: Mapped[list["InvoiceLine"]] = relationship(
        "InvoiceLine",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLine.sort_order",
    )

    __table_args__ = (
        UniqueConstraint("school_id", "invoice_no", name="uq_invoices_school_invoice_no"),
        UniqueConstraint("school_id", "generation_key", name="uq_invoices_school_generation_key"),
        Index("ix_invoices_student_term", "school_id", "student_id", "term_id"),
        Index("ix_invoices_term_class_group", "school_id", "term_id", "class_group_id"),
    )

    @property
    def billed_total(self) -> Decimal:
        return self.required_subtotal + self.optional_subtotal - self.discount_total + self.penalty_total

    @property
    def is_cancelled(self) -> bool:
        return self.status == InvoiceStatus.CANCELLED.value


class InvoiceLine(TenantModel):
    """One billed fee item. Only optional lines may change is_selected."""

    __tablename__ = "invoice_lines"

    invoice_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    fee_schedule_line_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("fee_schedule_lines.id"), nullable=True
    )
    fee_item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("fee_items.id"), nullable=False
    )
    label: Mapped[str] = mapped_column(String(200), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    is_optional: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_selected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="lines")

    __table_args__ = (
        UniqueConstraint("invoice_id", "fee_schedule_line_id", name="uq_invoice_lines_schedule_line"),
    )


class FeeAdjustment(TenantModel):
    """Append-only credit (discount, waiver) or debit (penalty) against an invoice."""

    __tablename__ = "fee_adjustments"

    invoice_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("invoices.id"), nullable=False, index=True
    )
    adjustment_type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    created_by_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    approved_by_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)


class InstallmentPlan(TenantModel):
    __tablename__ = "installment_plans"

    invoice_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("invoices.id"), nullable=False, unique=True
    )
    template: Mapped[str] = mapped_column(String(50), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)

    installments: Mapped[list["Installment"]] = relationship(
        "Installment",
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="Installment.sequence",
    )


class Installment(TenantModel):
    __tablename__ = "installments"

    plan_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("installment_plans.id", ondelete="CASCADE"), nullable=False
    )
    invoice_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("invoices.id"), nullable=False, index=True
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    percent: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    due_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InstallmentStatus.DUE.value
    )
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    plan: Mapped["InstallmentPlan"] = relationship("InstallmentPlan", back_populates="installments")

    __table_args__ = (
        UniqueConstraint("plan_id", "sequence", name="uq_installments_plan_sequence"),
    )
