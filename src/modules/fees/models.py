"""FeeItem, FeeSchedule and FeeScheduleLine models."""

from datetime import datetime
from decimal import Decimal

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
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import TenantModel


class FeeItem(TenantModel):
    """A billable item (tuition, bus, uniform...). Never deleted while referenced."""

    __tablename__ = "fee_items"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="general")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_optional: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class FeeSchedule(TenantModel):
    """
    Fee lines for one (session, term, class year or class group).

    locked_at is stamped when the first invoice is generated from the
    schedule; lines are read-only from then on.
    """

    __tablename__ = "fee_schedules"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    session_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("academic_sessions.id"), nullable=True
    )
    term_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("terms.id"), nullable=False)
    class_year: Mapped[str | None] = mapped_column(String(50), nullable=True)
    class_group_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("class_groups.id"), nullable=True
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="NGN")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    lines: Mapped[list["FeeScheduleLine"]] = relationship(
        "FeeScheduleLine",
        back_populates="schedule",
        cascade="all, delete-orphan",
        order_by="FeeScheduleLine.sort_order",
    )

    __table_args__ = (Index("ix_fee_schedules_term", "school_id", "term_id"),)

    @property
    def is_locked(self) -> bool:
        return self.locked_at is not None


class FeeScheduleLine(TenantModel):
    __tablename__ = "fee_schedule_lines"

    fee_schedule_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("fee_schedules.id", ondelete="CASCADE"), nullable=False, index=True
    )
    fee_item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("fee_items.id"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    # None inherits FeeItem.is_optional
    is_optional_override: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    label: Mapped[str | None] = mapped_column(String(200), nullable=True)

    schedule: Mapped["FeeSchedule"] = relationship("FeeSchedule", back_populates="lines")
    fee_item: Mapped["FeeItem"] = relationship("FeeItem")

    def resolve_optional(self, item: FeeItem) -> bool:
        if self.is_optional_override is not None:
            return self.is_optional_override
        return item.is_optional
