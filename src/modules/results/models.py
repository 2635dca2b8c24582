"""ResultReleasePolicy and ReportCard models."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import TenantModel


class ReportCardStatus(StrEnum):
    DRAFT = "draft"
    PUBLISHED = "published"


class ResultReleasePolicy(TenantModel):
    """Per-school payment threshold below which report cards are withheld."""

    __tablename__ = "result_release_policies"

    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    minimum_payment_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    message_to_parent: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (UniqueConstraint("school_id", name="uq_result_release_policies_school"),)


class ReportCard(TenantModel):
    __tablename__ = "report_cards"

    student_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("students.id"), nullable=False
    )
    term_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("terms.id"), nullable=False)
    class_group_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("class_groups.id"), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ReportCardStatus.DRAFT.value
    )
    summary: Mapped[dict[str, Any] | None] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=True
    )
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("school_id", "student_id", "term_id", name="uq_report_cards_student_term"),
    )
