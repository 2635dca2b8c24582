"""Academic reference data: sessions, terms, class groups, students, enrollments."""

from datetime import date
from enum import StrEnum

from sqlalchemy import BigInteger, Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import TenantModel


class EnrollmentStatus(StrEnum):
    ACTIVE = "active"
    WITHDRAWN = "withdrawn"


class AcademicSession(TenantModel):
    """School year, e.g. 2025/2026."""

    __tablename__ = "academic_sessions"

    name: Mapped[str] = mapped_column(String(50), nullable=False)
    starts_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    ends_on: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (UniqueConstraint("school_id", "name", name="uq_session_school_name"),)


class Term(TenantModel):
    """
    Academic term within a session.

    Invoices, enrollments and report cards are all keyed by term.
    """

    __tablename__ = "terms"

    session_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("academic_sessions.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)  # e.g. "First Term"
    starts_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    ends_on: Mapped[date | None] = mapped_column(Date, nullable=True)

    session: Mapped["AcademicSession"] = relationship("AcademicSession")


class ClassGroup(TenantModel):
    """A class year and arm, e.g. JSS1 A."""

    __tablename__ = "class_groups"

    class_year: Mapped[str] = mapped_column(String(50), nullable=False)
    arm: Mapped[str | None] = mapped_column(String(20), nullable=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)

    __table_args__ = (
        UniqueConstraint("school_id", "display_name", name="uq_class_group_school_name"),
    )


class Student(TenantModel):
    __tablename__ = "students"

    admission_no: Mapped[str] = mapped_column(String(50), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    current_class_group_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("class_groups.id"), nullable=True, index=True
    )
    # Parent account in the identity provider
    guardian_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    __table_args__ = (
        UniqueConstraint("school_id", "admission_no", name="uq_student_school_admission"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Enrollment(TenantModel):
    """A student's placement in a class group for one term."""

    __tablename__ = "enrollments"

    student_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("students.id"), nullable=False, index=True
    )
    term_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("terms.id"), nullable=False)
    class_group_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("class_groups.id"), nullable=False
    )
    session_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("academic_sessions.id"), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=EnrollmentStatus.ACTIVE.value
    )

    __table_args__ = (
        UniqueConstraint("school_id", "student_id", "term_id", name="uq_enrollment_student_term"),
        Index("ix_enrollments_term_class_group", "school_id", "term_id", "class_group_id", "id"),
    )
