"""Builders for test data shared across test packages."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth.jwt import create_access_token
from src.modules.academics.models import AcademicSession, ClassGroup, Enrollment, Student, Term
from src.modules.fees.models import FeeItem, FeeSchedule, FeeScheduleLine
from src.modules.invoices.models import Invoice
from src.modules.invoices.schemas import GenerateClassInvoices
from src.modules.invoices.service import InvoiceService
from src.modules.schools.models import School


def auth_headers(*roles: str, school_id: int | None = None, user_id: str = "user-1") -> dict[str, str]:
    """Bearer header for a caller with the given roles and tenant claim."""
    token = create_access_token(user_id=user_id, roles=list(roles), school_id=school_id)
    return {"Authorization": f"Bearer {token}"}


@dataclass
class BillingFixture:
    """A school with one term, one class group of enrolled students and a fee schedule."""

    school: School
    session: AcademicSession
    term: Term
    class_group: ClassGroup
    students: list[Student]
    enrollments: list[Enrollment]
    tuition: FeeItem
    bus: FeeItem
    lunch: FeeItem
    schedule: FeeSchedule


async def create_school(db_session: AsyncSession, code: str = "GRN") -> School:
    school = School(code=code, name=f"{code} Academy", currency="NGN", is_active=True)
    db_session.add(school)
    await db_session.flush()
    return school


async def build_billing(
    db_session: AsyncSession,
    *,
    code: str = "GRN",
    student_count: int = 3,
    tuition_amount: Decimal = Decimal("2000.00"),
    optional_amount: Decimal = Decimal("500.00"),
) -> BillingFixture:
    """Tuition is required; bus and lunch are optional lines of optional_amount each."""
    school = await create_school(db_session, code)

    session = AcademicSession(school_id=school.id, name="2026/2027")
    db_session.add(session)
    await db_session.flush()

    term = Term(school_id=school.id, session_id=session.id, name="First Term")
    group = ClassGroup(school_id=school.id, class_year="JSS1", arm="A", display_name="JSS1 A")
    db_session.add_all([term, group])
    await db_session.flush()

    students = []
    enrollments = []
    for i in range(student_count):
        student = Student(
            school_id=school.id,
            admission_no=f"{code}-{i + 1:03d}",
            first_name=f"Student{i + 1}",
            last_name="Test",
            current_class_group_id=group.id,
            guardian_user_id=f"parent-{i + 1}",
        )
        db_session.add(student)
        await db_session.flush()
        enrollment = Enrollment(
            school_id=school.id,
            student_id=student.id,
            term_id=term.id,
            class_group_id=group.id,
            session_id=session.id,
        )
        db_session.add(enrollment)
        await db_session.flush()
        students.append(student)
        enrollments.append(enrollment)

    tuition = FeeItem(school_id=school.id, name="Tuition", category="tuition", is_optional=False)
    bus = FeeItem(school_id=school.id, name="School bus", category="transport", is_optional=True)
    lunch = FeeItem(school_id=school.id, name="Lunch", category="meals", is_optional=True)
    db_session.add_all([tuition, bus, lunch])
    await db_session.flush()

    schedule = FeeSchedule(
        school_id=school.id,
        name="JSS1 First Term",
        session_id=session.id,
        term_id=term.id,
        class_group_id=group.id,
        class_year="JSS1",
        currency="NGN",
    )
    db_session.add(schedule)
    await db_session.flush()
    db_session.add_all(
        [
            FeeScheduleLine(
                school_id=school.id, fee_schedule_id=schedule.id, fee_item_id=tuition.id,
                amount=tuition_amount, sort_order=0,
            ),
            FeeScheduleLine(
                school_id=school.id, fee_schedule_id=schedule.id, fee_item_id=bus.id,
                amount=optional_amount, sort_order=1,
            ),
            FeeScheduleLine(
                school_id=school.id, fee_schedule_id=schedule.id, fee_item_id=lunch.id,
                amount=optional_amount, sort_order=2,
            ),
        ]
    )
    await db_session.commit()

    return BillingFixture(
        school=school,
        session=session,
        term=term,
        class_group=group,
        students=students,
        enrollments=enrollments,
        tuition=tuition,
        bus=bus,
        lunch=lunch,
        schedule=schedule,
    )


def days_ago(days: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=days)


async def issue_invoices(
    db_session: AsyncSession, data: BillingFixture, due_at: datetime | None = None
) -> list[Invoice]:
    """Generate the class invoices and reconcile them the way the invoicing worker would."""
    service = InvoiceService(db_session, data.school.id)
    result = await service.generate_class_invoices(
        GenerateClassInvoices(
            term_id=data.term.id,
            class_group_id=data.class_group.id,
            fee_schedule_id=data.schedule.id,
            due_at=due_at,
        ),
        "bursar-1",
    )
    invoices = [await service.reconcile(invoice_id) for invoice_id in result.invoice_ids]
    await db_session.commit()
    return invoices
