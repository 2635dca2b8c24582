"""Service for Academics module."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import ConflictError, NotFoundError, ValidationError
from src.modules.academics.models import (
    AcademicSession,
    ClassGroup,
    Enrollment,
    EnrollmentStatus,
    Student,
    Term,
)
from src.modules.academics.schemas import (
    AcademicSessionCreate,
    ClassGroupCreate,
    EnrollmentCreate,
    StudentCreate,
    TermCreate,
)


class AcademicsService:
    """Reference data the billing engine reads: terms, class groups, students, enrollments."""

    def __init__(self, db: AsyncSession, school_id: int):
        self.db = db
        self.school_id = school_id

    async def _get_owned(self, model, entity_id: int, label: str):
        obj = await self.db.scalar(
            select(model).where(model.id == entity_id, model.school_id == self.school_id)
        )
        if not obj:
            raise NotFoundError(label, entity_id)
        return obj

    # --- Sessions & terms ---

    async def create_session(self, data: AcademicSessionCreate) -> AcademicSession:
        existing = await self.db.scalar(
            select(AcademicSession).where(
                AcademicSession.school_id == self.school_id,
                AcademicSession.name == data.name,
            )
        )
        if existing:
            raise ConflictError(f"Session {data.name} already exists", "name", data.name)
        session = AcademicSession(school_id=self.school_id, **data.model_dump())
        self.db.add(session)
        await self.db.commit()
        await self.db.refresh(session)
        return session

    async def create_term(self, data: TermCreate) -> Term:
        await self.get_session(data.session_id)
        term = Term(school_id=self.school_id, **data.model_dump())
        self.db.add(term)
        await self.db.commit()
        await self.db.refresh(term)
        return term

    async def get_session(self, session_id: int) -> AcademicSession:
        return await self._get_owned(AcademicSession, session_id, "Session")

    async def get_term(self, term_id: int) -> Term:
        return await self._get_owned(Term, term_id, "Term")

    async def list_terms(self, session_id: int | None = None) -> list[Term]:
        query = select(Term).where(Term.school_id == self.school_id)
        if session_id is not None:
            query = query.where(Term.session_id == session_id)
        result = await self.db.execute(query.order_by(Term.id))
        return list(result.scalars().all())

    # --- Class groups ---

    async def create_class_group(self, data: ClassGroupCreate) -> ClassGroup:
        display_name = f"{data.class_year} {data.arm}".strip() if data.arm else data.class_year
        existing = await self.db.scalar(
            select(ClassGroup).where(
                ClassGroup.school_id == self.school_id,
                ClassGroup.display_name == display_name,
            )
        )
        if existing:
            raise ConflictError(f"Class group {display_name} already exists", "display_name", display_name)
        group = ClassGroup(
            school_id=self.school_id,
            class_year=data.class_year,
            arm=data.arm,
            display_name=display_name,
        )
        self.db.add(group)
        await self.db.commit()
        await self.db.refresh(group)
        return group

    async def get_class_group(self, class_group_id: int) -> ClassGroup:
        return await self._get_owned(ClassGroup, class_group_id, "Class group")

    # --- Students & enrollments ---

    async def create_student(self, data: StudentCreate) -> Student:
        existing = await self.db.scalar(
            select(Student).where(
                Student.school_id == self.school_id,
                Student.admission_no == data.admission_no,
            )
        )
        if existing:
            raise ConflictError(
                f"Student with admission_no={data.admission_no} already exists",
                "admission_no",
                data.admission_no,
            )
        if data.current_class_group_id is not None:
            await self.get_class_group(data.current_class_group_id)

        student = Student(school_id=self.school_id, **data.model_dump())
        self.db.add(student)
        await self.db.commit()
        await self.db.refresh(student)
        return student

    async def get_student(self, student_id: int) -> Student:
        return await self._get_owned(Student, student_id, "Student")

    async def enroll_student(self, data: EnrollmentCreate) -> Enrollment:
        student = await self.get_student(data.student_id)
        term = await self.get_term(data.term_id)
        await self.get_class_group(data.class_group_id)

        existing = await self.db.scalar(
            select(Enrollment).where(
                Enrollment.school_id == self.school_id,
                Enrollment.student_id == data.student_id,
                Enrollment.term_id == data.term_id,
            )
        )
        if existing:
            raise ConflictError("Student is already enrolled for this term", "student_id", data.student_id)

        enrollment = Enrollment(
            school_id=self.school_id,
            student_id=student.id,
            term_id=term.id,
            class_group_id=data.class_group_id,
            session_id=data.session_id or term.session_id,
            status=EnrollmentStatus.ACTIVE.value,
        )
        student.current_class_group_id = data.class_group_id
        self.db.add(enrollment)
        await self.db.commit()
        await self.db.refresh(enrollment)
        return enrollment

    async def list_enrollments_page(
        self,
        term_id: int,
        class_group_id: int,
        after_id: int = 0,
        limit: int = 50,
    ) -> list[Enrollment]:
        """Keyset page of active enrollments for (term, class group), ordered by id."""
        result = await self.db.execute(
            select(Enrollment)
            .where(
                Enrollment.school_id == self.school_id,
                Enrollment.term_id == term_id,
                Enrollment.class_group_id == class_group_id,
                Enrollment.status == EnrollmentStatus.ACTIVE.value,
                Enrollment.id > after_id,
            )
            .order_by(Enrollment.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def resolve_class_group(self, student_id: int, term_id: int) -> tuple[int, int | None]:
        """
        Class group for a student in a term: the term's enrollment first,
        then the student's current class group.

        Returns (class_group_id, enrollment_id).
        """
        enrollment = await self.db.scalar(
            select(Enrollment).where(
                Enrollment.school_id == self.school_id,
                Enrollment.student_id == student_id,
                Enrollment.term_id == term_id,
            )
        )
        if enrollment:
            return enrollment.class_group_id, enrollment.id

        student = await self.get_student(student_id)
        if student.current_class_group_id is None:
            raise ValidationError("Student has no class group for this term", "class_group_id")
        return student.current_class_group_id, None
