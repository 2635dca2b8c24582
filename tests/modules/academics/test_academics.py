"""Tests for Academics module."""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import ConflictError, NotFoundError, ValidationError
from src.modules.academics.schemas import ClassGroupCreate, EnrollmentCreate, StudentCreate
from src.modules.academics.service import AcademicsService
from tests.factories import auth_headers, build_billing, create_school


class TestAcademicsService:
    """Tests for AcademicsService."""

    async def test_class_group_display_name(self, db_session: AsyncSession):
        school = await create_school(db_session)
        service = AcademicsService(db_session, school.id)

        with_arm = await service.create_class_group(ClassGroupCreate(class_year="JSS2", arm="B"))
        without_arm = await service.create_class_group(ClassGroupCreate(class_year="SS3"))

        assert with_arm.display_name == "JSS2 B"
        assert without_arm.display_name == "SS3"
        with pytest.raises(ConflictError):
            await service.create_class_group(ClassGroupCreate(class_year="JSS2", arm="B"))

    async def test_duplicate_admission_no(self, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=1)

        with pytest.raises(ConflictError) as exc_info:
            await AcademicsService(db_session, data.school.id).create_student(
                StudentCreate(admission_no="GRN-001", first_name="Ada", last_name="Obi")
            )
        assert exc_info.value.details["field"] == "admission_no"

    async def test_enrollment_moves_current_class(self, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=0)
        service = AcademicsService(db_session, data.school.id)
        student = await service.create_student(
            StudentCreate(admission_no="GRN-100", first_name="Ada", last_name="Obi")
        )

        enrollment = await service.enroll_student(
            EnrollmentCreate(student_id=student.id, term_id=data.term.id, class_group_id=data.class_group.id)
        )

        assert enrollment.session_id == data.session.id
        student = await service.get_student(student.id)
        assert student.current_class_group_id == data.class_group.id
        with pytest.raises(ConflictError):
            await service.enroll_student(
                EnrollmentCreate(student_id=student.id, term_id=data.term.id, class_group_id=data.class_group.id)
            )

    async def test_other_school_records_are_not_found(self, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=1)
        other = await create_school(db_session, "OTH")

        with pytest.raises(NotFoundError):
            await AcademicsService(db_session, other.id).get_student(data.students[0].id)

    async def test_enrollment_page_is_keyset(self, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=5)
        service = AcademicsService(db_session, data.school.id)

        first = await service.list_enrollments_page(data.term.id, data.class_group.id, limit=2)
        rest = await service.list_enrollments_page(
            data.term.id, data.class_group.id, after_id=first[-1].id, limit=10
        )

        assert len(first) == 2
        assert len(rest) == 3
        assert first[-1].id < rest[0].id

    async def test_resolve_class_group(self, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=1)
        service = AcademicsService(db_session, data.school.id)
        enrolled = data.students[0]

        assert await service.resolve_class_group(enrolled.id, data.term.id) == (
            data.class_group.id,
            data.enrollments[0].id,
        )

        loose = await service.create_student(
            StudentCreate(admission_no="GRN-200", first_name="Tunde", last_name="Ade")
        )
        with pytest.raises(ValidationError):
            await service.resolve_class_group(loose.id, data.term.id)


class TestAcademicsApi:
    """Tests for Academics API endpoints."""

    async def test_admin_creates_reference_data(self, client: AsyncClient, db_session: AsyncSession):
        school = await create_school(db_session)
        await db_session.commit()
        headers = auth_headers("school_admin", school_id=school.id)
        base = f"/api/v1/schools/{school.id}"

        session = await client.post(f"{base}/sessions", json={"name": "2026/2027"}, headers=headers)
        assert session.status_code == 201
        session_id = session.json()["data"]["id"]

        term = await client.post(
            f"{base}/terms",
            json={"session_id": session_id, "name": "Second Term", "starts_on": "2027-01-06"},
            headers=headers,
        )
        assert term.status_code == 201

        terms = await client.get(
            f"{base}/terms",
            params={"session_id": session_id},
            headers=auth_headers("teacher", school_id=school.id),
        )
        assert [t["name"] for t in terms.json()["data"]] == ["Second Term"]

    async def test_term_dates_must_be_ordered(self, client: AsyncClient, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=0)

        response = await client.post(
            f"/api/v1/schools/{data.school.id}/terms",
            json={"session_id": data.session.id, "name": "Bad", "starts_on": "2027-04-01", "ends_on": "2027-01-01"},
            headers=auth_headers("school_admin", school_id=data.school.id),
        )
        assert response.status_code == 422

    async def test_bursar_cannot_create_students(self, client: AsyncClient, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=0)

        response = await client.post(
            f"/api/v1/schools/{data.school.id}/students",
            json={"admission_no": "GRN-9", "first_name": "Ada", "last_name": "Obi"},
            headers=auth_headers("bursar", school_id=data.school.id),
        )
        assert response.status_code == 403

    async def test_duplicate_session_conflicts(self, client: AsyncClient, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=0)

        response = await client.post(
            f"/api/v1/schools/{data.school.id}/sessions",
            json={"name": "2026/2027"},
            headers=auth_headers("school_admin", school_id=data.school.id),
        )
        assert response.status_code == 409
        assert response.json()["error_type"] == "CONFLICT"
