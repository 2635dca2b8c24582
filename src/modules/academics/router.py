"""API endpoints for Academics module."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth.dependencies import guard
from src.core.auth.models import Caller
from src.core.database.session import get_db
from src.modules.academics.schemas import (
    AcademicSessionCreate,
    AcademicSessionResponse,
    ClassGroupCreate,
    ClassGroupResponse,
    EnrollmentCreate,
    EnrollmentResponse,
    StudentCreate,
    StudentResponse,
    TermCreate,
    TermResponse,
)
from src.modules.academics.service import AcademicsService
from src.shared.schemas.base import ApiResponse

router = APIRouter(prefix="/schools/{school_id}", tags=["Academics"])


@router.post(
    "/sessions",
    response_model=ApiResponse[AcademicSessionResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_session(
    school_id: int,
    data: AcademicSessionCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("manageAcademics")),
):
    session = await AcademicsService(db, school_id).create_session(data)
    return ApiResponse(data=AcademicSessionResponse.model_validate(session))


@router.post(
    "/terms",
    response_model=ApiResponse[TermResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_term(
    school_id: int,
    data: TermCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("manageAcademics")),
):
    term = await AcademicsService(db, school_id).create_term(data)
    return ApiResponse(data=TermResponse.model_validate(term))


@router.get("/terms", response_model=ApiResponse[list[TermResponse]])
async def list_terms(
    school_id: int,
    session_id: int | None = Query(None),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("readAcademics")),
):
    terms = await AcademicsService(db, school_id).list_terms(session_id)
    return ApiResponse(data=[TermResponse.model_validate(t) for t in terms])


@router.post(
    "/class-groups",
    response_model=ApiResponse[ClassGroupResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_class_group(
    school_id: int,
    data: ClassGroupCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("manageAcademics")),
):
    group = await AcademicsService(db, school_id).create_class_group(data)
    return ApiResponse(data=ClassGroupResponse.model_validate(group))


@router.post(
    "/students",
    response_model=ApiResponse[StudentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_student(
    school_id: int,
    data: StudentCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("manageAcademics")),
):
    student = await AcademicsService(db, school_id).create_student(data)
    return ApiResponse(data=StudentResponse.model_validate(student))


@router.post(
    "/enrollments",
    response_model=ApiResponse[EnrollmentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def enroll_student(
    school_id: int,
    data: EnrollmentCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("manageAcademics")),
):
    enrollment = await AcademicsService(db, school_id).enroll_student(data)
    return ApiResponse(
        message="Student enrolled",
        data=EnrollmentResponse.model_validate(enrollment),
    )
