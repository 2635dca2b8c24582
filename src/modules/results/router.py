"""API endpoints for Results module."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth.dependencies import guard
from src.core.auth.models import Caller
from src.core.database.session import get_db
from src.modules.results.schemas import (
    PublishResultReady,
    ReportCardResponse,
    ReportCardUpsert,
    ResultPolicyResponse,
    ResultPolicyUpsert,
)
from src.modules.results.service import ResultService
from src.shared.schemas.base import ApiResponse

router = APIRouter(prefix="/schools/{school_id}", tags=["Results"])


@router.get("/result-policy", response_model=ApiResponse[ResultPolicyResponse | None])
async def get_result_policy(
    school_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("readResultPolicy")),
):
    policy = await ResultService(db, school_id).get_policy()
    return ApiResponse(data=ResultPolicyResponse.model_validate(policy) if policy else None)


@router.put("/result-policy", response_model=ApiResponse[ResultPolicyResponse])
async def upsert_result_policy(
    school_id: int,
    data: ResultPolicyUpsert,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("manageResultPolicy")),
):
    policy = await ResultService(db, school_id).upsert_policy(data, caller.user_id)
    return ApiResponse(data=ResultPolicyResponse.model_validate(policy))


@router.put("/report-cards", response_model=ApiResponse[ReportCardResponse])
async def upsert_report_card(
    school_id: int,
    data: ReportCardUpsert,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("upsertReportCard")),
):
    card = await ResultService(db, school_id).upsert_report_card(data)
    return ApiResponse(data=ReportCardResponse.model_validate(card))


@router.post("/report-cards/publish", response_model=ApiResponse[ReportCardResponse])
async def publish_result_ready(
    school_id: int,
    data: PublishResultReady,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("publishResultReady")),
):
    card = await ResultService(db, school_id).publish_result_ready(data, caller.user_id)
    return ApiResponse(message="Result published", data=ReportCardResponse.model_validate(card))


@router.get(
    "/students/{student_id}/terms/{term_id}/report-cards",
    response_model=ApiResponse[list[ReportCardResponse]],
)
async def report_cards_by_student_term(
    school_id: int,
    student_id: int,
    term_id: int,
    limit: int | None = Query(None, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("reportCardsByStudentTerm")),
):
    """Withheld with 403 RESULTS_BLOCKED while the school's payment threshold is not met."""
    cards = await ResultService(db, school_id).report_cards_by_student_term(
        student_id, term_id, limit=limit, user_id=caller.user_id
    )
    return ApiResponse(data=[ReportCardResponse.model_validate(c) for c in cards])
