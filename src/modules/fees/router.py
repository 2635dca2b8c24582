"""API endpoints for Fees module."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth.dependencies import guard
from src.core.auth.models import Caller
from src.core.database.session import get_db
from src.modules.fees.schemas import (
    FeeItemCreate,
    FeeItemResponse,
    FeeItemUpdate,
    FeeScheduleCreate,
    FeeScheduleLineCreate,
    FeeScheduleLineUpdate,
    FeeScheduleResponse,
)
from src.modules.fees.service import FeeService
from src.shared.schemas.base import ApiResponse

router = APIRouter(prefix="/schools/{school_id}/fees", tags=["Fees"])


# --- Fee items ---


@router.post(
    "/items",
    response_model=ApiResponse[FeeItemResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_fee_item(
    school_id: int,
    data: FeeItemCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("manageFees")),
):
    item = await FeeService(db, school_id).create_fee_item(data, caller.user_id)
    return ApiResponse(message="Fee item created", data=FeeItemResponse.model_validate(item))


@router.get("/items", response_model=ApiResponse[list[FeeItemResponse]])
async def list_fee_items(
    school_id: int,
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("readFees")),
):
    items = await FeeService(db, school_id).list_fee_items(include_inactive)
    return ApiResponse(data=[FeeItemResponse.model_validate(i) for i in items])


@router.patch("/items/{item_id}", response_model=ApiResponse[FeeItemResponse])
async def update_fee_item(
    school_id: int,
    item_id: int,
    data: FeeItemUpdate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("manageFees")),
):
    item = await FeeService(db, school_id).update_fee_item(item_id, data, caller.user_id)
    return ApiResponse(data=FeeItemResponse.model_validate(item))


@router.delete("/items/{item_id}", response_model=ApiResponse[None])
async def delete_fee_item(
    school_id: int,
    item_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("manageFees")),
):
    await FeeService(db, school_id).delete_fee_item(item_id, caller.user_id)
    return ApiResponse(data=None, message="Fee item deleted")


# --- Fee schedules ---


@router.post(
    "/schedules",
    response_model=ApiResponse[FeeScheduleResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_fee_schedule(
    school_id: int,
    data: FeeScheduleCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("manageFees")),
):
    schedule = await FeeService(db, school_id).create_schedule(data, caller.user_id)
    return ApiResponse(message="Fee schedule created", data=FeeScheduleResponse.model_validate(schedule))


@router.get("/schedules", response_model=ApiResponse[list[FeeScheduleResponse]])
async def list_fee_schedules(
    school_id: int,
    term_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("readFees")),
):
    schedules = await FeeService(db, school_id).list_schedules(term_id)
    return ApiResponse(data=[FeeScheduleResponse.model_validate(s) for s in schedules])


@router.get("/schedules/{schedule_id}", response_model=ApiResponse[FeeScheduleResponse])
async def get_fee_schedule(
    school_id: int,
    schedule_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("readFees")),
):
    schedule = await FeeService(db, school_id).get_schedule(schedule_id)
    return ApiResponse(data=FeeScheduleResponse.model_validate(schedule))


@router.post("/schedules/{schedule_id}/lines", response_model=ApiResponse[FeeScheduleResponse])
async def add_fee_schedule_line(
    school_id: int,
    schedule_id: int,
    data: FeeScheduleLineCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("manageFees")),
):
    schedule = await FeeService(db, school_id).add_schedule_line(schedule_id, data, caller.user_id)
    return ApiResponse(data=FeeScheduleResponse.model_validate(schedule))


@router.patch(
    "/schedules/{schedule_id}/lines/{line_id}",
    response_model=ApiResponse[FeeScheduleResponse],
)
async def update_fee_schedule_line(
    school_id: int,
    schedule_id: int,
    line_id: int,
    data: FeeScheduleLineUpdate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("manageFees")),
):
    schedule = await FeeService(db, school_id).update_schedule_line(
        schedule_id, line_id, data, caller.user_id
    )
    return ApiResponse(data=FeeScheduleResponse.model_validate(schedule))
