"""API endpoints for audit trail and queue operations."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.service import list_audit_entries
from src.core.auth.dependencies import guard
from src.core.auth.models import Caller
from src.core.database.session import get_db
from src.modules.ops.schemas import (
    AuditEntryResponse,
    OverdueScanRequested,
    QueueStatsResponse,
    RedriveResult,
)
from src.modules.ops.service import OpsService, queue_stats, stats_payload
from src.shared.schemas.base import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/schools/{school_id}/ops", tags=["Operations"])


@router.get(
    "/audit-log",
    response_model=ApiResponse[PaginatedResponse[AuditEntryResponse]],
)
async def get_audit_log(
    school_id: int,
    date_from: datetime | None = Query(None),
    date_to: datetime | None = Query(None),
    user_id: str | None = Query(None),
    entity_type: str | None = Query(None),
    entity_id: int | None = Query(None),
    action: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("auditLog")),
):
    """List the school's audit log entries, newest first."""
    entries, total = await list_audit_entries(
        db,
        school_id,
        date_from=date_from,
        date_to=date_to,
        user_id=user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        page=page,
        limit=limit,
    )
    return ApiResponse(
        data=PaginatedResponse.create(
            items=[AuditEntryResponse.model_validate(e) for e in entries],
            total=total,
            page=page,
            limit=limit,
        )
    )


@router.get("/queues", response_model=ApiResponse[list[QueueStatsResponse]])
async def get_queue_stats(
    school_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("queueStats")),
):
    stats = await queue_stats(db)
    return ApiResponse(data=[QueueStatsResponse(**stats_payload(s)) for s in stats])


@router.post("/queues/{queue}/redrive", response_model=ApiResponse[RedriveResult])
async def redrive_dead_letters(
    school_id: int,
    queue: str,
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("redriveDeadLetters")),
):
    count = await OpsService(db, school_id).redrive_dead_letters(queue, caller.user_id, limit)
    return ApiResponse(data=RedriveResult(queue=queue, redriven=count), message=f"{count} messages redriven")


@router.post("/overdue-scan", response_model=ApiResponse[OverdueScanRequested])
async def request_overdue_scan(
    school_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("overdueScan")),
):
    event_id = await OpsService(db, school_id).request_overdue_scan()
    return ApiResponse(data=OverdueScanRequested(event_id=event_id), message="Overdue scan requested")
