from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.models import AuditLog
from src.core.logging import get_logger

logger = get_logger("audit")


class AuditAction(StrEnum):
    """Audit actions emitted by billing operations."""

    INVOICE_CREATED = "INVOICE_CREATED"
    INVOICES_GENERATED = "INVOICES_GENERATED"
    INVOICE_SELECTION_UPDATED = "INVOICE_SELECTION_UPDATED"
    FEE_ADJUSTMENT_CREATED = "FEE_ADJUSTMENT_CREATED"
    PAYMENT_INTENT_CREATED = "PAYMENT_INTENT_CREATED"
    MANUAL_PAYMENT_SUBMITTED = "MANUAL_PAYMENT_SUBMITTED"
    MANUAL_PAYMENT_APPROVED = "MANUAL_PAYMENT_APPROVED"
    MANUAL_PAYMENT_REJECTED = "MANUAL_PAYMENT_REJECTED"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    RECEIPT_ATTACHED = "RECEIPT_ATTACHED"
    RESULT_VIEW_BLOCKED = "RESULT_VIEW_BLOCKED"
    RESULT_PUBLISHED = "RESULT_PUBLISHED"
    RESULT_POLICY_UPDATED = "RESULT_POLICY_UPDATED"
    FEE_ITEM_CREATED = "FEE_ITEM_CREATED"
    FEE_ITEM_UPDATED = "FEE_ITEM_UPDATED"
    FEE_ITEM_DELETED = "FEE_ITEM_DELETED"
    FEE_SCHEDULE_CREATED = "FEE_SCHEDULE_CREATED"
    FEE_SCHEDULE_UPDATED = "FEE_SCHEDULE_UPDATED"
    DEAD_LETTERS_REDRIVEN = "DEAD_LETTERS_REDRIVEN"


class AuditService:
    """Service for creating audit logs."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _build(
        self,
        school_id: int,
        action: str | AuditAction,
        entity_type: str,
        entity_id: int,
        user_id: str | None,
        entity_identifier: str | None,
        old_values: dict[str, Any] | None,
        new_values: dict[str, Any] | None,
        comment: str | None,
    ) -> AuditLog:
        return AuditLog(
            school_id=school_id,
            user_id=user_id,
            action=str(action),
            entity_type=entity_type,
            entity_id=entity_id,
            entity_identifier=entity_identifier,
            old_values=old_values,
            new_values=new_values,
            comment=comment,
        )

    async def log(
        self,
        school_id: int,
        action: str | AuditAction,
        entity_type: str,
        entity_id: int,
        user_id: str | None = None,
        entity_identifier: str | None = None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        comment: str | None = None,
    ) -> AuditLog:
        """
        Create an audit log entry inside the caller's transaction.

        Use when the audit record must exist together with the state it
        describes (it commits or rolls back with it).
        """
        audit_log = self._build(
            school_id, action, entity_type, entity_id, user_id,
            entity_identifier, old_values, new_values, comment,
        )
        self.db.add(audit_log)
        await self.db.flush()
        return audit_log

    async def log_after_commit(
        self,
        school_id: int,
        action: str | AuditAction,
        entity_type: str,
        entity_id: int,
        user_id: str | None = None,
        entity_identifier: str | None = None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        comment: str | None = None,
    ) -> AuditLog | None:
        """
        Best-effort audit write in its own transaction.

        The primary state must already be committed. A failure here is logged
        and swallowed: it never undoes the transition it describes.
        """
        audit_log = self._build(
            school_id, action, entity_type, entity_id, user_id,
            entity_identifier, old_values, new_values, comment,
        )
        try:
            self.db.add(audit_log)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            logger.warning(
                "audit write failed",
                exc_info=True,
                extra={
                    "audit_action": str(action),
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                },
            )
            return None
        return audit_log


async def list_audit_entries(
    session: AsyncSession,
    school_id: int,
    *,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    user_id: str | None = None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    action: str | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[AuditLog], int]:
    """
    List a tenant's audit log entries with optional filters.
    Returns (entries, total_count).
    """
    conditions = [AuditLog.school_id == school_id]
    if date_from is not None:
        conditions.append(AuditLog.created_at >= date_from)
    if date_to is not None:
        conditions.append(AuditLog.created_at <= date_to)
    if user_id is not None:
        conditions.append(AuditLog.user_id == user_id)
    if entity_type is not None:
        conditions.append(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        conditions.append(AuditLog.entity_id == entity_id)
    if action is not None:
        conditions.append(AuditLog.action == action)

    total = await session.scalar(
        select(func.count()).select_from(AuditLog).where(*conditions)
    )

    q = (
        select(AuditLog)
        .where(*conditions)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await session.execute(q)
    return list(result.scalars().all()), total or 0
