"""Service for Fees module."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.audit.service import AuditAction, AuditService
from src.core.config import settings
from src.core.exceptions import ConflictError, NotFoundError, ValidationError
from src.modules.academics.models import ClassGroup, Term
from src.modules.fees.models import FeeItem, FeeSchedule, FeeScheduleLine
from src.modules.fees.schemas import (
    FeeItemCreate,
    FeeItemUpdate,
    FeeScheduleCreate,
    FeeScheduleLineCreate,
    FeeScheduleLineUpdate,
)
from src.shared.utils.money import round_money
from src.shared.utils.time import utcnow


class FeeService:
    """Fee items and fee schedules of one school."""

    def __init__(self, db: AsyncSession, school_id: int):
        self.db = db
        self.school_id = school_id
        self.audit = AuditService(db)

    # --- Fee items ---

    async def create_fee_item(self, data: FeeItemCreate, user_id: str | None) -> FeeItem:
        item = FeeItem(school_id=self.school_id, **data.model_dump())
        self.db.add(item)
        await self.db.flush()
        await self.audit.log(
            school_id=self.school_id,
            action=AuditAction.FEE_ITEM_CREATED,
            entity_type="FeeItem",
            entity_id=item.id,
            user_id=user_id,
            new_values=data.model_dump(mode="json"),
        )
        await self.db.commit()
        await self.db.refresh(item)
        return item

    async def get_fee_item(self, item_id: int) -> FeeItem:
        item = await self.db.scalar(
            select(FeeItem).where(FeeItem.id == item_id, FeeItem.school_id == self.school_id)
        )
        if not item:
            raise NotFoundError("Fee item", item_id)
        return item

    async def list_fee_items(self, include_inactive: bool = False) -> list[FeeItem]:
        query = select(FeeItem).where(FeeItem.school_id == self.school_id)
        if not include_inactive:
            query = query.where(FeeItem.is_active == True)  # noqa: E712
        result = await self.db.execute(query.order_by(FeeItem.category, FeeItem.name))
        return list(result.scalars().all())

    async def update_fee_item(self, item_id: int, data: FeeItemUpdate, user_id: str | None) -> FeeItem:
        item = await self.get_fee_item(item_id)
        changes = data.model_dump(exclude_unset=True)
        old_values = {key: getattr(item, key) for key in changes}
        for key, value in changes.items():
            setattr(item, key, value)

        await self.audit.log(
            school_id=self.school_id,
            action=AuditAction.FEE_ITEM_UPDATED,
            entity_type="FeeItem",
            entity_id=item.id,
            user_id=user_id,
            old_values=old_values,
            new_values=changes,
        )
        await self.db.commit()
        await self.db.refresh(item)
        return item

    async def delete_fee_item(self, item_id: int, user_id: str | None) -> None:
        """Delete an unreferenced fee item. Referenced items must be deactivated instead."""
        item = await self.get_fee_item(item_id)
        references = await self.db.scalar(
            select(func.count())
            .select_from(FeeScheduleLine)
            .where(
                FeeScheduleLine.school_id == self.school_id,
                FeeScheduleLine.fee_item_id == item.id,
            )
        )
        if references:
            raise ConflictError(
                f"Fee item is referenced by {references} schedule line(s); deactivate it instead",
                "fee_item_id",
                item.id,
            )

        await self.audit.log(
            school_id=self.school_id,
            action=AuditAction.FEE_ITEM_DELETED,
            entity_type="FeeItem",
            entity_id=item.id,
            user_id=user_id,
            old_values={"name": item.name, "category": item.category},
        )
        await self.db.delete(item)
        await self.db.commit()

    # --- Fee schedules ---

    async def _check_schedule_line(self, data: FeeScheduleLineCreate) -> FeeItem:
        item = await self.get_fee_item(data.fee_item_id)
        if not item.is_active:
            raise ValidationError(f"Fee item '{item.name}' is inactive", "fee_item_id")
        return item

    async def create_schedule(self, data: FeeScheduleCreate, user_id: str | None) -> FeeSchedule:
        term = await self.db.scalar(
            select(Term).where(Term.id == data.term_id, Term.school_id == self.school_id)
        )
        if not term:
            raise NotFoundError("Term", data.term_id)
        if data.class_group_id is not None:
            group = await self.db.scalar(
                select(ClassGroup).where(
                    ClassGroup.id == data.class_group_id,
                    ClassGroup.school_id == self.school_id,
                )
            )
            if not group:
                raise NotFoundError("Class group", data.class_group_id)

        schedule = FeeSchedule(
            school_id=self.school_id,
            name=data.name,
            term_id=term.id,
            session_id=data.session_id or term.session_id,
            class_year=data.class_year,
            class_group_id=data.class_group_id,
            currency=data.currency or settings.default_currency,
        )
        self.db.add(schedule)
        await self.db.flush()

        for line_data in data.lines:
            await self._check_schedule_line(line_data)
            self.db.add(self._build_line(schedule.id, line_data))

        await self.db.flush()
        await self.audit.log(
            school_id=self.school_id,
            action=AuditAction.FEE_SCHEDULE_CREATED,
            entity_type="FeeSchedule",
            entity_id=schedule.id,
            entity_identifier=schedule.name,
            user_id=user_id,
            new_values={"term_id": term.id, "lines": len(data.lines)},
        )
        await self.db.commit()
        return await self.get_schedule(schedule.id)

    def _build_line(self, schedule_id: int, data: FeeScheduleLineCreate) -> FeeScheduleLine:
        return FeeScheduleLine(
            school_id=self.school_id,
            fee_schedule_id=schedule_id,
            fee_item_id=data.fee_item_id,
            amount=round_money(data.amount),
            is_optional_override=data.is_optional_override,
            sort_order=data.sort_order,
            label=data.label,
        )

    async def get_schedule(self, schedule_id: int) -> FeeSchedule:
        schedule = await self.db.scalar(
            select(FeeSchedule)
            .where(FeeSchedule.id == schedule_id, FeeSchedule.school_id == self.school_id)
            .options(selectinload(FeeSchedule.lines).selectinload(FeeScheduleLine.fee_item))
            .execution_options(populate_existing=True)
        )
        if not schedule:
            raise NotFoundError("Fee schedule", schedule_id)
        return schedule

    async def list_schedules(self, term_id: int) -> list[FeeSchedule]:
        result = await self.db.execute(
            select(FeeSchedule)
            .where(FeeSchedule.school_id == self.school_id, FeeSchedule.term_id == term_id)
            .options(selectinload(FeeSchedule.lines))
            .order_by(FeeSchedule.id)
        )
        return list(result.scalars().all())

    def _ensure_editable(self, schedule: FeeSchedule) -> None:
        if schedule.is_locked:
            raise ConflictError(
                "Fee schedule is locked: invoices have been generated from it",
                "fee_schedule_id",
                schedule.id,
            )

    async def add_schedule_line(
        self, schedule_id: int, data: FeeScheduleLineCreate, user_id: str | None
    ) -> FeeSchedule:
        schedule = await self.get_schedule(schedule_id)
        self._ensure_editable(schedule)
        await self._check_schedule_line(data)
        self.db.add(self._build_line(schedule.id, data))
        await self.db.flush()
        await self.audit.log(
            school_id=self.school_id,
            action=AuditAction.FEE_SCHEDULE_UPDATED,
            entity_type="FeeSchedule",
            entity_id=schedule.id,
            user_id=user_id,
            new_values={"added_fee_item_id": data.fee_item_id, "amount": str(data.amount)},
        )
        await self.db.commit()
        return await self.get_schedule(schedule.id)

    async def update_schedule_line(
        self, schedule_id: int, line_id: int, data: FeeScheduleLineUpdate, user_id: str | None
    ) -> FeeSchedule:
        schedule = await self.get_schedule(schedule_id)
        self._ensure_editable(schedule)
        line = next((ln for ln in schedule.lines if ln.id == line_id), None)
        if line is None:
            raise NotFoundError("Fee schedule line", line_id)

        changes = data.model_dump(exclude_unset=True)
        if "amount" in changes and changes["amount"] is not None:
            changes["amount"] = round_money(changes["amount"])
        old_values = {key: str(getattr(line, key)) for key in changes}
        for key, value in changes.items():
            setattr(line, key, value)

        await self.audit.log(
            school_id=self.school_id,
            action=AuditAction.FEE_SCHEDULE_UPDATED,
            entity_type="FeeSchedule",
            entity_id=schedule.id,
            user_id=user_id,
            old_values=old_values,
            new_values={key: str(value) for key, value in changes.items()},
        )
        await self.db.commit()
        return await self.get_schedule(schedule.id)

    async def lock_schedule(self, schedule: FeeSchedule) -> None:
        """Stamp locked_at once; called when invoices are generated. Does not commit."""
        if schedule.locked_at is None:
            schedule.locked_at = utcnow()
