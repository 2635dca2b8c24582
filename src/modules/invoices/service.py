"""Service for Invoices module."""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.audit.service import AuditAction, AuditService
from src.core.config import settings
from src.core.documents.number_generator import DocumentNumberGenerator
from src.core.events import DetailType, Event, EventBatcher, EventBus, EventSource
from src.core.exceptions import ConflictError, NotFoundError, ValidationError
from src.core.logging import get_logger
from src.modules.academics.models import Student, Term
from src.modules.academics.service import AcademicsService
from src.modules.fees.models import FeeSchedule, FeeScheduleLine
from src.modules.fees.service import FeeService
from src.modules.invoices import totals
from src.modules.invoices.models import (
    FeeAdjustment,
    Installment,
    InstallmentPlan,
    Invoice,
    InvoiceLine,
    InvoiceStatus,
    generation_key,
)
from src.modules.invoices.schemas import (
    DefaulterResponse,
    FeeAdjustmentCreate,
    GenerateClassInvoices,
    GenerationResult,
    InvoiceCreate,
)
from src.modules.payments.models import PaymentTransaction, PaymentTransactionStatus
from src.shared.utils.money import ZERO, round_money
from src.shared.utils.time import ensure_aware, utcnow

logger = get_logger("invoices")


def invoice_event(school_id: int, invoice_id: int, reason: str | None = None) -> Event:
    detail: dict[str, Any] = {"schoolId": school_id, "invoiceId": invoice_id}
    if reason:
        detail["reason"] = reason
    return Event(
        source=EventSource.BILLING,
        detail_type=DetailType.INVOICE_GENERATED,
        detail=detail,
    )


class InvoiceService:
    """Invoices of one school: generation, selection, adjustments and queries."""

    def __init__(self, db: AsyncSession, school_id: int):
        self.db = db
        self.school_id = school_id
        self.audit = AuditService(db)
        self.academics = AcademicsService(db, school_id)
        self.fees = FeeService(db, school_id)
        self.bus = EventBus(db)

    # --- Helper Methods ---

    async def _get_term(self, term_id: int) -> Term:
        return await self.academics.get_term(term_id)

    async def _get_schedule_for_term(self, fee_schedule_id: int, term_id: int) -> FeeSchedule:
        schedule = await self.fees.get_schedule(fee_schedule_id)
        if schedule.term_id != term_id:
            raise ValidationError("Fee schedule does not belong to this term", "fee_schedule_id")
        return schedule

    async def find_by_generation_key(self, key: str) -> Invoice | None:
        return await self.db.scalar(
            select(Invoice).where(
                Invoice.school_id == self.school_id,
                Invoice.generation_key == key,
            )
        )

    async def _insert_invoice(
        self,
        *,
        student_id: int,
        term: Term,
        class_group_id: int,
        schedule: FeeSchedule,
        session_id: int | None,
        enrollment_id: int | None,
        due_at: datetime | None,
        user_id: str | None,
        min_first_amount_override: Decimal | None = None,
        min_first_percent: int | None = None,
    ) -> Invoice | None:
        """
        Insert one invoice with zeroed money. Returns None when the tuple was
        taken concurrently (unique generation_key), leaving the session usable.
        """
        # Number allocation runs first: it opens the transaction the savepoint nests in
        invoice_no = await DocumentNumberGenerator(self.db).generate(
            self.school_id, settings.invoice_prefix
        )
        invoice = Invoice(
            school_id=self.school_id,
            invoice_no=invoice_no,
            student_id=student_id,
            term_id=term.id,
            session_id=session_id or schedule.session_id or term.session_id,
            class_group_id=class_group_id,
            fee_schedule_id=schedule.id,
            enrollment_id=enrollment_id,
            generation_key=generation_key(student_id, term.id, class_group_id, schedule.id),
            status=InvoiceStatus.ISSUED.value,
            currency=schedule.currency,
            required_subtotal=ZERO,
            optional_subtotal=ZERO,
            discount_total=ZERO,
            penalty_total=ZERO,
            amount_paid=ZERO,
            amount_due=ZERO,
            min_first_amount_override=min_first_amount_override,
            min_first_percent=min_first_percent,
            min_first_amount=ZERO,
            below_min_first=False,
            due_at=due_at,
            issued_at=utcnow(),
            created_by_user_id=user_id,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(invoice)
                await self.db.flush()
        except IntegrityError:
            logger.info(
                "invoice tuple taken concurrently",
                extra={"generation_key": invoice.generation_key},
            )
            return None
        return invoice

    async def _load_invoice(self, invoice_id: int, with_lines: bool = False) -> Invoice:
        query = select(Invoice).where(
            Invoice.id == invoice_id, Invoice.school_id == self.school_id
        )
        if with_lines:
            query = query.options(selectinload(Invoice.lines)).execution_options(
                populate_existing=True
            )
        invoice = await self.db.scalar(query)
        if not invoice:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    # --- Generation ---

    async def create_invoice(self, data: InvoiceCreate, user_id: str | None) -> Invoice:
        term = await self._get_term(data.term_id)
        student = await self.academics.get_student(data.student_id)
        schedule = await self._get_schedule_for_term(data.fee_schedule_id, term.id)

        if data.session_id is not None:
            await self.academics.get_session(data.session_id)

        enrollment_id = None
        class_group_id = data.class_group_id
        if class_group_id is not None:
            await self.academics.get_class_group(class_group_id)
        else:
            class_group_id, enrollment_id = await self.academics.resolve_class_group(
                student.id, term.id
            )

        key = generation_key(student.id, term.id, class_group_id, schedule.id)
        if await self.find_by_generation_key(key):
            raise ConflictError(
                "Invoice already exists for this student, term, class group and fee schedule",
                "generation_key",
                key,
            )

        invoice = await self._insert_invoice(
            student_id=student.id,
            term=term,
            class_group_id=class_group_id,
            schedule=schedule,
            session_id=data.session_id,
            enrollment_id=enrollment_id,
            due_at=data.due_at,
            user_id=user_id,
            min_first_amount_override=data.min_first_amount_override,
            min_first_percent=data.min_first_percent,
        )
        if invoice is None:
            raise ConflictError(
                "Invoice already exists for this student, term, class group and fee schedule",
                "generation_key",
                key,
            )

        await self.fees.lock_schedule(schedule)
        await self.bus.put_events([invoice_event(self.school_id, invoice.id)])
        await self.db.commit()

        await self.audit.log_after_commit(
            school_id=self.school_id,
            action=AuditAction.INVOICE_CREATED,
            entity_type="Invoice",
            entity_id=invoice.id,
            entity_identifier=invoice.invoice_no,
            user_id=user_id,
            new_values={
                "student_id": student.id,
                "term_id": term.id,
                "class_group_id": class_group_id,
                "fee_schedule_id": schedule.id,
            },
        )
        return invoice

    async def generate_class_invoices(
        self, data: GenerateClassInvoices, user_id: str | None
    ) -> GenerationResult:
        """
        Generate invoices for every active enrollment of (term, class group).

        Enrollments are paged; each page entry is checked against the tuple
        index before writing, so a rerun only skips. Invoices are committed
        together with their events at every batch flush; a crash loses at
        most one unflushed batch, which the next run recreates.
        """
        term = await self._get_term(data.term_id)
        group = await self.academics.get_class_group(data.class_group_id)
        schedule = await self._get_schedule_for_term(data.fee_schedule_id, term.id)

        batcher = EventBatcher(self.bus)
        created_ids: list[int] = []
        skipped = 0
        after_id = 0
        page_size = settings.enrollment_page_size

        async def flush_and_commit() -> None:
            await batcher.flush()
            await self.db.commit()

        def cap_reached() -> bool:
            return data.limit is not None and len(created_ids) >= data.limit

        while not cap_reached():
            page = await self.academics.list_enrollments_page(
                term.id, group.id, after_id=after_id, limit=page_size
            )
            if not page:
                break

            for enrollment in page:
                if cap_reached():
                    break
                after_id = enrollment.id
                key = generation_key(enrollment.student_id, term.id, group.id, schedule.id)

                invoice = None
                if not await self.find_by_generation_key(key):
                    invoice = await self._insert_invoice(
                        student_id=enrollment.student_id,
                        term=term,
                        class_group_id=group.id,
                        schedule=schedule,
                        session_id=data.session_id or enrollment.session_id,
                        enrollment_id=enrollment.id,
                        due_at=data.due_at,
                        user_id=user_id,
                    )

                if invoice is None:
                    if data.skip_duplicates:
                        skipped += 1
                        continue
                    await flush_and_commit()
                    raise ConflictError(
                        "Invoice already exists for this student, term, class group and fee schedule",
                        "generation_key",
                        key,
                    )

                if not created_ids:
                    await self.fees.lock_schedule(schedule)
                created_ids.append(invoice.id)
                await batcher.add(invoice_event(self.school_id, invoice.id))
                if not batcher.pending:
                    await self.db.commit()

            logger.info(
                "generation page done",
                extra={"after_enrollment_id": after_id, "created": len(created_ids), "skipped": skipped},
            )
            if len(page) < page_size:
                break

        await flush_and_commit()

        logger.info(
            "class invoices generated",
            extra={
                "term_id": term.id,
                "class_group_id": group.id,
                "fee_schedule_id": schedule.id,
                "created": len(created_ids),
                "skipped": skipped,
                "event_flushes": batcher.flushes,
            },
        )
        await self.audit.log_after_commit(
            school_id=self.school_id,
            action=AuditAction.INVOICES_GENERATED,
            entity_type="FeeSchedule",
            entity_id=schedule.id,
            entity_identifier=schedule.name,
            user_id=user_id,
            new_values={
                "term_id": term.id,
                "class_group_id": group.id,
                "created_count": len(created_ids),
                "skipped_count": skipped,
            },
        )
        return GenerationResult(
            created_count=len(created_ids),
            skipped_count=skipped,
            invoice_ids=created_ids,
        )

    # --- Optional-item selection ---

    async def select_optional_items(
        self, invoice_id: int, selected_line_ids: list[int], user_id: str | None
    ) -> Invoice:
        invoice = await self._load_invoice(invoice_id, with_lines=True)
        if invoice.is_cancelled:
            raise ValidationError("Cannot change selection on a cancelled invoice")

        lines_by_id = {line.id: line for line in invoice.lines}
        requested = set(selected_line_ids)
        for line_id in requested:
            line = lines_by_id.get(line_id)
            if line is None:
                raise ValidationError(f"Line {line_id} is not on this invoice", "selected_line_ids")
            if not line.is_optional:
                raise ValidationError(f"Line {line_id} is not optional", "selected_line_ids")

        flipped = []
        for line in invoice.lines:
            if not line.is_optional:
                continue
            wanted = line.id in requested
            if line.is_selected != wanted:
                line.is_selected = wanted
                flipped.append(line.id)

        old_optional = invoice.optional_subtotal
        _, invoice.optional_subtotal = totals.line_subtotals(invoice.lines)
        totals.refresh_amounts(invoice)
        invoice.last_processed_at = utcnow()

        await self.bus.put_events(
            [invoice_event(self.school_id, invoice.id, reason="SELECTION_UPDATE")]
        )
        await self.db.commit()

        await self.audit.log_after_commit(
            school_id=self.school_id,
            action=AuditAction.INVOICE_SELECTION_UPDATED,
            entity_type="Invoice",
            entity_id=invoice.id,
            entity_identifier=invoice.invoice_no,
            user_id=user_id,
            old_values={"optional_subtotal": str(old_optional)},
            new_values={
                "optional_subtotal": str(invoice.optional_subtotal),
                "amount_due": str(invoice.amount_due),
                "flipped_line_ids": flipped,
            },
        )
        return await self._load_invoice(invoice.id, with_lines=True)

    # --- Adjustments ---

    async def _adjustments(self, invoice_id: int) -> list[FeeAdjustment]:
        result = await self.db.execute(
            select(FeeAdjustment)
            .where(
                FeeAdjustment.school_id == self.school_id,
                FeeAdjustment.invoice_id == invoice_id,
            )
            .order_by(FeeAdjustment.id)
        )
        return list(result.scalars().all())

    async def apply_adjustment_totals(self, invoice: Invoice) -> None:
        invoice.discount_total, invoice.penalty_total = totals.adjustment_totals(
            await self._adjustments(invoice.id), invoice.required_subtotal
        )

    async def create_fee_adjustment(
        self, invoice_id: int, data: FeeAdjustmentCreate, user_id: str | None
    ) -> tuple[FeeAdjustment, Invoice]:
        invoice = await self._load_invoice(invoice_id)
        if invoice.is_cancelled:
            raise ValidationError("Cannot adjust a cancelled invoice")

        adjustment = FeeAdjustment(
            school_id=self.school_id,
            invoice_id=invoice.id,
            adjustment_type=data.adjustment_type.value,
            amount=round_money(data.amount),
            reason=data.reason,
            created_by_user_id=user_id,
            approved_by_user_id=data.approved_by_user_id,
        )
        self.db.add(adjustment)
        await self.db.flush()

        await self.apply_adjustment_totals(invoice)
        totals.refresh_amounts(invoice)
        invoice.last_processed_at = utcnow()

        await self.bus.put_events([invoice_event(self.school_id, invoice.id, reason="ADJUSTMENT")])
        await self.db.commit()

        await self.audit.log_after_commit(
            school_id=self.school_id,
            action=AuditAction.FEE_ADJUSTMENT_CREATED,
            entity_type="FeeAdjustment",
            entity_id=adjustment.id,
            entity_identifier=invoice.invoice_no,
            user_id=user_id,
            new_values={
                "invoice_id": invoice.id,
                "type": adjustment.adjustment_type,
                "amount": str(adjustment.amount),
                "reason": adjustment.reason,
                "discount_total": str(invoice.discount_total),
                "penalty_total": str(invoice.penalty_total),
                "amount_due": str(invoice.amount_due),
            },
        )
        return adjustment, invoice

    # --- Reconciliation (invoicing worker) ---

    async def materialize_lines(self, invoice: Invoice) -> int:
        """Copy schedule lines onto an invoice that has none. Returns lines added."""
        existing = await self.db.scalar(
            select(func.count()).select_from(InvoiceLine).where(InvoiceLine.invoice_id == invoice.id)
        )
        if existing:
            return 0

        result = await self.db.execute(
            select(FeeScheduleLine)
            .where(
                FeeScheduleLine.school_id == self.school_id,
                FeeScheduleLine.fee_schedule_id == invoice.fee_schedule_id,
            )
            .options(selectinload(FeeScheduleLine.fee_item))
            .order_by(FeeScheduleLine.sort_order, FeeScheduleLine.id)
        )
        added = 0
        for schedule_line in result.scalars().all():
            is_optional = schedule_line.resolve_optional(schedule_line.fee_item)
            self.db.add(
                InvoiceLine(
                    school_id=self.school_id,
                    invoice_id=invoice.id,
                    fee_schedule_line_id=schedule_line.id,
                    fee_item_id=schedule_line.fee_item_id,
                    label=schedule_line.label or schedule_line.fee_item.name,
                    amount=round_money(schedule_line.amount),
                    is_optional=is_optional,
                    is_selected=not is_optional,
                    sort_order=schedule_line.sort_order,
                )
            )
            added += 1
        await self.db.flush()
        return added

    async def confirmed_payments_total(self, invoice_id: int) -> Decimal:
        total = await self.db.scalar(
            select(func.coalesce(func.sum(PaymentTransaction.amount), 0)).where(
                PaymentTransaction.school_id == self.school_id,
                PaymentTransaction.invoice_id == invoice_id,
                PaymentTransaction.status == PaymentTransactionStatus.CONFIRMED.value,
            )
        )
        return round_money(total or 0)

    async def reconcile(self, invoice_id: int, now: datetime | None = None) -> Invoice:
        """
        Rebuild every derived figure of an invoice from its rows. Re-entrant:
        running it twice leaves the invoice unchanged.
        """
        now = now or utcnow()
        invoice = await self._load_invoice(invoice_id)
        await self.materialize_lines(invoice)
        invoice = await self._load_invoice(invoice_id, with_lines=True)

        invoice.required_subtotal, invoice.optional_subtotal = totals.line_subtotals(invoice.lines)
        await self.apply_adjustment_totals(invoice)
        invoice.amount_paid = await self.confirmed_payments_total(invoice.id)
        totals.refresh_amounts(invoice)

        plan = await self.ensure_installment_plan(invoice)
        if plan is not None:
            totals.refresh_installment_statuses(plan.installments, invoice.amount_paid, now)

        invoice.last_processed_at = now
        await self.db.flush()
        return invoice

    async def ensure_reconciled(self, invoice_id: int) -> Invoice:
        """Reconcile an invoice the worker has not reached yet. Does not commit."""
        invoice = await self._load_invoice(invoice_id)
        if invoice.last_processed_at is None:
            invoice = await self.reconcile(invoice_id)
        return invoice

    # --- Installments ---

    async def _get_plan(self, invoice_id: int) -> InstallmentPlan | None:
        return await self.db.scalar(
            select(InstallmentPlan)
            .where(
                InstallmentPlan.school_id == self.school_id,
                InstallmentPlan.invoice_id == invoice_id,
            )
            .options(selectinload(InstallmentPlan.installments))
            .execution_options(populate_existing=True)
        )

    async def ensure_installment_plan(
        self, invoice: Invoice, template: str | None = None
    ) -> InstallmentPlan | None:
        """Create the plan once the invoice bills something. Existing plans are kept."""
        plan = await self._get_plan(invoice.id)
        if plan is not None:
            return plan
        total = invoice.billed_total
        if total <= 0:
            return None

        template = template or settings.default_installment_template
        anchor = ensure_aware(invoice.due_at) or ensure_aware(invoice.issued_at) or utcnow()
        plan = InstallmentPlan(
            school_id=self.school_id,
            invoice_id=invoice.id,
            template=template,
            total_amount=round_money(total),
        )
        self.db.add(plan)
        await self.db.flush()
        for planned in totals.plan_installments(round_money(total), template, anchor):
            self.db.add(
                Installment(
                    school_id=self.school_id,
                    plan_id=plan.id,
                    invoice_id=invoice.id,
                    sequence=planned.sequence,
                    percent=planned.percent,
                    amount=planned.amount,
                    due_at=planned.due_at,
                )
            )
        await self.db.flush()
        return await self._get_plan(invoice.id)

    async def refresh_installments(self, invoice: Invoice, now: datetime) -> int:
        plan = await self._get_plan(invoice.id)
        if plan is None:
            return 0
        return totals.refresh_installment_statuses(plan.installments, invoice.amount_paid, now)

    async def list_installments(self, invoice_id: int) -> list[Installment]:
        invoice = await self._load_invoice(invoice_id)
        result = await self.db.execute(
            select(Installment)
            .where(
                Installment.school_id == self.school_id,
                Installment.invoice_id == invoice.id,
            )
            .order_by(Installment.sequence)
        )
        return list(result.scalars().all())

    async def list_overdue_invoices(self, now: datetime) -> list[Invoice]:
        result = await self.db.execute(
            select(Invoice)
            .where(
                Invoice.school_id == self.school_id,
                Invoice.amount_due > 0,
                Invoice.due_at.is_not(None),
                Invoice.due_at < now,
                Invoice.status != InvoiceStatus.CANCELLED.value,
            )
            .order_by(Invoice.id)
        )
        return list(result.scalars().all())

    # --- Queries ---

    async def get_invoice(self, invoice_id: int) -> Invoice:
        return await self._load_invoice(invoice_id, with_lines=True)

    async def invoices_by_student(self, student_id: int, term_id: int | None = None) -> list[Invoice]:
        query = select(Invoice).where(
            Invoice.school_id == self.school_id,
            Invoice.student_id == student_id,
        )
        if term_id is not None:
            query = query.where(Invoice.term_id == term_id)
        result = await self.db.execute(query.order_by(Invoice.id.desc()))
        return list(result.scalars().all())

    async def invoice_by_number(self, invoice_no: str) -> Invoice:
        invoice = await self.db.scalar(
            select(Invoice)
            .where(Invoice.school_id == self.school_id, Invoice.invoice_no == invoice_no)
            .options(selectinload(Invoice.lines))
        )
        if not invoice:
            raise NotFoundError("Invoice", invoice_no)
        return invoice

    async def defaulters_by_class(
        self,
        term_id: int,
        class_group_id: int,
        min_days_overdue: int = 0,
        min_amount_due: Decimal = ZERO,
        limit: int | None = None,
        now: datetime | None = None,
    ) -> list[DefaulterResponse]:
        """Owing invoices of a class whose due date is at least min_days_overdue behind."""
        now = now or utcnow()
        cutoff = now - timedelta(days=min_days_overdue)
        result = await self.db.execute(
            select(Invoice, Student)
            .join(Student, Student.id == Invoice.student_id)
            .where(
                Invoice.school_id == self.school_id,
                Invoice.term_id == term_id,
                Invoice.class_group_id == class_group_id,
                Invoice.status != InvoiceStatus.CANCELLED.value,
                Invoice.amount_due > 0,
                Invoice.amount_due >= min_amount_due,
                Invoice.due_at.is_not(None),
                Invoice.due_at <= cutoff,
            )
            .order_by(Invoice.amount_due.desc(), Invoice.id)
            .limit(limit or settings.defaulters_default_limit)
        )
        defaulters = []
        for invoice, student in result.all():
            due_at = ensure_aware(invoice.due_at)
            defaulters.append(
                DefaulterResponse(
                    invoice_id=invoice.id,
                    invoice_no=invoice.invoice_no,
                    student_id=student.id,
                    student_name=student.full_name,
                    admission_no=student.admission_no,
                    amount_due=invoice.amount_due,
                    amount_paid=invoice.amount_paid,
                    due_at=due_at,
                    days_overdue=max((now - due_at).days, 0),
                )
            )
        return defaulters
