"""Tests for Invoices module."""

from datetime import datetime
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.models import AuditLog
from src.core.events import QueueMessage
from src.core.exceptions import ConflictError, NotFoundError, ValidationError
from src.modules.invoices.models import (
    AdjustmentType,
    InstallmentStatus,
    Invoice,
    InvoiceStatus,
)
from src.modules.invoices.schemas import (
    FeeAdjustmentCreate,
    GenerateClassInvoices,
    InvoiceCreate,
)
from src.modules.invoices.service import InvoiceService
from tests.factories import BillingFixture, auth_headers, build_billing, days_ago, issue_invoices


def _generate(data: BillingFixture, **overrides) -> GenerateClassInvoices:
    values = dict(
        term_id=data.term.id,
        class_group_id=data.class_group.id,
        fee_schedule_id=data.schedule.id,
    )
    values.update(overrides)
    return GenerateClassInvoices(**values)


async def _invoicing_messages(db: AsyncSession) -> int:
    return await db.scalar(
        select(func.count()).select_from(QueueMessage).where(QueueMessage.queue_name == "invoicing")
    )


class TestInvoiceGeneration:
    """Tests for class-wide and single invoice generation."""

    async def test_generates_one_invoice_per_enrollment(self, db_session: AsyncSession):
        data = await build_billing(db_session)
        service = InvoiceService(db_session, data.school.id)

        result = await service.generate_class_invoices(_generate(data), "bursar-1")

        assert result.created_count == 3
        assert result.skipped_count == 0
        invoices = [await service.get_invoice(i) for i in result.invoice_ids]
        assert {i.student_id for i in invoices} == {s.id for s in data.students}
        year = datetime.now().year
        assert sorted(i.invoice_no for i in invoices) == [
            f"INV-{year}-000001",
            f"INV-{year}-000002",
            f"INV-{year}-000003",
        ]
        assert all(i.status == InvoiceStatus.ISSUED.value for i in invoices)
        assert await _invoicing_messages(db_session) == 3

    async def test_rerun_only_skips(self, db_session: AsyncSession):
        data = await build_billing(db_session)
        service = InvoiceService(db_session, data.school.id)
        await service.generate_class_invoices(_generate(data), "bursar-1")

        rerun = await service.generate_class_invoices(_generate(data), "bursar-1")

        assert rerun.created_count == 0
        assert rerun.skipped_count == 3
        total = await db_session.scalar(select(func.count()).select_from(Invoice))
        assert total == 3
        assert await _invoicing_messages(db_session) == 3

    async def test_limit_caps_created_invoices(self, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=5)
        service = InvoiceService(db_session, data.school.id)

        first = await service.generate_class_invoices(_generate(data, limit=2), "bursar-1")
        rest = await service.generate_class_invoices(_generate(data), "bursar-1")

        assert first.created_count == 2
        assert rest.created_count == 3
        assert rest.skipped_count == 2

    async def test_duplicates_conflict_when_not_skipping(self, db_session: AsyncSession):
        data = await build_billing(db_session)
        service = InvoiceService(db_session, data.school.id)
        await service.generate_class_invoices(_generate(data), "bursar-1")

        with pytest.raises(ConflictError):
            await service.generate_class_invoices(_generate(data, skip_duplicates=False), "bursar-1")

    async def test_generation_is_audited(self, db_session: AsyncSession):
        data = await build_billing(db_session)
        await InvoiceService(db_session, data.school.id).generate_class_invoices(_generate(data), "bursar-1")

        entry = await db_session.scalar(
            select(AuditLog).where(AuditLog.action == "INVOICES_GENERATED")
        )
        assert entry.school_id == data.school.id
        assert entry.new_values["created_count"] == 3

    async def test_create_single_invoice_resolves_class_group(self, db_session: AsyncSession):
        data = await build_billing(db_session)
        service = InvoiceService(db_session, data.school.id)
        student = data.students[0]

        invoice = await service.create_invoice(
            InvoiceCreate(student_id=student.id, term_id=data.term.id, fee_schedule_id=data.schedule.id),
            "bursar-1",
        )

        assert invoice.class_group_id == data.class_group.id
        assert invoice.enrollment_id == data.enrollments[0].id
        assert invoice.session_id == data.session.id

        with pytest.raises(ConflictError):
            await service.create_invoice(
                InvoiceCreate(student_id=student.id, term_id=data.term.id, fee_schedule_id=data.schedule.id),
                "bursar-1",
            )

    async def test_create_invoice_rejects_foreign_class_group(self, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=1)
        other = await build_billing(db_session, code="OTH", student_count=1)
        service = InvoiceService(db_session, data.school.id)
        base = dict(student_id=data.students[0].id, term_id=data.term.id, fee_schedule_id=data.schedule.id)

        with pytest.raises(NotFoundError):
            await service.create_invoice(InvoiceCreate(**base, class_group_id=other.class_group.id), "bursar-1")
        with pytest.raises(NotFoundError):
            await service.create_invoice(InvoiceCreate(**base, session_id=other.session.id), "bursar-1")

        count = await db_session.scalar(select(func.count()).select_from(Invoice))
        assert count == 0


class TestReconcile:
    """Tests for invoice reconciliation."""

    async def test_reconcile_materializes_lines_and_totals(self, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=1)
        [invoice] = await issue_invoices(db_session, data)

        invoice = await InvoiceService(db_session, data.school.id).get_invoice(invoice.id)
        assert len(invoice.lines) == 3
        assert [line.is_selected for line in invoice.lines] == [True, False, False]
        assert invoice.required_subtotal == Decimal("2000.00")
        assert invoice.optional_subtotal == Decimal("0.00")
        assert invoice.amount_due == Decimal("2000.00")
        assert invoice.min_first_amount == Decimal("600.00")
        assert invoice.below_min_first is True
        assert invoice.last_processed_at is not None

    async def test_reconcile_is_re_entrant(self, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=1)
        [invoice] = await issue_invoices(db_session, data)
        service = InvoiceService(db_session, data.school.id)

        again = await service.reconcile(invoice.id)
        await db_session.commit()
        again = await service.get_invoice(again.id)

        assert len(again.lines) == 3
        assert again.amount_due == Decimal("2000.00")
        installments = await service.list_installments(invoice.id)
        assert [i.amount for i in installments] == [Decimal("1200.00"), Decimal("800.00")]

    async def test_past_due_installment_is_overdue(self, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=1)
        [invoice] = await issue_invoices(db_session, data, due_at=days_ago(10))

        installments = await InvoiceService(db_session, data.school.id).list_installments(invoice.id)
        assert installments[0].status == InstallmentStatus.OVERDUE.value
        assert installments[1].status == InstallmentStatus.DUE.value


class TestOptionalItemSelection:
    """Tests for payer selection of optional lines."""

    async def test_selection_updates_totals(self, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=1)
        [invoice] = await issue_invoices(db_session, data)
        service = InvoiceService(db_session, data.school.id)
        invoice = await service.get_invoice(invoice.id)
        required, bus, lunch = invoice.lines

        updated = await service.select_optional_items(invoice.id, [bus.id, lunch.id], "parent-1")
        assert updated.optional_subtotal == Decimal("1000.00")
        assert updated.amount_due == Decimal("3000.00")

        updated = await service.select_optional_items(invoice.id, [bus.id], "parent-1")
        assert updated.optional_subtotal == Decimal("500.00")
        assert updated.amount_due == Decimal("2500.00")
        assert [line.is_selected for line in updated.lines] == [True, True, False]
        # Minimum first payment is computed on the required subtotal only
        assert updated.min_first_amount == Decimal("600.00")

    async def test_required_line_cannot_be_selected(self, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=1)
        [invoice] = await issue_invoices(db_session, data)
        service = InvoiceService(db_session, data.school.id)
        invoice = await service.get_invoice(invoice.id)

        with pytest.raises(ValidationError):
            await service.select_optional_items(invoice.id, [invoice.lines[0].id], "parent-1")

    async def test_foreign_line_is_rejected(self, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=1)
        [invoice] = await issue_invoices(db_session, data)

        with pytest.raises(ValidationError):
            await InvoiceService(db_session, data.school.id).select_optional_items(
                invoice.id, [999999], "parent-1"
            )


class TestFeeAdjustments:
    """Tests for discounts, waivers and penalties."""

    async def test_credits_do_not_stack(self, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=1)
        [invoice] = await issue_invoices(db_session, data)
        service = InvoiceService(db_session, data.school.id)

        await service.create_fee_adjustment(
            invoice.id,
            FeeAdjustmentCreate(adjustment_type=AdjustmentType.DISCOUNT, amount=Decimal("300"), reason="sibling"),
            "bursar-1",
        )
        _, updated = await service.create_fee_adjustment(
            invoice.id,
            FeeAdjustmentCreate(adjustment_type=AdjustmentType.WAIVER, amount=Decimal("500"), reason="hardship"),
            "bursar-1",
        )

        assert updated.discount_total == Decimal("500.00")
        assert updated.amount_due == Decimal("1500.00")

    async def test_penalty_adds_to_amount_due(self, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=1)
        [invoice] = await issue_invoices(db_session, data)

        _, updated = await InvoiceService(db_session, data.school.id).create_fee_adjustment(
            invoice.id,
            FeeAdjustmentCreate(adjustment_type=AdjustmentType.PENALTY, amount=Decimal("150"), reason="late"),
            "bursar-1",
        )

        assert updated.penalty_total == Decimal("150.00")
        assert updated.amount_due == Decimal("2150.00")

    async def test_credit_never_makes_amount_due_negative(self, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=1)
        [invoice] = await issue_invoices(db_session, data)

        _, updated = await InvoiceService(db_session, data.school.id).create_fee_adjustment(
            invoice.id,
            FeeAdjustmentCreate(adjustment_type=AdjustmentType.WAIVER, amount=Decimal("9000"), reason="scholarship"),
            "bursar-1",
        )

        assert updated.discount_total == Decimal("2000.00")
        assert updated.amount_due == Decimal("0.00")


class TestDefaulters:
    """Tests for defaulters_by_class."""

    async def test_defaulters_filters(self, db_session: AsyncSession):
        data = await build_billing(db_session)
        first, second, third = await issue_invoices(db_session, data, due_at=days_ago(10))
        service = InvoiceService(db_session, data.school.id)

        second.due_at = None
        await db_session.commit()
        await service.create_fee_adjustment(
            third.id,
            FeeAdjustmentCreate(adjustment_type=AdjustmentType.DISCOUNT, amount=Decimal("1500"), reason="bursary"),
            "bursar-1",
        )

        defaulters = await service.defaulters_by_class(data.term.id, data.class_group.id)
        assert [d.invoice_id for d in defaulters] == [first.id, third.id]
        assert defaulters[0].amount_due == Decimal("2000.00")
        assert defaulters[0].days_overdue == 10
        assert defaulters[0].student_name == "Student1 Test"

        big = await service.defaulters_by_class(
            data.term.id, data.class_group.id, min_amount_due=Decimal("1000")
        )
        assert [d.invoice_id for d in big] == [first.id]

        assert await service.defaulters_by_class(data.term.id, data.class_group.id, min_days_overdue=30) == []
        assert len(await service.defaulters_by_class(data.term.id, data.class_group.id, limit=1)) == 1


class TestInvoicesApi:
    """Tests for Invoices API endpoints."""

    async def test_generate_over_http(self, client: AsyncClient, db_session: AsyncSession):
        data = await build_billing(db_session)

        response = await client.post(
            f"/api/v1/schools/{data.school.id}/invoices/generate",
            json={
                "term_id": data.term.id,
                "class_group_id": data.class_group.id,
                "fee_schedule_id": data.schedule.id,
            },
            headers=auth_headers("bursar", school_id=data.school.id),
        )

        assert response.status_code == 200
        assert response.json()["data"]["created_count"] == 3

    async def test_get_invoice_other_tenant_returns_403(self, client: AsyncClient, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=1)
        [invoice] = await issue_invoices(db_session, data)

        response = await client.get(
            f"/api/v1/schools/{data.school.id}/invoices/{invoice.id}",
            headers=auth_headers("bursar", school_id=data.school.id + 1),
        )
        assert response.status_code == 403

    async def test_invoice_of_other_school_is_not_found(self, client: AsyncClient, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=1)
        other = await build_billing(db_session, code="OTH", student_count=1)
        [invoice] = await issue_invoices(db_session, data)

        response = await client.get(
            f"/api/v1/schools/{other.school.id}/invoices/{invoice.id}",
            headers=auth_headers("bursar", school_id=other.school.id),
        )
        assert response.status_code == 404

    async def test_invoice_by_number_is_public(self, client: AsyncClient, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=1)
        [invoice] = await issue_invoices(db_session, data)

        response = await client.get(
            f"/api/v1/schools/{data.school.id}/invoices/by-number/{invoice.invoice_no}"
        )

        assert response.status_code == 200
        body = response.json()["data"]
        assert body["id"] == invoice.id
        assert len(body["lines"]) == 3
        assert Decimal(body["amount_due"]) == Decimal("2000.00")

    async def test_parent_selects_optional_items(self, client: AsyncClient, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=1)
        [invoice] = await issue_invoices(db_session, data)
        invoice = await InvoiceService(db_session, data.school.id).get_invoice(invoice.id)

        response = await client.put(
            f"/api/v1/schools/{data.school.id}/invoices/{invoice.id}/selection",
            json={"selected_line_ids": [invoice.lines[1].id]},
            headers=auth_headers("parent", school_id=data.school.id, user_id="parent-1"),
        )

        assert response.status_code == 200
        assert Decimal(response.json()["data"]["amount_due"]) == Decimal("2500.00")

    async def test_parent_cannot_adjust(self, client: AsyncClient, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=1)
        [invoice] = await issue_invoices(db_session, data)

        response = await client.post(
            f"/api/v1/schools/{data.school.id}/invoices/{invoice.id}/adjustments",
            json={"adjustment_type": "discount", "amount": "100.00", "reason": "please"},
            headers=auth_headers("parent", school_id=data.school.id),
        )
        assert response.status_code == 403

    async def test_invoices_by_student(self, client: AsyncClient, db_session: AsyncSession):
        data = await build_billing(db_session)
        await issue_invoices(db_session, data)
        student = data.students[1]

        response = await client.get(
            f"/api/v1/schools/{data.school.id}/students/{student.id}/invoices",
            params={"term_id": data.term.id},
            headers=auth_headers("parent", school_id=data.school.id),
        )

        assert response.status_code == 200
        [invoice] = response.json()["data"]
        assert invoice["student_id"] == student.id
