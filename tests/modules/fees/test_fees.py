"""Tests for Fees module."""

from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import ConflictError, NotFoundError, ValidationError
from src.modules.fees.schemas import (
    FeeItemCreate,
    FeeItemUpdate,
    FeeScheduleCreate,
    FeeScheduleLineCreate,
    FeeScheduleLineUpdate,
)
from src.modules.fees.service import FeeService
from src.modules.invoices.schemas import GenerateClassInvoices
from src.modules.invoices.service import InvoiceService
from tests.factories import auth_headers, build_billing, create_school


class TestFeeService:
    """Tests for FeeService."""

    async def test_create_and_list_items(self, db_session: AsyncSession):
        school = await create_school(db_session)
        service = FeeService(db_session, school.id)

        await service.create_fee_item(FeeItemCreate(name="Tuition", category="tuition"), "bursar-1")
        bus = await service.create_fee_item(
            FeeItemCreate(name="Bus", category="transport", is_optional=True), "bursar-1"
        )
        await service.update_fee_item(bus.id, FeeItemUpdate(is_active=False), "bursar-1")

        active = await service.list_fee_items()
        assert [i.name for i in active] == ["Tuition"]
        everything = await service.list_fee_items(include_inactive=True)
        assert len(everything) == 2

    async def test_items_are_tenant_scoped(self, db_session: AsyncSession):
        first = await create_school(db_session, "AAA")
        second = await create_school(db_session, "BBB")
        item = await FeeService(db_session, first.id).create_fee_item(FeeItemCreate(name="Tuition"), None)

        with pytest.raises(NotFoundError):
            await FeeService(db_session, second.id).get_fee_item(item.id)

    async def test_delete_referenced_item_conflicts(self, db_session: AsyncSession):
        data = await build_billing(db_session)
        service = FeeService(db_session, data.school.id)

        with pytest.raises(ConflictError):
            await service.delete_fee_item(data.tuition.id, "bursar-1")

    async def test_delete_unreferenced_item(self, db_session: AsyncSession):
        school = await create_school(db_session)
        service = FeeService(db_session, school.id)
        item = await service.create_fee_item(FeeItemCreate(name="Excursion"), None)

        await service.delete_fee_item(item.id, None)
        assert await service.list_fee_items(include_inactive=True) == []

    async def test_schedule_rejects_inactive_item(self, db_session: AsyncSession):
        data = await build_billing(db_session)
        service = FeeService(db_session, data.school.id)
        await service.update_fee_item(data.lunch.id, FeeItemUpdate(is_active=False), None)

        with pytest.raises(ValidationError):
            await service.create_schedule(
                FeeScheduleCreate(
                    name="JSS1 extra",
                    term_id=data.term.id,
                    class_year="JSS1",
                    lines=[FeeScheduleLineCreate(fee_item_id=data.lunch.id, amount=Decimal("300"))],
                ),
                None,
            )

    async def test_create_schedule_inherits_session_and_rounds(self, db_session: AsyncSession):
        data = await build_billing(db_session)
        schedule = await FeeService(db_session, data.school.id).create_schedule(
            FeeScheduleCreate(
                name="JSS1 Second",
                term_id=data.term.id,
                class_group_id=data.class_group.id,
                lines=[FeeScheduleLineCreate(fee_item_id=data.tuition.id, amount=Decimal("1500.005"))],
            ),
            "bursar-1",
        )
        assert schedule.session_id == data.session.id
        assert schedule.currency == "NGN"
        assert schedule.lines[0].amount == Decimal("1500.01")
        assert schedule.locked_at is None

    async def test_schedule_is_locked_after_generation(self, db_session: AsyncSession):
        data = await build_billing(db_session)
        service = FeeService(db_session, data.school.id)
        await InvoiceService(db_session, data.school.id).generate_class_invoices(
            GenerateClassInvoices(
                term_id=data.term.id,
                class_group_id=data.class_group.id,
                fee_schedule_id=data.schedule.id,
            ),
            "bursar-1",
        )
        schedule = await service.get_schedule(data.schedule.id)
        assert schedule.is_locked

        with pytest.raises(ConflictError):
            await service.add_schedule_line(
                schedule.id,
                FeeScheduleLineCreate(fee_item_id=data.tuition.id, amount=Decimal("100")),
                None,
            )
        with pytest.raises(ConflictError):
            await service.update_schedule_line(
                schedule.id,
                schedule.lines[0].id,
                FeeScheduleLineUpdate(amount=Decimal("1")),
                None,
            )


class TestFeesApi:
    """Tests for Fees API endpoints."""

    async def test_create_fee_item(self, client: AsyncClient, db_session: AsyncSession):
        school = await create_school(db_session)
        await db_session.commit()

        response = await client.post(
            f"/api/v1/schools/{school.id}/fees/items",
            json={"name": "Uniform", "category": "uniform", "is_optional": True},
            headers=auth_headers("bursar", school_id=school.id),
        )
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["name"] == "Uniform"
        assert body["data"]["is_optional"] is True

    async def test_teacher_cannot_manage_fees(self, client: AsyncClient, db_session: AsyncSession):
        school = await create_school(db_session)
        await db_session.commit()

        response = await client.post(
            f"/api/v1/schools/{school.id}/fees/items",
            json={"name": "Uniform"},
            headers=auth_headers("teacher", school_id=school.id),
        )
        assert response.status_code == 403

    async def test_delete_referenced_item_returns_409(self, client: AsyncClient, db_session: AsyncSession):
        data = await build_billing(db_session)

        response = await client.delete(
            f"/api/v1/schools/{data.school.id}/fees/items/{data.tuition.id}",
            headers=auth_headers("bursar", school_id=data.school.id),
        )
        assert response.status_code == 409
        assert response.json()["error_type"] == "CONFLICT"

    async def test_locked_schedule_edit_returns_409(self, client: AsyncClient, db_session: AsyncSession):
        data = await build_billing(db_session)
        headers = auth_headers("bursar", school_id=data.school.id)

        generated = await client.post(
            f"/api/v1/schools/{data.school.id}/invoices/generate",
            json={
                "term_id": data.term.id,
                "class_group_id": data.class_group.id,
                "fee_schedule_id": data.schedule.id,
            },
            headers=headers,
        )
        assert generated.status_code == 200

        response = await client.post(
            f"/api/v1/schools/{data.school.id}/fees/schedules/{data.schedule.id}/lines",
            json={"fee_item_id": data.tuition.id, "amount": "100.00"},
            headers=headers,
        )
        assert response.status_code == 409

    async def test_schedule_requires_scope(self, client: AsyncClient, db_session: AsyncSession):
        data = await build_billing(db_session)

        response = await client.post(
            f"/api/v1/schools/{data.school.id}/fees/schedules",
            json={"name": "No scope", "term_id": data.term.id},
            headers=auth_headers("bursar", school_id=data.school.id),
        )
        assert response.status_code == 422
