"""Tests for the operations endpoints."""

from decimal import Decimal

from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.models import AuditLog
from src.core.events import (
    DetailType,
    EventBus,
    EventSource,
    QueueConfig,
    QueueMessage,
    QueueMessageStatus,
    QueueName,
    QueueWorker,
    RetryPolicy,
)
from src.modules.invoices.models import AdjustmentType
from src.modules.invoices.schemas import FeeAdjustmentCreate
from src.modules.invoices.service import InvoiceService
from tests.factories import auth_headers, build_billing, issue_invoices


class BrokenMessagingWorker(QueueWorker):
    queue_name = QueueName.MESSAGING

    async def handle(self, event) -> None:
        raise RuntimeError("sms provider down")


async def _dead_letter_one(db: AsyncSession, school_id: int) -> None:
    await EventBus(db).publish(EventSource.BILLING, DetailType.MESSAGING_REQUESTED, {"schoolId": school_id})
    await db.commit()
    worker = BrokenMessagingWorker(
        db,
        QueueConfig(
            name=QueueName.MESSAGING.value,
            visibility_timeout=30,
            retry=RetryPolicy(max_receive_count=1, backoff_seconds=0),
        ),
    )
    result = await worker.run_once()
    assert result.dead_lettered == 1


class TestAuditLogApi:
    async def test_lists_only_own_school(self, client: AsyncClient, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=1)
        other = await build_billing(db_session, code="OTH", student_count=1)
        [invoice] = await issue_invoices(db_session, data)
        await issue_invoices(db_session, other)
        await InvoiceService(db_session, data.school.id).create_fee_adjustment(
            invoice.id,
            FeeAdjustmentCreate(adjustment_type=AdjustmentType.DISCOUNT, amount=Decimal("100"), reason="sibling"),
            "bursar-7",
        )

        response = await client.get(
            f"/api/v1/schools/{data.school.id}/ops/audit-log",
            params={"action": "FEE_ADJUSTMENT_CREATED"},
            headers=auth_headers("bursar", school_id=data.school.id),
        )

        assert response.status_code == 200
        page = response.json()["data"]
        assert page["total"] == 1
        [entry] = page["items"]
        assert entry["user_id"] == "bursar-7"
        assert entry["new_values"]["amount"] == "100.00"

        everything = await client.get(
            f"/api/v1/schools/{data.school.id}/ops/audit-log",
            headers=auth_headers("bursar", school_id=data.school.id),
        )
        assert everything.json()["data"]["total"] == 2

    async def test_parent_cannot_read_audit_log(self, client: AsyncClient, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=1)

        response = await client.get(
            f"/api/v1/schools/{data.school.id}/ops/audit-log",
            headers=auth_headers("parent", school_id=data.school.id),
        )
        assert response.status_code == 403


class TestQueuesApi:
    async def test_stats_for_every_queue(self, client: AsyncClient, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=2)
        await issue_invoices(db_session, data)

        response = await client.get(
            f"/api/v1/schools/{data.school.id}/ops/queues",
            headers=auth_headers("school_admin", school_id=data.school.id),
        )

        assert response.status_code == 200
        stats = {s["queue"]: s for s in response.json()["data"]}
        assert set(stats) == {"invoicing", "messaging", "receipts", "import"}
        assert stats["invoicing"]["visible"] == 2
        assert stats["messaging"]["visible"] == 0

    async def test_bursar_cannot_see_queues(self, client: AsyncClient, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=1)

        response = await client.get(
            f"/api/v1/schools/{data.school.id}/ops/queues",
            headers=auth_headers("bursar", school_id=data.school.id),
        )
        assert response.status_code == 403

    async def test_redrive(self, client: AsyncClient, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=1)
        await _dead_letter_one(db_session, data.school.id)

        response = await client.post(
            f"/api/v1/schools/{data.school.id}/ops/queues/messaging/redrive",
            headers=auth_headers("school_admin", school_id=data.school.id, user_id="admin-1"),
        )

        assert response.status_code == 200
        assert response.json()["data"] == {"queue": "messaging", "redriven": 1}
        message = await db_session.scalar(select(QueueMessage))
        await db_session.refresh(message)
        assert message.queue_name == "messaging"
        assert message.status == QueueMessageStatus.PENDING.value
        entry = await db_session.scalar(select(AuditLog).where(AuditLog.action == "DEAD_LETTERS_REDRIVEN"))
        assert entry.entity_identifier == "messaging"
        assert entry.user_id == "admin-1"

    async def test_redrive_unknown_queue(self, client: AsyncClient, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=1)

        response = await client.post(
            f"/api/v1/schools/{data.school.id}/ops/queues/payroll/redrive",
            headers=auth_headers("school_admin", school_id=data.school.id),
        )

        assert response.status_code == 422
        assert response.json()["details"]["field"] == "queue"

    async def test_overdue_scan_is_queued(self, client: AsyncClient, db_session: AsyncSession):
        data = await build_billing(db_session, student_count=1)

        response = await client.post(
            f"/api/v1/schools/{data.school.id}/ops/overdue-scan",
            headers=auth_headers("bursar", school_id=data.school.id),
        )

        assert response.status_code == 200
        event_id = response.json()["data"]["event_id"]
        message = await db_session.scalar(select(QueueMessage).where(QueueMessage.event_id == event_id))
        assert message.queue_name == "invoicing"
        assert message.body["detail-type"] == DetailType.INVOICE_OVERDUE_SCAN.value
