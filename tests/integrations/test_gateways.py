from __future__ import annotations

import json
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth.models import Caller, UserRole
from src.core.config import settings
from src.core.events import EventRecord
from src.core.exceptions import MinFirstPaymentError
from src.integrations.gateways.models import PaymentWebhookEvent, WebhookEventStatus
from src.integrations.gateways.schemas import GatewayNotification
from src.integrations.gateways.signatures import paystack_signature, verify_flutterwave, verify_paystack
from src.modules.invoices.schemas import GenerateClassInvoices
from src.modules.invoices.service import InvoiceService
from src.modules.payments.models import PaymentIntent, PaymentIntentStatus, PaymentTransaction
from src.modules.payments.schemas import PaymentIntentCreate
from src.modules.payments.service import PaymentService
from src.modules.receipts.sequencer import ReceiptSequencer
from src.workers import InvoicingWorker
from tests.factories import build_billing, issue_invoices

PAYSTACK_SECRET = "sk_test_secret"
FLUTTERWAVE_HASH = "fw-secret-hash"
PARENT = Caller(user_id="parent-1", school_id=None, roles=frozenset({UserRole.PARENT}))


@pytest.fixture
def gateways_enabled(monkeypatch):
    monkeypatch.setattr(settings, "paystack_secret_key", PAYSTACK_SECRET)
    monkeypatch.setattr(settings, "flutterwave_secret_hash", FLUTTERWAVE_HASH)


async def _seed_intent(db: AsyncSession, provider: str, reference: str, amount: str = "600.00") -> dict:
    data = await build_billing(db, student_count=1)
    [invoice] = await issue_invoices(db, data)
    intent = await PaymentService(db, data.school.id).create_payment_intent(
        PaymentIntentCreate(
            invoice_id=invoice.id,
            amount=Decimal(amount),
            provider=provider,
            external_reference=reference,
        ),
        PARENT,
    )
    return {"data": data, "invoice": invoice, "intent": intent}


def _paystack_body(reference: str, kobo: int, event: str = "charge.success") -> bytes:
    return json.dumps(
        {
            "event": event,
            "data": {
                "reference": reference,
                "status": "success" if event == "charge.success" else "failed",
                "amount": kobo,
                "fees": 900,
                "currency": "NGN",
                "channel": "card",
                "paid_at": "2026-10-01T10:00:00.000Z",
            },
        }
    ).encode()


async def _post_paystack(client: AsyncClient, body: bytes, secret: str = PAYSTACK_SECRET):
    return await client.post(
        "/api/v1/webhooks/paystack",
        content=body,
        headers={
            "Content-Type": "application/json",
            "x-paystack-signature": paystack_signature(body, secret),
        },
    )


def test_signature_helpers():
    body = b'{"event":"charge.success"}'
    signature = paystack_signature(body, PAYSTACK_SECRET)
    assert verify_paystack(body, signature, PAYSTACK_SECRET)
    assert verify_paystack(body, signature.upper(), PAYSTACK_SECRET)
    assert not verify_paystack(body + b" ", signature, PAYSTACK_SECRET)
    assert not verify_paystack(body, None, PAYSTACK_SECRET)
    assert verify_flutterwave(FLUTTERWAVE_HASH, FLUTTERWAVE_HASH)
    assert not verify_flutterwave("other", FLUTTERWAVE_HASH)


def test_paystack_amounts_are_in_kobo():
    notification = GatewayNotification.from_paystack(json.loads(_paystack_body("ref", 60050)))
    assert notification.gross_amount == Decimal("600.50")
    assert notification.fee_amount == Decimal("9.00")
    assert notification.net_amount == Decimal("591.50")
    assert notification.method == "card"
    assert notification.success


@pytest.mark.asyncio
async def test_disabled_or_unknown_provider_is_not_found(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(settings, "paystack_secret_key", "")

    r1 = await client.post("/api/v1/webhooks/paystack", json={"event": "charge.success"})
    r2 = await client.post("/api/v1/webhooks/stripe", json={})
    assert r1.status_code == 404
    assert r2.status_code == 404


@pytest.mark.asyncio
async def test_bad_signature_is_rejected_and_recorded(
    client: AsyncClient, db_session: AsyncSession, gateways_enabled
):
    r = await _post_paystack(client, _paystack_body("ref-bad", 60000), secret="wrong")
    assert r.status_code == 401
    assert r.json()["error_type"] == "INVALID_SIGNATURE"

    event = await db_session.scalar(select(PaymentWebhookEvent))
    assert event.status == WebhookEventStatus.REJECTED.value
    assert event.raw_payload is None


@pytest.mark.asyncio
async def test_paystack_charge_success_confirms_payment(
    client: AsyncClient, db_session: AsyncSession, gateways_enabled
):
    seeded = await _seed_intent(db_session, "paystack", "ps-ref-001")

    r = await _post_paystack(client, _paystack_body("ps-ref-001", 60000))
    assert r.status_code == 200
    ack = r.json()["data"]
    assert ack["status"] == WebhookEventStatus.PROCESSED.value
    assert ack["payment_txn_id"] is not None

    txn = await db_session.get(PaymentTransaction, ack["payment_txn_id"])
    assert txn.status == "confirmed"
    assert txn.receipt_no == "RCPT-1"
    assert txn.amount == Decimal("600.00")
    assert txn.fee_amount == Decimal("9.00")
    assert txn.net_amount == Decimal("591.00")
    assert txn.method == "card"

    invoice = seeded["invoice"]
    await db_session.refresh(invoice)
    assert invoice.amount_paid == Decimal("600.00")
    assert invoice.amount_due == Decimal("1400.00")
    await db_session.refresh(seeded["intent"])
    assert seeded["intent"].status == PaymentIntentStatus.SUCCEEDED.value

    confirmed = await db_session.scalar(
        select(EventRecord).where(EventRecord.detail_type == "payment.confirmed")
    )
    assert confirmed.school_id == seeded["data"].school.id
    assert confirmed.detail["receiptNo"] == "RCPT-1"
    assert confirmed.detail["provider"] == "paystack"


@pytest.mark.asyncio
async def test_paystack_replay_is_idempotent(client: AsyncClient, db_session: AsyncSession, gateways_enabled):
    seeded = await _seed_intent(db_session, "paystack", "ps-ref-002")
    body = _paystack_body("ps-ref-002", 60000)

    r1 = await _post_paystack(client, body)
    r2 = await _post_paystack(client, body)
    assert r1.status_code == 200
    assert r2.status_code == 200
    assert r2.json()["data"]["status"] == WebhookEventStatus.PROCESSED.value
    assert r2.json()["data"]["payment_txn_id"] == r1.json()["data"]["payment_txn_id"]

    txn_count = await db_session.scalar(select(func.count()).select_from(PaymentTransaction))
    assert txn_count == 1
    assert await ReceiptSequencer(db_session).peek(seeded["data"].school.id) == 1
    confirmed = await db_session.scalar(
        select(func.count()).select_from(EventRecord).where(EventRecord.detail_type == "payment.confirmed")
    )
    assert confirmed == 1
    deliveries = await db_session.scalar(select(func.count()).select_from(PaymentWebhookEvent))
    assert deliveries == 2

    invoice = seeded["invoice"]
    await db_session.refresh(invoice)
    assert invoice.amount_paid == Decimal("600.00")


@pytest.mark.asyncio
async def test_overpayment_is_capped_at_amount_due(
    client: AsyncClient, db_session: AsyncSession, gateways_enabled
):
    seeded = await _seed_intent(db_session, "paystack", "ps-ref-003", amount="2000.00")

    r = await _post_paystack(client, _paystack_body("ps-ref-003", 300000))
    assert r.status_code == 200

    txn = await db_session.get(PaymentTransaction, r.json()["data"]["payment_txn_id"])
    assert txn.amount == Decimal("2000.00")
    assert txn.gross_amount == Decimal("3000.00")
    invoice = seeded["invoice"]
    await db_session.refresh(invoice)
    assert invoice.amount_due == Decimal("0.00")
    assert invoice.status == "paid"


@pytest.mark.asyncio
async def test_failed_charge_marks_intent_failed(client: AsyncClient, db_session: AsyncSession, gateways_enabled):
    seeded = await _seed_intent(db_session, "paystack", "ps-ref-004")

    r = await _post_paystack(client, _paystack_body("ps-ref-004", 60000, event="charge.failed"))
    assert r.status_code == 200
    assert r.json()["data"]["status"] == WebhookEventStatus.IGNORED.value

    await db_session.refresh(seeded["intent"])
    assert seeded["intent"].status == PaymentIntentStatus.FAILED.value
    assert await ReceiptSequencer(db_session).peek(seeded["data"].school.id) == 0


@pytest.mark.asyncio
async def test_unknown_reference_is_ignored(client: AsyncClient, db_session: AsyncSession, gateways_enabled):
    r = await _post_paystack(client, _paystack_body("nobody-knows-me", 60000))
    assert r.status_code == 200
    assert r.json()["data"]["status"] == WebhookEventStatus.IGNORED.value

    event = await db_session.scalar(select(PaymentWebhookEvent))
    assert event.school_id is None
    assert event.reference == "nobody-knows-me"


@pytest.mark.asyncio
async def test_flutterwave_successful_charge(client: AsyncClient, db_session: AsyncSession, gateways_enabled):
    seeded = await _seed_intent(db_session, "flutterwave", "fw-ref-001", amount="2000.00")
    payload = {
        "event": "charge.completed",
        "data": {
            "tx_ref": "fw-ref-001",
            "amount": 2000,
            "app_fee": 28,
            "currency": "NGN",
            "status": "successful",
            "payment_type": "bank_transfer",
        },
    }

    bad = await client.post("/api/v1/webhooks/flutterwave", json=payload, headers={"verif-hash": "nope"})
    assert bad.status_code == 401

    r = await client.post("/api/v1/webhooks/flutterwave", json=payload, headers={"verif-hash": FLUTTERWAVE_HASH})
    assert r.status_code == 200
    assert r.json()["data"]["status"] == WebhookEventStatus.PROCESSED.value

    txn = await db_session.get(PaymentTransaction, r.json()["data"]["payment_txn_id"])
    assert txn.method == "transfer"
    assert txn.fee_amount == Decimal("28.00")
    invoice = seeded["invoice"]
    await db_session.refresh(invoice)
    assert invoice.amount_paid == Decimal("2000.00")


async def _generate_only(db: AsyncSession):
    """Invoice straight out of generation: no lines and zeroed totals until reconciled."""
    data = await build_billing(db, student_count=1)
    result = await InvoiceService(db, data.school.id).generate_class_invoices(
        GenerateClassInvoices(
            term_id=data.term.id,
            class_group_id=data.class_group.id,
            fee_schedule_id=data.schedule.id,
        ),
        "bursar-1",
    )
    [invoice_id] = result.invoice_ids
    return data, invoice_id


@pytest.mark.asyncio
async def test_webhook_before_invoicing_worker_applies_full_amount(
    client: AsyncClient, db_session: AsyncSession, gateways_enabled
):
    data, invoice_id = await _generate_only(db_session)
    # intent recorded by the checkout page, not through the intent endpoint
    intent = PaymentIntent(
        school_id=data.school.id,
        invoice_id=invoice_id,
        provider="paystack",
        amount=Decimal("600.00"),
        currency="NGN",
        status=PaymentIntentStatus.INITIATED.value,
        external_reference="ps-ref-early",
    )
    db_session.add(intent)
    await db_session.commit()

    r = await _post_paystack(client, _paystack_body("ps-ref-early", 60000))
    assert r.status_code == 200
    txn = await db_session.get(PaymentTransaction, r.json()["data"]["payment_txn_id"])
    assert txn.amount == Decimal("600.00")
    assert txn.receipt_no == "RCPT-1"

    worker = InvoicingWorker(db_session)
    while (await worker.run_once()).received:
        pass

    invoice = await InvoiceService(db_session, data.school.id).get_invoice(invoice_id)
    assert len(invoice.lines) == 3
    assert invoice.amount_paid == Decimal("600.00")
    assert invoice.amount_due == Decimal("1400.00")


@pytest.mark.asyncio
async def test_intent_on_unreconciled_invoice_enforces_minimum(db_session: AsyncSession):
    data, invoice_id = await _generate_only(db_session)
    service = PaymentService(db_session, data.school.id)

    with pytest.raises(MinFirstPaymentError) as exc_info:
        await service.create_payment_intent(
            PaymentIntentCreate(invoice_id=invoice_id, amount=Decimal("100.00"), provider="paystack"),
            PARENT,
        )
    assert exc_info.value.details["minimum_amount"] == "600.00"

    intent = await service.create_payment_intent(
        PaymentIntentCreate(invoice_id=invoice_id, amount=Decimal("600.00"), provider="paystack"),
        PARENT,
    )
    assert intent.status == PaymentIntentStatus.INITIATED.value
