from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.service import AuditAction, AuditService
from src.core.config import settings
from src.core.events import DetailType, EventBus, EventSource
from src.core.exceptions import SignatureError, ValidationError
from src.core.logging import get_logger
from src.integrations.gateways.models import GatewayProvider, PaymentWebhookEvent, WebhookEventStatus
from src.integrations.gateways.schemas import GatewayNotification
from src.integrations.gateways.signatures import verify_flutterwave, verify_paystack
from src.modules.invoices import totals
from src.modules.invoices.service import InvoiceService
from src.modules.payments.models import PaymentIntent, PaymentIntentStatus
from src.modules.payments.service import PaymentService
from src.modules.receipts.sequencer import ReceiptSequencer
from src.shared.utils.money import round_money
from src.shared.utils.time import ensure_aware, utcnow

logger = get_logger("integrations.gateways")


class GatewayWebhookService:
    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def is_enabled(provider: str) -> bool:
        if provider == GatewayProvider.PAYSTACK:
            return bool(settings.paystack_secret_key.strip())
        if provider == GatewayProvider.FLUTTERWAVE:
            return bool(settings.flutterwave_secret_hash.strip())
        return False

    @staticmethod
    def verify_signature(provider: str, raw_body: bytes, headers: Mapping[str, str]) -> bool:
        if provider == GatewayProvider.PAYSTACK:
            return verify_paystack(
                raw_body, headers.get("x-paystack-signature"), settings.paystack_secret_key.strip()
            )
        return verify_flutterwave(headers.get("verif-hash"), settings.flutterwave_secret_hash.strip())

    @staticmethod
    def _decode(raw_body: bytes) -> dict[str, Any]:
        try:
            payload = json.loads(raw_body or b"{}")
        except ValueError as exc:
            raise ValidationError("Webhook body is not valid JSON", "body") from exc
        if not isinstance(payload, dict):
            raise ValidationError("Webhook body must be a JSON object", "body")
        return payload

    @staticmethod
    def parse(provider: str, payload: dict[str, Any]) -> GatewayNotification:
        if provider == GatewayProvider.PAYSTACK:
            return GatewayNotification.from_paystack(payload)
        return GatewayNotification.from_flutterwave(payload)

    async def _resolve_intent(self, reference: str | None) -> PaymentIntent | None:
        """
        Gateway references are generated per intent, so a reference names at
        most one intent across tenants; an ambiguous one is not processed.
        """
        if not reference:
            return None
        result = await self.db.execute(
            select(PaymentIntent)
            .where(PaymentIntent.external_reference == reference)
            .limit(2)
            .with_for_update()
        )
        intents = list(result.scalars().all())
        if len(intents) != 1:
            return None
        return intents[0]

    async def process(
        self, provider: str, raw_body: bytes, headers: Mapping[str, str]
    ) -> PaymentWebhookEvent:
        """
        Record the delivery, verify it and apply it to the matching intent.

        Replays of an already confirmed reference are recorded and answered
        without side effects.
        """
        if not self.verify_signature(provider, raw_body, headers):
            event = PaymentWebhookEvent(
                provider=provider,
                status=WebhookEventStatus.REJECTED.value,
                error_message="signature verification failed",
                raw_payload=None,
            )
            self.db.add(event)
            await self.db.commit()
            logger.warning("webhook signature rejected", extra={"provider": provider, "webhook_event_id": event.id})
            raise SignatureError()

        payload = self._decode(raw_body)
        notification = self.parse(provider, payload)

        event = PaymentWebhookEvent(
            provider=provider,
            event_type=notification.event_type,
            reference=notification.reference,
            status=WebhookEventStatus.VERIFIED.value,
            raw_payload=payload,
        )
        self.db.add(event)
        await self.db.commit()
        event_id = event.id

        try:
            return await self._apply(event, notification)
        except Exception as exc:  # noqa: BLE001
            await self.db.rollback()
            persisted = await self.db.get(PaymentWebhookEvent, event_id)
            if persisted is not None:
                persisted.status = WebhookEventStatus.ERROR.value
                persisted.error_message = f"{type(exc).__name__}: {exc}"[:500]
                await self.db.commit()
            logger.error(
                "webhook processing failed",
                exc_info=True,
                extra={"provider": provider, "webhook_event_id": event_id, "reference": notification.reference},
            )
            # The gateway retries on non-2xx
            raise

    async def _apply(self, event: PaymentWebhookEvent, notification: GatewayNotification) -> PaymentWebhookEvent:
        intent = await self._resolve_intent(notification.reference)
        if intent is None:
            event.status = WebhookEventStatus.IGNORED.value
            event.error_message = "no payment intent for reference"
            await self.db.commit()
            logger.warning(
                "webhook reference not matched",
                extra={"provider": notification.provider, "reference": notification.reference},
            )
            return event

        event.school_id = intent.school_id
        payments = PaymentService(self.db, intent.school_id)

        if not notification.success:
            if intent.status == PaymentIntentStatus.INITIATED:
                await payments.fail_intent(intent)
            event.status = WebhookEventStatus.IGNORED.value
            event.error_message = f"non-success event {notification.event_type}"
            await self.db.commit()
            return event

        existing = await payments.get_transaction_by_reference(intent.external_reference)
        if existing is not None and not existing.is_pending:
            event.status = WebhookEventStatus.PROCESSED.value
            event.payment_txn_id = existing.id
            await self.db.commit()
            logger.info(
                "duplicate webhook delivery",
                extra={"reference": intent.external_reference, "payment_txn_id": existing.id},
            )
            return event

        if notification.currency and notification.currency.upper() != intent.currency:
            raise ValidationError(
                f"Intent is in {intent.currency}, gateway reported {notification.currency}", "currency"
            )

        # Cap against real totals even when the invoicing worker has not run yet
        invoice = await InvoiceService(self.db, intent.school_id).ensure_reconciled(intent.invoice_id)
        gross = round_money(notification.gross_amount)
        applied = min(gross, invoice.amount_due)
        if gross > applied:
            logger.warning(
                "overpayment capped at amount due",
                extra={
                    "invoice_id": invoice.id,
                    "gross_amount": str(gross),
                    "applied_amount": str(applied),
                },
            )

        _, receipt_no = await ReceiptSequencer(self.db).allocate(intent.school_id)
        transaction = await payments.upsert_confirmed_transaction(
            intent,
            amount=applied,
            method=notification.method,
            receipt_no=receipt_no,
            gross_amount=gross,
            fee_amount=round_money(notification.fee_amount),
            net_amount=notification.net_amount,
            paid_at=notification.paid_at,
        )

        invoice.amount_paid = round_money(invoice.amount_paid + applied)
        totals.refresh_amounts(invoice)
        invoice.last_processed_at = utcnow()
        intent.status = PaymentIntentStatus.SUCCEEDED.value

        await EventBus(self.db).publish(
            EventSource.PAYMENTS,
            DetailType.PAYMENT_CONFIRMED,
            {
                "schoolId": intent.school_id,
                "invoiceId": invoice.id,
                "studentId": invoice.student_id,
                "paymentTxnId": transaction.id,
                "amount": transaction.amount,
                "currency": transaction.currency,
                "paidAt": ensure_aware(transaction.paid_at),
                "reference": transaction.reference,
                "receiptNo": transaction.receipt_no,
                "provider": notification.provider,
            },
        )

        event.status = WebhookEventStatus.PROCESSED.value
        event.payment_txn_id = transaction.id
        await self.db.commit()
        logger.info(
            "gateway payment confirmed",
            extra={
                "provider": notification.provider,
                "invoice_id": invoice.id,
                "receipt_no": transaction.receipt_no,
                "amount": str(transaction.amount),
            },
        )

        await AuditService(self.db).log_after_commit(
            school_id=intent.school_id,
            action=AuditAction.PAYMENT_CONFIRMED,
            entity_type="PaymentTransaction",
            entity_id=transaction.id,
            entity_identifier=transaction.reference,
            new_values={
                "invoice_id": invoice.id,
                "amount": str(transaction.amount),
                "gross_amount": str(gross),
                "receipt_no": transaction.receipt_no,
                "provider": notification.provider,
            },
        )
        return event
