"""Invoicing worker: keeps invoice figures in line with lines, adjustments and payments."""

from datetime import datetime

from src.core.events import DetailType, Event, EventBatcher, EventBus, EventSource, QueueName, QueueWorker
from src.core.logging import get_logger
from src.modules.invoices.models import Invoice
from src.modules.invoices.service import InvoiceService
from src.modules.messaging.models import MessageTemplate
from src.shared.utils.time import ensure_aware, utcnow

logger = get_logger("workers.invoicing")

SELECTION_UPDATE = "SELECTION_UPDATE"


def overdue_notice_key(invoice_id: int, now: datetime) -> str:
    """One overdue notice per invoice per day."""
    return f"{MessageTemplate.OVERDUE_NOTICE}:{invoice_id}:{now.date().isoformat()}"


def messaging_request(school_id: int, invoice: Invoice, template: str, dedupe_key: str) -> Event:
    return Event(
        source=EventSource.BILLING,
        detail_type=DetailType.MESSAGING_REQUESTED,
        detail={
            "schoolId": school_id,
            "invoiceId": invoice.id,
            "studentId": invoice.student_id,
            "invoiceNo": invoice.invoice_no,
            "amountDue": invoice.amount_due,
            "template": str(template),
            "dedupeKey": dedupe_key,
        },
    )


class InvoicingWorker(QueueWorker):
    queue_name = QueueName.INVOICING

    async def handle(self, event: Event) -> None:
        school_id = event.detail.get("schoolId")
        if school_id is None:
            raise ValueError(f"{event.detail_type} event without schoolId")

        if event.detail_type == DetailType.INVOICE_OVERDUE_SCAN:
            await self.scan_overdue(int(school_id))
        elif event.detail_type in (DetailType.INVOICE_GENERATED, DetailType.PAYMENT_CONFIRMED):
            await self.process_invoice(int(school_id), event)
        else:
            logger.warning("unhandled detail type", extra={"detail_type": event.detail_type})

    async def process_invoice(self, school_id: int, event: Event) -> Invoice:
        invoice_id = event.detail.get("invoiceId")
        if invoice_id is None:
            raise ValueError(f"{event.detail_type} event without invoiceId")

        now = utcnow()
        invoice = await InvoiceService(self.db, school_id).reconcile(int(invoice_id), now)

        events = [
            Event(
                source=EventSource.BILLING,
                detail_type=DetailType.INVOICING_PROCESSED,
                detail={
                    "schoolId": school_id,
                    "invoiceId": invoice.id,
                    "trigger": str(event.detail_type),
                    "status": invoice.status,
                    "amountDue": invoice.amount_due,
                    "amountPaid": invoice.amount_paid,
                },
            )
        ]
        if (
            event.detail_type == DetailType.INVOICE_GENERATED
            and event.detail.get("reason") != SELECTION_UPDATE
        ):
            events.append(
                messaging_request(
                    school_id,
                    invoice,
                    MessageTemplate.INVOICE_ISSUED,
                    f"{MessageTemplate.INVOICE_ISSUED}:{invoice.id}:{event.event_id}",
                )
            )
            due_at = ensure_aware(invoice.due_at)
            if due_at is not None and due_at < now and invoice.amount_due > 0:
                events.append(
                    messaging_request(
                        school_id,
                        invoice,
                        MessageTemplate.OVERDUE_NOTICE,
                        overdue_notice_key(invoice.id, now),
                    )
                )

        await EventBus(self.db).put_events(events)
        logger.info(
            "invoice reconciled",
            extra={
                "invoice_id": invoice.id,
                "status": invoice.status,
                "amount_due": str(invoice.amount_due),
            },
        )
        return invoice

    async def scan_overdue(self, school_id: int) -> int:
        """Refresh installments of owing past-due invoices and request one notice each per day."""
        now = utcnow()
        service = InvoiceService(self.db, school_id)
        batcher = EventBatcher(EventBus(self.db))
        invoices = await service.list_overdue_invoices(now)
        for invoice in invoices:
            await service.refresh_installments(invoice, now)
            await batcher.add(
                messaging_request(
                    school_id,
                    invoice,
                    MessageTemplate.OVERDUE_NOTICE,
                    overdue_notice_key(invoice.id, now),
                )
            )
        await batcher.flush()
        logger.info("overdue scan done", extra={"overdue_invoices": len(invoices)})
        return len(invoices)
