"""Messaging worker: turns events into outbox messages for the delivery provider."""

from src.core.events import DetailType, Event, QueueName, QueueWorker
from src.core.logging import get_logger
from src.modules.messaging.models import MessageTemplate
from src.modules.messaging.service import MessagingService

logger = get_logger("workers.messaging")

TEMPLATE_BY_DETAIL_TYPE: dict[str, MessageTemplate] = {
    DetailType.PAYMENT_CONFIRMED: MessageTemplate.PAYMENT_RECEIPT,
    DetailType.INVOICE_GENERATED: MessageTemplate.INVOICE_ISSUED,
    DetailType.INVOICING_PROCESSED: MessageTemplate.INVOICE_ISSUED,
    DetailType.INVOICE_OVERDUE: MessageTemplate.OVERDUE_NOTICE,
    DetailType.RESULT_READY: MessageTemplate.RESULT_READY,
}


def resolve_template(event: Event) -> str | None:
    if event.detail_type == DetailType.MESSAGING_REQUESTED:
        return event.detail.get("template")
    template = TEMPLATE_BY_DETAIL_TYPE.get(event.detail_type)
    return str(template) if template else None


class MessagingWorker(QueueWorker):
    queue_name = QueueName.MESSAGING

    async def handle(self, event: Event) -> None:
        school_id = event.detail.get("schoolId")
        if school_id is None:
            raise ValueError(f"{event.detail_type} event without schoolId")

        template = resolve_template(event)
        if not template:
            logger.warning("no template for event", extra={"detail_type": event.detail_type})
            return

        dedupe_key = event.detail.get("dedupeKey") or f"{template}:{event.event_id}"
        student_id = event.detail.get("studentId")
        invoice_id = event.detail.get("invoiceId")
        _, created = await MessagingService(self.db, int(school_id)).enqueue(
            template,
            dedupe_key,
            event.detail,
            student_id=int(student_id) if student_id is not None else None,
            invoice_id=int(invoice_id) if invoice_id is not None else None,
            source_event_id=event.event_id,
        )
        if not created:
            logger.info("duplicate message skipped", extra={"dedupe_key": dedupe_key})
