"""Receipts worker: materializes Receipt rows from payment.confirmed."""

from datetime import datetime
from decimal import Decimal

from src.core.events import DetailType, Event, QueueName, QueueWorker
from src.core.logging import get_logger
from src.modules.receipts.service import ReceiptService

logger = get_logger("workers.receipts")


def _parse_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class ReceiptsWorker(QueueWorker):
    queue_name = QueueName.RECEIPTS

    async def handle(self, event: Event) -> None:
        if event.detail_type != DetailType.PAYMENT_CONFIRMED:
            logger.warning("unhandled detail type", extra={"detail_type": event.detail_type})
            return

        detail = event.detail
        school_id = detail.get("schoolId")
        receipt_no = detail.get("receiptNo")
        if school_id is None or not receipt_no:
            logger.warning(
                "payment.confirmed without schoolId or receiptNo, skipped",
                extra={"event_id": event.event_id},
            )
            return

        receipt, created = await ReceiptService(self.db, int(school_id)).record_receipt(
            receipt_no=receipt_no,
            invoice_id=int(detail["invoiceId"]),
            amount=Decimal(str(detail["amount"])),
            currency=detail["currency"],
            payment_txn_id=detail.get("paymentTxnId"),
            payment_reference=detail.get("reference"),
            paid_at=_parse_datetime(detail.get("paidAt")),
        )
        if created:
            logger.info("receipt recorded", extra={"receipt_no": receipt.receipt_no})
