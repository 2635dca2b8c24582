"""Service for Receipts module."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.service import AuditAction, AuditService
from src.core.exceptions import NotFoundError
from src.modules.receipts.models import Receipt
from src.modules.receipts.schemas import ReceiptAttachUrl
from src.shared.utils.money import round_money


class ReceiptService:
    def __init__(self, db: AsyncSession, school_id: int):
        self.db = db
        self.school_id = school_id
        self.audit = AuditService(db)

    async def _find(self, receipt_no: str) -> Receipt | None:
        return await self.db.scalar(
            select(Receipt).where(
                Receipt.school_id == self.school_id,
                Receipt.receipt_no == receipt_no,
            )
        )

    async def receipt_by_number(self, receipt_no: str) -> Receipt:
        receipt = await self._find(receipt_no)
        if not receipt:
            raise NotFoundError("Receipt", receipt_no)
        return receipt

    async def record_receipt(
        self,
        *,
        receipt_no: str,
        invoice_id: int,
        amount: Decimal,
        currency: str,
        payment_txn_id: int | None = None,
        payment_reference: str | None = None,
        paid_at: datetime | None = None,
    ) -> tuple[Receipt, bool]:
        """
        Insert the receipt unless it exists. Returns (receipt, created).
        Replays of the same payment.confirmed event are no-ops. Does not commit.
        """
        existing = await self._find(receipt_no)
        if existing:
            return existing, False

        receipt = Receipt(
            school_id=self.school_id,
            receipt_no=receipt_no,
            invoice_id=invoice_id,
            payment_txn_id=payment_txn_id,
            payment_reference=payment_reference,
            amount=round_money(amount),
            currency=currency,
            paid_at=paid_at,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(receipt)
                await self.db.flush()
        except IntegrityError:
            # a concurrent consumer inserted it first
            return await self.receipt_by_number(receipt_no), False
        return receipt, True

    async def attach_receipt_url(
        self, receipt_no: str, data: ReceiptAttachUrl, user_id: str | None
    ) -> Receipt:
        receipt = await self.receipt_by_number(receipt_no)
        old_values = {
            "receipt_url": receipt.receipt_url,
            "receipt_bucket": receipt.receipt_bucket,
            "receipt_key": receipt.receipt_key,
        }
        receipt.receipt_url = data.receipt_url
        receipt.receipt_bucket = data.receipt_bucket
        receipt.receipt_key = data.receipt_key
        await self.db.commit()

        await self.audit.log_after_commit(
            school_id=self.school_id,
            action=AuditAction.RECEIPT_ATTACHED,
            entity_type="Receipt",
            entity_id=receipt.id,
            entity_identifier=receipt.receipt_no,
            user_id=user_id,
            old_values=old_values,
            new_values=data.model_dump(),
        )
        return receipt
