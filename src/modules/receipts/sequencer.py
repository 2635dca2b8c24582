from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import settings
from src.core.documents import SequenceAllocator
from src.core.logging import get_logger

logger = get_logger("receipts.sequencer")

RECEIPT_SEQUENCE = "receipt"


def format_receipt_no(seq: int) -> str:
    return f"{settings.receipt_prefix}{seq}"


class ReceiptSequencer:
    """
    Tenant-scoped receipt numbers: RCPT-1, RCPT-2, ...

    `allocate` is one atomic increment; `peek` never writes. Values are
    strictly increasing per school and never reused once committed.
    """

    def __init__(self, db: AsyncSession):
        self.allocator = SequenceAllocator(db)

    async def allocate(self, school_id: int) -> tuple[int, str]:
        seq = await self.allocator.next_value(school_id, RECEIPT_SEQUENCE)
        receipt_no = format_receipt_no(seq)
        logger.info("receipt number allocated", extra={"receipt_no": receipt_no})
        return seq, receipt_no

    async def peek(self, school_id: int) -> int:
        return await self.allocator.peek(school_id, RECEIPT_SEQUENCE)
