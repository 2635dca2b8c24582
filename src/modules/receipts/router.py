"""API endpoints for Receipts module."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth.dependencies import guard
from src.core.auth.models import Caller
from src.core.database.session import get_db
from src.modules.receipts.schemas import ReceiptAttachUrl, ReceiptResponse
from src.modules.receipts.service import ReceiptService
from src.shared.schemas.base import ApiResponse

router = APIRouter(prefix="/schools/{school_id}/receipts", tags=["Receipts"])


@router.get("/{receipt_no}", response_model=ApiResponse[ReceiptResponse])
async def get_receipt(
    school_id: int,
    receipt_no: str,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("receiptByNumber")),
):
    receipt = await ReceiptService(db, school_id).receipt_by_number(receipt_no)
    return ApiResponse(data=ReceiptResponse.model_validate(receipt))


@router.put("/{receipt_no}/document", response_model=ApiResponse[ReceiptResponse])
async def attach_receipt_url(
    school_id: int,
    receipt_no: str,
    data: ReceiptAttachUrl,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("attachReceiptUrl")),
):
    """Record where the rendered receipt document is stored."""
    receipt = await ReceiptService(db, school_id).attach_receipt_url(
        receipt_no, data, caller.user_id
    )
    return ApiResponse(message="Receipt document attached", data=ReceiptResponse.model_validate(receipt))
