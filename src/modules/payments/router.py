"""API endpoints for Payments module."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth.dependencies import guard
from src.core.auth.models import Caller
from src.core.database.session import get_db
from src.modules.payments.schemas import (
    ManualPaymentProofCreate,
    ManualPaymentProofResponse,
    ManualPaymentProofReview,
    ManualPaymentReviewResult,
    ManualPaymentSubmission,
    PaymentIntentCreate,
    PaymentIntentResponse,
    PaymentTransactionResponse,
)
from src.modules.payments.service import PaymentService
from src.shared.schemas.base import ApiResponse

router = APIRouter(prefix="/schools/{school_id}", tags=["Payments"])


@router.post(
    "/payment-intents",
    response_model=ApiResponse[PaymentIntentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_payment_intent(
    school_id: int,
    data: PaymentIntentCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("createPaymentIntent")),
):
    """
    Declare a payment attempt.

    Rejected with MIN_FIRST_PAYMENT when the invoice would stay below its
    minimum first payment.
    """
    intent = await PaymentService(db, school_id).create_payment_intent(data, caller)
    return ApiResponse(
        message="Payment intent created",
        data=PaymentIntentResponse.model_validate(intent),
    )


@router.post(
    "/manual-payments",
    response_model=ApiResponse[ManualPaymentSubmission],
    status_code=status.HTTP_201_CREATED,
)
async def submit_manual_payment_proof(
    school_id: int,
    data: ManualPaymentProofCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("submitManualPaymentProof")),
):
    proof, transaction = await PaymentService(db, school_id).submit_manual_proof(data, caller)
    return ApiResponse(
        message="Payment proof submitted for review",
        data=ManualPaymentSubmission(
            proof=ManualPaymentProofResponse.model_validate(proof),
            transaction=PaymentTransactionResponse.model_validate(transaction),
        ),
    )


@router.get(
    "/manual-payments/{proof_id}",
    response_model=ApiResponse[ManualPaymentProofResponse],
)
async def get_manual_payment_proof(
    school_id: int,
    proof_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("paymentsByInvoice")),
):
    proof = await PaymentService(db, school_id).get_proof(proof_id)
    return ApiResponse(data=ManualPaymentProofResponse.model_validate(proof))


@router.post(
    "/manual-payments/{proof_id}/review",
    response_model=ApiResponse[ManualPaymentReviewResult],
)
async def review_manual_payment_proof(
    school_id: int,
    proof_id: int,
    data: ManualPaymentProofReview,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("reviewManualPaymentProof")),
):
    """Approve (confirms the transaction and issues a receipt number) or reject."""
    ctx = await PaymentService(db, school_id).review_manual_proof(proof_id, data, caller)
    return ApiResponse(
        message=f"Payment proof {ctx.decision.value}",
        data=ManualPaymentReviewResult(
            proof=ManualPaymentProofResponse.model_validate(ctx.proof),
            transaction=PaymentTransactionResponse.model_validate(ctx.transaction),
            receipt_no=ctx.transaction.receipt_no,
        ),
    )


@router.get(
    "/invoices/{invoice_id}/payments",
    response_model=ApiResponse[list[PaymentTransactionResponse]],
)
async def payments_by_invoice(
    school_id: int,
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("paymentsByInvoice")),
):
    transactions = await PaymentService(db, school_id).payments_by_invoice(invoice_id)
    return ApiResponse(data=[PaymentTransactionResponse.model_validate(t) for t in transactions])
