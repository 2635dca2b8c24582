"""
Manual payment proof review as an ordered pipeline.

    load_proof -> update_proof -> allocate_receipt -> transition_transaction
    -> publish_confirmation -> commit -> audit

Every step before `commit` only writes into the session, so a failure
anywhere leaves nothing behind. The audit step runs after the commit and is
best-effort. The proof row lock taken in `load_proof` is held until `commit`,
so one proof gets at most one receipt number.
"""

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.service import AuditAction, AuditService
from src.core.events import DetailType, EventBus, EventSource
from src.core.exceptions import NotFoundError, ValidationError
from src.core.logging import get_logger
from src.core.pipeline import PipelineContext, run_pipeline
from src.modules.invoices.models import Invoice
from src.modules.payments.models import (
    MANUAL_PROVIDER,
    ManualPaymentProof,
    ManualProofStatus,
    PaymentTransaction,
    PaymentTransactionStatus,
)
from src.modules.receipts.sequencer import ReceiptSequencer
from src.shared.utils.time import ensure_aware, utcnow

logger = get_logger("payments.review")


@dataclass
class ProofReviewContext(PipelineContext):
    school_id: int
    proof_id: int
    decision: ManualProofStatus
    reviewer_user_id: str | None = None
    notes: str | None = None

    proof: ManualPaymentProof | None = None
    transaction: PaymentTransaction | None = None
    invoice: Invoice | None = None
    receipt_seq: int | None = None
    receipt_no: str | None = None
    event_id: str | None = None

    @property
    def approved(self) -> bool:
        return self.decision == ManualProofStatus.APPROVED


class ProofReviewPipeline:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.sequencer = ReceiptSequencer(db)
        self.bus = EventBus(db)
        self.audit_service = AuditService(db)

    @property
    def steps(self):
        return [
            self.load_proof,
            self.update_proof,
            self.allocate_receipt,
            self.transition_transaction,
            self.publish_confirmation,
            self.commit,
            self.audit,
        ]

    async def run(self, ctx: ProofReviewContext) -> ProofReviewContext:
        return await run_pipeline(ctx, self.steps)

    async def load_proof(self, ctx: ProofReviewContext) -> None:
        """
        Lock the proof and its transaction, then check state. A second
        reviewer blocks here until the first commits and then sees its outcome.
        """
        proof = await self.db.scalar(
            select(ManualPaymentProof)
            .where(
                ManualPaymentProof.id == ctx.proof_id,
                ManualPaymentProof.school_id == ctx.school_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if not proof:
            raise NotFoundError("Manual payment proof", ctx.proof_id)
        if proof.status != ManualProofStatus.SUBMITTED.value:
            raise ValidationError(f"Proof is already {proof.status}", "status")

        transaction = await self.db.scalar(
            select(PaymentTransaction)
            .where(
                PaymentTransaction.id == proof.transaction_id,
                PaymentTransaction.school_id == ctx.school_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if transaction is None:
            raise NotFoundError("Payment transaction", proof.transaction_id)

        ctx.proof = proof
        ctx.transaction = transaction
        ctx.invoice = await self.db.get(Invoice, proof.invoice_id)

    async def update_proof(self, ctx: ProofReviewContext) -> None:
        ctx.proof.status = ctx.decision.value
        ctx.proof.reviewed_by_user_id = ctx.reviewer_user_id
        ctx.proof.reviewed_at = utcnow()
        ctx.proof.review_notes = ctx.notes

    async def allocate_receipt(self, ctx: ProofReviewContext) -> None:
        """One atomic increment on approval; a read-only peek otherwise."""
        if not ctx.approved:
            ctx.receipt_seq = await self.sequencer.peek(ctx.school_id)
            return
        if ctx.transaction.receipt_no:
            ctx.receipt_no = ctx.transaction.receipt_no
            return
        ctx.receipt_seq, ctx.receipt_no = await self.sequencer.allocate(ctx.school_id)

    async def transition_transaction(self, ctx: ProofReviewContext) -> None:
        txn = ctx.transaction
        if not txn.is_pending:
            raise ValidationError(f"Transaction is already {txn.status}", "status")
        now = utcnow()
        if ctx.approved:
            txn.status = PaymentTransactionStatus.CONFIRMED.value
            txn.confirmed_at = now
            if txn.receipt_no is None:
                txn.receipt_no = ctx.receipt_no
        else:
            txn.status = PaymentTransactionStatus.REVERSED.value
            txn.reversed_at = now
        await self.db.flush()

    async def publish_confirmation(self, ctx: ProofReviewContext) -> None:
        if not ctx.approved:
            return
        txn = ctx.transaction
        ctx.event_id = await self.bus.publish(
            EventSource.PAYMENTS,
            DetailType.PAYMENT_CONFIRMED,
            {
                "schoolId": ctx.school_id,
                "invoiceId": txn.invoice_id,
                "studentId": ctx.invoice.student_id if ctx.invoice else None,
                "paymentTxnId": txn.id,
                "amount": txn.amount,
                "currency": txn.currency,
                "paidAt": ensure_aware(txn.paid_at),
                "reference": txn.reference,
                "receiptNo": txn.receipt_no,
                "provider": MANUAL_PROVIDER,
            },
        )

    async def commit(self, ctx: ProofReviewContext) -> None:
        await self.db.commit()
        logger.info(
            "manual payment reviewed",
            extra={
                "proof_id": ctx.proof_id,
                "decision": ctx.decision.value,
                "receipt_no": ctx.receipt_no,
            },
        )

    async def audit(self, ctx: ProofReviewContext) -> None:
        txn = ctx.transaction
        await self.audit_service.log_after_commit(
            school_id=ctx.school_id,
            action=(
                AuditAction.MANUAL_PAYMENT_APPROVED
                if ctx.approved
                else AuditAction.MANUAL_PAYMENT_REJECTED
            ),
            entity_type="ManualPaymentProof",
            entity_id=ctx.proof.id,
            entity_identifier=txn.reference,
            user_id=ctx.reviewer_user_id,
            old_values={"status": ManualProofStatus.SUBMITTED.value},
            new_values={
                "status": ctx.decision.value,
                "transaction_status": txn.status,
                "receipt_no": txn.receipt_no,
                "amount": str(txn.amount),
                "notes": ctx.notes,
            },
        )
