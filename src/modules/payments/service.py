"""Service for Payments module."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.service import AuditAction, AuditService
from src.core.auth.models import Caller, UserRole
from src.core.exceptions import MinFirstPaymentError, NotFoundError, ValidationError
from src.core.logging import get_logger
from src.modules.invoices import totals
from src.modules.invoices.models import Invoice
from src.modules.invoices.service import InvoiceService
from src.modules.payments.models import (
    MANUAL_PROVIDER,
    ManualPaymentProof,
    ManualProofStatus,
    PaymentIntent,
    PaymentIntentStatus,
    PaymentMethod,
    PaymentTransaction,
    PaymentTransactionStatus,
)
from src.modules.payments.review import ProofReviewContext, ProofReviewPipeline
from src.modules.payments.schemas import (
    ManualPaymentProofCreate,
    ManualPaymentProofReview,
    PaymentIntentCreate,
)
from src.shared.utils.money import round_money
from src.shared.utils.time import utcnow

logger = get_logger("payments")


class PaymentService:
    """Payment intents, manual proofs and transaction queries of one school."""

    def __init__(self, db: AsyncSession, school_id: int):
        self.db = db
        self.school_id = school_id
        self.audit = AuditService(db)

    # --- Helper Methods ---

    async def _get_invoice(self, invoice_id: int) -> Invoice:
        invoice = await self.db.scalar(
            select(Invoice).where(Invoice.id == invoice_id, Invoice.school_id == self.school_id)
        )
        if not invoice:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    def _payable_invoice(self, invoice: Invoice, currency: str | None) -> str:
        if invoice.is_cancelled:
            raise ValidationError("Cannot pay a cancelled invoice", "invoice_id")
        currency = (currency or invoice.currency).upper()
        if currency != invoice.currency:
            raise ValidationError(
                f"Invoice is billed in {invoice.currency}, got {currency}", "currency"
            )
        return currency

    @staticmethod
    def _payer_id(caller: Caller, requested: str | None) -> str | None:
        if requested:
            return requested
        if caller.has_role(UserRole.PARENT):
            return caller.user_id
        return None

    # --- Payment intents ---

    def check_min_first_payment(self, invoice: Invoice, amount: Decimal) -> None:
        """Raise MinFirstPaymentError when amount_paid + amount stays below the minimum."""
        if totals.is_below_min_first(invoice, invoice.amount_paid + amount):
            raise MinFirstPaymentError(
                minimum_amount=totals.min_first_amount(invoice),
                amount_paid=invoice.amount_paid,
                proposed_amount=amount,
            )

    async def create_payment_intent(self, data: PaymentIntentCreate, caller: Caller) -> PaymentIntent:
        # Freshly generated invoices carry no lines until reconciled
        invoice = await InvoiceService(self.db, self.school_id).ensure_reconciled(data.invoice_id)
        currency = self._payable_invoice(invoice, data.currency)
        amount = round_money(data.amount)
        self.check_min_first_payment(invoice, amount)

        intent = PaymentIntent(
            school_id=self.school_id,
            invoice_id=invoice.id,
            payer_parent_id=self._payer_id(caller, data.payer_parent_id),
            provider=data.provider.lower(),
            amount=amount,
            currency=currency,
            status=PaymentIntentStatus.INITIATED.value,
            external_reference=data.external_reference or f"{data.provider.lower()}-{uuid.uuid4().hex}",
        )
        self.db.add(intent)
        await self.db.commit()

        await self.audit.log_after_commit(
            school_id=self.school_id,
            action=AuditAction.PAYMENT_INTENT_CREATED,
            entity_type="PaymentIntent",
            entity_id=intent.id,
            entity_identifier=intent.external_reference,
            user_id=caller.user_id,
            new_values={
                "invoice_id": invoice.id,
                "amount": str(amount),
                "provider": intent.provider,
            },
        )
        return intent

    # --- Manual proofs ---

    async def submit_manual_proof(
        self, data: ManualPaymentProofCreate, caller: Caller
    ) -> tuple[ManualPaymentProof, PaymentTransaction]:
        """
        Create the pending transaction, its proof and the audit record in one
        commit: either all three exist or none does.
        """
        invoice = await self._get_invoice(data.invoice_id)
        currency = self._payable_invoice(invoice, data.currency)

        transaction = PaymentTransaction(
            school_id=self.school_id,
            invoice_id=invoice.id,
            provider=MANUAL_PROVIDER,
            method=PaymentMethod.MANUAL.value,
            status=PaymentTransactionStatus.PENDING.value,
            reference=f"manual-{uuid.uuid4()}",
            amount=round_money(data.amount),
            currency=currency,
            paid_at=utcnow(),
        )
        self.db.add(transaction)
        await self.db.flush()

        proof = ManualPaymentProof(
            school_id=self.school_id,
            transaction_id=transaction.id,
            invoice_id=invoice.id,
            file_url=data.file_url,
            submitted_by_parent_id=self._payer_id(caller, data.submitted_by_parent_id),
            status=ManualProofStatus.SUBMITTED.value,
        )
        self.db.add(proof)
        await self.db.flush()

        await self.audit.log(
            school_id=self.school_id,
            action=AuditAction.MANUAL_PAYMENT_SUBMITTED,
            entity_type="ManualPaymentProof",
            entity_id=proof.id,
            entity_identifier=transaction.reference,
            user_id=caller.user_id,
            new_values={
                "invoice_id": invoice.id,
                "transaction_id": transaction.id,
                "amount": str(transaction.amount),
                "file_url": data.file_url,
            },
        )
        await self.db.commit()
        return proof, transaction

    async def review_manual_proof(
        self, proof_id: int, data: ManualPaymentProofReview, reviewer: Caller
    ) -> ProofReviewContext:
        ctx = ProofReviewContext(
            school_id=self.school_id,
            proof_id=proof_id,
            decision=ManualProofStatus(data.status),
            reviewer_user_id=reviewer.user_id,
            notes=data.notes,
        )
        return await ProofReviewPipeline(self.db).run(ctx)

    async def get_proof(self, proof_id: int) -> ManualPaymentProof:
        proof = await self.db.scalar(
            select(ManualPaymentProof).where(
                ManualPaymentProof.id == proof_id,
                ManualPaymentProof.school_id == self.school_id,
            )
        )
        if not proof:
            raise NotFoundError("Manual payment proof", proof_id)
        return proof

    # --- Queries ---

    async def payments_by_invoice(self, invoice_id: int) -> list[PaymentTransaction]:
        invoice = await self._get_invoice(invoice_id)
        result = await self.db.execute(
            select(PaymentTransaction)
            .where(
                PaymentTransaction.school_id == self.school_id,
                PaymentTransaction.invoice_id == invoice.id,
            )
            .order_by(PaymentTransaction.created_at.desc(), PaymentTransaction.id.desc())
        )
        return list(result.scalars().all())

    async def get_intent_by_reference(self, reference: str) -> PaymentIntent | None:
        return await self.db.scalar(
            select(PaymentIntent).where(
                PaymentIntent.school_id == self.school_id,
                PaymentIntent.external_reference == reference,
            )
        )

    async def get_transaction_by_reference(self, reference: str) -> PaymentTransaction | None:
        return await self.db.scalar(
            select(PaymentTransaction).where(
                PaymentTransaction.school_id == self.school_id,
                PaymentTransaction.reference == reference,
            )
        )

    async def upsert_confirmed_transaction(
        self,
        intent: PaymentIntent,
        *,
        amount: Decimal,
        method: str,
        receipt_no: str,
        gross_amount: Decimal | None = None,
        fee_amount: Decimal | None = None,
        net_amount: Decimal | None = None,
        paid_at: datetime | None = None,
    ) -> PaymentTransaction:
        """
        Confirm the gateway transaction for an intent's reference, creating it
        when the gateway is the first to report it. Does not commit.
        """
        now = utcnow()
        transaction = await self.get_transaction_by_reference(intent.external_reference)
        if transaction is None:
            transaction = PaymentTransaction(
                school_id=self.school_id,
                invoice_id=intent.invoice_id,
                intent_id=intent.id,
                provider=intent.provider,
                reference=intent.external_reference,
                currency=intent.currency,
            )
            self.db.add(transaction)
        elif not transaction.is_pending:
            raise ValidationError(f"Transaction is already {transaction.status}", "status")

        transaction.method = method
        transaction.status = PaymentTransactionStatus.CONFIRMED.value
        transaction.amount = round_money(amount)
        transaction.gross_amount = gross_amount
        transaction.fee_amount = fee_amount
        transaction.net_amount = net_amount
        transaction.paid_at = paid_at or now
        transaction.confirmed_at = now
        if transaction.receipt_no is None:
            transaction.receipt_no = receipt_no
        await self.db.flush()
        return transaction

    async def fail_intent(self, intent: PaymentIntent) -> None:
        """Mark the intent FAILED and reverse a pending transaction for its reference."""
        intent.status = PaymentIntentStatus.FAILED.value
        transaction = await self.get_transaction_by_reference(intent.external_reference)
        if transaction is not None and transaction.is_pending:
            transaction.status = PaymentTransactionStatus.REVERSED.value
            transaction.reversed_at = utcnow()
        await self.db.flush()
