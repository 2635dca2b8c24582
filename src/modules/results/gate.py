"""
Result release gate.

Report cards are read through this pipeline only:

    resolve_policy -> aggregate_invoices -> evaluate_gate -> fetch_report_cards

so the payment check is a precondition of the read, never a filter applied
to cards already loaded.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.service import AuditAction, AuditService
from src.core.config import settings
from src.core.exceptions import ResultsWithheldError
from src.core.logging import get_logger
from src.core.pipeline import PipelineContext, run_pipeline
from src.modules.invoices.models import Invoice, InvoiceStatus
from src.modules.results.models import ReportCard, ResultReleasePolicy
from src.shared.utils.money import HUNDRED, ZERO, percent_ratio, round_money

logger = get_logger("results.gate")


@dataclass
class ResultAccessContext(PipelineContext):
    school_id: int
    student_id: int
    term_id: int
    limit: int = 10
    user_id: str | None = None

    policy: ResultReleasePolicy | None = None
    required_subtotal: Decimal = ZERO
    amount_paid: Decimal = ZERO
    percent_paid: Decimal | None = None
    blocked: bool = False
    report_cards: list[ReportCard] = field(default_factory=list)

    def figures(self) -> dict:
        return {
            "studentId": self.student_id,
            "termId": self.term_id,
            "amountPaid": str(self.amount_paid),
            "requiredSubtotal": str(self.required_subtotal),
            "percentPaid": str(self.percent_paid) if self.percent_paid is not None else None,
            "minimumPercent": self.policy.minimum_payment_percent if self.policy else None,
        }


def is_below_threshold(amount_paid: Decimal, required: Decimal, minimum_percent: int) -> bool:
    """Exact comparison; no rounding can lift a payer over the threshold."""
    return amount_paid * HUNDRED < required * Decimal(minimum_percent)


class ResultGate:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    @property
    def steps(self):
        return [
            self.resolve_policy,
            self.aggregate_invoices,
            self.evaluate_gate,
            self.fetch_report_cards,
        ]

    async def run(self, ctx: ResultAccessContext) -> ResultAccessContext:
        return await run_pipeline(ctx, self.steps)

    async def resolve_policy(self, ctx: ResultAccessContext) -> None:
        ctx.policy = await self.db.scalar(
            select(ResultReleasePolicy).where(ResultReleasePolicy.school_id == ctx.school_id)
        )

    async def aggregate_invoices(self, ctx: ResultAccessContext) -> None:
        if ctx.policy is None or not ctx.policy.is_enabled:
            return
        row = (
            await self.db.execute(
                select(
                    func.coalesce(func.sum(Invoice.required_subtotal), 0),
                    func.coalesce(func.sum(Invoice.amount_paid), 0),
                ).where(
                    Invoice.school_id == ctx.school_id,
                    Invoice.student_id == ctx.student_id,
                    Invoice.term_id == ctx.term_id,
                    Invoice.status != InvoiceStatus.CANCELLED.value,
                )
            )
        ).one()
        ctx.required_subtotal = round_money(row[0])
        ctx.amount_paid = round_money(row[1])

    async def evaluate_gate(self, ctx: ResultAccessContext) -> None:
        policy = ctx.policy
        if policy is None or not policy.is_enabled or ctx.required_subtotal <= 0:
            return

        ctx.percent_paid = percent_ratio(ctx.amount_paid, ctx.required_subtotal)
        if not is_below_threshold(ctx.amount_paid, ctx.required_subtotal, policy.minimum_payment_percent):
            return

        ctx.blocked = True
        message = policy.message_to_parent or settings.results_blocked_message
        figures = ctx.figures()
        logger.info("result view blocked", extra=figures)
        await self.audit.log_after_commit(
            school_id=ctx.school_id,
            action=AuditAction.RESULT_VIEW_BLOCKED,
            entity_type="ReportCard",
            entity_id=ctx.student_id,
            user_id=ctx.user_id,
            new_values={**figures, "message": message},
        )
        raise ResultsWithheldError(message, figures)

    async def fetch_report_cards(self, ctx: ResultAccessContext) -> None:
        result = await self.db.execute(
            select(ReportCard)
            .where(
                ReportCard.school_id == ctx.school_id,
                ReportCard.student_id == ctx.student_id,
                ReportCard.term_id == ctx.term_id,
            )
            .order_by(ReportCard.updated_at.desc(), ReportCard.id.desc())
            .limit(ctx.limit)
        )
        ctx.report_cards = list(result.scalars().all())
