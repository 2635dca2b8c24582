"""
Pure invoice arithmetic.

Nothing here touches the database; services and workers load rows, call
these functions and persist the results.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from src.core.config import settings
from src.modules.invoices.models import (
    AdjustmentType,
    FeeAdjustment,
    Installment,
    InstallmentStatus,
    Invoice,
    InvoiceLine,
    InvoiceStatus,
)
from src.shared.utils.money import HUNDRED, ZERO, clamp_non_negative, percent_of, round_money
from src.shared.utils.time import ensure_aware

CREDIT_TYPES = (AdjustmentType.DISCOUNT.value, AdjustmentType.WAIVER.value)

INSTALLMENT_TEMPLATES: dict[str, tuple[int, ...]] = {
    "60/40": (60, 40),
    "40/30/30": (40, 30, 30),
}
INSTALLMENT_OFFSET_DAYS = 30


def amount_due(
    required_subtotal: Decimal,
    optional_subtotal: Decimal,
    discount_total: Decimal,
    penalty_total: Decimal,
    amount_paid: Decimal,
) -> Decimal:
    return clamp_non_negative(
        required_subtotal + optional_subtotal - discount_total + penalty_total - amount_paid
    )


def line_subtotals(lines: Iterable[InvoiceLine]) -> tuple[Decimal, Decimal]:
    """(required_subtotal, optional_subtotal); unselected optional lines are not billed."""
    required = ZERO
    optional = ZERO
    for line in lines:
        if not line.is_optional:
            required += line.amount
        elif line.is_selected:
            optional += line.amount
    return round_money(required), round_money(optional)


def adjustment_totals(
    adjustments: Iterable[FeeAdjustment], required_subtotal: Decimal
) -> tuple[Decimal, Decimal]:
    """
    (discount_total, penalty_total).

    Credits do not stack: the largest single discount or waiver applies,
    capped at the required subtotal. Penalties add up.
    """
    largest_credit = ZERO
    penalties = ZERO
    for adj in adjustments:
        if adj.adjustment_type in CREDIT_TYPES:
            largest_credit = max(largest_credit, adj.amount)
        elif adj.adjustment_type == AdjustmentType.PENALTY.value:
            penalties += adj.amount
    return round_money(min(largest_credit, required_subtotal)), round_money(penalties)


def resolve_status(invoice: Invoice) -> str:
    if invoice.is_cancelled:
        return invoice.status
    if invoice.amount_due == 0 and invoice.billed_total > 0:
        return InvoiceStatus.PAID.value
    if invoice.amount_paid > 0:
        return InvoiceStatus.PARTIALLY_PAID.value
    return InvoiceStatus.ISSUED.value


def min_first_percent(invoice: Invoice) -> int:
    if invoice.min_first_percent is not None:
        return invoice.min_first_percent
    return settings.min_first_payment_percent


def min_first_amount(invoice: Invoice) -> Decimal:
    """Invoice override when positive, else the percent of the required subtotal."""
    override = invoice.min_first_amount_override
    if override is not None and override > 0:
        return round_money(override)
    if invoice.required_subtotal > 0:
        return percent_of(invoice.required_subtotal, min_first_percent(invoice))
    return ZERO


def is_below_min_first(invoice: Invoice, paid_total: Decimal) -> bool:
    """Compared against the unrounded share; min_first_amount is for display only."""
    override = invoice.min_first_amount_override
    if override is not None and override > 0:
        return paid_total < override
    if invoice.required_subtotal <= 0:
        return False
    return paid_total * HUNDRED < invoice.required_subtotal * Decimal(min_first_percent(invoice))


def refresh_amounts(invoice: Invoice) -> None:
    """Recompute amount_due, status and the minimum-first fields in place."""
    invoice.amount_due = amount_due(
        invoice.required_subtotal,
        invoice.optional_subtotal,
        invoice.discount_total,
        invoice.penalty_total,
        invoice.amount_paid,
    )
    invoice.min_first_amount = min_first_amount(invoice)
    invoice.below_min_first = is_below_min_first(invoice, invoice.amount_paid)
    invoice.status = resolve_status(invoice)


@dataclass(frozen=True)
class PlannedInstallment:
    sequence: int
    percent: int
    amount: Decimal
    due_at: datetime


def parse_template(template: str) -> tuple[int, ...]:
    if template in INSTALLMENT_TEMPLATES:
        return INSTALLMENT_TEMPLATES[template]
    parts = tuple(int(p) for p in template.split("/") if p.strip())
    if not parts or sum(parts) != 100:
        raise ValueError(f"Invalid installment template: {template}")
    return parts


def plan_installments(total: Decimal, template: str, anchor: datetime) -> list[PlannedInstallment]:
    """
    Split `total` by the template percentages, due 0/30/60... days after anchor.
    The last installment absorbs rounding so the parts add up to total.
    """
    percents = parse_template(template)
    planned: list[PlannedInstallment] = []
    allocated = ZERO
    for index, pct in enumerate(percents):
        if index == len(percents) - 1:
            amount = round_money(total - allocated)
        else:
            amount = percent_of(total, pct)
            allocated += amount
        planned.append(
            PlannedInstallment(
                sequence=index + 1,
                percent=pct,
                amount=amount,
                due_at=anchor + timedelta(days=INSTALLMENT_OFFSET_DAYS * index),
            )
        )
    return planned


def refresh_installment_statuses(
    installments: Iterable[Installment], amount_paid: Decimal, now: datetime
) -> int:
    """
    Walk installments in sequence order: covered by cumulative payments is PAID,
    past due is OVERDUE, else DUE. Returns how many changed.
    """
    changed = 0
    cumulative = ZERO
    for inst in sorted(installments, key=lambda i: i.sequence):
        cumulative += inst.amount
        if amount_paid >= cumulative:
            status = InstallmentStatus.PAID.value
        elif ensure_aware(inst.due_at) < now:
            status = InstallmentStatus.OVERDUE.value
        else:
            status = InstallmentStatus.DUE.value
        if inst.status != status:
            inst.status = status
            if status == InstallmentStatus.PAID.value and inst.paid_at is None:
                inst.paid_at = now
            changed += 1
    return changed
