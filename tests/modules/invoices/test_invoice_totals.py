from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from src.modules.invoices import totals
from src.modules.invoices.models import (
    AdjustmentType,
    FeeAdjustment,
    Installment,
    InstallmentStatus,
    Invoice,
    InvoiceLine,
    InvoiceStatus,
)

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


def _invoice(**overrides) -> Invoice:
    values = dict(
        status=InvoiceStatus.ISSUED.value,
        required_subtotal=Decimal("2000.00"),
        optional_subtotal=Decimal("0.00"),
        discount_total=Decimal("0.00"),
        penalty_total=Decimal("0.00"),
        amount_paid=Decimal("0.00"),
        amount_due=Decimal("0.00"),
        min_first_amount_override=None,
        min_first_percent=None,
    )
    values.update(overrides)
    return Invoice(**values)


def _adjustment(kind: AdjustmentType, amount: str) -> FeeAdjustment:
    return FeeAdjustment(adjustment_type=kind.value, amount=Decimal(amount), reason="test")


class TestLineSubtotals:
    def test_unselected_optional_lines_are_not_billed(self):
        lines = [
            InvoiceLine(amount=Decimal("2000.00"), is_optional=False, is_selected=True),
            InvoiceLine(amount=Decimal("500.00"), is_optional=True, is_selected=True),
            InvoiceLine(amount=Decimal("500.00"), is_optional=True, is_selected=False),
        ]
        assert totals.line_subtotals(lines) == (Decimal("2000.00"), Decimal("500.00"))


class TestAdjustmentTotals:
    def test_largest_credit_wins(self):
        adjustments = [
            _adjustment(AdjustmentType.DISCOUNT, "300.00"),
            _adjustment(AdjustmentType.WAIVER, "500.00"),
            _adjustment(AdjustmentType.DISCOUNT, "200.00"),
        ]
        assert totals.adjustment_totals(adjustments, Decimal("2000.00")) == (
            Decimal("500.00"),
            Decimal("0.00"),
        )

    def test_credit_capped_at_required_subtotal(self):
        adjustments = [_adjustment(AdjustmentType.WAIVER, "5000.00")]
        discount, _ = totals.adjustment_totals(adjustments, Decimal("2000.00"))
        assert discount == Decimal("2000.00")

    def test_penalties_add_up(self):
        adjustments = [
            _adjustment(AdjustmentType.PENALTY, "100.00"),
            _adjustment(AdjustmentType.PENALTY, "50.00"),
        ]
        assert totals.adjustment_totals(adjustments, Decimal("2000.00"))[1] == Decimal("150.00")


class TestRefreshAmounts:
    def test_fresh_invoice(self):
        invoice = _invoice()
        totals.refresh_amounts(invoice)
        assert invoice.amount_due == Decimal("2000.00")
        assert invoice.min_first_amount == Decimal("600.00")
        assert invoice.below_min_first is True
        assert invoice.status == InvoiceStatus.ISSUED.value

    def test_partially_paid_above_minimum(self):
        invoice = _invoice(amount_paid=Decimal("600.00"))
        totals.refresh_amounts(invoice)
        assert invoice.amount_due == Decimal("1400.00")
        assert invoice.below_min_first is False
        assert invoice.status == InvoiceStatus.PARTIALLY_PAID.value

    def test_amount_due_never_negative(self):
        invoice = _invoice(amount_paid=Decimal("2500.00"))
        totals.refresh_amounts(invoice)
        assert invoice.amount_due == Decimal("0.00")
        assert invoice.status == InvoiceStatus.PAID.value

    def test_override_wins_over_percent(self):
        invoice = _invoice(min_first_amount_override=Decimal("1000.00"), min_first_percent=10)
        assert totals.min_first_amount(invoice) == Decimal("1000.00")

    def test_invoice_percent_wins_over_default(self):
        invoice = _invoice(min_first_percent=50)
        assert totals.min_first_amount(invoice) == Decimal("1000.00")

    def test_minimum_is_compared_unrounded(self):
        invoice = _invoice(required_subtotal=Decimal("10000.01"))
        # displayed minimum rounds to 3000.00; the exact share is 3000.003
        assert totals.min_first_amount(invoice) == Decimal("3000.00")
        assert totals.is_below_min_first(invoice, Decimal("3000.00"))
        assert not totals.is_below_min_first(invoice, Decimal("3000.01"))

    def test_below_min_first_uses_override(self):
        invoice = _invoice(min_first_amount_override=Decimal("750.00"))
        assert totals.is_below_min_first(invoice, Decimal("749.99"))
        assert not totals.is_below_min_first(invoice, Decimal("750.00"))

    def test_nothing_required_is_never_below(self):
        invoice = _invoice(required_subtotal=Decimal("0.00"))
        assert not totals.is_below_min_first(invoice, Decimal("0.00"))

    def test_cancelled_status_is_kept(self):
        invoice = _invoice(status=InvoiceStatus.CANCELLED.value, amount_paid=Decimal("2000.00"))
        totals.refresh_amounts(invoice)
        assert invoice.status == InvoiceStatus.CANCELLED.value


class TestInstallments:
    def test_last_installment_absorbs_rounding(self):
        planned = totals.plan_installments(Decimal("1000.01"), "60/40", NOW)
        assert [p.amount for p in planned] == [Decimal("600.01"), Decimal("400.00")]
        assert planned[1].due_at == NOW + timedelta(days=30)

    def test_three_part_template(self):
        planned = totals.plan_installments(Decimal("3000.00"), "40/30/30", NOW)
        assert [p.amount for p in planned] == [Decimal("1200.00"), Decimal("900.00"), Decimal("900.00")]
        assert sum(p.amount for p in planned) == Decimal("3000.00")

    def test_invalid_template(self):
        with pytest.raises(ValueError):
            totals.parse_template("50/30")

    def test_statuses_follow_cumulative_payments(self):
        installments = [
            Installment(
                sequence=1, amount=Decimal("1200.00"), due_at=NOW - timedelta(days=5),
                status=InstallmentStatus.DUE.value,
            ),
            Installment(
                sequence=2, amount=Decimal("800.00"), due_at=NOW - timedelta(days=1),
                status=InstallmentStatus.DUE.value,
            ),
        ]
        changed = totals.refresh_installment_statuses(installments, Decimal("1200.00"), NOW)

        assert changed == 2
        assert installments[0].status == InstallmentStatus.PAID.value
        assert installments[0].paid_at == NOW
        assert installments[1].status == InstallmentStatus.OVERDUE.value
