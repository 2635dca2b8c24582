"""Schemas for Invoices module."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from src.modules.invoices.models import AdjustmentType


# --- Invoice Line Schemas ---


class InvoiceLineResponse(BaseModel):
    id: int
    fee_item_id: int
    fee_schedule_line_id: int | None
    label: str
    amount: Decimal
    is_optional: bool
    is_selected: bool
    sort_order: int

    model_config = {"from_attributes": True}


# --- Invoice Schemas ---


class InvoiceCreate(BaseModel):
    """Schema for creating a single invoice."""

    student_id: int
    term_id: int
    fee_schedule_id: int
    session_id: int | None = None
    # Resolved from the student's enrollment when omitted
    class_group_id: int | None = None
    due_at: datetime | None = None
    min_first_amount_override: Decimal | None = Field(None, ge=0)
    min_first_percent: int | None = Field(None, ge=0, le=100)


class GenerateClassInvoices(BaseModel):
    """Schema for batch generation over a class group's enrollments."""

    term_id: int
    class_group_id: int
    fee_schedule_id: int
    session_id: int | None = None
    due_at: datetime | None = None
    limit: int | None = Field(None, ge=1)
    skip_duplicates: bool = True


class GenerationResult(BaseModel):
    created_count: int
    skipped_count: int
    invoice_ids: list[int]


class InvoiceSelectionUpdate(BaseModel):
    """Optional line ids the payer wants billed; every other optional line is deselected."""

    selected_line_ids: list[int] = Field(default_factory=list)


class InvoiceResponse(BaseModel):
    id: int
    school_id: int
    invoice_no: str
    student_id: int
    term_id: int
    session_id: int | None
    class_group_id: int
    fee_schedule_id: int
    status: str
    currency: str
    required_subtotal: Decimal
    optional_subtotal: Decimal
    discount_total: Decimal
    penalty_total: Decimal
    amount_paid: Decimal
    amount_due: Decimal
    min_first_amount: Decimal
    min_first_percent: int | None
    below_min_first: bool
    due_at: datetime | None
    issued_at: datetime | None
    last_processed_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class InvoiceDetail(InvoiceResponse):
    lines: list[InvoiceLineResponse] = Field(default_factory=list)


class DefaulterResponse(BaseModel):
    invoice_id: int
    invoice_no: str
    student_id: int
    student_name: str
    admission_no: str
    amount_due: Decimal
    amount_paid: Decimal
    due_at: datetime | None
    days_overdue: int


# --- Adjustment Schemas ---


class FeeAdjustmentCreate(BaseModel):
    adjustment_type: AdjustmentType
    amount: Decimal = Field(..., gt=0)
    reason: str = Field(..., min_length=1, max_length=500)
    approved_by_user_id: str | None = None


class FeeAdjustmentResponse(BaseModel):
    id: int
    invoice_id: int
    adjustment_type: str
    amount: Decimal
    reason: str
    created_by_user_id: str | None
    approved_by_user_id: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class FeeAdjustmentResult(BaseModel):
    adjustment: FeeAdjustmentResponse
    invoice: InvoiceResponse


# --- Installment Schemas ---


class InstallmentResponse(BaseModel):
    id: int
    sequence: int
    percent: int
    amount: Decimal
    due_at: datetime
    status: str
    paid_at: datetime | None

    model_config = {"from_attributes": True}
