"""Schemas for Payments module."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field


# --- Payment Intent Schemas ---


class PaymentIntentCreate(BaseModel):
    invoice_id: int
    amount: Decimal = Field(..., gt=0)
    provider: str = Field(..., min_length=1, max_length=30)
    currency: str | None = Field(None, min_length=3, max_length=3)
    external_reference: str | None = Field(None, max_length=100)
    # Defaults to the calling parent
    payer_parent_id: str | None = Field(None, max_length=64)


class PaymentIntentResponse(BaseModel):
    id: int
    invoice_id: int
    payer_parent_id: str | None
    provider: str
    amount: Decimal
    currency: str
    status: str
    external_reference: str
    created_at: datetime

    model_config = {"from_attributes": True}


# --- Transaction Schemas ---


class PaymentTransactionResponse(BaseModel):
    id: int
    invoice_id: int
    intent_id: int | None
    provider: str
    method: str
    status: str
    reference: str
    amount: Decimal
    gross_amount: Decimal | None
    fee_amount: Decimal | None
    net_amount: Decimal | None
    currency: str
    receipt_no: str | None
    paid_at: datetime | None
    confirmed_at: datetime | None
    reversed_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


# --- Manual Proof Schemas ---


class ManualPaymentProofCreate(BaseModel):
    invoice_id: int
    amount: Decimal = Field(..., gt=0)
    currency: str | None = Field(None, min_length=3, max_length=3)
    file_url: str = Field(..., min_length=1, max_length=1000)
    submitted_by_parent_id: str | None = Field(None, max_length=64)


class ManualPaymentProofReview(BaseModel):
    status: Literal["approved", "rejected"]
    notes: str | None = Field(None, max_length=2000)


class ManualPaymentProofResponse(BaseModel):
    id: int
    transaction_id: int
    invoice_id: int
    file_url: str
    submitted_by_parent_id: str | None
    status: str
    reviewed_by_user_id: str | None
    reviewed_at: datetime | None
    review_notes: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ManualPaymentSubmission(BaseModel):
    proof: ManualPaymentProofResponse
    transaction: PaymentTransactionResponse


class ManualPaymentReviewResult(BaseModel):
    proof: ManualPaymentProofResponse
    transaction: PaymentTransactionResponse
    receipt_no: str | None
