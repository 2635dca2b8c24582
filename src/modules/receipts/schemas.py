"""Schemas for Receipts module."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class ReceiptAttachUrl(BaseModel):
    receipt_url: str = Field(..., min_length=1, max_length=1000)
    receipt_bucket: str | None = Field(None, max_length=200)
    receipt_key: str | None = Field(None, max_length=500)


class ReceiptResponse(BaseModel):
    id: int
    school_id: int
    receipt_no: str
    invoice_id: int
    payment_txn_id: int | None
    payment_reference: str | None
    amount: Decimal
    currency: str
    paid_at: datetime | None
    receipt_url: str | None
    receipt_bucket: str | None
    receipt_key: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
