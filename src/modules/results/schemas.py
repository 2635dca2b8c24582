"""Schemas for Results module."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ResultPolicyUpsert(BaseModel):
    is_enabled: bool
    minimum_payment_percent: int = Field(..., ge=0, le=100)
    message_to_parent: str | None = Field(None, max_length=2000)


class ResultPolicyResponse(BaseModel):
    id: int
    school_id: int
    is_enabled: bool
    minimum_payment_percent: int
    message_to_parent: str | None

    model_config = {"from_attributes": True}


class ReportCardUpsert(BaseModel):
    student_id: int
    term_id: int
    class_group_id: int | None = None
    summary: dict[str, Any] | None = None


class ReportCardResponse(BaseModel):
    id: int
    student_id: int
    term_id: int
    class_group_id: int | None
    status: str
    summary: dict[str, Any] | None
    published_at: datetime | None
    updated_at: datetime

    model_config = {"from_attributes": True}


class PublishResultReady(BaseModel):
    student_id: int
    term_id: int
    class_group_id: int | None = None
    report_card_id: int | None = None
