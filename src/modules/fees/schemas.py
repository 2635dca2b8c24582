"""Schemas for Fees module."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator


# --- Fee Item Schemas ---


class FeeItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    category: str = Field("general", min_length=1, max_length=100)
    description: str | None = None
    is_optional: bool = False


class FeeItemUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    category: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = None
    is_optional: bool | None = None
    is_active: bool | None = None


class FeeItemResponse(BaseModel):
    id: int
    school_id: int
    name: str
    category: str
    description: str | None
    is_optional: bool
    is_active: bool

    model_config = {"from_attributes": True}


# --- Fee Schedule Schemas ---


class FeeScheduleLineCreate(BaseModel):
    fee_item_id: int
    amount: Decimal = Field(..., ge=0)
    is_optional_override: bool | None = None
    sort_order: int = 0
    label: str | None = Field(None, max_length=200)


class FeeScheduleLineUpdate(BaseModel):
    amount: Decimal | None = Field(None, ge=0)
    is_optional_override: bool | None = None
    sort_order: int | None = None
    label: str | None = Field(None, max_length=200)


class FeeScheduleLineResponse(BaseModel):
    id: int
    fee_item_id: int
    amount: Decimal
    is_optional_override: bool | None
    sort_order: int
    label: str | None

    model_config = {"from_attributes": True}


class FeeScheduleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    term_id: int
    session_id: int | None = None
    class_year: str | None = None
    class_group_id: int | None = None
    currency: str | None = Field(None, min_length=3, max_length=3)
    lines: list[FeeScheduleLineCreate] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_scope(self):
        if not self.class_year and self.class_group_id is None:
            raise ValueError("Either class_year or class_group_id is required")
        return self


class FeeScheduleResponse(BaseModel):
    id: int
    school_id: int
    name: str
    term_id: int
    session_id: int | None
    class_year: str | None
    class_group_id: int | None
    currency: str
    is_active: bool
    locked_at: datetime | None
    lines: list[FeeScheduleLineResponse] = Field(default_factory=list)

    model_config = {"from_attributes": True}
