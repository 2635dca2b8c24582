from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class BaseSchema(BaseModel):
    """Read models built straight from ORM rows."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class ErrorDetail(BaseSchema):
    field: str | None = None
    message: str


class ApiResponse(BaseSchema, Generic[T]):
    """Envelope for every successful response."""

    success: bool = True
    data: T
    message: str | None = None


class ErrorResponse(BaseSchema):
    """
    Envelope for every failed response.

    error_type is the machine-readable code (RESULTS_BLOCKED, MIN_FIRST_PAYMENT, ...);
    details carries the structured context that goes with it.
    """

    success: bool = False
    data: None = None
    message: str
    error_type: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    errors: list[ErrorDetail] = Field(default_factory=list)


class PaginatedResponse(BaseSchema, Generic[T]):
    """Offset page; used by the audit log listing."""

    items: list[T]
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def create(cls, items: list[T], total: int, page: int, limit: int) -> "PaginatedResponse[T]":
        pages = -(-total // limit) if limit > 0 else 0
        return cls(items=items, total=total, page=page, limit=limit, pages=pages)
