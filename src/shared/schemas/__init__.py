from src.shared.schemas.base import (
    ApiResponse,
    BaseSchema,
    ErrorDetail,
    ErrorResponse,
    PaginatedResponse,
)

__all__ = [
    "ApiResponse",
    "BaseSchema",
    "ErrorDetail",
    "ErrorResponse",
    "PaginatedResponse",
]
