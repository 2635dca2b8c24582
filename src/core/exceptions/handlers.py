from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from src.core.config import settings
from src.core.exceptions import AppException
from src.core.logging import get_logger
from src.shared.schemas import ErrorResponse, ErrorDetail

logger = get_logger("http.errors")


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle application exceptions."""
    field = exc.details.get("field")
    errors = [ErrorDetail(field=field, message=exc.message)]

    if exc.status_code in (401, 403):
        logger.warning(
            "request rejected",
            extra={"path": request.url.path, "error_type": exc.error_type},
        )

    response = ErrorResponse(
        message=exc.message,
        error_type=exc.error_type,
        details=exc.details,
        errors=errors,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=response.model_dump(mode="json"),
    )


def _format_validation_errors(errors: list[dict]) -> list[ErrorDetail]:
    details: list[ErrorDetail] = []
    for error in errors:
        loc = error.get("loc", ())
        # Drop top-level "body" for cleaner field paths
        if loc and loc[0] == "body":
            loc = loc[1:]
        field = ".".join(str(part) for part in loc) if loc else None
        details.append(ErrorDetail(field=field, message=error.get("msg", "Invalid value")))
    return details


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle FastAPI validation errors."""
    response = ErrorResponse(
        message="Validation error",
        error_type="VALIDATION_ERROR",
        errors=_format_validation_errors(exc.errors()),
    )
    return JSONResponse(
        status_code=422,
        content=response.model_dump(mode="json"),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle generic HTTP exceptions."""
    errors = [ErrorDetail(field=None, message=str(exc.detail) if exc.detail else "HTTP error")]
    response = ErrorResponse(
        message=str(exc.detail) if exc.detail else "HTTP error",
        errors=errors,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=response.model_dump(mode="json"),
    )


async def sqlalchemy_db_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """
    Convert unhandled database errors to a stable, user-facing message.

    Full DB error details are only exposed when debug is enabled.
    """
    logger.error("database error", exc_info=exc, extra={"path": request.url.path})
    raw = str(getattr(exc, "orig", exc))
    if "does not exist" in raw.lower() and "column" in raw.lower():
        message = "Database schema is out of date. Run the latest migrations and try again."
    elif settings.debug:
        message = raw
    else:
        message = "Database error"
    response = ErrorResponse(
        message=message,
        error_type="DATABASE_ERROR",
        errors=[ErrorDetail(field=None, message=message)],
    )
    return JSONResponse(status_code=500, content=response.model_dump(mode="json"))
