from decimal import Decimal
from typing import Any


class AppException(Exception):
    """Base application exception."""

    error_type: str = "APP_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AppException):
    """Resource not found."""

    error_type = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id={identifier} not found"
        super().__init__(message=message, status_code=404)


class ValidationError(AppException):
    """Validation error."""

    error_type = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(message=message, status_code=422, details=details)


class AuthenticationError(AppException):
    """Bearer token missing or invalid."""

    error_type = "UNAUTHENTICATED"

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message=message, status_code=401)


class AuthorizationError(AppException):
    """Tenant or role mismatch. Never retried."""

    error_type = "UNAUTHORIZED"

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message=message, status_code=403)


class ConflictError(AppException):
    """Natural key already taken, or resource locked by a dependent record."""

    error_type = "CONFLICT"

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details: dict[str, Any] = {}
        if field:
            details = {"field": field, "value": value}
        super().__init__(message=message, status_code=409, details=details)


class MinFirstPaymentError(AppException):
    """Payment attempt would leave the invoice below its minimum first payment."""

    error_type = "MIN_FIRST_PAYMENT"

    def __init__(self, minimum_amount: Decimal, amount_paid: Decimal, proposed_amount: Decimal):
        super().__init__(
            message="Minimum first payment required",
            status_code=422,
            details={
                "field": "amount",
                "minimum_amount": str(minimum_amount),
                "amount_paid": str(amount_paid),
                "proposed_amount": str(proposed_amount),
            },
        )


class ResultsWithheldError(AppException):
    """Report cards withheld by the tenant's result release policy."""

    error_type = "RESULTS_BLOCKED"

    def __init__(self, message: str, figures: dict[str, Any]):
        super().__init__(message=message, status_code=403, details=figures)


class SignatureError(AppException):
    """Webhook signature did not verify."""

    error_type = "INVALID_SIGNATURE"

    def __init__(self, message: str = "Invalid signature"):
        super().__init__(message=message, status_code=401)
