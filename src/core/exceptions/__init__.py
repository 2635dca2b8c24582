from src.core.exceptions.base import (
    AppException,
    NotFoundError,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    MinFirstPaymentError,
    ResultsWithheldError,
    SignatureError,
)

__all__ = [
    "AppException",
    "NotFoundError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "MinFirstPaymentError",
    "ResultsWithheldError",
    "SignatureError",
]
