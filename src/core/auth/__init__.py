from src.core.auth.models import ANONYMOUS, Caller, UserRole
from src.core.auth.jwt import caller_from_claims, create_access_token, decode_token
from src.core.auth.guard import authorize
from src.core.auth.dependencies import get_caller, guard

__all__ = [
    "ANONYMOUS",
    "Caller",
    "UserRole",
    "caller_from_claims",
    "create_access_token",
    "decode_token",
    "authorize",
    "get_caller",
    "guard",
]
