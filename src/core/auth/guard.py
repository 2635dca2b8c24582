"""Tenant guard: binds every operation to the caller's tenant claim and roles."""

from src.core.auth.models import Caller
from src.core.auth.policies import OPERATION_POLICIES
from src.core.exceptions import AuthorizationError
from src.core.logging import get_logger

logger = get_logger("auth.guard")


def authorize(caller: Caller, operation: str, school_id: int) -> Caller:
    """
    Check the caller may run `operation` against tenant `school_id`.

    Order matters: anonymous mutations are rejected first, then a tenant claim
    that disagrees with the requested tenant, then the role allow-list.
    Raises AuthorizationError before any handler runs.
    """
    policy = OPERATION_POLICIES.get(operation)
    if policy is None:
        # Unregistered operations are closed by default
        raise AuthorizationError(f"Unknown operation: {operation}")

    if policy.mutation and caller.is_anonymous:
        _reject(caller, operation, school_id, "anonymous mutation")

    if caller.school_id is not None and caller.school_id != school_id:
        _reject(caller, operation, school_id, "tenant mismatch")

    if policy.roles is not None and not caller.has_role(*policy.roles):
        _reject(caller, operation, school_id, "role not allowed")

    return caller


def _reject(caller: Caller, operation: str, school_id: int, reason: str) -> None:
    logger.warning(
        "operation rejected by tenant guard",
        extra={
            "reason": reason,
            "guarded_operation": operation,
            "requested_school_id": school_id,
            "claim_school_id": caller.school_id,
            "caller_id": caller.user_id,
        },
    )
    raise AuthorizationError("Unauthorized")
