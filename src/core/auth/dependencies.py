from typing import Annotated

from fastapi import Depends, Header

from src.core.auth.guard import authorize
from src.core.auth.jwt import caller_from_claims, decode_token
from src.core.auth.models import ANONYMOUS, Caller
from src.core.exceptions import AuthenticationError
from src.core.logging import LogContext


async def get_caller(
    authorization: Annotated[str | None, Header()] = None,
) -> Caller:
    """
    Dependency resolving the caller from an optional bearer token.

    No header means an anonymous caller; a malformed or invalid token is an
    authentication error rather than a silent downgrade to anonymous.
    """
    if not authorization:
        return ANONYMOUS

    if not authorization.startswith("Bearer "):
        raise AuthenticationError("Invalid authorization header format")

    token = authorization.replace("Bearer ", "")
    payload = decode_token(token, token_type="access")
    return caller_from_claims(payload)


def guard(operation: str):
    """
    Dependency factory wrapping a route in the tenant guard.

    The tenant is taken from the `school_id` path parameter.

    Usage:
        @router.post("/schools/{school_id}/invoices")
        async def create_invoice(
            school_id: int,
            caller: Caller = Depends(guard("createInvoice")),
        ):
            ...
    """

    async def guarded(
        school_id: int,
        caller: Caller = Depends(get_caller),
    ) -> Caller:
        authorize(caller, operation, school_id)
        LogContext.set(school_id=school_id, user_id=caller.user_id, operation=operation)
        return caller

    return guarded


CurrentCaller = Annotated[Caller, Depends(get_caller)]
