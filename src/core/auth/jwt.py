from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from src.core.auth.models import Caller
from src.core.config import settings
from src.core.exceptions import AuthenticationError


def create_access_token(
    user_id: str,
    roles: list[str],
    school_id: int | None = None,
    expires_minutes: int | None = None,
) -> str:
    """
    Create JWT access token.

    Production tokens come from the identity provider; this is used by
    tooling and tests that need a caller.
    """
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=expires_minutes or settings.access_token_expire_minutes)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "roles": list(roles),
        "type": "access",
        "exp": expire,
        "iat": now,
    }
    if school_id is not None:
        payload["school_id"] = school_id
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, token_type: str = "access") -> dict[str, Any]:
    """
    Decode and validate JWT token.

    Raises:
        AuthenticationError: If token is invalid or expired
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )

        if payload.get("type") != token_type:
            raise AuthenticationError(f"Invalid token type, expected {token_type}")

        return payload

    except JWTError as e:
        raise AuthenticationError(f"Invalid token: {str(e)}")


def caller_from_claims(payload: dict[str, Any]) -> Caller:
    """Build a Caller from decoded token claims."""
    raw_school = payload.get("school_id")
    try:
        school_id = int(raw_school) if raw_school not in (None, "") else None
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid school_id claim")

    roles = payload.get("roles") or []
    if isinstance(roles, str):
        roles = [r.strip() for r in roles.split(",") if r.strip()]

    return Caller(
        user_id=str(payload["sub"]) if payload.get("sub") else None,
        school_id=school_id,
        roles=frozenset(str(r) for r in roles),
    )
