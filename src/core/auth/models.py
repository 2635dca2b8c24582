from dataclasses import dataclass, field
from enum import StrEnum


class UserRole(StrEnum):
    """Roles carried in the identity provider's token claims."""

    APP_ADMIN = "app_admin"
    SCHOOL_ADMIN = "school_admin"
    BURSAR = "bursar"
    TEACHER = "teacher"
    PARENT = "parent"


ADMIN_ROLES = frozenset({UserRole.APP_ADMIN, UserRole.SCHOOL_ADMIN})


@dataclass(frozen=True)
class Caller:
    """
    Identity of whoever is calling an operation.

    Users live in the external identity provider; only the claims reach us.
    An anonymous caller has no user id, no tenant claim and no roles.
    """

    user_id: str | None = None
    school_id: int | None = None
    roles: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None and not self.roles

    def has_role(self, *roles: UserRole) -> bool:
        """Check if caller holds any of the specified roles."""
        return any(r.value in self.roles for r in roles)

    @property
    def is_admin(self) -> bool:
        return self.has_role(*ADMIN_ROLES)


ANONYMOUS = Caller()
