from dataclasses import dataclass
from typing import Iterable, Optional, Union
from uuid import UUID

from marketplace.core.errors import Forbidden
from marketplace.models.user import UserRole

ADMIN_ROLES = (UserRole.ADMIN,)
LISTING_ROLES = (UserRole.OWNER, UserRole.ADMIN)


@dataclass(frozen=True)
class Identity:
    """The authenticated caller, resolved once per request."""

    id: UUID
    email: str
    role: UserRole = UserRole.USER
    is_active: bool = True

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def is_allowed(
    identity: Optional[Identity],
    resource_owner_id: Optional[Union[UUID, str]] = None,
    required_roles: Iterable[UserRole] = (),
) -> bool:
    """Ownership OR role membership. Anonymous callers are never allowed."""
    if identity is None:
        return False
    if resource_owner_id is not None and str(identity.id) == str(resource_owner_id):
        return True
    return identity.role in set(required_roles)


def authorize(
    identity: Optional[Identity],
    action: str,
    resource_owner_id: Optional[Union[UUID, str]] = None,
    required_roles: Iterable[UserRole] = (),
) -> None:
    if not is_allowed(identity, resource_owner_id, required_roles):
        raise Forbidden(f"You do not have permission to {action}.")
