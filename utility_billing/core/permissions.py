"""Access Policy

Role and ownership checks consulted before any handler touches data.
"""

import enum
from dataclasses import dataclass
from typing import Optional

from utility_billing.core.exceptions import Forbidden, NotFound, Unauthenticated
from utility_billing.models.enums import UserRole


class Action(str, enum.Enum):
    """Capabilities checked by the policy"""
    READ = "read"                      # customer / bill / payment records
    MANAGE_BILLING = "manage_billing"  # customer / bill / payment mutations
    VIEW_REPORTS = "view_reports"
    MANAGE_USERS = "manage_users"


STAFF_ACTIONS = frozenset({Action.READ, Action.MANAGE_BILLING, Action.VIEW_REPORTS})


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as supplied by the auth layer"""
    id: int
    role: UserRole

    @classmethod
    def from_user(cls, user) -> "Principal":
        return cls(id=user.id, role=UserRole(user.role))

    @property
    def reads_everything(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.STAFF)


def is_allowed(
    principal: Principal,
    action: Action,
    owner_user_id: Optional[int] = None,
) -> bool:
    """
    Decide whether ``principal`` may perform ``action``.

    Plain users may only READ, and only resources whose owning user id
    matches their own.
    """
    if principal.role == UserRole.ADMIN:
        return True
    if principal.role == UserRole.STAFF:
        return action in STAFF_ACTIONS
    if principal.role == UserRole.USER:
        return (
            action == Action.READ
            and owner_user_id is not None
            and owner_user_id == principal.id
        )
    return False


def authorize(
    principal: Optional[Principal],
    action: Action,
    owner_user_id: Optional[int] = None,
) -> Principal:
    """
    Raise unless the action is allowed.

    Raises:
        Unauthenticated: no principal
        Forbidden: principal lacks the capability or does not own the resource
    """
    if principal is None:
        raise Unauthenticated()
    if not is_allowed(principal, action, owner_user_id):
        raise Forbidden()
    return principal


def read_scope(principal: Principal) -> Optional[int]:
    """
    Owner filter for list queries: None means unrestricted, otherwise
    only rows owned by the returned user id are visible.
    """
    return None if principal.reads_everything else principal.id


def authorize_read(
    principal: Principal,
    owner_user_id: Optional[int],
    found: bool,
    not_found: NotFound,
) -> None:
    """
    Gate a single-resource read.

    Callers that can read everything learn that the resource is missing;
    everyone else gets Forbidden whether or not it exists.
    """
    if not found:
        if principal.reads_everything:
            raise not_found
        raise Forbidden()
    authorize(principal, Action.READ, owner_user_id)
