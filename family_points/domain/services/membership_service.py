from typing import Optional

from sqlalchemy.orm import Session

from family_points.data.repos import families_repo
from family_points.domain.errors import UnauthorizedError
from family_points.domain.rules import permissions


def role_in_family(session: Session, user_id: int, family_id: int) -> Optional[str]:
    membership = families_repo.get_membership(session, user_id, family_id)
    return membership.role if membership else None


def authorize(session: Session, user_id: int, family_id: int, action: str) -> bool:
    return permissions.authorize(role_in_family(session, user_id, family_id), action)


def require_permission(session: Session, user_id: int, family_id: int, action: str) -> str:
    """Raise UnauthorizedError unless the user may perform ``action`` in the family. Returns the role."""
    role = role_in_family(session, user_id, family_id)
    if role is None:
        raise UnauthorizedError("You are not a member of this family.")
    if not permissions.authorize(role, action):
        raise UnauthorizedError(f"A {role} may not {action} in this family.")
    return role


def require_member(session: Session, user_id: int, family_id: int) -> str:
    """Any role may read family data."""
    role = role_in_family(session, user_id, family_id)
    if role is None:
        raise UnauthorizedError("You are not a member of this family.")
    return role
