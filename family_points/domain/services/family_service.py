"""
Accounts, families, membership, policy and children.
"""
import logging
import secrets
from datetime import date, datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from family_points.config import DEFAULT_POLICY
from family_points.data.models import (
    ROLE_GUARDIAN,
    ROLE_MEMBER,
    ROLE_PARENT,
    Child,
    Family,
    FamilyMember,
    FamilyPolicy,
    Reward,
    Rule,
    User,
)
from family_points.data.repos import children_repo, families_repo, rewards_repo, rules_repo
from family_points.domain.errors import (
    AuthenticationError,
    ChildNotFoundError,
    FamilyNotFoundError,
    InvalidInputError,
    InvalidStateError,
)
from family_points.domain.rules import permissions
from family_points.domain.rules.point_rules import valid_points_required, valid_rule_points
from family_points.domain.services import membership_service
from family_points.domain.services.unit_of_work import unit_of_work
from family_points.security.password import hash_password, verify_password

logger = logging.getLogger(__name__)

ROLES = (ROLE_PARENT, ROLE_GUARDIAN, ROLE_MEMBER)
POLICY_FIELDS = tuple(DEFAULT_POLICY)


def register_user(session: Session, email: str, name: str, password: str) -> User:
    email = email.strip().lower()
    with unit_of_work(session):
        if families_repo.get_user_by_email(session, email) is not None:
            raise InvalidStateError("This email is already registered.")
        user = families_repo.create_user(
            session, User(email=email, name=name.strip(), password_hash=hash_password(password))
        )
    logger.info("Registered user %s", user.id)
    return user


def authenticate(session: Session, email: str, password: str) -> Tuple[User, Optional[FamilyMember]]:
    """
    Check a password login.

    Returns:
        The user and their first family membership (None before they join a family)
    """
    user = families_repo.get_user_by_email(session, email)
    if user is None or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid email or password.")
    return user, families_repo.first_membership(session, user.id)


def create_family(session: Session, name: str, creator_id: int) -> Family:
    """Create a family with the creator as its first parent and a default policy."""
    with unit_of_work(session):
        if families_repo.get_user(session, creator_id) is None:
            raise AuthenticationError("Unknown user.")
        family = families_repo.create_family(
            session, Family(name=name.strip(), invite_code=secrets.token_hex(4).upper(), created_by=creator_id)
        )
        families_repo.add_member(session, FamilyMember(family_id=family.id, user_id=creator_id, role=ROLE_PARENT))
        session.add(FamilyPolicy(family_id=family.id, **DEFAULT_POLICY))
        session.flush()
    logger.info("User %s created family %s", creator_id, family.id)
    return family


def join_family(session: Session, user_id: int, invite_code: str) -> Family:
    """Join the family behind ``invite_code`` as a plain member."""
    code = invite_code.strip().upper()
    with unit_of_work(session):
        family = families_repo.get_family_by_invite_code(session, code)
        if family is None:
            raise FamilyNotFoundError("Invalid invite code.")
        if families_repo.get_membership(session, user_id, family.id) is not None:
            raise InvalidStateError("You are already a member of this family.")
        families_repo.add_member(session, FamilyMember(family_id=family.id, user_id=user_id, role=ROLE_MEMBER))
    logger.info("User %s joined family %s with an invite code", user_id, family.id)
    return family


def list_families(session: Session, user_id: int) -> List[Tuple[Family, str]]:
    return families_repo.list_families_for_user(session, user_id)


def get_family(session: Session, family_id: int, user_id: int) -> Family:
    family = families_repo.get_family(session, family_id)
    if family is None:
        raise FamilyNotFoundError()
    membership_service.require_member(session, user_id, family_id)
    return family


def list_members(session: Session, family_id: int, user_id: int) -> List[FamilyMember]:
    membership_service.require_member(session, user_id, family_id)
    return families_repo.list_members(session, family_id)


def add_member(session: Session, family_id: int, actor_id: int, email: str, role: str) -> FamilyMember:
    if role not in ROLES:
        raise InvalidInputError(f"Role must be one of {', '.join(ROLES)}.")
    with unit_of_work(session):
        if families_repo.get_family(session, family_id) is None:
            raise FamilyNotFoundError()
        membership_service.require_permission(session, actor_id, family_id, permissions.ACTION_MANAGE)
        user = families_repo.get_user_by_email(session, email)
        if user is None:
            raise InvalidStateError("No account is registered with this email.")
        if families_repo.get_membership(session, user.id, family_id) is not None:
            raise InvalidStateError("This user is already a member of the family.")
        member = families_repo.add_member(session, FamilyMember(family_id=family_id, user_id=user.id, role=role))
    logger.info("User %s joined family %s as %s", user.id, family_id, role)
    return member


def get_policy(session: Session, family_id: int, user_id: int) -> FamilyPolicy:
    membership_service.require_member(session, user_id, family_id)
    with unit_of_work(session):
        policy = families_repo.get_policy(session, family_id)
    return policy


def update_policy(session: Session, family_id: int, actor_id: int, **changes) -> FamilyPolicy:
    unknown = set(changes) - set(POLICY_FIELDS)
    if unknown:
        raise InvalidInputError(f"Unknown policy fields: {', '.join(sorted(unknown))}")
    with unit_of_work(session):
        if families_repo.get_family(session, family_id) is None:
            raise FamilyNotFoundError()
        membership_service.require_permission(session, actor_id, family_id, permissions.ACTION_MANAGE)
        policy = families_repo.get_policy(session, family_id)
        for field, value in changes.items():
            if value is not None:
                setattr(policy, field, bool(value))
        policy.updated_at = datetime.utcnow()
        session.flush()
    logger.info("Policy of family %s updated by user %s: %s", family_id, actor_id, changes)
    return policy


def list_children(session: Session, family_id: int, user_id: int) -> List[Child]:
    membership_service.require_member(session, user_id, family_id)
    return children_repo.list_children(session, family_id)


def get_child(session: Session, child_id: int, user_id: int) -> Child:
    child = children_repo.get_child(session, child_id, refresh=True)
    if child is None:
        raise ChildNotFoundError()
    membership_service.require_member(session, user_id, child.family_id)
    return child


def add_child(
    session: Session,
    family_id: int,
    actor_id: int,
    name: str,
    birth_date: Optional[date] = None,
    avatar_url: Optional[str] = None,
) -> Child:
    with unit_of_work(session):
        if families_repo.get_family(session, family_id) is None:
            raise FamilyNotFoundError()
        membership_service.require_permission(session, actor_id, family_id, permissions.ACTION_MANAGE)
        child = children_repo.create_child(
            session,
            Child(family_id=family_id, name=name.strip(), birth_date=birth_date, avatar_url=avatar_url, total_points=0),
        )
    logger.info("Child %s added to family %s", child.id, family_id)
    return child


def remove_child(session: Session, child_id: int, actor_id: int) -> None:
    """Delete a child together with its events and ledger entries."""
    with unit_of_work(session):
        child = children_repo.get_child(session, child_id)
        if child is None:
            raise ChildNotFoundError()
        membership_service.require_permission(session, actor_id, child.family_id, permissions.ACTION_MANAGE)
        children_repo.delete_child(session, child)
    logger.info("Child %s removed by user %s", child_id, actor_id)


def add_rule(
    session: Session,
    family_id: int,
    actor_id: int,
    name: str,
    rule_type: str,
    points: int,
    category: str = "other",
    requires_approval: bool = False,
    description: Optional[str] = None,
) -> Rule:
    if not valid_rule_points(rule_type, points):
        raise InvalidInputError("Reward rules need positive points, punishment rules negative (-1000..1000).")
    with unit_of_work(session):
        membership_service.require_permission(session, actor_id, family_id, permissions.ACTION_MANAGE)
        rule = rules_repo.create_rule(
            session,
            Rule(
                family_id=family_id,
                name=name,
                category=category,
                type=rule_type,
                points=points,
                description=description,
                requires_approval=requires_approval,
                created_by=actor_id,
            ),
        )
    return rule


def add_reward(
    session: Session,
    family_id: int,
    actor_id: int,
    name: str,
    points_required: int,
    description: Optional[str] = None,
) -> Reward:
    if not valid_points_required(points_required):
        raise InvalidInputError("Points required must be between 1 and 10000.")
    with unit_of_work(session):
        membership_service.require_permission(session, actor_id, family_id, permissions.ACTION_MANAGE)
        reward = rewards_repo.create_reward(
            session,
            Reward(family_id=family_id, name=name, description=description, points_required=points_required),
        )
    return reward
