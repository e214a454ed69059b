from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from family_points.data.models import Family, FamilyMember, FamilyPolicy, User


def get_family(session: Session, family_id: int) -> Optional[Family]:
    return session.get(Family, family_id)


def get_family_by_invite_code(session: Session, invite_code: str) -> Optional[Family]:
    return session.scalars(select(Family).where(Family.invite_code == invite_code)).one_or_none()


def list_families_for_user(session: Session, user_id: int) -> List[Tuple[Family, str]]:
    """Families the user belongs to, newest first, each with the user's role."""
    rows = session.execute(
        select(Family, FamilyMember.role)
        .join(FamilyMember, FamilyMember.family_id == Family.id)
        .where(FamilyMember.user_id == user_id)
        .order_by(Family.created_at.desc(), Family.id.desc())
    )
    return [(family, role) for family, role in rows]


def create_family(session: Session, family: Family) -> Family:
    session.add(family)
    session.flush()
    return family


def get_membership(session: Session, user_id: int, family_id: int) -> Optional[FamilyMember]:
    return session.scalars(
        select(FamilyMember).where(FamilyMember.user_id == user_id, FamilyMember.family_id == family_id)
    ).one_or_none()


def first_membership(session: Session, user_id: int) -> Optional[FamilyMember]:
    return session.scalars(
        select(FamilyMember).where(FamilyMember.user_id == user_id).order_by(FamilyMember.joined_at, FamilyMember.id)
    ).first()


def list_members(session: Session, family_id: int) -> list[FamilyMember]:
    return list(session.scalars(select(FamilyMember).where(FamilyMember.family_id == family_id)))


def add_member(session: Session, member: FamilyMember) -> FamilyMember:
    session.add(member)
    session.flush()
    return member


def get_policy(session: Session, family_id: int) -> FamilyPolicy:
    policy = session.scalars(select(FamilyPolicy).where(FamilyPolicy.family_id == family_id)).one_or_none()
    if policy is None:
        policy = FamilyPolicy(family_id=family_id)
        session.add(policy)
        session.flush()
    return policy


def get_user(session: Session, user_id: int) -> Optional[User]:
    return session.get(User, user_id)


def get_user_by_email(session: Session, email: str) -> Optional[User]:
    return session.scalars(select(User).where(User.email == email.strip().lower())).one_or_none()


def create_user(session: Session, user: User) -> User:
    session.add(user)
    session.flush()
    return user
