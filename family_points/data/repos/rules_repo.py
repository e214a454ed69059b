from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from family_points.data.models import Rule


def get_rule(session: Session, rule_id: int) -> Optional[Rule]:
    return session.get(Rule, rule_id)


def list_rules(session: Session, family_id: int, active_only: bool = False) -> list[Rule]:
    query = select(Rule).where(Rule.family_id == family_id)
    if active_only:
        query = query.where(Rule.is_active.is_(True))
    return list(session.scalars(query.order_by(Rule.id)))


def create_rule(session: Session, rule: Rule) -> Rule:
    session.add(rule)
    session.flush()
    return rule
