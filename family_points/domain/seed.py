import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from family_points.data.models import RULE_TYPE_PUNISHMENT, RULE_TYPE_REWARD, ROLE_GUARDIAN, User
from family_points.domain.services import family_service

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "demo1234"


def seed_data(session: Session) -> None:
    """Create a demo family with two children, a few rules and rewards. Skipped once any user exists."""
    if session.execute(select(User)).first() is not None:
        return

    parent = family_service.register_user(session, "parent@example.com", "Demo Parent", DEMO_PASSWORD)
    guardian = family_service.register_user(session, "grandma@example.com", "Grandma", DEMO_PASSWORD)
    family = family_service.create_family(session, "Demo Family", parent.id)
    family_service.add_member(session, family.id, parent.id, guardian.email, ROLE_GUARDIAN)

    for name in ("Child 1", "Child 2"):
        family_service.add_child(session, family.id, parent.id, name)

    rules = [
        ("Clean room", "chores", RULE_TYPE_REWARD, 5, False),
        ("Homework done", "school", RULE_TYPE_REWARD, 10, False),
        ("Helped cook dinner", "chores", RULE_TYPE_REWARD, 15, True),
        ("Screen time overrun", "habits", RULE_TYPE_PUNISHMENT, -5, False),
        ("Rude to sibling", "behavior", RULE_TYPE_PUNISHMENT, -10, True),
    ]
    for name, category, rule_type, points, requires_approval in rules:
        family_service.add_rule(
            session, family.id, parent.id, name, rule_type, points, category=category, requires_approval=requires_approval
        )

    rewards = [
        ("Ice cream", 5),
        ("30 min extra screen time", 20),
        ("Trip to the zoo", 200),
    ]
    for name, points_required in rewards:
        family_service.add_reward(session, family.id, parent.id, name, points_required)

    logger.info("Seeded demo family %s", family.id)
