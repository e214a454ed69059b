"""
Behavior recording.
Validates a behavior against its rule, snapshots the rule's points and, when
the family does not require verification, applies the delta in the same
transaction that creates the event.
"""
import datetime
import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from family_points.data.models import (
    BEHAVIOR_PENDING,
    BEHAVIOR_VERIFIED,
    LEDGER_SOURCE_BEHAVIOR,
    BehaviorEvent,
    new_event_id,
)
from family_points.data.repos import behaviors_repo, children_repo, families_repo, rules_repo
from family_points.domain.errors import (
    ChildNotFoundError,
    ChildNotInFamilyError,
    DuplicateApplicationError,
    InvalidStateError,
    RuleInactiveError,
    RuleNotFoundError,
)
from family_points.domain.rules import permissions
from family_points.domain.rules.point_rules import requires_verification
from family_points.domain.services import ledger_service, membership_service
from family_points.domain.services.unit_of_work import unit_of_work

logger = logging.getLogger(__name__)


def record_behavior(
    session: Session,
    child_id: int,
    rule_id: int,
    note: Optional[str],
    recorded_by: int,
    event_id: Optional[str] = None,
) -> BehaviorEvent:
    """
    Record a behavior for a child.

    Args:
        session: Database session
        child_id: Child the behavior is recorded for
        rule_id: Active rule in the child's family
        note: Optional free-text note
        recorded_by: User recording the behavior
        event_id: Idempotency key; reusing it returns the already recorded event

    Returns:
        The created (or previously created) BehaviorEvent
    """
    event_id = event_id or new_event_id()
    try:
        return _record_behavior(session, child_id, rule_id, note, recorded_by, event_id)
    except DuplicateApplicationError:
        # A concurrent retry with the same key committed first.
        existing = behaviors_repo.get_behavior(session, event_id)
        if existing is None:
            raise
        return _check_retry(session, existing, child_id, rule_id, recorded_by)


def _check_retry(
    session: Session, existing: BehaviorEvent, child_id: int, rule_id: int, recorded_by: int
) -> BehaviorEvent:
    """Only someone allowed to record in the event's family gets a stored event back for a reused id."""
    membership_service.require_permission(session, recorded_by, existing.family_id, permissions.ACTION_RECORD)
    if existing.child_id != child_id or existing.rule_id != rule_id:
        raise InvalidStateError("This event id was already used for a different behavior.")
    return existing


def _record_behavior(
    session: Session,
    child_id: int,
    rule_id: int,
    note: Optional[str],
    recorded_by: int,
    event_id: str,
) -> BehaviorEvent:
    with unit_of_work(session):
        existing = behaviors_repo.get_behavior(session, event_id)
        if existing is not None:
            return _check_retry(session, existing, child_id, rule_id, recorded_by)

        child = children_repo.get_child(session, child_id)
        if child is None:
            raise ChildNotFoundError()
        rule = rules_repo.get_rule(session, rule_id)
        if rule is None:
            raise RuleNotFoundError()

        membership_service.require_permission(session, recorded_by, rule.family_id, permissions.ACTION_RECORD)
        if child.family_id != rule.family_id:
            raise ChildNotInFamilyError()
        if not rule.is_active:
            raise RuleInactiveError()

        policy = families_repo.get_policy(session, rule.family_id)
        now = datetime.datetime.utcnow()
        behavior = behaviors_repo.create_behavior(
            session,
            BehaviorEvent(
                id=event_id,
                family_id=rule.family_id,
                child_id=child.id,
                rule_id=rule.id,
                points_change=rule.points,
                note=note,
                status=BEHAVIOR_PENDING,
                recorded_by=recorded_by,
                created_at=now,
                updated_at=now,
            ),
        )

        if not requires_verification(policy, rule):
            behavior.status = BEHAVIOR_VERIFIED
            behavior.verified_at = now
            session.flush()
            ledger_service.apply_delta(
                session,
                child.id,
                behavior.points_change,
                behavior.id,
                source=LEDGER_SOURCE_BEHAVIOR,
                allow_negative=policy.allow_negative_balance,
            )

    logger.info(
        "Recorded behavior %s for child %s (rule %s, %+d, %s)",
        behavior.id,
        child_id,
        rule_id,
        behavior.points_change,
        behavior.status,
    )
    return behavior


def get_behavior(session: Session, event_id: str) -> Optional[BehaviorEvent]:
    return behaviors_repo.get_behavior(session, event_id)


def list_behaviors(
    session: Session,
    family_id: int,
    child_id: Optional[int] = None,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[BehaviorEvent], int]:
    page = max(page, 1)
    return behaviors_repo.list_behaviors(
        session, family_id, child_id=child_id, status=status, offset=(page - 1) * limit, limit=limit
    )


def points_stats(session: Session, child_id: int) -> Dict[str, int]:
    """Verified, pending and rejected point sums plus this month's verified total."""
    if children_repo.get_child(session, child_id) is None:
        raise ChildNotFoundError()
    month_start = datetime.datetime.utcnow().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    stats = behaviors_repo.points_by_status(session, child_id, month_start)
    stats["total_points"] = ledger_service.get_balance(session, child_id)
    return stats
