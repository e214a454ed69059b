import logging
from datetime import datetime

from sqlalchemy.orm import Session

from family_points.data.models import (
    BEHAVIOR_PENDING,
    BEHAVIOR_REJECTED,
    BEHAVIOR_VERIFIED,
    LEDGER_SOURCE_BEHAVIOR,
    BehaviorEvent,
    FamilyPolicy,
)
from family_points.data.repos import behaviors_repo, families_repo
from family_points.domain.errors import EventNotFoundError, UnauthorizedError
from family_points.domain.rules import permissions
from family_points.domain.services import ledger_service, membership_service
from family_points.domain.services.unit_of_work import unit_of_work

logger = logging.getLogger(__name__)


def check_not_self_approval(policy: FamilyPolicy, creator_id: int, approver_id: int) -> None:
    if creator_id == approver_id and not policy.allow_self_approval:
        raise UnauthorizedError("You cannot approve your own request; ask another family member.")


def decide(session: Session, event_id: str, approver_id: int, approve: bool) -> BehaviorEvent:
    """
    Verify or reject a pending behavior event.

    Deciding an event that is already verified or rejected is a no-op and
    returns it unchanged. Approval applies the ledger delta in the same
    transaction as the state change, keyed by the event id.
    """
    with unit_of_work(session):
        behavior = behaviors_repo.get_behavior(session, event_id)
        if behavior is None:
            raise EventNotFoundError("Behavior not found")
        membership_service.require_permission(session, approver_id, behavior.family_id, permissions.ACTION_APPROVE)
        if behavior.status != BEHAVIOR_PENDING:
            return behavior

        policy = families_repo.get_policy(session, behavior.family_id)
        check_not_self_approval(policy, behavior.recorded_by, approver_id)

        new_status = BEHAVIOR_VERIFIED if approve else BEHAVIOR_REJECTED
        moved = behaviors_repo.transition_from_pending(session, event_id, new_status, approver_id, datetime.utcnow())
        behavior = session.get(BehaviorEvent, event_id, populate_existing=True)
        if not moved:
            return behavior

        if approve:
            ledger_service.apply_delta(
                session,
                behavior.child_id,
                behavior.points_change,
                behavior.id,
                source=LEDGER_SOURCE_BEHAVIOR,
                allow_negative=policy.allow_negative_balance,
            )

    logger.info("Behavior %s %s by user %s", event_id, behavior.status, approver_id)
    return behavior
