"""
Reward redemption.
Debits points together with creating the redemption record, and credits them
back in the same transaction that rejects a pending redemption.
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from family_points.data.models import (
    LEDGER_SOURCE_REDEMPTION,
    LEDGER_SOURCE_REFUND,
    REDEMPTION_APPROVED,
    REDEMPTION_COMPLETED,
    REDEMPTION_PENDING,
    REDEMPTION_REJECTED,
    RedemptionEvent,
    new_event_id,
)
from family_points.data.repos import children_repo, families_repo, redemptions_repo, rewards_repo
from family_points.domain.errors import (
    ChildNotFoundError,
    DuplicateApplicationError,
    EventNotFoundError,
    InsufficientBalanceError,
    InsufficientPointsError,
    InvalidStateError,
    RewardInactiveError,
    RewardNotFoundError,
)
from family_points.domain.rules import permissions
from family_points.domain.services import ledger_service, membership_service
from family_points.domain.services.approval_service import check_not_self_approval
from family_points.domain.services.unit_of_work import unit_of_work

logger = logging.getLogger(__name__)


def refund_key(redemption_id: str) -> str:
    return f"{redemption_id}:refund"


def redeem(
    session: Session,
    child_id: int,
    reward_id: int,
    requested_by: int,
    event_id: Optional[str] = None,
) -> RedemptionEvent:
    """
    Redeem a reward for a child.

    The redemption row and the debit commit together; when the balance is too
    low nothing is written and InsufficientPointsError is raised.
    """
    event_id = event_id or new_event_id()
    try:
        return _redeem(session, child_id, reward_id, requested_by, event_id)
    except DuplicateApplicationError:
        existing = redemptions_repo.get_redemption(session, event_id)
        if existing is None:
            raise
        return _check_retry(session, existing, child_id, reward_id, requested_by)


def _check_retry(
    session: Session, existing: RedemptionEvent, child_id: int, reward_id: int, requested_by: int
) -> RedemptionEvent:
    membership_service.require_permission(session, requested_by, existing.family_id, permissions.ACTION_REDEEM)
    if existing.child_id != child_id or existing.reward_id != reward_id:
        raise InvalidStateError("This event id was already used for a different redemption.")
    return existing


def _redeem(session: Session, child_id: int, reward_id: int, requested_by: int, event_id: str) -> RedemptionEvent:
    with unit_of_work(session):
        existing = redemptions_repo.get_redemption(session, event_id)
        if existing is not None:
            return _check_retry(session, existing, child_id, reward_id, requested_by)

        child = children_repo.get_child(session, child_id)
        if child is None:
            raise ChildNotFoundError()
        membership_service.require_permission(session, requested_by, child.family_id, permissions.ACTION_REDEEM)

        reward = rewards_repo.get_reward(session, reward_id)
        if reward is None or reward.family_id != child.family_id:
            raise RewardNotFoundError()
        if not reward.is_active:
            raise RewardInactiveError()

        policy = families_repo.get_policy(session, child.family_id)
        now = datetime.utcnow()
        status = REDEMPTION_COMPLETED if policy.immediate_redemption else REDEMPTION_PENDING
        redemption = redemptions_repo.create_redemption(
            session,
            RedemptionEvent(
                id=event_id,
                family_id=child.family_id,
                child_id=child.id,
                reward_id=reward.id,
                points_spent=reward.points_required,
                status=status,
                requested_by=requested_by,
                completed_at=now if status == REDEMPTION_COMPLETED else None,
                created_at=now,
                updated_at=now,
            ),
        )
        try:
            ledger_service.apply_delta(
                session,
                child.id,
                -redemption.points_spent,
                redemption.id,
                source=LEDGER_SOURCE_REDEMPTION,
                allow_negative=False,
            )
        except InsufficientBalanceError as exc:
            balance = children_repo.read_balance(session, child.id)
            raise InsufficientPointsError(
                f"{reward.name} needs {reward.points_required} points; {child.name} has {balance}."
            ) from exc

    logger.info(
        "Child %s redeemed reward %s for %d points (%s)", child_id, reward_id, redemption.points_spent, redemption.status
    )
    return redemption


def decide_redemption(session: Session, redemption_id: str, approver_id: int, approve: bool) -> RedemptionEvent:
    """
    Approve or reject a pending redemption.

    Rejection credits the debited points back under the ``<id>:refund`` ledger
    key in the same transaction. Already decided redemptions are returned as-is.
    """
    with unit_of_work(session):
        redemption = redemptions_repo.get_redemption(session, redemption_id)
        if redemption is None:
            raise EventNotFoundError("Redemption not found")
        membership_service.require_permission(session, approver_id, redemption.family_id, permissions.ACTION_APPROVE)
        if redemption.status != REDEMPTION_PENDING:
            return redemption

        policy = families_repo.get_policy(session, redemption.family_id)
        check_not_self_approval(policy, redemption.requested_by, approver_id)

        now = datetime.utcnow()
        new_status = REDEMPTION_APPROVED if approve else REDEMPTION_REJECTED
        moved = redemptions_repo.transition(
            session, redemption_id, REDEMPTION_PENDING, new_status, decided_by=approver_id, decided_at=now
        )
        redemption = session.get(RedemptionEvent, redemption_id, populate_existing=True)
        if not moved:
            return redemption

        if not approve:
            ledger_service.apply_delta(
                session,
                redemption.child_id,
                redemption.points_spent,
                refund_key(redemption.id),
                source=LEDGER_SOURCE_REFUND,
                allow_negative=True,
            )

    logger.info("Redemption %s %s by user %s", redemption_id, redemption.status, approver_id)
    return redemption


def complete_redemption(session: Session, redemption_id: str, actor_id: int) -> RedemptionEvent:
    """Mark an approved redemption as handed over. No ledger effect."""
    with unit_of_work(session):
        redemption = redemptions_repo.get_redemption(session, redemption_id)
        if redemption is None:
            raise EventNotFoundError("Redemption not found")
        membership_service.require_permission(session, actor_id, redemption.family_id, permissions.ACTION_APPROVE)
        if redemption.status == REDEMPTION_COMPLETED:
            return redemption
        if redemption.status != REDEMPTION_APPROVED:
            raise InvalidStateError(f"Only approved redemptions can be completed (this one is {redemption.status}).")

        now = datetime.utcnow()
        redemptions_repo.transition(session, redemption_id, REDEMPTION_APPROVED, REDEMPTION_COMPLETED, completed_at=now)
        redemption = session.get(RedemptionEvent, redemption_id, populate_existing=True)
    return redemption


def get_redemption(session: Session, redemption_id: str) -> Optional[RedemptionEvent]:
    return redemptions_repo.get_redemption(session, redemption_id)


def list_redemptions(
    session: Session,
    family_id: int,
    child_id: Optional[int] = None,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[RedemptionEvent], int]:
    page = max(page, 1)
    return redemptions_repo.list_redemptions(
        session, family_id, child_id=child_id, status=status, offset=(page - 1) * limit, limit=limit
    )
