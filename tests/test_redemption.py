import pytest
from sqlalchemy import select

from family_points.data.models import (
    LEDGER_SOURCE_REFUND,
    REDEMPTION_APPROVED,
    REDEMPTION_COMPLETED,
    REDEMPTION_PENDING,
    REDEMPTION_REJECTED,
    RedemptionEvent,
    Reward,
)
from family_points.domain.errors import (
    InsufficientPointsError,
    InvalidStateError,
    RewardInactiveError,
    RewardNotFoundError,
    UnauthorizedError,
)
from family_points.domain.services import behavior_service, family_service, ledger_service, redemption_service


@pytest.fixture
def funded(session, family):
    for _ in range(2):
        behavior_service.record_behavior(session, family.child.id, family.clean_room.id, None, family.parent.id)
    return family


def test_redeem_debits_and_creates_pending_event(session, funded) -> None:
    redemption = redemption_service.redeem(session, funded.child.id, funded.ice_cream.id, funded.member.id)

    assert redemption.status == REDEMPTION_PENDING
    assert redemption.points_spent == 5
    assert ledger_service.get_balance(session, funded.child.id) == 5
    assert ledger_service.is_applied(session, redemption.id)


def test_insufficient_points_persists_nothing(session, family) -> None:
    with pytest.raises(InsufficientPointsError):
        redemption_service.redeem(session, family.child.id, family.ice_cream.id, family.parent.id)

    assert ledger_service.get_balance(session, family.child.id) == 0
    assert session.scalars(select(RedemptionEvent)).all() == []


def test_immediate_redemption_policy(session, funded) -> None:
    family_service.update_policy(session, funded.family.id, funded.parent.id, immediate_redemption=True)

    redemption = redemption_service.redeem(session, funded.child.id, funded.ice_cream.id, funded.parent.id)
    assert redemption.status == REDEMPTION_COMPLETED
    assert redemption.completed_at is not None


def test_reject_refunds_points_once(session, funded) -> None:
    redemption = redemption_service.redeem(session, funded.child.id, funded.ice_cream.id, funded.member.id)

    rejected = redemption_service.decide_redemption(session, redemption.id, funded.parent.id, approve=False)
    assert rejected.status == REDEMPTION_REJECTED
    assert rejected.decided_by == funded.parent.id
    assert ledger_service.get_balance(session, funded.child.id) == 10
    assert ledger_service.is_applied(session, redemption_service.refund_key(redemption.id))

    redemption_service.decide_redemption(session, redemption.id, funded.parent.id, approve=False)
    assert ledger_service.get_balance(session, funded.child.id) == 10
    refunds = [e for e in ledger_service.ledger_history(session, funded.child.id) if e.source == LEDGER_SOURCE_REFUND]
    assert len(refunds) == 1


def test_approve_then_complete(session, funded) -> None:
    redemption = redemption_service.redeem(session, funded.child.id, funded.ice_cream.id, funded.member.id)

    with pytest.raises(InvalidStateError):
        redemption_service.complete_redemption(session, redemption.id, funded.parent.id)

    approved = redemption_service.decide_redemption(session, redemption.id, funded.guardian.id, approve=True)
    assert approved.status == REDEMPTION_APPROVED
    assert ledger_service.get_balance(session, funded.child.id) == 5

    completed = redemption_service.complete_redemption(session, redemption.id, funded.parent.id)
    assert completed.status == REDEMPTION_COMPLETED
    assert completed.completed_at is not None
    assert redemption_service.complete_redemption(session, redemption.id, funded.parent.id).status == REDEMPTION_COMPLETED
    assert ledger_service.get_balance(session, funded.child.id) == 5


def test_completing_rejected_redemption_fails(session, funded) -> None:
    redemption = redemption_service.redeem(session, funded.child.id, funded.ice_cream.id, funded.member.id)
    redemption_service.decide_redemption(session, redemption.id, funded.parent.id, approve=False)

    with pytest.raises(InvalidStateError):
        redemption_service.complete_redemption(session, redemption.id, funded.parent.id)


def test_requester_cannot_approve_own_redemption(session, funded) -> None:
    redemption = redemption_service.redeem(session, funded.child.id, funded.ice_cream.id, funded.parent.id)

    with pytest.raises(UnauthorizedError):
        redemption_service.decide_redemption(session, redemption.id, funded.parent.id, approve=True)
    assert redemption_service.get_redemption(session, redemption.id).status == REDEMPTION_PENDING


def test_reward_checks(session, funded) -> None:
    with pytest.raises(RewardNotFoundError):
        redemption_service.redeem(session, funded.child.id, 999, funded.parent.id)

    other = family_service.create_family(session, "Neighbours", funded.outsider.id)
    foreign = family_service.add_reward(session, other.id, funded.outsider.id, "Pony", 1)
    with pytest.raises(RewardNotFoundError):
        redemption_service.redeem(session, funded.child.id, foreign.id, funded.parent.id)
    with pytest.raises(UnauthorizedError):
        redemption_service.redeem(session, funded.child.id, funded.ice_cream.id, funded.outsider.id)

    reward = session.get(Reward, funded.ice_cream.id)
    reward.is_active = False
    session.commit()
    with pytest.raises(RewardInactiveError):
        redemption_service.redeem(session, funded.child.id, funded.ice_cream.id, funded.parent.id)

    assert ledger_service.get_balance(session, funded.child.id) == 10


def test_redeem_retry_with_same_event_id(session, funded) -> None:
    first = redemption_service.redeem(
        session, funded.child.id, funded.ice_cream.id, funded.member.id, event_id="redeem-1"
    )
    second = redemption_service.redeem(
        session, funded.child.id, funded.ice_cream.id, funded.member.id, event_id="redeem-1"
    )

    assert first.id == second.id
    assert ledger_service.get_balance(session, funded.child.id) == 5


def test_list_redemptions(session, funded) -> None:
    redemption_service.redeem(session, funded.child.id, funded.ice_cream.id, funded.member.id)
    second = redemption_service.redeem(session, funded.child.id, funded.ice_cream.id, funded.member.id)
    redemption_service.decide_redemption(session, second.id, funded.parent.id, approve=True)

    items, total = redemption_service.list_redemptions(session, funded.family.id)
    assert total == 2
    approved, total = redemption_service.list_redemptions(session, funded.family.id, status=REDEMPTION_APPROVED)
    assert total == 1
    assert approved[0].id == second.id


def test_reused_redemption_id_still_checks_membership(session, funded) -> None:
    redemption_service.redeem(session, funded.child.id, funded.ice_cream.id, funded.member.id, event_id="redeem-1")

    with pytest.raises(UnauthorizedError):
        redemption_service.redeem(
            session, funded.child.id, funded.ice_cream.id, funded.outsider.id, event_id="redeem-1"
        )
    assert ledger_service.get_balance(session, funded.child.id) == 5
